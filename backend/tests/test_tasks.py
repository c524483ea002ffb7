from celery.signals import worker_shutting_down

from stockledger import tasks
from stockledger.models import Product
from stockledger.services import notification_service, stock_service


def test_reconcile_task_returns_summary(db_session, widget):
    db_session.execute(
        Product.__table__.update().where(Product.id == widget.id).values(quantity=3)
    )
    db_session.commit()

    summary = tasks.reconcile_stock_levels.delay().get()

    assert summary["checked"] == 1
    assert summary["created"] == 1
    assert summary["cancelled"] is False


def test_worker_shutdown_cancels_long_jobs(db_session, widget):
    worker_shutting_down.send(sender="test-worker", sig="SIGTERM", how="Warm", exitcode=0)
    try:
        assert tasks.stop_requested() is True
        summary = tasks.reconcile_stock_levels.delay().get()
        assert summary["cancelled"] is True
        assert summary["checked"] == 0
    finally:
        tasks.reset_stop_flag()

    assert tasks.stop_requested() is False


def test_daily_report_task(db_session, widget):
    stock_service.stock_out(widget.sku, 5)
    assert tasks.daily_low_stock_report.delay().get() == 1


def test_purge_task_returns_summary(db_session):
    summary = tasks.purge_expired_records.delay().get()
    assert summary["products_purged"] == 0
    assert summary["users_purged"] == 0


def test_delivery_failure_does_not_fail_the_movement(db_session, widget, notifier):
    notifier.fail = True

    product = stock_service.stock_out(widget.sku, 5)

    assert product.quantity == 7
    assert notifier.low_stock == []


def test_unknown_kind_is_dropped(db_session, notifier):
    assert notification_service.deliver("CARRIER_PIGEON", {}) is False


def test_empty_recipient_list_is_not_queued(db_session, notifier):
    pending = notification_service.low_stock_notification(
        product_name="Widget", sku="SKU-000001", quantity=1, threshold=10, recipients=[],
    )
    assert notification_service.dispatch_notifications([pending, None]) == 0
    assert notifier.low_stock == []


def test_unknown_kind_is_not_queued(db_session, notifier):
    pending = notification_service.PendingNotification(
        "CARRIER_PIGEON", {"sku": "SKU-000001", "recipients": ["root@stock.local"]},
    )
    assert notification_service.dispatch_notifications([pending]) == 0
