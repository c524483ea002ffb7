from stockledger.models import LowStockAlert, Product
from stockledger.services import alert_service, lifecycle_service, reconciliation_service, stock_service


def _set_quantity(session, product_id, quantity):
    session.execute(
        Product.__table__.update().where(Product.id == product_id).values(quantity=quantity)
    )
    session.commit()


def _make_catalog():
    healthy = stock_service.create_product(name="Healthy", unit_price="1", quantity=50)
    low = stock_service.create_product(name="Low", unit_price="1", quantity=3)
    drifted = stock_service.create_product(name="Drifted", unit_price="1", quantity=40)
    return healthy, low, drifted


def test_sweep_catches_drift_in_both_directions(db_session, admin):
    healthy, low, drifted = _make_catalog()

    # Stock changed behind the ledger's back
    _set_quantity(db_session, drifted.id, 1)
    _set_quantity(db_session, low.id, 30)

    result = reconciliation_service.run_reconciliation()

    assert result.checked == 3
    assert result.created == 1
    assert result.resolved == 1
    assert result.unchanged == 1
    assert result.failed == 0
    assert result.cancelled is False

    open_skus = {a.sku for a in alert_service.list_active_alerts()}
    assert open_skus == {drifted.sku}


def test_second_sweep_changes_nothing(db_session, admin, notifier):
    _make_catalog()
    reconciliation_service.run_reconciliation()
    sent = len(notifier.low_stock)

    result = reconciliation_service.run_reconciliation()

    assert result.unchanged == 3
    assert result.created == result.updated == result.resolved == 0
    assert len(notifier.low_stock) == sent


def test_sweep_reflects_new_default_threshold(app, db_session, admin):
    product = stock_service.create_product(name="Defaulted", unit_price="1", quantity=12)
    assert alert_service.list_active_alerts() == []

    app.config["LOW_STOCK_DEFAULT_THRESHOLD"] = 20
    try:
        result = reconciliation_service.run_reconciliation()
    finally:
        app.config["LOW_STOCK_DEFAULT_THRESHOLD"] = 10

    assert result.created == 1
    assert alert_service.list_active_alerts()[0].sku == product.sku


def test_sweep_skips_soft_deleted_products(db_session, admin):
    healthy, low, drifted = _make_catalog()
    lifecycle_service.soft_delete_product(drifted.id, actor_user_id=admin.id)

    result = reconciliation_service.run_reconciliation()
    assert result.checked == 2


def test_per_product_failure_is_counted_and_sweep_continues(db_session, admin, monkeypatch):
    healthy, low, drifted = _make_catalog()
    real_evaluate = alert_service.evaluate_product

    def _flaky(product_id):
        if product_id == low.id:
            raise RuntimeError("lock wait timeout")
        return real_evaluate(product_id)

    monkeypatch.setattr(alert_service, "evaluate_product", _flaky)

    result = reconciliation_service.run_reconciliation()

    assert result.failed == 1
    assert result.checked == 2
    assert result.failures == [{"product_id": low.id, "error": "lock wait timeout"}]


def test_cancellation_is_polled_between_products(db_session, admin):
    _make_catalog()
    calls = []

    def _stop_after_one():
        calls.append(1)
        return len(calls) > 1

    result = reconciliation_service.run_reconciliation(should_stop=_stop_after_one)

    assert result.cancelled is True
    assert result.checked == 1


def test_daily_low_stock_report_counts_without_mutating(db_session, admin):
    _make_catalog()
    alerts_before = db_session.query(LowStockAlert).count()

    assert reconciliation_service.daily_low_stock_report() == 1
    assert db_session.query(LowStockAlert).count() == alerts_before
