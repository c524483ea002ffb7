from datetime import timedelta

from stockledger.models import Product, User
from stockledger.services import lifecycle_service
from stockledger.time_utils import utcnow


def test_users_create_and_list(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create", "--email", " Ops@Stock.Local ", "--role", "ADMIN",
        "--first-name", "Olga", "--last-name", "Ops",
    ])
    assert result.exit_code == 0, result.output
    assert "PASS Created user Olga Ops" in result.output

    user = db_session.query(User).filter_by(email="ops@stock.local").one()
    assert user.role == "ADMIN"

    listed = runner.invoke(args=["users", "list"])
    assert "ops@stock.local" in listed.output


def test_users_create_duplicate_email_fails(app, db_session, admin):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--email", "admin@stock.local", "--role", "EMPLOYEE",
    ])
    assert result.exit_code == 1
    assert "FAIL" in result.output


def test_stock_commands(app, db_session, widget):
    db_session.execute(
        Product.__table__.update().where(Product.id == widget.id).values(quantity=2)
    )
    db_session.commit()
    runner = app.test_cli_runner()

    reconcile = runner.invoke(args=["stock", "reconcile"])
    assert reconcile.exit_code == 0, reconcile.output
    assert "created=1" in reconcile.output

    report = runner.invoke(args=["stock", "low-stock-report"])
    assert "1 products below threshold" in report.output


def test_purge_dry_run_deletes_nothing(app, db_session, widget, admin):
    lifecycle_service.soft_delete_product(
        widget.id, actor_user_id=admin.id, now=utcnow() - timedelta(days=40),
    )
    runner = app.test_cli_runner()

    dry = runner.invoke(args=["lifecycle", "purge", "--dry-run"])
    assert dry.exit_code == 0, dry.output
    assert widget.sku in dry.output
    assert db_session.get(Product, widget.id) is not None

    real = runner.invoke(args=["lifecycle", "purge"])
    assert real.exit_code == 0, real.output
    assert "Purged 1 products" in real.output
