from datetime import date, datetime, timedelta

import pytest

from stockledger.models import ImmutableRecordError, KIND_STOCK_IN, KIND_STOCK_OUT, StockTransaction
from stockledger.services import stock_service, transaction_log_service
from stockledger.time_utils import utcnow
from stockledger.validation import ValidationError


def _backdate(session, entry_id, when):
    # Core update: the ORM refuses to rewrite ledger rows
    session.execute(
        StockTransaction.__table__.update()
        .where(StockTransaction.id == entry_id)
        .values(occurred_at=when)
    )
    session.commit()


def test_entries_are_immutable_through_the_orm(db_session, widget):
    entry = transaction_log_service.list_entries_for_sku(widget.sku)[0]

    entry.note = "rewritten"
    with pytest.raises(ImmutableRecordError):
        db_session.flush()
    db_session.rollback()

    entry = transaction_log_service.list_entries_for_sku(widget.sku)[0]
    db_session.delete(entry)
    with pytest.raises(ImmutableRecordError):
        db_session.flush()
    db_session.rollback()


def test_append_entry_rejects_inconsistent_arithmetic(db_session, widget):
    with pytest.raises(ValidationError):
        transaction_log_service.append_entry(
            product=widget, kind=KIND_STOCK_IN, quantity_delta=5,
            quantity_before=12, quantity_after=18,
        )
    with pytest.raises(ValidationError):
        transaction_log_service.append_entry(
            product=widget, kind="TELEPORT", quantity_delta=1,
            quantity_before=12, quantity_after=13,
        )


def test_query_filters_by_kind_and_name(db_session, widget):
    stock_service.stock_out(widget.sku, 2)
    stock_service.create_product(name="Sprocket", unit_price="3", quantity=40)

    outs = transaction_log_service.query_entries(kind=KIND_STOCK_OUT)
    assert [e.sku for e in outs] == [widget.sku]

    sprockets = transaction_log_service.query_entries(name_contains="sprock")
    assert [e.product_name for e in sprockets] == ["Sprocket"]


def test_query_date_bounds_are_inclusive_whole_days(db_session, widget):
    stock_service.stock_in(widget.sku, 1)
    entries = transaction_log_service.list_entries_for_sku(widget.sku)
    old_day = utcnow() - timedelta(days=10)
    _backdate(db_session, entries[-1].id, old_day.replace(hour=23, minute=59))

    on_day = transaction_log_service.query_entries(
        sku=widget.sku, start_date=old_day.date(), end_date=old_day.date(),
    )
    assert len(on_day) == 1

    since_yesterday = transaction_log_service.query_entries(
        sku=widget.sku, start_date=(utcnow() - timedelta(days=1)).date().isoformat(),
    )
    assert len(since_yesterday) == 1


def test_query_rejects_bad_filters(db_session):
    with pytest.raises(ValidationError):
        transaction_log_service.query_entries(kind="LOST")
    with pytest.raises(ValidationError):
        transaction_log_service.query_entries(start_date=date(2026, 5, 2), end_date=date(2026, 5, 1))
    with pytest.raises(ValidationError):
        transaction_log_service.query_entries(start_date="yesterday")
    with pytest.raises(ValidationError):
        transaction_log_service.list_entries_for_sku(" ")


def test_query_is_newest_first_and_limited(db_session, widget):
    for _ in range(3):
        stock_service.stock_in(widget.sku, 1)

    entries = transaction_log_service.query_entries(sku=widget.sku, limit=2)
    assert len(entries) == 2
    assert entries[0].quantity_after == 15
    assert entries[1].quantity_after == 14
    assert isinstance(entries[0].occurred_at, datetime)
