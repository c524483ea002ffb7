# Overview: Append-only stock movement log; writes inside the caller's transaction, filtered reads.

"""
Stock Transaction Log Invariants (authoritative)

- Exactly one entry per successful quantity mutation, written in the same DB
  transaction as the mutation.
- quantity_after == quantity_before + quantity_delta, always.
- Entries are never updated or deleted (mapper guards in models.inventory).
- sku and product_name are captured at write time; reads never join products.
- Date filters are inclusive whole days.
"""

from __future__ import annotations

from datetime import date, datetime

from ..extensions import db
from ..models import Product, StockTransaction, VALID_KINDS
from ..time_utils import end_of_day, parse_iso_date, start_of_day, utcnow
from ..validation import ValidationError


DEFAULT_QUERY_LIMIT = 500


def append_entry(
    *,
    product: Product,
    kind: str,
    quantity_delta: int,
    quantity_before: int,
    quantity_after: int,
    performed_by_user_id: int | None = None,
    note: str | None = None,
    occurred_at: datetime | None = None,
) -> StockTransaction:
    """
    Append one movement for `product`.

    - No business rules here beyond internal consistency.
    - Flushes so the entry id is assigned; the caller commits.
    """
    if kind not in VALID_KINDS:
        raise ValidationError(f"Invalid transaction kind: {kind}")
    if quantity_before + quantity_delta != quantity_after:
        raise ValidationError(
            f"Inconsistent movement: {quantity_before} + {quantity_delta} != {quantity_after}"
        )
    if quantity_after < 0:
        raise ValidationError("quantity_after cannot be negative")

    entry = StockTransaction(
        sku=product.sku,
        product_name=product.name,
        kind=kind,
        quantity_delta=quantity_delta,
        quantity_before=quantity_before,
        quantity_after=quantity_after,
        performed_by_user_id=performed_by_user_id,
        note=note,
        occurred_at=occurred_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def _as_date(value, label: str) -> date | None:
    if value is None or isinstance(value, date):
        # datetime is a date subclass; start_of_day/end_of_day handle both
        return value
    if isinstance(value, str):
        try:
            return parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{label} must be a date (YYYY-MM-DD)")
    raise ValidationError(f"{label} must be a date (YYYY-MM-DD)")


def query_entries(
    *,
    sku: str | None = None,
    name_contains: str | None = None,
    kind: str | None = None,
    start_date=None,
    end_date=None,
    limit: int = DEFAULT_QUERY_LIMIT,
) -> list[StockTransaction]:
    """Filtered movements, newest first. Every filter is optional."""
    if kind is not None and kind not in VALID_KINDS:
        raise ValidationError(
            f"Invalid kind '{kind}'. Must be one of: {', '.join(sorted(VALID_KINDS))}"
        )
    if limit <= 0:
        raise ValidationError("limit must be positive")

    start = _as_date(start_date, "start_date")
    end = _as_date(end_date, "end_date")
    if start is not None and end is not None and start_of_day(start) > start_of_day(end):
        raise ValidationError("start_date cannot be after end_date")

    q = db.session.query(StockTransaction)
    if sku:
        q = q.filter(StockTransaction.sku == sku.strip())
    if name_contains:
        q = q.filter(StockTransaction.product_name.ilike(f"%{name_contains.strip()}%"))
    if kind:
        q = q.filter(StockTransaction.kind == kind)
    if start is not None:
        q = q.filter(StockTransaction.occurred_at >= start_of_day(start))
    if end is not None:
        q = q.filter(StockTransaction.occurred_at <= end_of_day(end))

    return (
        q.order_by(StockTransaction.occurred_at.desc(), StockTransaction.id.desc())
        .limit(limit)
        .all()
    )


def list_entries_for_sku(sku: str, *, limit: int = DEFAULT_QUERY_LIMIT) -> list[StockTransaction]:
    if not sku or not sku.strip():
        raise ValidationError("sku is required")
    return query_entries(sku=sku, limit=limit)
