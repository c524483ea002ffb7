# Overview: Service-layer operations for the product stock ledger; encapsulates business logic and database work.

"""
Stock Ledger Service

Owns Product quantity, threshold and descriptive fields, and is the only
writer of the stock transaction log.

EVERY QUANTITY MUTATION (create / stock-in / stock-out / adjust):
1. takes the in-process per-product lock, then the row lock
2. re-reads the product and rejects soft-deleted rows (NotFound)
3. updates quantity, appends exactly one log entry, evaluates the alert
4. commits all three together (retried on lock / optimistic-lock failures)
5. releases the lock, then records the audit entry and queues notifications

A failed mutation (validation, insufficient stock) leaves quantity, log and
alert state untouched.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func, or_

from ..extensions import db
from ..models import (
    KIND_ADJUSTMENT,
    KIND_STOCK_IN,
    KIND_STOCK_OUT,
    Product,
    STATE_ACTIVE,
)
from ..validation import (
    ConflictError,
    InsufficientStockError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    require_non_negative_int,
    require_positive_quantity,
    require_unit_price,
    validate_payload,
)
from . import alert_service, audit_service, sku_service
from .concurrency import entity_locks, lock_for_update, product_lock_key, run_with_retry
from .notification_service import dispatch_notifications
from .transaction_log_service import append_entry


PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "supplier", "unit_price", "quantity", "min_stock_threshold"},
    required_on_create={"name", "unit_price"},
)

PRODUCT_DETAILS_POLICY = ModelValidationPolicy(
    writable_fields={"name", "category", "supplier"},
)

INITIAL_STOCK_NOTE = "Initial stock"


def _default_threshold() -> int:
    return current_app.config["LOW_STOCK_DEFAULT_THRESHOLD"]


def _ensure_name_available(name: str, *, exclude_product_id: int | None = None) -> None:
    q = db.session.query(Product.id).filter(
        func.lower(Product.name) == name.lower(),
        Product.lifecycle_state == STATE_ACTIVE,
    )
    if exclude_product_id is not None:
        q = q.filter(Product.id != exclude_product_id)
    if q.first() is not None:
        raise ConflictError(f"A product named '{name}' already exists")


def _active_product_id_for_sku(sku: str) -> int:
    if not sku or not str(sku).strip():
        raise ValidationError("sku is required")
    product_id = (
        db.session.query(Product.id)
        .filter(Product.sku == sku.strip(), Product.lifecycle_state == STATE_ACTIVE)
        .scalar()
    )
    if product_id is None:
        raise NotFoundError("Product", "SKU", sku)
    return product_id


def _load_active_for_update(product_id: int, *, sku: str | None = None) -> Product:
    product = lock_for_update(
        db.session.query(Product).filter(Product.id == product_id)
    ).first()
    if product is None or product.is_deleted:
        if sku is not None:
            raise NotFoundError("Product", "SKU", sku)
        raise NotFoundError("Product", "id", product_id)
    return product


# ----------------------------------------------------------------------------
# Reads
# ----------------------------------------------------------------------------

def get_product(product_id: int, *, include_deleted: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if product is None or (product.is_deleted and not include_deleted):
        raise NotFoundError("Product", "id", product_id)
    return product


def get_product_by_sku(sku: str) -> Product:
    product = (
        db.session.query(Product)
        .filter(Product.sku == sku, Product.lifecycle_state == STATE_ACTIVE)
        .first()
    )
    if product is None:
        raise NotFoundError("Product", "SKU", sku)
    return product


def list_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.lifecycle_state == STATE_ACTIVE)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def search_products(term: str) -> list[Product]:
    if term is None or not term.strip():
        raise ValidationError("Search term cannot be empty")
    pattern = f"%{term.strip()}%"
    return (
        db.session.query(Product)
        .filter(
            Product.lifecycle_state == STATE_ACTIVE,
            or_(
                Product.name.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.category.ilike(pattern),
            ),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def _low_stock_query():
    threshold = func.coalesce(Product.min_stock_threshold, _default_threshold())
    return db.session.query(Product).filter(
        Product.lifecycle_state == STATE_ACTIVE,
        Product.quantity < threshold,
    )


def list_low_stock_products() -> list[Product]:
    """Active products below their effective threshold, lowest quantity first."""
    return _low_stock_query().order_by(Product.quantity.asc(), Product.id.asc()).all()


def count_low_stock_products() -> int:
    return _low_stock_query().count()


# ----------------------------------------------------------------------------
# Mutations
# ----------------------------------------------------------------------------

def create_product(
    *,
    name,
    unit_price,
    quantity=0,
    category=None,
    supplier=None,
    min_stock_threshold=None,
    actor_user_id: int | None = None,
) -> Product:
    """
    Create a product with a freshly allocated SKU.

    Writes the "Initial stock" STOCK_IN entry (0 -> quantity) and evaluates
    the alert in the same transaction.
    """
    patch = validate_payload(
        model=Product,
        payload={
            "name": name,
            "category": category,
            "supplier": supplier,
            "unit_price": unit_price,
            "quantity": quantity,
            "min_stock_threshold": min_stock_threshold,
        },
        policy=PRODUCT_CREATE_POLICY,
        partial=False,
    )
    price = require_unit_price(patch["unit_price"])
    initial_qty = require_non_negative_int(patch["quantity"], label="quantity")
    threshold = patch["min_stock_threshold"]
    if threshold is not None:
        threshold = require_non_negative_int(threshold, label="min_stock_threshold")

    prefix = current_app.config["SKU_PREFIX"]
    width = current_app.config["SKU_WIDTH"]

    with sku_service.sku_allocation_lock(prefix):
        def _op():
            _ensure_name_available(patch["name"])
            sku = sku_service.next_sku(prefix, width)

            product = Product(
                sku=sku,
                name=patch["name"],
                category=patch["category"] or None,
                supplier=patch["supplier"] or None,
                unit_price=price,
                quantity=initial_qty,
                min_stock_threshold=threshold,
                lifecycle_state=STATE_ACTIVE,
                created_by_user_id=actor_user_id,
                last_updated_by_user_id=actor_user_id,
            )
            db.session.add(product)
            db.session.flush()

            append_entry(
                product=product,
                kind=KIND_STOCK_IN,
                quantity_delta=initial_qty,
                quantity_before=0,
                quantity_after=initial_qty,
                performed_by_user_id=actor_user_id,
                note=INITIAL_STOCK_NOTE,
            )
            evaluation = alert_service.evaluate_stock_level(product)
            db.session.commit()
            return product, evaluation

        product, evaluation = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="CREATE_PRODUCT",
        entity_type="PRODUCT",
        entity_id=product.id,
        detail=f"Created product: {product.name} ({product.sku})",
    )
    dispatch_notifications([evaluation.notification])
    return product


def _apply_movement(
    *,
    sku: str,
    kind: str,
    quantity_delta: int,
    note: str | None,
    actor_user_id: int | None,
) -> Product:
    product_id = _active_product_id_for_sku(sku)

    with entity_locks.hold(product_lock_key(product_id)):
        def _op():
            product = _load_active_for_update(product_id, sku=sku)

            before = product.quantity
            after = before + quantity_delta
            if after < 0:
                raise InsufficientStockError(product.name, before, abs(quantity_delta))

            product.quantity = after
            product.last_updated_by_user_id = actor_user_id
            db.session.flush()

            append_entry(
                product=product,
                kind=kind,
                quantity_delta=quantity_delta,
                quantity_before=before,
                quantity_after=after,
                performed_by_user_id=actor_user_id,
                note=note,
            )
            evaluation = alert_service.evaluate_stock_level(product)
            db.session.commit()
            return product, evaluation

        product, evaluation = run_with_retry(_op)

    verb = "Added" if quantity_delta > 0 else "Removed"
    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action=kind if kind != KIND_ADJUSTMENT else "ADJUST_STOCK",
        entity_type="PRODUCT",
        entity_id=product.id,
        detail=f"{verb} {abs(quantity_delta)} units",
    )
    dispatch_notifications([evaluation.notification])
    return product


def _clean_note(note) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    if len(note) > 500:
        raise ValidationError("note exceeds max length 500")
    return note or None


def stock_in(sku: str, quantity, *, note=None, actor_user_id: int | None = None) -> Product:
    qty = require_positive_quantity(quantity, label="Stock in quantity")
    return _apply_movement(
        sku=sku,
        kind=KIND_STOCK_IN,
        quantity_delta=qty,
        note=_clean_note(note),
        actor_user_id=actor_user_id,
    )


def stock_out(sku: str, quantity, *, note=None, actor_user_id: int | None = None) -> Product:
    """Raises InsufficientStockError (state unchanged) when quantity > on-hand."""
    qty = require_positive_quantity(quantity, label="Stock out quantity")
    return _apply_movement(
        sku=sku,
        kind=KIND_STOCK_OUT,
        quantity_delta=-qty,
        note=_clean_note(note),
        actor_user_id=actor_user_id,
    )


def adjust_stock(sku: str, quantity_delta, *, note=None, actor_user_id: int | None = None) -> Product:
    """Signed correction (cycle count, damage, found stock)."""
    if not isinstance(quantity_delta, int) or isinstance(quantity_delta, bool):
        raise ValidationError("quantity_delta must be an integer")
    if quantity_delta == 0:
        raise ValidationError("quantity_delta cannot be zero")
    return _apply_movement(
        sku=sku,
        kind=KIND_ADJUSTMENT,
        quantity_delta=quantity_delta,
        note=_clean_note(note),
        actor_user_id=actor_user_id,
    )


def update_threshold(sku: str, new_threshold, *, actor_user_id: int | None = None) -> Product:
    """
    Change the low-stock threshold.

    No log entry (quantity is unchanged). After commit: audit, then the
    threshold-changed notification, then any low-stock notification from the
    re-evaluation.
    """
    threshold = require_non_negative_int(new_threshold, label="Threshold")
    product_id = _active_product_id_for_sku(sku)

    with entity_locks.hold(product_lock_key(product_id)):
        def _op():
            product = _load_active_for_update(product_id, sku=sku)
            old = product.min_stock_threshold
            product.min_stock_threshold = threshold
            product.last_updated_by_user_id = actor_user_id
            db.session.flush()
            evaluation = alert_service.evaluate_stock_level(product)
            db.session.commit()
            return product, old, evaluation

        product, old_threshold, evaluation = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="UPDATE_THRESHOLD",
        entity_type="PRODUCT",
        entity_id=product.id,
        detail=f"Updated threshold from {old_threshold} to {threshold}",
    )
    alert_service.notify_threshold_change(product, old_threshold, threshold, actor_user_id)
    dispatch_notifications([evaluation.notification])
    return product


def update_product_details(
    product_id: int,
    changes: dict,
    *,
    actor_user_id: int | None = None,
) -> Product:
    """Rename / recategorize. Quantity and threshold are not writable here."""
    patch = validate_payload(
        model=Product,
        payload=changes,
        policy=PRODUCT_DETAILS_POLICY,
        partial=True,
    )
    if not patch:
        raise ValidationError("No changes supplied")

    with entity_locks.hold(product_lock_key(product_id)):
        def _op():
            product = _load_active_for_update(product_id)
            if "name" in patch and patch["name"].lower() != product.name.lower():
                _ensure_name_available(patch["name"], exclude_product_id=product.id)
            for key, value in patch.items():
                setattr(product, key, value if value != "" else None)
            product.last_updated_by_user_id = actor_user_id
            db.session.commit()
            return product

        product = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="UPDATE_PRODUCT",
        entity_type="PRODUCT",
        entity_id=product.id,
        detail=f"Updated product details: {', '.join(sorted(patch))}",
    )
    return product
