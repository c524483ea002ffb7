from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow
from .lifecycle import SoftDeleteMixin


# Movement kinds recorded in the stock transaction log
KIND_STOCK_IN = "STOCK_IN"
KIND_STOCK_OUT = "STOCK_OUT"
KIND_ADJUSTMENT = "ADJUSTMENT"
VALID_KINDS = {KIND_STOCK_IN, KIND_STOCK_OUT, KIND_ADJUSTMENT}


class Product(SoftDeleteMixin, db.Model):
    """
    Product master data and authoritative quantity-on-hand.

    SKU DESIGN DECISION:
    - SKUs are allocated by sku_service from a per-prefix counter and are never reused,
      not even after the product is purged.
    - sku is unique across the whole catalog (active and soft-deleted rows).

    OWNERSHIP:
    - stock_service writes quantity, min_stock_threshold and descriptive fields
    - lifecycle_service writes lifecycle_state / deleted_at and removes rows
    - alert_service only reads
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint(
            "min_stock_threshold IS NULL OR min_stock_threshold >= 0",
            name="ck_products_threshold_non_negative",
        ),
        db.CheckConstraint("unit_price >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_state_name", "lifecycle_state", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=True)
    supplier = db.Column(db.String(255), nullable=True)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=0)

    # NULL means "use LOW_STOCK_DEFAULT_THRESHOLD"
    min_stock_threshold = db.Column(db.Integer, nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    last_updated_by_user_id = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r} qty={self.quantity}>"

    def effective_threshold(self, default: int) -> int:
        if self.min_stock_threshold is None:
            return default
        return self.min_stock_threshold

    def to_dict(self, *, default_threshold: int = 10) -> dict:
        threshold = self.effective_threshold(default_threshold)
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "supplier": self.supplier,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "quantity": self.quantity,
            "total_value": str(self.unit_price * self.quantity) if self.unit_price is not None else None,
            "min_stock_threshold": self.min_stock_threshold,
            "low_stock": self.quantity < threshold,
            "lifecycle_state": self.lifecycle_state,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_by_user_id": self.created_by_user_id,
            "last_updated_by_user_id": self.last_updated_by_user_id,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockTransaction(db.Model):
    """
    Append-only stock movement log.

    Product identity is denormalized (sku + product_name captured at write time)
    and there is no foreign key, so history survives renames and purges.

    IMMUTABLE: rows are never updated or deleted; see the mapper guards below.
    """
    __tablename__ = "stock_transactions"
    __table_args__ = (
        db.Index("ix_stocktx_sku_occurred", "sku", "occurred_at"),
        db.Index("ix_stocktx_kind_occurred", "kind", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    kind = db.Column(db.String(32), nullable=False)

    # Signed: negative for STOCK_OUT and downward ADJUSTMENT
    quantity_delta = db.Column(db.Integer, nullable=False)
    quantity_before = db.Column(db.Integer, nullable=False)
    quantity_after = db.Column(db.Integer, nullable=False)

    performed_by_user_id = db.Column(db.Integer, nullable=True)
    note = db.Column(db.String(500), nullable=True)

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StockTransaction id={self.id} sku={self.sku!r} kind={self.kind} "
            f"{self.quantity_before}->{self.quantity_after}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_name": self.product_name,
            "kind": self.kind,
            "quantity_delta": self.quantity_delta,
            "quantity_before": self.quantity_before,
            "quantity_after": self.quantity_after,
            "performed_by_user_id": self.performed_by_user_id,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }


class ImmutableRecordError(RuntimeError):
    """Raised when code tries to rewrite or remove a ledger row."""


@event.listens_for(StockTransaction, "before_update")
def _reject_stock_transaction_update(mapper, connection, target):
    raise ImmutableRecordError(f"StockTransaction {target.id} is immutable")


@event.listens_for(StockTransaction, "before_delete")
def _reject_stock_transaction_delete(mapper, connection, target):
    raise ImmutableRecordError(f"StockTransaction {target.id} cannot be deleted")


class SkuSequence(db.Model):
    """
    Authoritative "last issued" SKU number per prefix.

    Read-modify-written inside the product creation transaction.
    """
    __tablename__ = "sku_sequences"

    prefix = db.Column(db.String(32), primary_key=True)
    last_number = db.Column(db.Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<SkuSequence prefix={self.prefix!r} last_number={self.last_number}>"
