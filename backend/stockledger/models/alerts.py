from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class LowStockAlert(db.Model):
    """
    Low-stock alert: a materialized view of "product quantity < threshold".

    INVARIANT: at most one unresolved alert per SKU. alert_service enforces it
    under the per-product lock; the partial unique index enforces it in the DB.

    recipients is the admin roster at creation time and is never re-resolved.
    """
    __tablename__ = "low_stock_alerts"
    __table_args__ = (
        db.Index(
            "uq_low_stock_alerts_open_sku",
            "sku",
            unique=True,
            sqlite_where=db.text("is_resolved = 0"),
            postgresql_where=db.text("NOT is_resolved"),
        ),
        db.Index("ix_low_stock_alerts_resolved_sent", "is_resolved", "alert_sent_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, index=True)
    product_name = db.Column(db.String(255), nullable=False)

    current_quantity = db.Column(db.Integer, nullable=False)
    threshold = db.Column(db.Integer, nullable=False)

    alert_sent_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    is_resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    recipients = db.Column(db.JSON, nullable=False, default=list)

    def __repr__(self) -> str:
        return (
            f"<LowStockAlert id={self.id} sku={self.sku!r} qty={self.current_quantity} "
            f"threshold={self.threshold} resolved={self.is_resolved}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "product_name": self.product_name,
            "current_quantity": self.current_quantity,
            "threshold": self.threshold,
            "alert_sent_at": to_utc_z(self.alert_sent_at),
            "is_resolved": self.is_resolved,
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
            "recipients": list(self.recipients or []),
        }
