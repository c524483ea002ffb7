from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow


class AuditLog(db.Model):
    """
    Audit trail of who changed what.

    Written by audit_service after the primary change has committed.
    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    """
    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_logs_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    actor_user_id = db.Column(db.Integer, nullable=True, index=True)  # Nullable for system jobs
    action = db.Column(db.String(64), nullable=False, index=True)  # STOCK_IN, DELETE_PRODUCT, ...
    entity_type = db.Column(db.String(32), nullable=False)  # PRODUCT, USER
    entity_id = db.Column(db.Integer, nullable=True)
    detail = db.Column(db.Text, nullable=True)

    # Client address for request-triggered changes, "system" for scheduled jobs
    origin = db.Column(db.String(64), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "actor_user_id": self.actor_user_id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "detail": self.detail,
            "origin": self.origin,
            "occurred_at": to_utc_z(self.occurred_at),
        }
