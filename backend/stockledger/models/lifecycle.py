from __future__ import annotations

from ..extensions import db

# Lifecycle states shared by Product and User. PURGED is terminal: the row no
# longer exists, so it is never stored, only reported.
STATE_ACTIVE = "ACTIVE"
STATE_SOFT_DELETED = "SOFT_DELETED"
STATE_PURGED = "PURGED"

VALID_STATES = {STATE_ACTIVE, STATE_SOFT_DELETED, STATE_PURGED}


class SoftDeleteMixin:
    """
    Lifecycle columns for entities with a reversible, time-boxed delete.

    deleted_at is set if and only if lifecycle_state == SOFT_DELETED.
    Only lifecycle_service writes these columns.
    """
    lifecycle_state = db.Column(
        db.String(16),
        nullable=False,
        default=STATE_ACTIVE,
        index=True,
    )
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleted(self) -> bool:
        return self.lifecycle_state == STATE_SOFT_DELETED
