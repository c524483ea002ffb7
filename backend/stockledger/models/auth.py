from __future__ import annotations

from ..extensions import db
from stockledger.time_utils import to_utc_z, utcnow
from .lifecycle import SoftDeleteMixin


ROLE_MASTER_ADMIN = "MASTER_ADMIN"
ROLE_ADMIN = "ADMIN"
ROLE_EMPLOYEE = "EMPLOYEE"
VALID_ROLES = {ROLE_MASTER_ADMIN, ROLE_ADMIN, ROLE_EMPLOYEE}

# Roles that receive low-stock and threshold notifications
ADMIN_ROLES = {ROLE_MASTER_ADMIN, ROLE_ADMIN}

# Roles that can never be soft-deleted, permanently deleted or purged
EXEMPT_ROLES = {ROLE_MASTER_ADMIN}

STATUS_ACTIVE = "ACTIVE"
STATUS_INACTIVE = "INACTIVE"


class User(SoftDeleteMixin, db.Model):
    """
    User accounts, as far as this service needs them: attribution, the
    notification roster and the deletion lifecycle.

    Credentials and sessions live in the external auth service.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_role_status", "role", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    email = db.Column(db.String(255), nullable=False, unique=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)

    role = db.Column(db.String(32), nullable=False, default=ROLE_EMPLOYEE)
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE)
    # status held before soft delete, put back on restore
    pre_delete_status = db.Column(db.String(16), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    @property
    def is_exempt(self) -> bool:
        return self.role in EXEMPT_ROLES

    @property
    def display_name(self) -> str:
        full_name = " ".join(p for p in (self.first_name, self.last_name) if p)
        if full_name:
            return f"{full_name} ({self.email})"
        return self.email

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "role": self.role,
            "status": self.status,
            "lifecycle_state": self.lifecycle_state,
            "is_deleted": self.is_deleted,
            "deleted_at": to_utc_z(self.deleted_at) if self.deleted_at else None,
            "created_at": to_utc_z(self.created_at),
        }
