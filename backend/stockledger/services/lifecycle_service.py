# Overview: Service-layer operations for the deletion lifecycle of products and users.

"""
Stock Ledger Deletion Lifecycle Service

================================================================================
PURPOSE: Enforce Active -> Soft-deleted -> Purged for products and user accounts
================================================================================

STATE MACHINE:
    ACTIVE -> SOFT_DELETED -> PURGED
                   |
                   +-> ACTIVE  (restore, only inside the grace window)

    ACTIVE:       Visible to every read and mutation.
    SOFT_DELETED: Hidden from active reads; rejects stock and threshold
                  mutations; restorable for RESTORE_WINDOW_DAYS.
    PURGED:       Terminal. The row is removed; ledger history keeps its
                  denormalized sku / product_name.

RULES (NON-NEGOTIABLE):
1. Only this module writes lifecycle_state / deleted_at and removes rows.
2. deleted_at is set if and only if the record is SOFT_DELETED.
3. Restore succeeds iff now - deleted_at <= RESTORE_WINDOW_DAYS.
4. Purge removes only records with deleted_at < now - PURGE_WINDOW_DAYS.
5. MASTER_ADMIN accounts are never soft-deleted, permanently deleted or
   purged, and no account may delete itself.
6. Removing a product closes its open low-stock alert.
7. Soft-deleting a product leaves its alert alone; restore re-evaluates it.

Every transition runs under the per-entity lock with its own commit. Audit
entries are written after the commit.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Optional

from flask import current_app

from ..extensions import db
from ..models import (
    Product,
    STATE_ACTIVE,
    STATE_PURGED,
    STATE_SOFT_DELETED,
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    User,
    VALID_STATES,
)
from ..time_utils import utcnow
from ..validation import (
    AlreadyDeletedError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    NotDeletedError,
    NotFoundError,
    ValidationError,
)
from . import alert_service, audit_service
from .concurrency import (
    entity_locks,
    lock_for_update,
    product_lock_key,
    run_with_retry,
    user_lock_key,
)
from .notification_service import dispatch_notifications


StopCheck = Optional[Callable[[], bool]]


class LifecycleError(ValidationError):
    """Raised for an unknown lifecycle state name."""


VALID_TRANSITIONS = {
    (STATE_ACTIVE, STATE_SOFT_DELETED),
    (STATE_SOFT_DELETED, STATE_ACTIVE),
    (STATE_SOFT_DELETED, STATE_PURGED),
}


def validate_state(state: str) -> None:
    if state not in VALID_STATES:
        raise LifecycleError(
            f"Invalid lifecycle state '{state}'. Must be one of: {', '.join(sorted(VALID_STATES))}"
        )


def can_transition(from_state: str, to_state: str) -> bool:
    """
    Check a transition against the state machine.

    Same-state transitions are not transitions and return False; PURGED has
    no outgoing edges.
    """
    validate_state(from_state)
    validate_state(to_state)
    return (from_state, to_state) in VALID_TRANSITIONS


def restore_window() -> timedelta:
    return timedelta(days=current_app.config["RESTORE_WINDOW_DAYS"])


def purge_window() -> timedelta:
    return timedelta(days=current_app.config["PURGE_WINDOW_DAYS"])


def is_restorable(deleted_at: datetime | None, now: datetime | None = None) -> bool:
    if deleted_at is None:
        return False
    now = now or utcnow()
    return now - deleted_at <= restore_window()


def _mark_deleted(entity, now: datetime) -> None:
    entity.lifecycle_state = STATE_SOFT_DELETED
    entity.deleted_at = now


def _mark_active(entity) -> None:
    entity.lifecycle_state = STATE_ACTIVE
    entity.deleted_at = None


def _check_restorable(entity, label: str, now: datetime) -> None:
    if not entity.is_deleted:
        raise NotDeletedError(f"{label} is not deleted")
    if not is_restorable(entity.deleted_at, now):
        days = current_app.config["RESTORE_WINDOW_DAYS"]
        raise ExpiredError(f"Cannot restore {label.lower()} after {days} days")


def _check_user_deletable(user: User, actor_user_id: int | None) -> None:
    if user.is_exempt:
        raise ForbiddenError(f"Cannot delete {user.role}")
    if actor_user_id is not None and actor_user_id == user.id:
        raise ForbiddenError("Users cannot delete their own account")


def _locked_product(product_id: int) -> Product:
    product = lock_for_update(
        db.session.query(Product).filter(Product.id == product_id)
    ).first()
    if product is None:
        raise NotFoundError("Product", "id", product_id)
    return product


def _locked_user(user_id: int) -> User:
    user = lock_for_update(
        db.session.query(User).filter(User.id == user_id)
    ).first()
    if user is None:
        raise NotFoundError("User", "id", user_id)
    return user


# ----------------------------------------------------------------------------
# Products
# ----------------------------------------------------------------------------

def soft_delete_product(product_id: int, *, actor_user_id: int | None = None, now: datetime | None = None) -> Product:
    now = now or utcnow()
    with entity_locks.hold(product_lock_key(product_id)):
        def _op() -> Product:
            product = _locked_product(product_id)
            if product.is_deleted:
                raise AlreadyDeletedError("Product is already deleted")
            _mark_deleted(product, now)
            product.last_updated_by_user_id = actor_user_id
            db.session.commit()
            return product

        product = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="DELETE_PRODUCT",
        entity_type="PRODUCT",
        entity_id=product_id,
        detail="Soft deleted product",
    )
    return product


def restore_product(product_id: int, *, actor_user_id: int | None = None, now: datetime | None = None) -> Product:
    """
    Reactivate a soft-deleted product. Quantity and threshold are untouched;
    the alert is re-evaluated against them.
    """
    now = now or utcnow()
    with entity_locks.hold(product_lock_key(product_id)):
        def _op():
            product = _locked_product(product_id)
            _check_restorable(product, "Product", now)

            clash = (
                db.session.query(Product.id)
                .filter(
                    db.func.lower(Product.name) == product.name.lower(),
                    Product.lifecycle_state == STATE_ACTIVE,
                    Product.id != product.id,
                )
                .first()
            )
            if clash is not None:
                raise ConflictError(f"A product named '{product.name}' already exists")

            _mark_active(product)
            product.last_updated_by_user_id = actor_user_id
            db.session.flush()
            evaluation = alert_service.evaluate_stock_level(product)
            db.session.commit()
            return product, evaluation

        product, evaluation = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="RESTORE_PRODUCT",
        entity_type="PRODUCT",
        entity_id=product_id,
        detail="Restored deleted product",
    )
    dispatch_notifications([evaluation.notification])
    return product


def _remove_product(product: Product) -> str:
    description = f"{product.name} (SKU: {product.sku})"
    alert_service.close_alerts_for_sku(product.sku)
    db.session.delete(product)
    return description


def permanent_delete_product(product_id: int, *, actor_user_id: int | None = None) -> None:
    with entity_locks.hold(product_lock_key(product_id)):
        def _op() -> str:
            product = _locked_product(product_id)
            if not product.is_deleted:
                raise NotDeletedError("Product must be soft-deleted before permanent deletion")
            description = _remove_product(product)
            db.session.commit()
            return description

        description = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="PERMANENT_DELETE_PRODUCT",
        entity_type="PRODUCT",
        entity_id=product_id,
        detail=f"Permanently deleted product: {description}",
    )


def list_active_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.lifecycle_state == STATE_ACTIVE)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def list_deleted_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(Product.lifecycle_state == STATE_SOFT_DELETED)
        .order_by(Product.deleted_at.desc(), Product.id.desc())
        .all()
    )


# ----------------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------------

def soft_delete_user(user_id: int, *, actor_user_id: int | None = None, now: datetime | None = None) -> User:
    now = now or utcnow()
    with entity_locks.hold(user_lock_key(user_id)):
        def _op() -> User:
            user = _locked_user(user_id)
            _check_user_deletable(user, actor_user_id)
            if user.is_deleted:
                raise AlreadyDeletedError("User is already deleted")
            _mark_deleted(user, now)
            user.pre_delete_status = user.status
            user.status = STATUS_INACTIVE
            db.session.commit()
            return user

        user = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="DELETE_USER",
        entity_type="USER",
        entity_id=user_id,
        detail="Soft deleted user",
    )
    return user


def restore_user(user_id: int, *, actor_user_id: int | None = None, now: datetime | None = None) -> User:
    now = now or utcnow()
    with entity_locks.hold(user_lock_key(user_id)):
        def _op() -> User:
            user = _locked_user(user_id)
            _check_restorable(user, "User", now)
            _mark_active(user)
            user.status = user.pre_delete_status or STATUS_ACTIVE
            user.pre_delete_status = None
            db.session.commit()
            return user

        user = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="RESTORE_USER",
        entity_type="USER",
        entity_id=user_id,
        detail="Restored deleted user",
    )
    return user


def permanent_delete_user(user_id: int, *, actor_user_id: int | None = None) -> None:
    with entity_locks.hold(user_lock_key(user_id)):
        def _op() -> str:
            user = _locked_user(user_id)
            _check_user_deletable(user, actor_user_id)
            if not user.is_deleted:
                raise NotDeletedError("User must be soft-deleted before permanent deletion")
            email = user.email
            db.session.delete(user)
            db.session.commit()
            return email

        email = run_with_retry(_op)

    audit_service.record_audit(
        actor_user_id=actor_user_id,
        action="PERMANENT_DELETE_USER",
        entity_type="USER",
        entity_id=user_id,
        detail=f"Permanently deleted user: {email}",
    )


def list_active_users() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.lifecycle_state == STATE_ACTIVE)
        .order_by(User.id.asc())
        .all()
    )


def list_deleted_users() -> list[User]:
    return (
        db.session.query(User)
        .filter(User.lifecycle_state == STATE_SOFT_DELETED)
        .order_by(User.deleted_at.desc(), User.id.desc())
        .all()
    )


# ----------------------------------------------------------------------------
# Purge
# ----------------------------------------------------------------------------

@dataclass
class PurgeResult:
    products_purged: int = 0
    users_purged: int = 0
    skipped_exempt: int = 0
    failed: int = 0
    cancelled: bool = False
    failures: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "products_purged": self.products_purged,
            "users_purged": self.users_purged,
            "skipped_exempt": self.skipped_exempt,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "failures": list(self.failures),
        }


class _Cancelled(Exception):
    pass


def _expired_ids(model, cutoff: datetime) -> list[int]:
    rows = (
        db.session.query(model.id)
        .filter(
            model.lifecycle_state == STATE_SOFT_DELETED,
            model.deleted_at < cutoff,
        )
        .order_by(model.deleted_at.asc(), model.id.asc())
        .all()
    )
    return [entity_id for (entity_id,) in rows]


def _purge_product(product_id: int, cutoff: datetime) -> bool:
    """True when the row was removed; False when it no longer qualifies."""
    with entity_locks.hold(product_lock_key(product_id)):
        def _op():
            product = lock_for_update(
                db.session.query(Product).filter(Product.id == product_id)
            ).first()
            if product is None or not product.is_deleted or not product.deleted_at < cutoff:
                db.session.rollback()
                return None
            description = _remove_product(product)
            db.session.commit()
            return description

        description = run_with_retry(_op)

    if description is None:
        return False
    audit_service.record_audit(
        actor_user_id=None,
        action="PURGE_PRODUCT",
        entity_type="PRODUCT",
        entity_id=product_id,
        detail=f"Purged product: {description}",
        origin=audit_service.SYSTEM_ORIGIN,
    )
    return True


def _purge_user(user_id: int, cutoff: datetime) -> str:
    """Returns "purged", "exempt" or "skipped"."""
    with entity_locks.hold(user_lock_key(user_id)):
        def _op():
            user = lock_for_update(
                db.session.query(User).filter(User.id == user_id)
            ).first()
            if user is None or not user.is_deleted or not user.deleted_at < cutoff:
                db.session.rollback()
                return "skipped", None
            if user.is_exempt:
                db.session.rollback()
                return "exempt", None
            email = user.email
            db.session.delete(user)
            db.session.commit()
            return "purged", email

        outcome, email = run_with_retry(_op)

    if outcome == "purged":
        audit_service.record_audit(
            actor_user_id=None,
            action="PURGE_USER",
            entity_type="USER",
            entity_id=user_id,
            detail=f"Purged user: {email}",
            origin=audit_service.SYSTEM_ORIGIN,
        )
    return outcome


def purge_expired(now: datetime | None = None, should_stop: StopCheck = None) -> PurgeResult:
    """
    Remove every soft-deleted product and user past PURGE_WINDOW_DAYS.

    One lock and one commit per entity; exempt accounts are skipped;
    per-entity failures are rolled back, logged and counted.
    """
    now = now or utcnow()
    cutoff = now - purge_window()
    result = PurgeResult()
    logger = current_app.logger

    def _check_stop() -> None:
        if should_stop is not None and should_stop():
            raise _Cancelled()

    try:
        for product_id in _expired_ids(Product, cutoff):
            _check_stop()
            try:
                if _purge_product(product_id, cutoff):
                    result.products_purged += 1
            except Exception as exc:
                db.session.rollback()
                result.failed += 1
                result.failures.append({"entity_type": "PRODUCT", "id": product_id, "error": str(exc)})
                logger.exception("Purge failed for product %s", product_id)

        for user_id in _expired_ids(User, cutoff):
            _check_stop()
            try:
                outcome = _purge_user(user_id, cutoff)
            except Exception as exc:
                db.session.rollback()
                result.failed += 1
                result.failures.append({"entity_type": "USER", "id": user_id, "error": str(exc)})
                logger.exception("Purge failed for user %s", user_id)
                continue
            if outcome == "purged":
                result.users_purged += 1
            elif outcome == "exempt":
                result.skipped_exempt += 1
                logger.warning("Purge skipped exempt user %s", user_id)
    except _Cancelled:
        result.cancelled = True
        logger.warning("Purge cancelled")

    logger.info(
        "Purge finished: products=%s users=%s skipped_exempt=%s failed=%s cancelled=%s",
        result.products_purged, result.users_purged, result.skipped_exempt,
        result.failed, result.cancelled,
    )
    return result
