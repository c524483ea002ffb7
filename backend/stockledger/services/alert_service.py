# Overview: Service-layer operations for low-stock alerts; one open alert per product.

"""
Low-Stock Alert Engine

An alert is a materialized view of "quantity < effective threshold" for one
product. evaluate_stock_level() is the only code path that opens, updates or
resolves an alert automatically; every stock mutation calls it inside its own
transaction and the reconciliation sweep calls it through evaluate_product().

RULES:
1. effective threshold = product.min_stock_threshold, or
   LOW_STOCK_DEFAULT_THRESHOLD when unset.
2. quantity >= threshold: resolve the open alert (if any).
3. quantity < threshold and an alert is open: refresh its recorded quantity
   and threshold in place. No new row, no new notification.
4. quantity < threshold and nothing open: create an alert with the current
   admin roster and attach a pending low-stock notification.
5. Evaluating twice with unchanged product state is a no-op (UNCHANGED).

Notifications are returned, never sent, from inside a transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import (
    ADMIN_ROLES,
    LowStockAlert,
    Product,
    STATE_ACTIVE,
    STATUS_ACTIVE,
    User,
)
from ..time_utils import start_of_day, utcnow
from ..validation import NotFoundError, ValidationError
from .concurrency import entity_locks, lock_for_update, product_lock_key, run_with_retry
from .notification_service import (
    PendingNotification,
    dispatch_notifications,
    low_stock_notification,
    threshold_changed_notification,
)


ACTION_CREATED = "CREATED"
ACTION_UPDATED = "UPDATED"
ACTION_RESOLVED = "RESOLVED"
ACTION_UNCHANGED = "UNCHANGED"

SUMMARY_RECENT_LIMIT = 5


@dataclass
class AlertEvaluation:
    action: str
    alert: LowStockAlert | None = None
    notification: PendingNotification | None = None


def default_threshold() -> int:
    return current_app.config["LOW_STOCK_DEFAULT_THRESHOLD"]


def active_admin_recipients() -> list[str]:
    """Emails of active, non-deleted admins. Queried fresh on every call."""
    rows = (
        db.session.query(User.email)
        .filter(
            User.role.in_(ADMIN_ROLES),
            User.status == STATUS_ACTIVE,
            User.lifecycle_state == STATE_ACTIVE,
        )
        .order_by(User.id.asc())
        .all()
    )
    return [email for (email,) in rows]


def get_open_alert(sku: str, *, lock: bool = False) -> LowStockAlert | None:
    q = db.session.query(LowStockAlert).filter(
        LowStockAlert.sku == sku,
        LowStockAlert.is_resolved.is_(False),
    )
    if lock:
        q = lock_for_update(q)
    return q.first()


def _resolve(alert: LowStockAlert, now: datetime | None = None) -> None:
    alert.is_resolved = True
    alert.resolved_at = now or utcnow()


def evaluate_stock_level(product: Product) -> AlertEvaluation:
    """
    Bring the product's alert in line with its current quantity.

    Runs inside the caller's transaction (flushes, never commits). The
    caller holds the per-product lock.
    """
    threshold = product.effective_threshold(default_threshold())
    alert = get_open_alert(product.sku, lock=True)

    if product.quantity >= threshold:
        if alert is None:
            return AlertEvaluation(ACTION_UNCHANGED)
        _resolve(alert)
        db.session.flush()
        current_app.logger.info("Resolved low stock alert for SKU %s", product.sku)
        return AlertEvaluation(ACTION_RESOLVED, alert)

    if alert is not None:
        if (
            alert.current_quantity == product.quantity
            and alert.threshold == threshold
            and alert.product_name == product.name
        ):
            return AlertEvaluation(ACTION_UNCHANGED, alert)
        alert.current_quantity = product.quantity
        alert.threshold = threshold
        alert.product_name = product.name
        db.session.flush()
        current_app.logger.info("Updated open low stock alert for SKU %s", product.sku)
        return AlertEvaluation(ACTION_UPDATED, alert)

    recipients = active_admin_recipients()
    alert = LowStockAlert(
        sku=product.sku,
        product_name=product.name,
        current_quantity=product.quantity,
        threshold=threshold,
        alert_sent_at=utcnow(),
        is_resolved=False,
        recipients=recipients,
    )
    db.session.add(alert)
    db.session.flush()

    notification = None
    if recipients:
        notification = low_stock_notification(
            product_name=product.name,
            sku=product.sku,
            quantity=product.quantity,
            threshold=threshold,
            recipients=recipients,
        )
    else:
        current_app.logger.warning(
            "No admin recipients for low stock alert on SKU %s; notification skipped",
            product.sku,
        )
    current_app.logger.info(
        "Created low stock alert for %s (SKU %s): %s < %s",
        product.name, product.sku, product.quantity, threshold,
    )
    return AlertEvaluation(ACTION_CREATED, alert, notification)


def evaluate_product(product_id: int) -> AlertEvaluation:
    """
    Standalone evaluation: per-product lock, own commit, then dispatch.

    Raises NotFoundError when the product is gone or soft-deleted.
    """
    with entity_locks.hold(product_lock_key(product_id)):
        def _op() -> AlertEvaluation:
            product = lock_for_update(
                db.session.query(Product).filter(Product.id == product_id)
            ).first()
            if product is None or product.is_deleted:
                raise NotFoundError("Product", "id", product_id)
            result = evaluate_stock_level(product)
            db.session.commit()
            return result

        result = run_with_retry(_op)

    dispatch_notifications([result.notification])
    return result


def _actor_description(actor_user_id: int | None) -> str:
    if actor_user_id is None:
        return "system"
    user = db.session.get(User, actor_user_id)
    if user is None:
        return "Unknown"
    return user.display_name


def build_threshold_change_notification(
    product: Product,
    old_threshold: int | None,
    new_threshold: int,
    actor_user_id: int | None,
) -> PendingNotification:
    return threshold_changed_notification(
        product_name=product.name,
        sku=product.sku,
        old_threshold=old_threshold,
        new_threshold=new_threshold,
        actor_description=_actor_description(actor_user_id),
        recipients=active_admin_recipients(),
    )


def notify_threshold_change(
    product: Product,
    old_threshold: int | None,
    new_threshold: int,
    actor_user_id: int | None,
) -> PendingNotification:
    """Queue the threshold-changed notification. Call after commit."""
    notification = build_threshold_change_notification(
        product, old_threshold, new_threshold, actor_user_id
    )
    dispatch_notifications([notification])
    return notification


def list_active_alerts() -> list[LowStockAlert]:
    return (
        db.session.query(LowStockAlert)
        .filter(LowStockAlert.is_resolved.is_(False))
        .order_by(LowStockAlert.alert_sent_at.desc(), LowStockAlert.id.desc())
        .all()
    )


def get_alert_summary(now: datetime | None = None) -> dict:
    now = now or utcnow()
    open_q = db.session.query(LowStockAlert).filter(LowStockAlert.is_resolved.is_(False))

    total_active = open_q.count()
    today_count = open_q.filter(LowStockAlert.alert_sent_at >= start_of_day(now)).count()
    recent = (
        open_q.order_by(LowStockAlert.alert_sent_at.desc(), LowStockAlert.id.desc())
        .limit(SUMMARY_RECENT_LIMIT)
        .all()
    )
    return {
        "total_active_alerts": total_active,
        "today_alerts": today_count,
        "recent_alerts": [a.to_dict() for a in recent],
    }


def resolve_alert(alert_id: int) -> LowStockAlert:
    """
    Manually resolve an alert.

    The next evaluation reopens a fresh alert if the product is still low.
    Runs under the product lock so it cannot interleave with an evaluation.
    """
    sku = db.session.query(LowStockAlert.sku).filter(LowStockAlert.id == alert_id).scalar()
    if sku is None:
        raise NotFoundError("Alert", "id", alert_id)
    product_id = db.session.query(Product.id).filter(Product.sku == sku).scalar()
    # Product already removed: nothing else can write this SKU's alerts
    lock_key = product_lock_key(product_id) if product_id is not None else f"alert-sku:{sku}"

    with entity_locks.hold(lock_key):
        def _op() -> LowStockAlert:
            alert = lock_for_update(
                db.session.query(LowStockAlert).filter(LowStockAlert.id == alert_id)
            ).first()
            if alert is None:
                raise NotFoundError("Alert", "id", alert_id)
            if alert.is_resolved:
                raise ValidationError(f"Alert {alert_id} is already resolved")
            _resolve(alert)
            db.session.commit()
            current_app.logger.info("Resolved alert %s for SKU %s", alert_id, alert.sku)
            return alert

        return run_with_retry(_op)


def close_alerts_for_sku(sku: str, now: datetime | None = None) -> int:
    """
    Resolve every open alert for `sku` inside the caller's transaction.

    Used when a product row is permanently removed.
    """
    alerts = lock_for_update(
        db.session.query(LowStockAlert).filter(
            LowStockAlert.sku == sku,
            LowStockAlert.is_resolved.is_(False),
        )
    ).all()
    for alert in alerts:
        _resolve(alert, now)
    if alerts:
        db.session.flush()
    return len(alerts)
