# Overview: Notifier boundary; builds pending notifications and queues them after commit.

"""
Notification Service

- Services never talk to a notifier directly. They build a
  PendingNotification inside their transaction and hand it to
  dispatch_notifications() AFTER the commit and after the per-product lock
  is released.
- dispatch_notifications() queues one Celery task per notification. Queueing
  and delivery failures are logged and swallowed: a notification never
  rolls back or blocks committed stock state.
- The notifier is pluggable via app.extensions["stockledger.notifier"];
  LoggingNotifier is the default.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Iterable, Protocol

from flask import current_app


NOTIFIER_EXTENSION_KEY = "stockledger.notifier"

KIND_LOW_STOCK = "LOW_STOCK"
KIND_THRESHOLD_CHANGED = "THRESHOLD_CHANGED"
VALID_NOTIFICATION_KINDS = {KIND_LOW_STOCK, KIND_THRESHOLD_CHANGED}


class Notifier(Protocol):
    def notify_low_stock(
        self,
        *,
        product_name: str,
        sku: str,
        quantity: int,
        threshold: int,
        recipients: list[str],
    ) -> None: ...

    def notify_threshold_changed(
        self,
        *,
        product_name: str,
        sku: str,
        old_threshold: int | None,
        new_threshold: int,
        actor_description: str,
        recipients: list[str],
    ) -> None: ...


class LoggingNotifier:
    """Writes notifications to the application log."""

    def notify_low_stock(self, *, product_name, sku, quantity, threshold, recipients):
        current_app.logger.info(
            "Low stock: %s (%s) quantity=%s threshold=%s -> %s",
            product_name, sku, quantity, threshold, ", ".join(recipients),
        )

    def notify_threshold_changed(
        self, *, product_name, sku, old_threshold, new_threshold, actor_description, recipients
    ):
        current_app.logger.info(
            "Threshold changed: %s (%s) %s -> %s by %s -> %s",
            product_name, sku, old_threshold, new_threshold, actor_description,
            ", ".join(recipients),
        )


@dataclass(frozen=True)
class PendingNotification:
    """Plain data captured inside the transaction; safe to use after commit."""
    kind: str
    payload: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def low_stock_notification(*, product_name, sku, quantity, threshold, recipients) -> PendingNotification:
    return PendingNotification(
        kind=KIND_LOW_STOCK,
        payload={
            "product_name": product_name,
            "sku": sku,
            "quantity": quantity,
            "threshold": threshold,
            "recipients": list(recipients),
        },
    )


def threshold_changed_notification(
    *, product_name, sku, old_threshold, new_threshold, actor_description, recipients
) -> PendingNotification:
    return PendingNotification(
        kind=KIND_THRESHOLD_CHANGED,
        payload={
            "product_name": product_name,
            "sku": sku,
            "old_threshold": old_threshold,
            "new_threshold": new_threshold,
            "actor_description": actor_description,
            "recipients": list(recipients),
        },
    )


def get_notifier() -> Notifier:
    notifier = current_app.extensions.get(NOTIFIER_EXTENSION_KEY)
    if notifier is None:
        notifier = LoggingNotifier()
        current_app.extensions[NOTIFIER_EXTENSION_KEY] = notifier
    return notifier


def deliver(kind: str, payload: dict) -> bool:
    """
    Hand one notification to the configured notifier.

    Returns False (after logging) when delivery fails.
    """
    if kind not in VALID_NOTIFICATION_KINDS:
        current_app.logger.error("Unknown notification kind %r dropped", kind)
        return False

    notifier = get_notifier()
    try:
        if kind == KIND_LOW_STOCK:
            notifier.notify_low_stock(**payload)
        else:
            notifier.notify_threshold_changed(**payload)
    except Exception:
        current_app.logger.exception(
            "Notification delivery failed (kind=%s sku=%s)", kind, payload.get("sku")
        )
        return False
    return True


def dispatch_notifications(notifications: Iterable[PendingNotification | None]) -> int:
    """
    Queue notifications for delivery. Call only after commit.

    Returns how many were queued.
    """
    from ..tasks import deliver_notification

    queued = 0
    for notification in notifications:
        if notification is None:
            continue
        if notification.kind not in VALID_NOTIFICATION_KINDS:
            current_app.logger.error("Unknown notification kind %r not queued", notification.kind)
            continue
        if not notification.payload.get("recipients"):
            current_app.logger.warning(
                "No admin recipients for %s notification on SKU %s; skipped",
                notification.kind, notification.payload.get("sku"),
            )
            continue
        try:
            deliver_notification.delay(notification.kind, notification.payload)
            queued += 1
        except Exception:
            current_app.logger.exception(
                "Could not queue %s notification for SKU %s",
                notification.kind, notification.payload.get("sku"),
            )
    return queued
