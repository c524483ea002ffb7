"""
Celery tasks and beat schedule.

Tasks:
    - deliver_notification: hand one queued notification to the notifier
    - reconcile_stock_levels: full alert sweep (every RECONCILIATION_INTERVAL_HOURS)
    - daily_low_stock_report: low-stock count (daily at LOW_STOCK_REPORT_HOUR)
    - purge_expired_records: lifecycle purge (daily at PURGE_HOUR)

Every task body runs inside the Flask app context (see extensions.celery_init_app).
Long jobs poll stop_requested() between items; the flag is raised when the
worker starts a warm shutdown.
"""

from __future__ import annotations

import threading
from datetime import timedelta

from celery import shared_task
from celery.schedules import crontab
from celery.signals import worker_shutting_down
from flask import current_app

from .services import lifecycle_service, notification_service, reconciliation_service


_shutdown_requested = threading.Event()


@worker_shutting_down.connect
def _on_worker_shutting_down(sig=None, how=None, exitcode=None, **kwargs):
    _shutdown_requested.set()


def stop_requested() -> bool:
    return _shutdown_requested.is_set()


def reset_stop_flag() -> None:
    _shutdown_requested.clear()


@shared_task(ignore_result=True)
def deliver_notification(kind: str, payload: dict) -> bool:
    """Delivery failures are logged by notification_service.deliver and dropped."""
    return notification_service.deliver(kind, payload)


@shared_task
def reconcile_stock_levels() -> dict:
    current_app.logger.info("[CELERY] Starting low stock reconciliation")
    result = reconciliation_service.run_reconciliation(should_stop=stop_requested)
    return result.to_dict()


@shared_task
def daily_low_stock_report() -> int:
    return reconciliation_service.daily_low_stock_report()


@shared_task
def purge_expired_records() -> dict:
    current_app.logger.info("[CELERY] Starting purge of expired soft-deleted records")
    result = lifecycle_service.purge_expired(should_stop=stop_requested)
    return result.to_dict()


def build_beat_schedule(config) -> dict:
    return {
        "reconcile-stock-levels": {
            "task": "stockledger.tasks.reconcile_stock_levels",
            "schedule": timedelta(hours=config["RECONCILIATION_INTERVAL_HOURS"]),
        },
        "daily-low-stock-report": {
            "task": "stockledger.tasks.daily_low_stock_report",
            "schedule": crontab(minute=0, hour=config["LOW_STOCK_REPORT_HOUR"]),
        },
        "purge-expired-records": {
            "task": "stockledger.tasks.purge_expired_records",
            "schedule": crontab(minute=0, hour=config["PURGE_HOUR"]),
        },
    }
