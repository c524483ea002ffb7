# Overview: Periodic catalog sweep that re-evaluates every active product's alert.

"""
Reconciliation

The sweep catches drift between stored alert state and true stock state
(missed evaluations, threshold config changes, manual alert resolution).

- Product ids are fetched once; each product is then evaluated under its own
  lock with its own commit, so a sweep never holds more than one lock.
- A failure on one product is rolled back, logged and counted; the sweep
  continues.
- should_stop() is polled between products; a product is never left
  half-evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional

from flask import current_app

from ..extensions import db
from ..models import Product, STATE_ACTIVE
from ..validation import NotFoundError
from . import alert_service, stock_service


StopCheck = Optional[Callable[[], bool]]


@dataclass
class ReconciliationResult:
    checked: int = 0
    created: int = 0
    updated: int = 0
    resolved: int = 0
    unchanged: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    failures: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "created": self.created,
            "updated": self.updated,
            "resolved": self.resolved,
            "unchanged": self.unchanged,
            "skipped": self.skipped,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "failures": list(self.failures),
        }


_ACTION_FIELDS = {
    alert_service.ACTION_CREATED: "created",
    alert_service.ACTION_UPDATED: "updated",
    alert_service.ACTION_RESOLVED: "resolved",
    alert_service.ACTION_UNCHANGED: "unchanged",
}


def _active_product_ids() -> list[int]:
    rows = (
        db.session.query(Product.id)
        .filter(Product.lifecycle_state == STATE_ACTIVE)
        .order_by(Product.id.asc())
        .all()
    )
    return [pid for (pid,) in rows]


def run_reconciliation(should_stop: StopCheck = None) -> ReconciliationResult:
    result = ReconciliationResult()
    logger = current_app.logger

    product_ids = _active_product_ids()
    logger.info("Reconciliation started: %s active products", len(product_ids))

    for product_id in product_ids:
        if should_stop is not None and should_stop():
            result.cancelled = True
            logger.warning(
                "Reconciliation cancelled after %s of %s products",
                result.checked, len(product_ids),
            )
            break

        try:
            evaluation = alert_service.evaluate_product(product_id)
        except NotFoundError:
            # Deleted between the id fetch and the evaluation
            db.session.rollback()
            result.skipped += 1
            continue
        except Exception as exc:
            db.session.rollback()
            result.failed += 1
            result.failures.append({"product_id": product_id, "error": str(exc)})
            logger.exception("Reconciliation failed for product %s", product_id)
            continue

        result.checked += 1
        counter = _ACTION_FIELDS[evaluation.action]
        setattr(result, counter, getattr(result, counter) + 1)

    logger.info(
        "Reconciliation finished: checked=%s created=%s updated=%s resolved=%s "
        "unchanged=%s skipped=%s failed=%s cancelled=%s",
        result.checked, result.created, result.updated, result.resolved,
        result.unchanged, result.skipped, result.failed, result.cancelled,
    )
    return result


def daily_low_stock_report() -> int:
    """Count of active products below their effective threshold. Read-only."""
    count = stock_service.count_low_stock_products()
    current_app.logger.info("Daily low stock report: %s products below threshold", count)
    return count
