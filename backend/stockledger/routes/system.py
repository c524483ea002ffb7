# backend/stockledger/routes/system.py
"""
System health endpoint.

Reports database reachability and the size of the working set the
scheduled jobs operate on.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import LowStockAlert, Product, STATE_ACTIVE, STATE_SOFT_DELETED
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with cheap counts.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        active_products = db.session.query(Product).filter_by(lifecycle_state=STATE_ACTIVE).count()
        deleted_products = db.session.query(Product).filter_by(lifecycle_state=STATE_SOFT_DELETED).count()
        open_alerts = db.session.query(LowStockAlert).filter_by(is_resolved=False).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_products": active_products,
                "soft_deleted_products": deleted_products,
                "open_alerts": open_alerts,
            }
        }
    except SQLAlchemyError:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "database": database_health,
        }
    }
    return response, http_status
