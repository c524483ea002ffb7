# backend/stockledger/routes/jobs.py
"""
Manual triggers for the scheduled jobs

- POST /api/jobs/reconcile         run the alert sweep now
- POST /api/jobs/purge             purge expired soft-deleted records now
- GET  /api/jobs/low-stock-report  count of products below threshold

Same semantics as the Celery beat timers; these run synchronously in the
request.
"""

from flask import Blueprint, jsonify

from ..decorators import require_actor
from ..services import lifecycle_service, reconciliation_service


jobs_bp = Blueprint("jobs", __name__, url_prefix="/api/jobs")


@jobs_bp.post("/reconcile")
@require_actor
def reconcile_route():
    result = reconciliation_service.run_reconciliation()
    return jsonify(result.to_dict()), 200


@jobs_bp.post("/purge")
@require_actor
def purge_route():
    result = lifecycle_service.purge_expired()
    return jsonify(result.to_dict()), 200


@jobs_bp.get("/low-stock-report")
def low_stock_report_route():
    count = reconciliation_service.daily_low_stock_report()
    return jsonify({"low_stock_count": count}), 200
