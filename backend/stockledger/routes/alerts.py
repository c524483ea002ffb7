# backend/stockledger/routes/alerts.py
"""
Low-stock alert API routes

- GET  /api/alerts                 unresolved alerts, newest first
- GET  /api/alerts/summary         counts + 5 most recent
- POST /api/alerts/<id>/resolve    manual resolve
- POST /api/alerts/products/<id>/evaluate   re-check one product now
"""

from flask import Blueprint, jsonify

from ..decorators import require_actor
from ..services import alert_service


alerts_bp = Blueprint("alerts", __name__, url_prefix="/api/alerts")


@alerts_bp.get("")
def list_alerts_route():
    return jsonify({"items": [a.to_dict() for a in alert_service.list_active_alerts()]}), 200


@alerts_bp.get("/summary")
def alert_summary_route():
    return jsonify(alert_service.get_alert_summary()), 200


@alerts_bp.post("/<int:alert_id>/resolve")
@require_actor
def resolve_alert_route(alert_id: int):
    alert = alert_service.resolve_alert(alert_id)
    return jsonify(alert.to_dict()), 200


@alerts_bp.post("/products/<int:product_id>/evaluate")
@require_actor
def evaluate_product_route(product_id: int):
    evaluation = alert_service.evaluate_product(product_id)
    return jsonify({
        "action": evaluation.action,
        "alert": evaluation.alert.to_dict() if evaluation.alert is not None else None,
    }), 200
