# backend/stockledger/routes/transactions.py
"""
Stock transaction log API routes (read-only)

- GET /api/transactions?sku=&name=&kind=&start_date=&end_date=&limit=
- GET /api/transactions/sku/<sku>

Dates are YYYY-MM-DD and inclusive. Results are newest first.
"""

from flask import Blueprint, jsonify, request

from ..services import transaction_log_service
from ..validation import ValidationError


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _limit_arg() -> int:
    raw = request.args.get("limit")
    if raw is None or raw.strip() == "":
        return transaction_log_service.DEFAULT_QUERY_LIMIT
    if not raw.strip().isdigit():
        raise ValidationError("limit must be a positive integer")
    return min(int(raw), transaction_log_service.DEFAULT_QUERY_LIMIT)


@transactions_bp.get("")
def list_transactions_route():
    entries = transaction_log_service.query_entries(
        sku=request.args.get("sku") or None,
        name_contains=request.args.get("name") or None,
        kind=request.args.get("kind") or None,
        start_date=request.args.get("start_date") or None,
        end_date=request.args.get("end_date") or None,
        limit=_limit_arg(),
    )
    return jsonify({"items": [e.to_dict() for e in entries]}), 200


@transactions_bp.get("/sku/<sku>")
def list_transactions_for_sku_route(sku: str):
    entries = transaction_log_service.list_entries_for_sku(sku, limit=_limit_arg())
    return jsonify({"items": [e.to_dict() for e in entries]}), 200
