# backend/stockledger/routes/products.py
"""
Product & stock movement API routes

- POST  /api/products                         create product (allocates SKU)
- GET   /api/products                         active products
- GET   /api/products/search?q=               search by name / SKU / category
- GET   /api/products/low-stock               below effective threshold
- GET   /api/products/<id>                    one active product
- GET   /api/products/sku/<sku>               one active product
- PATCH /api/products/<id>                    name / category / supplier
- GET   /api/products/<id>/audit              audit trail, newest first
- POST  /api/products/sku/<sku>/stock-in      {"quantity", "note"}
- POST  /api/products/sku/<sku>/stock-out     {"quantity", "note"}
- POST  /api/products/sku/<sku>/adjust        {"quantity_delta", "note"}
- PUT   /api/products/sku/<sku>/threshold     {"threshold"}

Domain errors are rendered by the app-wide StockLedgerError handler.
Actor ids come from the X-Actor-Id header, never from the body.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_actor
from ..services import audit_service, stock_service
from ..validation import ValidationError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")
    return data


def _product_json(product) -> dict:
    return product.to_dict(default_threshold=current_app.config["LOW_STOCK_DEFAULT_THRESHOLD"])


@products_bp.post("")
@require_actor
def create_product_route():
    data = _json_body()
    allowed = stock_service.PRODUCT_CREATE_POLICY.writable_fields
    unknown = sorted(k for k in data if k not in allowed)
    if unknown:
        raise ValidationError(f"Field not allowed: {unknown[0]}")

    product = stock_service.create_product(
        name=data.get("name"),
        unit_price=data.get("unit_price"),
        quantity=data.get("quantity", 0),
        category=data.get("category"),
        supplier=data.get("supplier"),
        min_stock_threshold=data.get("min_stock_threshold"),
        actor_user_id=g.actor_user_id,
    )
    return jsonify(_product_json(product)), 201


@products_bp.get("")
def list_products_route():
    return jsonify({"items": [_product_json(p) for p in stock_service.list_products()]}), 200


@products_bp.get("/search")
def search_products_route():
    term = request.args.get("q", "")
    items = stock_service.search_products(term)
    return jsonify({"items": [_product_json(p) for p in items]}), 200


@products_bp.get("/low-stock")
def low_stock_products_route():
    items = stock_service.list_low_stock_products()
    return jsonify({"items": [_product_json(p) for p in items]}), 200


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    return jsonify(_product_json(stock_service.get_product(product_id))), 200


@products_bp.get("/sku/<sku>")
def get_product_by_sku_route(sku: str):
    return jsonify(_product_json(stock_service.get_product_by_sku(sku))), 200


@products_bp.get("/<int:product_id>/audit")
def product_audit_route(product_id: int):
    entries = audit_service.list_audit_entries(entity_type="PRODUCT", entity_id=product_id)
    return jsonify({"items": [e.to_dict() for e in entries]}), 200


@products_bp.patch("/<int:product_id>")
@require_actor
def update_product_route(product_id: int):
    product = stock_service.update_product_details(
        product_id,
        _json_body(),
        actor_user_id=g.actor_user_id,
    )
    return jsonify(_product_json(product)), 200


@products_bp.post("/sku/<sku>/stock-in")
@require_actor
def stock_in_route(sku: str):
    data = _json_body()
    product = stock_service.stock_in(
        sku,
        data.get("quantity"),
        note=data.get("note"),
        actor_user_id=g.actor_user_id,
    )
    return jsonify(_product_json(product)), 200


@products_bp.post("/sku/<sku>/stock-out")
@require_actor
def stock_out_route(sku: str):
    data = _json_body()
    product = stock_service.stock_out(
        sku,
        data.get("quantity"),
        note=data.get("note"),
        actor_user_id=g.actor_user_id,
    )
    return jsonify(_product_json(product)), 200


@products_bp.post("/sku/<sku>/adjust")
@require_actor
def adjust_stock_route(sku: str):
    data = _json_body()
    product = stock_service.adjust_stock(
        sku,
        data.get("quantity_delta"),
        note=data.get("note"),
        actor_user_id=g.actor_user_id,
    )
    return jsonify(_product_json(product)), 200


@products_bp.put("/sku/<sku>/threshold")
@require_actor
def update_threshold_route(sku: str):
    data = _json_body()
    if "threshold" not in data:
        raise ValidationError("threshold is required")
    product = stock_service.update_threshold(
        sku,
        data["threshold"],
        actor_user_id=g.actor_user_id,
    )
    return jsonify(_product_json(product)), 200
