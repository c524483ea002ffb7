# backend/stockledger/routes/lifecycle.py
"""
Deletion lifecycle API routes

Products:
- POST   /api/lifecycle/products/<id>/delete    ACTIVE -> SOFT_DELETED
- POST   /api/lifecycle/products/<id>/restore   SOFT_DELETED -> ACTIVE (grace window)
- DELETE /api/lifecycle/products/<id>           SOFT_DELETED -> PURGED
- GET    /api/lifecycle/products/active
- GET    /api/lifecycle/products/deleted

Users: the same five routes under /api/lifecycle/users, plus
- GET    /api/lifecycle/users/<id>/audit       audit trail, newest first

SECURITY: the acting user id is taken from X-Actor-Id, NOT from the body;
it is also what the self-deletion check compares against.
"""

from flask import Blueprint, current_app, g, jsonify

from ..decorators import require_actor
from ..services import audit_service, lifecycle_service


lifecycle_bp = Blueprint("lifecycle", __name__, url_prefix="/api/lifecycle")


def _product_json(product) -> dict:
    return product.to_dict(default_threshold=current_app.config["LOW_STOCK_DEFAULT_THRESHOLD"])


# Products

@lifecycle_bp.post("/products/<int:product_id>/delete")
@require_actor
def soft_delete_product_route(product_id: int):
    product = lifecycle_service.soft_delete_product(product_id, actor_user_id=g.actor_user_id)
    return jsonify(_product_json(product)), 200


@lifecycle_bp.post("/products/<int:product_id>/restore")
@require_actor
def restore_product_route(product_id: int):
    product = lifecycle_service.restore_product(product_id, actor_user_id=g.actor_user_id)
    return jsonify(_product_json(product)), 200


@lifecycle_bp.delete("/products/<int:product_id>")
@require_actor
def permanent_delete_product_route(product_id: int):
    lifecycle_service.permanent_delete_product(product_id, actor_user_id=g.actor_user_id)
    return jsonify({"message": f"Product {product_id} permanently deleted"}), 200


@lifecycle_bp.get("/products/active")
def active_products_route():
    items = lifecycle_service.list_active_products()
    return jsonify({"items": [_product_json(p) for p in items]}), 200


@lifecycle_bp.get("/products/deleted")
def deleted_products_route():
    items = lifecycle_service.list_deleted_products()
    return jsonify({"items": [_product_json(p) for p in items]}), 200


# Users

@lifecycle_bp.post("/users/<int:user_id>/delete")
@require_actor
def soft_delete_user_route(user_id: int):
    user = lifecycle_service.soft_delete_user(user_id, actor_user_id=g.actor_user_id)
    return jsonify(user.to_dict()), 200


@lifecycle_bp.post("/users/<int:user_id>/restore")
@require_actor
def restore_user_route(user_id: int):
    user = lifecycle_service.restore_user(user_id, actor_user_id=g.actor_user_id)
    return jsonify(user.to_dict()), 200


@lifecycle_bp.delete("/users/<int:user_id>")
@require_actor
def permanent_delete_user_route(user_id: int):
    lifecycle_service.permanent_delete_user(user_id, actor_user_id=g.actor_user_id)
    return jsonify({"message": f"User {user_id} permanently deleted"}), 200


@lifecycle_bp.get("/users/active")
def active_users_route():
    return jsonify({"items": [u.to_dict() for u in lifecycle_service.list_active_users()]}), 200


@lifecycle_bp.get("/users/deleted")
def deleted_users_route():
    return jsonify({"items": [u.to_dict() for u in lifecycle_service.list_deleted_users()]}), 200


@lifecycle_bp.get("/users/<int:user_id>/audit")
def user_audit_route(user_id: int):
    entries = audit_service.list_audit_entries(entity_type="USER", entity_id=user_id)
    return jsonify({"items": [e.to_dict() for e in entries]}), 200
