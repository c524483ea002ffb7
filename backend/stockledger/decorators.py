# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


ACTOR_HEADER = "X-Actor-Id"


def _parse_actor_id(raw):
    if raw is None:
        return None
    raw = raw.strip()
    if not raw.isdigit():
        return None
    value = int(raw)
    return value if value > 0 else None


def require_actor(f):
    """
    Require the calling user's id.

    Authentication happens upstream: the gateway sets X-Actor-Id on every
    request it forwards. Sets g.actor_user_id.

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        actor_id = _parse_actor_id(request.headers.get(ACTOR_HEADER))
        if actor_id is None:
            return jsonify({
                "error": {"code": "UNAUTHENTICATED", "message": f"{ACTOR_HEADER} header required"}
            }), 401
        g.actor_user_id = actor_id
        return f(*args, **kwargs)

    return decorated_function

