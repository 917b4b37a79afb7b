# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Require an acting user id from the upstream auth layer.

    Authentication itself happens in front of this service; it forwards the
    authenticated user's id in the X-Actor-Id header. Sets:
    - g.actor_id: int id recorded as cashier / actor on every write

    Returns 401 if the header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()

        if not raw:
            return jsonify({"error": "Authentication required"}), 401

        if not raw.isdigit() or int(raw) <= 0:
            return jsonify({"error": "Invalid actor id"}), 401

        g.actor_id = int(raw)

        return f(*args, **kwargs)

    return decorated_function
