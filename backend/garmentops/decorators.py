# Overview: Request decorators for API routes (actor resolution).

from functools import wraps
from flask import request, jsonify, g

from .context import OperationContext
from .extensions import db
from .models import User


ACTOR_HEADER = "X-Actor-Id"


def require_actor(f):
    """
    Resolve the acting user and build the operation context.

    Sets the following Flask g attributes:
    - g.actor: the active User performing the request
    - g.operation_context: OperationContext passed to every mutating service

    Returns 401 if the X-Actor-Id header is missing, not an integer, or
    names an unknown or deactivated user. Authentication itself happens
    upstream; this only attributes the request.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = (request.headers.get(ACTOR_HEADER) or "").strip()
        if not raw:
            return jsonify({"success": False, "error": "Actor required"}), 401

        try:
            actor_id = int(raw)
        except ValueError:
            return jsonify({"success": False, "error": "Invalid actor"}), 401

        user = db.session.get(User, actor_id)
        if user is None or not user.is_active:
            return jsonify({"success": False, "error": "Invalid actor"}), 401

        g.actor = user
        g.operation_context = OperationContext(
            actor_user_id=user.id,
            ip_address=request.remote_addr,
            user_agent=request.headers.get("User-Agent"),
        )

        return f(*args, **kwargs)

    return decorated_function
