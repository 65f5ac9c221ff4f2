# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


def with_actor(f):
    """
    Establish the acting user for the request.

    Authentication happens upstream; the gateway forwards the user as:
    - X-User-Id: numeric user id (optional for read-only calls)
    - X-User-Name: display name used in notification payloads

    Sets g.user_id and g.actor_name (both may be None).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw_user_id = request.headers.get("X-User-Id")
        user_id = None
        if raw_user_id:
            try:
                user_id = int(raw_user_id)
            except ValueError:
                return jsonify({"error": "X-User-Id must be an integer", "code": "VALIDATION_ERROR"}), 400

        g.user_id = user_id
        g.actor_name = request.headers.get("X-User-Name")
        return f(*args, **kwargs)

    return decorated_function
