from functools import wraps
from flask import g, jsonify

from utils.roles import ADMIN

def require_roles(*role_names: str):
    """
    Usage: @require_roles("MENTOR")

    ADMIN passes every check.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            user = getattr(g, "user", None)
            if user is None:
                return jsonify(error="Authentication required"), 401

            user_roles = {r.name for r in user.roles}
            if ADMIN not in user_roles and not user_roles.intersection(role_names):
                return jsonify(error="Forbidden"), 403

            return fn(*args, **kwargs)
        return wrapper
    return decorator
