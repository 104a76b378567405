from functools import wraps
from flask import g, jsonify, request

# set by the API gateway after it has validated the bearer token
USER_ID_HEADER = "X-User-Id"


def load_current_user():
    raw = (request.headers.get(USER_ID_HEADER) or "").strip()
    g.user_id = int(raw) if raw.isdigit() else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "user_id", None) is None:
            return jsonify(error="Authentication required"), 401
        return fn(*args, **kwargs)
    return wrapper
