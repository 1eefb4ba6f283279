from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from services.errors import InvalidAccessToken


def jwt_required():
    """Require a valid access token; exposes the caller as g.current_user."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                abort(401, description="Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()
            if not token:
                raise InvalidAccessToken()
            auth_service = current_app.extensions["auth_service"]
            g.current_user = auth_service.authenticate(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
