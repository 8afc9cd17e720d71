from __future__ import annotations
from functools import wraps
from flask import request, g

from api import session_tokens
from services.errors import Forbidden, Unauthenticated


def jwt_required():
    """Resolve the bearer access token to a user and attach it to g.current_user."""
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer "):
                raise Unauthenticated("Missing or invalid Authorization header")
            token = auth.split(" ", 1)[1].strip()

            g.current_user = session_tokens().authenticate(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """
    Allow access if the user's role is one of required_roles; 403 otherwise.
    """
    req = set(required_roles or [])
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if g.current_user.role not in req:
                raise Forbidden()
            return fn(*args, **kwargs)

        return wrapper

    return decorator
