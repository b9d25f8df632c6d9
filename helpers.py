"""
Shared helpers used across blueprints.

Extracted from app.py to break circular dependencies.
"""

from __future__ import annotations

from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import abort, current_app, request
from flask_login import current_user

from cache_backend import CacheBackend
from game_engine import GameEngine
from payloads import require_object
from storage import Storage


def get_storage() -> Storage:
    return current_app.extensions["storage"]


def get_engine() -> GameEngine:
    return current_app.extensions["game_engine"]


def get_cache() -> CacheBackend:
    return current_app.extensions["cache"]


def json_body() -> dict[str, Any]:
    """Parsed JSON object body; malformed JSON is a 400 from werkzeug."""
    return require_object(request.get_json(force=True))


def role_required(*roles: str) -> Callable:
    """Decorator that requires the logged-in user to hold one of ``roles``."""
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated(*args: Any, **kwargs: Any) -> Any:
            if not current_user.is_authenticated:
                return current_app.login_manager.unauthorized()
            if getattr(current_user, "role", "student") not in roles:
                abort(403, description="You do not have access to this resource")
            return f(*args, **kwargs)
        return decorated
    return decorator
