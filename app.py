"""
Learning Quest — Flask Web Application

REST backend for a gamified learning app: onboarding survey, student
dashboard, reward wheel, mini-games and teacher/parent reports.
"""

from __future__ import annotations

import os
from typing import Any

from flask import Flask, Response, jsonify

from auth import login_manager
from blueprints import register_blueprints
from cache_backend import init_cache
from errors import register_error_handlers
from extensions import limiter
from game_engine import GameEngine
from storage import Storage, create_storage


def create_app(test_config: dict[str, Any] | None = None, storage: Storage | None = None) -> Flask:
    app = Flask(__name__)

    # Load config
    from config import config_by_name
    env = os.environ.get("FLASK_ENV", "development")
    cfg = config_by_name.get(env, config_by_name["development"])
    app.config.from_object(cfg)
    if test_config is not None:
        app.config.update(test_config)
    elif hasattr(cfg, "validate"):
        cfg.validate()

    # Structured logging
    from logging_config import init_logging
    init_logging(app)

    # Storage and game engine (one instance per app)
    if storage is None:
        storage = create_storage(app.config)
    app.extensions["storage"] = storage
    app.extensions["game_engine"] = GameEngine.from_config(storage, app.config)

    @app.teardown_appcontext
    def _close_storage(exc: BaseException | None = None) -> None:
        storage.close()

    # Cache backend (Redis or in-memory)
    init_cache(app)

    # Rate limiter (disabled in testing)
    limiter.init_app(app)
    if app.config.get("TESTING"):
        limiter.enabled = False

    login_manager.init_app(app)
    register_blueprints(app)
    register_error_handlers(app)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok", "storage": storage.backend_name})

    # Security headers
    @app.after_request
    def set_security_headers(response: Response) -> Response:
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    return app


if __name__ == "__main__":
    create_app().run(debug=True, port=5000)
