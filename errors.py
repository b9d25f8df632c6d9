"""
Error taxonomy and JSON error handlers.

Storage, engine and payload parsing raise these; the API boundary turns
them into ``{"message": ...}`` responses.
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class NotFound(AppError):
    """An id referenced by the caller does not exist."""
    status_code = 404


class InvalidArgument(AppError):
    """Malformed or missing input."""
    status_code = 400


class InsufficientResource(AppError):
    """A balance (spins) is too low for the requested operation."""
    status_code = 400


class Conflict(AppError):
    """A uniqueness rule would be violated."""
    status_code = 409


class Internal(AppError):
    status_code = 500


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AppError)
    def _app_error(exc: AppError):
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc.message, exc_info=True)
        return jsonify({"message": exc.message}), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return jsonify({"message": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def _unexpected(exc: Exception):
        logger.error("Unhandled error: %s", exc, exc_info=True)
        return jsonify({"message": "Internal server error"}), 500
