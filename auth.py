"""
User Authentication — Flask-Login blueprint.

JSON login, logout and current-user routes for the browser client.
Uses werkzeug.security for password checks; hashes are created in payloads.py.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request
from flask_login import LoginManager, UserMixin, current_user, login_required, login_user, logout_user
from werkzeug.exceptions import Unauthorized
from werkzeug.security import check_password_hash

from extensions import limiter
from helpers import get_storage
from payloads import parse_login

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
login_manager = LoginManager()


class AuthUser(UserMixin):
    """Wraps a stored user for Flask-Login."""

    def __init__(self, id: int, username: str, display_name: str, role: str = "student"):
        self.id = id
        self.username = username
        self.display_name = display_name
        self.role = role

    @classmethod
    def from_user(cls, user) -> "AuthUser":
        return cls(user.id, user.username, user.display_name, user.role)


@login_manager.user_loader
def load_user(user_id):
    user = get_storage().get_user(int(user_id))
    return AuthUser.from_user(user) if user else None


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"message": "Authentication required"}), 401


@auth_bp.route("/login", methods=["POST"])
@limiter.limit("5 per 15 minutes")
def login():
    username, password = parse_login(request.get_json(silent=True))
    user = get_storage().get_user_by_username(username)
    if user is None or not user.password_hash or not check_password_hash(user.password_hash, password):
        logger.warning("Failed login for %r", username)
        raise Unauthorized("Invalid username or password")

    login_user(AuthUser.from_user(user), remember=True)
    logger.info("User %s logged in", user.id)
    return jsonify(user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    logout_user()
    return jsonify({"message": "Logged out"})


@auth_bp.route("/me")
@login_required
def me():
    user = get_storage().get_user(current_user.id)
    if user is None:
        logout_user()
        return login_manager.unauthorized()
    profile = get_storage().get_student_profile(user.id)
    return jsonify({
        "user": user.to_dict(),
        "profile": profile.to_dict() if profile else None,
    })
