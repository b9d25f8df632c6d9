"""User account routes."""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify

from errors import NotFound
from helpers import get_storage, json_body
from payloads import parse_user

logger = logging.getLogger(__name__)

bp = Blueprint("users", __name__)


@bp.route("/users", methods=["POST"])
def create_user():
    user = get_storage().upsert_user(parse_user(json_body()))
    logger.info("Created user %s (%s)", user.id, user.role)
    return jsonify(user.to_dict())


@bp.route("/users/<int:user_id>")
def get_user(user_id):
    user = get_storage().get_user(user_id)
    if user is None:
        raise NotFound("User not found")
    return jsonify(user.to_dict())
