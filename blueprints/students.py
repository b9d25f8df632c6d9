"""Student profile and dashboard routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from errors import NotFound
from helpers import get_storage, json_body
from payloads import parse_profile, parse_profile_updates
from reports import build_dashboard

bp = Blueprint("students", __name__)


# ── Profiles ───────────────────────────────────────────────

@bp.route("/students/profile/<int:user_id>")
def get_profile(user_id):
    profile = get_storage().get_student_profile(user_id)
    if profile is None:
        raise NotFound("Student profile not found")
    return jsonify(profile.to_dict())


@bp.route("/students/profile", methods=["POST"])
def create_profile():
    profile = get_storage().create_student_profile(parse_profile(json_body()))
    return jsonify(profile.to_dict())


@bp.route("/students/profile/<int:profile_id>", methods=["PATCH"])
def update_profile(profile_id):
    profile = get_storage().update_student_profile(profile_id, parse_profile_updates(json_body()))
    if profile is None:
        raise NotFound("Student profile not found")
    return jsonify(profile.to_dict())


# ── Dashboard ──────────────────────────────────────────────

@bp.route("/students/<int:student_id>/dashboard")
def dashboard(student_id):
    return jsonify(build_dashboard(get_storage(), student_id))
