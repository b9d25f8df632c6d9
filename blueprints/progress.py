"""Subject progress and mini-game completion routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from helpers import get_engine, get_storage, json_body
from payloads import parse_game_result, parse_progress

bp = Blueprint("progress", __name__)


@bp.route("/students/<int:student_id>/progress")
def list_progress(student_id):
    return jsonify([p.to_dict() for p in get_storage().get_student_progress(student_id)])


@bp.route("/students/progress", methods=["POST"])
def upsert_progress():
    progress = get_engine().record_progress(parse_progress(json_body()))
    return jsonify(progress.to_dict())


@bp.route("/students/<int:student_id>/progress", methods=["POST"])
def complete_game(student_id):
    result = parse_game_result(json_body())
    outcome = get_engine().complete_game(
        student_id, result["game_id"], result["score"], result["xp_earned"],
    )
    return jsonify(outcome.to_dict())
