"""Reward wheel routes."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from extensions import limiter
from helpers import get_engine, get_storage, json_body
from payloads import parse_spin

bp = Blueprint("rewards", __name__)


def _spin_limit() -> str:
    return current_app.config.get("SPIN_RATE_LIMIT", "30 per minute")


@bp.route("/students/rewards/spin", methods=["POST"])
@limiter.limit(_spin_limit)
def spin():
    student_id = parse_spin(json_body())
    result = get_engine().spin(student_id)
    return jsonify({
        "reward": result.reward.to_dict(),
        "studentReward": result.grant.to_dict(),
        "availableSpins": result.profile.available_spins,
        "profile": result.profile.to_dict(),
    })


@bp.route("/students/<int:student_id>/rewards")
def reward_history(student_id):
    return jsonify([g.to_dict() for g in get_storage().get_student_rewards(student_id)])
