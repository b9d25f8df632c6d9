"""Onboarding survey routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from errors import NotFound
from helpers import get_engine, get_storage, json_body
from payloads import parse_survey, parse_survey_answers
from survey import analyze_survey

bp = Blueprint("onboarding", __name__)


@bp.route("/survey/submit", methods=["POST"])
def submit_survey():
    student_id, responses = parse_survey(json_body())
    saved = get_engine().submit_survey(student_id, responses)
    return jsonify(saved.to_dict())


@bp.route("/survey/preview", methods=["POST"])
def preview_survey():
    body = json_body()
    return jsonify(analyze_survey(parse_survey_answers(body.get("responses", body))))


@bp.route("/students/<int:student_id>/survey/latest")
def latest_survey(student_id):
    response = get_storage().get_latest_survey_response(student_id)
    if response is None:
        raise NotFound("No survey responses found")
    return jsonify(response.to_dict())
