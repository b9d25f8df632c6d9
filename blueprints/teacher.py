"""Teacher and parent reporting routes."""

from __future__ import annotations

from flask import Blueprint, jsonify

from helpers import get_storage, role_required
from reports import build_student_report

bp = Blueprint("teacher", __name__)


@bp.route("/teacher/students/<int:student_id>/report")
@role_required("teacher", "parent")
def student_report(student_id):
    return jsonify(build_student_report(get_storage(), student_id))
