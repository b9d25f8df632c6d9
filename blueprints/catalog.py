"""Read-only subject and reward catalog routes (cached)."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from cache_backend import cached
from errors import NotFound
from helpers import get_cache, get_storage

bp = Blueprint("catalog", __name__)


def _ttl() -> int:
    return current_app.config.get("CATALOG_CACHE_TTL", 300)


@bp.route("/subjects")
def list_subjects():
    subjects = cached(get_cache(), "catalog:subjects", _ttl(),
                      lambda: [s.to_dict() for s in get_storage().get_all_subjects()])
    return jsonify(subjects)


@bp.route("/subjects/<int:subject_id>")
def get_subject(subject_id):
    subject = get_storage().get_subject(subject_id)
    if subject is None:
        raise NotFound("Subject not found")
    return jsonify(subject.to_dict())


@bp.route("/rewards")
def list_rewards():
    rewards = cached(get_cache(), "catalog:rewards", _ttl(),
                     lambda: [r.to_dict() for r in get_storage().get_all_rewards()])
    return jsonify(rewards)
