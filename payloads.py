"""
Request body parsing.

Bodies arrive with the client's camelCase keys; storage and the engine take
snake_case dicts. Each parser checks types and required fields and raises
InvalidArgument with a message naming the offending camelCase key.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from werkzeug.security import generate_password_hash

from errors import InvalidArgument
from models import LEARNING_STYLES, MOODS, ROLES

# Largest value every storage backend can hold in an INTEGER column.
MAX_INT = 2**31 - 1

PROFILE_FIELDS = {
    "userId": "user_id",
    "currentMood": "current_mood",
    "learningStyle": "learning_style",
    "interests": "interests",
    "accessibilityNeeds": "accessibility_needs",
    "totalXP": "total_xp",
    "availableSpins": "available_spins",
    "streak": "streak",
    "badges": "badges",
}

PROGRESS_FIELDS = {
    "studentId": "student_id",
    "subjectId": "subject_id",
    "progress": "progress",
    "completedTasks": "completed_tasks",
    "totalTasks": "total_tasks",
}


def require_object(body: Any) -> dict[str, Any]:
    if not isinstance(body, Mapping):
        raise InvalidArgument("Request body must be a JSON object")
    return dict(body)


def _int(body: Mapping[str, Any], key: str, required: bool = False,
         minimum: Optional[int] = None, maximum: Optional[int] = None) -> Optional[int]:
    value = body.get(key)
    if value is None:
        if required:
            raise InvalidArgument(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{key} must be an integer")
    if minimum is not None and value < minimum:
        raise InvalidArgument(f"{key} must be at least {minimum}")
    if maximum is None:
        maximum = MAX_INT
    if value > maximum:
        raise InvalidArgument(f"{key} must be at most {maximum}")
    return value


def _str(body: Mapping[str, Any], key: str, required: bool = False) -> Optional[str]:
    value = body.get(key)
    if value is None or value == "":
        if required:
            raise InvalidArgument(f"{key} is required")
        return None
    if not isinstance(value, str):
        raise InvalidArgument(f"{key} must be a string")
    return value


def _choice(body: Mapping[str, Any], key: str, options: tuple[str, ...]) -> Optional[str]:
    value = _str(body, key)
    if value is not None and value not in options:
        raise InvalidArgument(f"{key} must be one of {', '.join(options)}")
    return value


def _str_list(body: Mapping[str, Any], key: str) -> Optional[list[str]]:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidArgument(f"{key} must be a list of strings")
    return value


def _rename(body: Mapping[str, Any], fields: Mapping[str, str]) -> dict[str, Any]:
    return {snake: body[camel] for camel, snake in fields.items() if camel in body}


def parse_user(body: Any) -> dict[str, Any]:
    """Parse a signup. ``username`` falls back to ``email``; ids are never taken from the client."""
    body = require_object(body)
    email = _str(body, "email")
    username = _str(body, "username") or email
    if not username:
        raise InvalidArgument("username or email is required")
    display_name = _str(body, "displayName")
    if display_name is None:
        parts = [_str(body, "firstName"), _str(body, "lastName")]
        display_name = " ".join(p for p in parts if p) or None
    role = _str(body, "role") or "student"
    if role not in ROLES:
        raise InvalidArgument(f"role must be one of {', '.join(ROLES)}")

    data: dict[str, Any] = {
        "username": username,
        "email": email,
        "display_name": display_name,
        "role": role,
    }
    password = _str(body, "password")
    if password is not None:
        if len(password) < 8:
            raise InvalidArgument("password must be at least 8 characters")
        data["password_hash"] = generate_password_hash(password)
    return data


def _check_profile_fields(body: Mapping[str, Any]) -> None:
    _choice(body, "currentMood", MOODS)
    _choice(body, "learningStyle", LEARNING_STYLES)
    _str_list(body, "interests")
    _str_list(body, "badges")
    needs = body.get("accessibilityNeeds")
    if needs is not None and not isinstance(needs, Mapping):
        raise InvalidArgument("accessibilityNeeds must be an object")
    for key in ("totalXP", "availableSpins", "streak"):
        _int(body, key, minimum=0)


def parse_profile(body: Any) -> dict[str, Any]:
    """Parse a new profile. ``level`` is derived from XP and ignored here."""
    body = require_object(body)
    _int(body, "userId", required=True)
    _check_profile_fields(body)
    return _rename(body, PROFILE_FIELDS)


def parse_profile_updates(body: Any) -> dict[str, Any]:
    body = require_object(body)
    _check_profile_fields(body)
    updates = _rename(body, PROFILE_FIELDS)
    updates.pop("user_id", None)
    return updates


def parse_progress(body: Any) -> dict[str, Any]:
    body = require_object(body)
    _int(body, "studentId", required=True)
    _int(body, "subjectId", required=True)
    _int(body, "progress", minimum=0, maximum=100)
    _int(body, "completedTasks", minimum=0)
    _int(body, "totalTasks", minimum=0)
    return _rename(body, PROGRESS_FIELDS)


def parse_survey_answers(responses: Any) -> dict[str, Any]:
    """Validate the questionnaire answers. Unknown moods/styles are allowed."""
    responses = require_object(responses)
    _str(responses, "mood")
    _str(responses, "learningStyle")
    _str_list(responses, "interests")
    _str_list(responses, "accessibility")
    return responses


def parse_survey(body: Any) -> tuple[int, dict[str, Any]]:
    body = require_object(body)
    student_id = _int(body, "studentId", required=True)
    if "responses" not in body:
        raise InvalidArgument("responses is required")
    return student_id, parse_survey_answers(body["responses"])


def parse_spin(body: Any) -> int:
    body = require_object(body)
    return _int(body, "studentId", required=True)


def parse_game_result(body: Any) -> dict[str, Any]:
    body = require_object(body)
    return {
        "game_id": _str(body, "gameId"),
        "score": _int(body, "score", required=True),
        "xp_earned": _int(body, "xpEarned", minimum=0),
    }


def parse_login(body: Any) -> tuple[str, str]:
    body = require_object(body)
    return _str(body, "username", required=True), _str(body, "password", required=True)
