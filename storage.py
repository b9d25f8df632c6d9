"""
Storage contract shared by the SQLite, PostgreSQL and in-memory adapters.

Adapters receive snake_case dicts (already parsed from JSON by payloads.py)
and return the dataclasses in models.py. Input normalization lives here so
every adapter applies the same defaults and validation.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional

from errors import InvalidArgument
from models import (
    ROLES,
    Reward,
    SpinResult,
    StudentProfile,
    StudentProgress,
    StudentReward,
    Subject,
    SurveyResponse,
    User,
    level_for_xp,
)

logger = logging.getLogger(__name__)

DEFAULT_INITIAL_SPINS = 3

PROFILE_UPDATABLE_FIELDS = (
    "current_mood",
    "learning_style",
    "interests",
    "accessibility_needs",
    "total_xp",
    "available_spins",
    "streak",
    "badges",
)

RewardChooser = Callable[[list[Reward]], Reward]


def _int_field(data: Mapping[str, Any], key: str, default: Optional[int] = None,
               minimum: Optional[int] = None, maximum: Optional[int] = None) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{key} must be an integer")
    if minimum is not None and value < minimum:
        raise InvalidArgument(f"{key} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise InvalidArgument(f"{key} must be at most {maximum}")
    return value


def _required_int(data: Mapping[str, Any], key: str) -> int:
    value = _int_field(data, key)
    if value is None:
        raise InvalidArgument(f"{key} is required")
    return value


def _string_list(value: Any, key: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value):
        raise InvalidArgument(f"{key} must be a list of strings")
    return list(value)


def _flag_map(value: Any, key: str) -> dict[str, bool]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidArgument(f"{key} must be an object of flags")
    return {str(k): bool(v) for k, v in value.items()}


class Storage(ABC):
    """Persistence operations for users, profiles, progress, surveys and rewards."""

    backend_name = "abstract"

    def __init__(self, initial_spins: int = DEFAULT_INITIAL_SPINS):
        self.initial_spins = initial_spins

    # ── Users ────────────────────────────────────────────────────────

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def upsert_user(self, data: Mapping[str, Any]) -> User:
        """Insert a user, or update the one whose id matches ``data["id"]``."""

    # ── Student profiles ─────────────────────────────────────────────

    @abstractmethod
    def get_student_profile(self, user_id: int) -> Optional[StudentProfile]:
        """Look up the profile owned by a user."""

    @abstractmethod
    def get_student_profile_by_id(self, profile_id: int) -> Optional[StudentProfile]: ...

    @abstractmethod
    def create_student_profile(self, data: Mapping[str, Any]) -> StudentProfile: ...

    @abstractmethod
    def update_student_profile(self, profile_id: int,
                               updates: Mapping[str, Any]) -> Optional[StudentProfile]:
        """Merge fields into a profile. Returns None when the id is unknown."""

    # ── Subjects ─────────────────────────────────────────────────────

    @abstractmethod
    def get_all_subjects(self) -> list[Subject]: ...

    @abstractmethod
    def get_subject(self, subject_id: int) -> Optional[Subject]: ...

    # ── Progress ─────────────────────────────────────────────────────

    @abstractmethod
    def get_student_progress(self, student_id: int) -> list[StudentProgress]: ...

    @abstractmethod
    def get_student_progress_by_subject(self, student_id: int,
                                        subject_id: int) -> Optional[StudentProgress]: ...

    @abstractmethod
    def upsert_student_progress(self, data: Mapping[str, Any]) -> StudentProgress:
        """Create or overwrite the row for (student_id, subject_id).

        Values are overwritten, not merged; last_accessed moves to now.
        """

    # ── Surveys ──────────────────────────────────────────────────────

    @abstractmethod
    def create_survey_response(self, data: Mapping[str, Any]) -> SurveyResponse: ...

    @abstractmethod
    def get_latest_survey_response(self, student_id: int) -> Optional[SurveyResponse]: ...

    # ── Rewards ──────────────────────────────────────────────────────

    @abstractmethod
    def get_all_rewards(self) -> list[Reward]: ...

    @abstractmethod
    def get_reward(self, reward_id: int) -> Optional[Reward]: ...

    @abstractmethod
    def add_student_reward(self, data: Mapping[str, Any]) -> StudentReward: ...

    @abstractmethod
    def get_student_rewards(self, student_id: int) -> list[StudentReward]: ...

    # ── XP and spins ─────────────────────────────────────────────────

    @abstractmethod
    def update_student_xp(self, student_id: int, delta: int) -> StudentProfile:
        """Add ``delta`` XP (floored at zero) and recompute the level atomically."""

    @abstractmethod
    def update_available_spins(self, student_id: int, spins: int) -> StudentProfile:
        """Set the absolute spin count."""

    @abstractmethod
    def add_spins(self, student_id: int, amount: int) -> StudentProfile:
        """Increment the spin count in a single atomic step."""

    @abstractmethod
    def redeem_spin(self, student_id: int, choose: RewardChooser) -> SpinResult:
        """Consume one spin and grant the chosen reward as one transaction.

        Raises InsufficientResource without mutating anything when the
        profile has no spins left.
        """

    def close(self) -> None:
        """Release per-thread resources (connections)."""

    # ── Shared normalization ─────────────────────────────────────────

    @staticmethod
    def _user_values(data: Mapping[str, Any]) -> dict[str, Any]:
        username = (data.get("username") or "").strip()
        if not username:
            raise InvalidArgument("username is required")
        role = data.get("role") or "student"
        if role not in ROLES:
            raise InvalidArgument(f"role must be one of {', '.join(ROLES)}")
        email = data.get("email") or None
        return {
            "username": username,
            "display_name": (data.get("display_name") or username).strip(),
            "role": role,
            "email": email.strip().lower() if email else None,
            "password_hash": data.get("password_hash") or "",
        }

    def _profile_values(self, data: Mapping[str, Any]) -> dict[str, Any]:
        user_id = _required_int(data, "user_id")
        total_xp = _int_field(data, "total_xp", 0, minimum=0)
        return {
            "user_id": user_id,
            "current_mood": data.get("current_mood"),
            "learning_style": data.get("learning_style"),
            "interests": _string_list(data.get("interests"), "interests"),
            "accessibility_needs": _flag_map(data.get("accessibility_needs"), "accessibility_needs"),
            "total_xp": total_xp,
            "level": level_for_xp(total_xp),
            "available_spins": _int_field(data, "available_spins", self.initial_spins, minimum=0),
            "streak": _int_field(data, "streak", 0, minimum=0),
            "badges": _string_list(data.get("badges"), "badges"),
        }

    @staticmethod
    def _profile_updates(updates: Mapping[str, Any]) -> dict[str, Any]:
        """Keep updatable fields only; ``level`` is always derived from XP."""
        values: dict[str, Any] = {}
        for key in PROFILE_UPDATABLE_FIELDS:
            if key not in updates:
                continue
            if key in ("total_xp", "available_spins", "streak"):
                value = _int_field(updates, key, minimum=0)
                if value is None:
                    raise InvalidArgument(f"{key} cannot be null")
                values[key] = value
            elif key in ("interests", "badges"):
                values[key] = _string_list(updates[key], key)
            elif key == "accessibility_needs":
                values[key] = _flag_map(updates[key], key)
            else:
                values[key] = updates[key]
        if "total_xp" in values:
            values["level"] = level_for_xp(values["total_xp"])
        return values

    @staticmethod
    def _progress_values(data: Mapping[str, Any]) -> dict[str, Any]:
        """Parse progress input; unset counters stay None for the adapter to default."""
        return {
            "student_id": _required_int(data, "student_id"),
            "subject_id": _required_int(data, "subject_id"),
            "progress": _int_field(data, "progress", minimum=0, maximum=100),
            "completed_tasks": _int_field(data, "completed_tasks", minimum=0),
            "total_tasks": _int_field(data, "total_tasks", minimum=0),
        }

    @staticmethod
    def _survey_values(data: Mapping[str, Any]) -> dict[str, Any]:
        responses = data.get("responses")
        if not isinstance(responses, Mapping):
            raise InvalidArgument("responses must be an object")
        analyzed = data.get("analyzed_data")
        if analyzed is not None and not isinstance(analyzed, Mapping):
            raise InvalidArgument("analyzed_data must be an object")
        return {
            "student_id": _required_int(data, "student_id"),
            "responses": dict(responses),
            "analyzed_data": dict(analyzed) if analyzed is not None else None,
        }

    @staticmethod
    def _grant_values(data: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "student_id": _required_int(data, "student_id"),
            "reward_id": _required_int(data, "reward_id"),
        }

    @staticmethod
    def _check_spin_count(spins: Any) -> int:
        if isinstance(spins, bool) or not isinstance(spins, int):
            raise InvalidArgument("spins must be an integer")
        if spins < 0:
            raise InvalidArgument("spins cannot be negative")
        return spins


def create_storage(config: Mapping[str, Any]) -> Storage:
    """Build the storage adapter selected by STORAGE_BACKEND / DATABASE."""
    from pg_compat import is_postgres_url

    database = config.get("DATABASE", "")
    backend = config.get("STORAGE_BACKEND") or ("postgres" if is_postgres_url(database) else "sqlite")
    initial_spins = config.get("INITIAL_SPINS", DEFAULT_INITIAL_SPINS)

    if backend == "memory":
        from memory_storage import MemoryStorage
        storage: Storage = MemoryStorage(initial_spins=initial_spins)
    elif backend == "postgres":
        from sql_storage import PostgresStorage
        storage = PostgresStorage(database, initial_spins=initial_spins)
    elif backend == "sqlite":
        from sql_storage import SQLiteStorage
        storage = SQLiteStorage(database, initial_spins=initial_spins)
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")

    logger.info("Storage backend: %s", storage.backend_name)
    return storage
