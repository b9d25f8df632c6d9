"""In-memory storage adapter for tests and throwaway demos."""

from __future__ import annotations

import copy
import itertools
import logging
import threading
from typing import Any, Mapping, Optional

from database import DEFAULT_REWARDS, DEFAULT_SUBJECTS
from errors import Conflict, InsufficientResource, InvalidArgument, NotFound
from models import (
    Reward,
    SpinResult,
    StudentProfile,
    StudentProgress,
    StudentReward,
    Subject,
    SurveyResponse,
    User,
    level_for_xp,
    now_iso,
)
from storage import RewardChooser, Storage

logger = logging.getLogger(__name__)


class MemoryStorage(Storage):
    """Dict-backed storage; one re-entrant lock makes every operation atomic.

    Callers always receive copies, so mutating a returned object never
    changes stored state.
    """

    backend_name = "memory"

    def __init__(self, initial_spins: int = 3):
        super().__init__(initial_spins)
        self._lock = threading.RLock()
        self._ids: dict[str, itertools.count] = {}
        self._users: dict[int, User] = {}
        self._profiles: dict[int, StudentProfile] = {}
        self._subjects: dict[int, Subject] = {}
        self._progress: dict[tuple[int, int], StudentProgress] = {}
        self._surveys: list[SurveyResponse] = []
        self._rewards: dict[int, Reward] = {}
        self._grants: list[StudentReward] = []

        for name, magical_name, icon, color, description in DEFAULT_SUBJECTS:
            subject_id = self._next_id("subjects")
            self._subjects[subject_id] = Subject(subject_id, name, magical_name, icon, color, description)
        for name, kind, value, icon, description in DEFAULT_REWARDS:
            reward_id = self._next_id("rewards")
            self._rewards[reward_id] = Reward(reward_id, name, kind, icon, value, description)

    def _next_id(self, table: str) -> int:
        counter = self._ids.setdefault(table, itertools.count(1))
        return next(counter)

    # ── Users ────────────────────────────────────────────────────────

    def get_user(self, user_id: int) -> Optional[User]:
        with self._lock:
            return copy.deepcopy(self._users.get(user_id))

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return copy.deepcopy(user)
        return None

    def upsert_user(self, data: Mapping[str, Any]) -> User:
        values = self._user_values(data)
        with self._lock:
            user_id = data.get("id")
            existing = self._users.get(user_id) if user_id is not None else None
            for other in self._users.values():
                if existing is not None and other.id == existing.id:
                    continue
                if other.username == values["username"] or (
                        values["email"] and other.email == values["email"]):
                    raise Conflict("Username or email already in use")

            now = now_iso()
            if existing is None:
                user = User(id=self._next_id("users"), created_at=now, updated_at=now, **values)
                self._users[user.id] = user
            else:
                existing.username = values["username"]
                existing.email = values["email"]
                existing.display_name = values["display_name"]
                existing.role = values["role"]
                existing.password_hash = values["password_hash"] or existing.password_hash
                existing.updated_at = now
                user = existing
            return copy.deepcopy(user)

    # ── Student profiles ─────────────────────────────────────────────

    def get_student_profile(self, user_id: int) -> Optional[StudentProfile]:
        with self._lock:
            for profile in self._profiles.values():
                if profile.user_id == user_id:
                    return copy.deepcopy(profile)
        return None

    def get_student_profile_by_id(self, profile_id: int) -> Optional[StudentProfile]:
        with self._lock:
            return copy.deepcopy(self._profiles.get(profile_id))

    def create_student_profile(self, data: Mapping[str, Any]) -> StudentProfile:
        values = self._profile_values(data)
        with self._lock:
            if values["user_id"] not in self._users:
                raise NotFound("User not found")
            if any(p.user_id == values["user_id"] for p in self._profiles.values()):
                raise Conflict("User already has a student profile")
            profile = StudentProfile(id=self._next_id("student_profiles"), updated_at=now_iso(), **values)
            self._profiles[profile.id] = profile
            logger.info("Created student profile %s for user %s", profile.id, profile.user_id)
            return copy.deepcopy(profile)

    def update_student_profile(self, profile_id: int,
                               updates: Mapping[str, Any]) -> Optional[StudentProfile]:
        values = self._profile_updates(updates)
        with self._lock:
            profile = self._profiles.get(profile_id)
            if profile is None:
                return None
            for key, value in values.items():
                setattr(profile, key, copy.deepcopy(value))
            profile.updated_at = now_iso()
            return copy.deepcopy(profile)

    # ── Subjects ─────────────────────────────────────────────────────

    def get_all_subjects(self) -> list[Subject]:
        with self._lock:
            return [copy.deepcopy(s) for s in self._subjects.values()]

    def get_subject(self, subject_id: int) -> Optional[Subject]:
        with self._lock:
            return copy.deepcopy(self._subjects.get(subject_id))

    # ── Progress ─────────────────────────────────────────────────────

    def get_student_progress(self, student_id: int) -> list[StudentProgress]:
        with self._lock:
            rows = [p for (sid, _), p in self._progress.items() if sid == student_id]
            return [copy.deepcopy(p) for p in sorted(rows, key=lambda p: p.subject_id)]

    def get_student_progress_by_subject(self, student_id: int,
                                        subject_id: int) -> Optional[StudentProgress]:
        with self._lock:
            return copy.deepcopy(self._progress.get((student_id, subject_id)))

    def upsert_student_progress(self, data: Mapping[str, Any]) -> StudentProgress:
        values = self._progress_values(data)
        key = (values["student_id"], values["subject_id"])
        with self._lock:
            self._require_profile(values["student_id"])
            if values["subject_id"] not in self._subjects:
                raise NotFound("Subject not found")
            row = self._progress.get(key)
            if row is None:
                row = StudentProgress(id=self._next_id("student_progress"),
                                      student_id=key[0], subject_id=key[1])
                self._progress[key] = row
            for field_name in ("progress", "completed_tasks", "total_tasks"):
                if values[field_name] is not None:
                    setattr(row, field_name, values[field_name])
            row.last_accessed = now_iso()
            return copy.deepcopy(row)

    # ── Surveys ──────────────────────────────────────────────────────

    def create_survey_response(self, data: Mapping[str, Any]) -> SurveyResponse:
        values = self._survey_values(data)
        with self._lock:
            self._require_profile(values["student_id"])
            response = SurveyResponse(id=self._next_id("survey_responses"), created_at=now_iso(),
                                      **copy.deepcopy(values))
            self._surveys.append(response)
            return copy.deepcopy(response)

    def get_latest_survey_response(self, student_id: int) -> Optional[SurveyResponse]:
        with self._lock:
            rows = [s for s in self._surveys if s.student_id == student_id]
            if not rows:
                return None
            return copy.deepcopy(max(rows, key=lambda s: (s.created_at, s.id)))

    # ── Rewards ──────────────────────────────────────────────────────

    def get_all_rewards(self) -> list[Reward]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._rewards.values()]

    def get_reward(self, reward_id: int) -> Optional[Reward]:
        with self._lock:
            return copy.deepcopy(self._rewards.get(reward_id))

    def add_student_reward(self, data: Mapping[str, Any]) -> StudentReward:
        values = self._grant_values(data)
        with self._lock:
            self._require_profile(values["student_id"])
            if values["reward_id"] not in self._rewards:
                raise NotFound("Reward not found")
            return copy.deepcopy(self._insert_grant(values["student_id"], values["reward_id"]))

    def get_student_rewards(self, student_id: int) -> list[StudentReward]:
        with self._lock:
            return [copy.deepcopy(g) for g in self._grants if g.student_id == student_id]

    # ── XP and spins ─────────────────────────────────────────────────

    def update_student_xp(self, student_id: int, delta: int) -> StudentProfile:
        with self._lock:
            return copy.deepcopy(self._apply_xp(student_id, delta))

    def update_available_spins(self, student_id: int, spins: int) -> StudentProfile:
        spins = self._check_spin_count(spins)
        with self._lock:
            profile = self._require_profile(student_id)
            profile.available_spins = spins
            profile.updated_at = now_iso()
            return copy.deepcopy(profile)

    def add_spins(self, student_id: int, amount: int) -> StudentProfile:
        amount = self._check_spin_count(amount)
        with self._lock:
            profile = self._require_profile(student_id)
            profile.available_spins += amount
            profile.updated_at = now_iso()
            return copy.deepcopy(profile)

    def redeem_spin(self, student_id: int, choose: RewardChooser) -> SpinResult:
        with self._lock:
            profile = self._require_profile(student_id)
            if profile.available_spins <= 0:
                raise InsufficientResource("No spins available")
            rewards = self.get_all_rewards()
            if not rewards:
                raise NotFound("Reward catalog is empty")

            reward = choose(rewards)
            profile.available_spins -= 1
            grant = self._insert_grant(student_id, reward.id)
            if reward.grants_xp:
                self._apply_xp(student_id, reward.value)
            if reward.type == "badge" and reward.name not in profile.badges:
                profile.badges.append(reward.name)
            profile.updated_at = now_iso()
            return SpinResult(reward=reward, grant=copy.deepcopy(grant), profile=copy.deepcopy(profile))

    # ── Internals (caller holds the lock) ────────────────────────────

    def _require_profile(self, student_id: int) -> StudentProfile:
        profile = self._profiles.get(student_id)
        if profile is None:
            raise NotFound("Student profile not found")
        return profile

    def _apply_xp(self, student_id: int, delta: int) -> StudentProfile:
        if isinstance(delta, bool) or not isinstance(delta, int):
            raise InvalidArgument("XP delta must be an integer")
        profile = self._require_profile(student_id)
        profile.total_xp = max(0, profile.total_xp + delta)
        profile.level = level_for_xp(profile.total_xp)
        profile.updated_at = now_iso()
        return profile

    def _insert_grant(self, student_id: int, reward_id: int) -> StudentReward:
        grant = StudentReward(id=self._next_id("student_rewards"), student_id=student_id,
                              reward_id=reward_id, earned_at=now_iso())
        self._grants.append(grant)
        return grant
