"""
Game-economy rules layered over a Storage adapter.

XP is award-only here, level always follows XP, and a spin is one atomic
storage operation. Routes call the engine rather than mutating counters
on the storage directly.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from errors import InsufficientResource, InvalidArgument, NotFound
from models import LEARNING_STYLES, MOODS, SpinResult, StudentProfile, StudentProgress, SurveyResponse
from storage import Storage
from survey import analyze_survey

logger = logging.getLogger(__name__)

DEFAULT_TOTAL_TASKS = 10
_SUBJECT_GAME_ID = re.compile(r"^subject_(\d+)$")


@dataclass
class GameOutcome:
    xp_earned: int
    bonus_spin: bool
    level_up: bool
    profile: StudentProfile
    progress: Optional[StudentProgress] = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "xpEarned": self.xp_earned,
            "bonusSpin": self.bonus_spin,
            "levelUp": self.level_up,
            "profile": self.profile.to_dict(),
        }
        if self.progress is not None:
            data["progress"] = self.progress.to_dict()
        return data


class GameEngine:
    def __init__(self, storage: Storage, rng: Optional[random.Random] = None,
                 bonus_spin_threshold: int = 4, quiz_length: int = 5,
                 xp_per_correct_answer: int = 20):
        self.storage = storage
        self.rng = rng or random.Random()
        self.bonus_spin_threshold = bonus_spin_threshold
        self.quiz_length = quiz_length
        self.xp_per_correct_answer = xp_per_correct_answer

    @classmethod
    def from_config(cls, storage: Storage, config: Mapping[str, Any]) -> "GameEngine":
        return cls(
            storage,
            bonus_spin_threshold=config.get("BONUS_SPIN_THRESHOLD", 4),
            quiz_length=config.get("QUIZ_LENGTH", 5),
            xp_per_correct_answer=config.get("XP_PER_CORRECT_ANSWER", 20),
        )

    def _profile(self, student_id: int) -> StudentProfile:
        profile = self.storage.get_student_profile_by_id(student_id)
        if profile is None:
            raise NotFound("Student profile not found")
        return profile

    def award_xp(self, student_id: int, amount: int) -> StudentProfile:
        """Add a non-negative amount of XP and return the updated profile."""
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise InvalidArgument("XP amount must be an integer")
        if amount < 0:
            raise InvalidArgument("XP amount cannot be negative")
        before = self._profile(student_id)
        profile = self.storage.update_student_xp(student_id, amount)
        if profile.level > before.level:
            logger.info("Student %s reached level %s", student_id, profile.level)
        return profile

    def spin(self, student_id: int) -> SpinResult:
        """Spend one spin on a uniformly random reward from the catalog."""
        try:
            result = self.storage.redeem_spin(student_id, self.rng.choice)
        except InsufficientResource:
            logger.warning("Spin rejected for student %s: no spins left", student_id)
            raise
        logger.info(
            "Student %s spun %r (%s spins left)",
            student_id, result.reward.name, result.profile.available_spins,
        )
        return result

    def record_progress(self, data: Mapping[str, Any]) -> StudentProgress:
        """Overwrite the progress row for a (student, subject) pair."""
        return self.storage.upsert_student_progress(data)

    def complete_game(self, student_id: int, game_id: Optional[str], score: Any,
                      xp_earned: Any = None) -> GameOutcome:
        """Apply the result of a mini-game: XP, an optional bonus spin, subject progress."""
        if isinstance(score, bool) or not isinstance(score, int):
            raise InvalidArgument("score must be an integer")
        if not 0 <= score <= self.quiz_length:
            raise InvalidArgument(f"score must be between 0 and {self.quiz_length}")
        if xp_earned is None:
            xp_earned = score * self.xp_per_correct_answer

        before = self._profile(student_id)
        profile = self.award_xp(student_id, xp_earned)

        bonus_spin = score >= self.bonus_spin_threshold
        if bonus_spin:
            profile = self.storage.add_spins(student_id, 1)
            logger.info("Student %s earned a bonus spin (score %s)", student_id, score)

        progress = self._advance_subject(student_id, game_id)
        return GameOutcome(
            xp_earned=xp_earned,
            bonus_spin=bonus_spin,
            level_up=profile.level > before.level,
            profile=profile,
            progress=progress,
        )

    def _advance_subject(self, student_id: int, game_id: Optional[str]) -> Optional[StudentProgress]:
        match = _SUBJECT_GAME_ID.match(game_id or "")
        if not match:
            return None
        subject_id = int(match.group(1))
        if self.storage.get_subject(subject_id) is None:
            return None

        current = self.storage.get_student_progress_by_subject(student_id, subject_id)
        total = (current.total_tasks if current else 0) or DEFAULT_TOTAL_TASKS
        completed = min(total, (current.completed_tasks if current else 0) + 1)
        return self.storage.upsert_student_progress({
            "student_id": student_id,
            "subject_id": subject_id,
            "progress": round(completed * 100 / total),
            "completed_tasks": completed,
            "total_tasks": total,
        })

    def submit_survey(self, student_id: int, responses: Mapping[str, Any]) -> SurveyResponse:
        """Store answers with their analysis and copy the results onto the profile."""
        self._profile(student_id)
        analyzed = analyze_survey(responses)
        saved = self.storage.create_survey_response({
            "student_id": student_id,
            "responses": dict(responses),
            "analyzed_data": analyzed,
        })
        updates: dict[str, Any] = {
            "interests": analyzed["interests"],
            "accessibility_needs": analyzed["accessibilityNeeds"],
        }
        # Same vocabulary the profile PATCH route enforces; other answers stay on the survey only.
        if analyzed["mood"] in MOODS:
            updates["current_mood"] = analyzed["mood"]
        if analyzed["learningStyle"] in LEARNING_STYLES:
            updates["learning_style"] = analyzed["learningStyle"]
        self.storage.update_student_profile(student_id, updates)
        logger.info("Survey %s recorded for student %s (mood=%s, style=%s)",
                    saved.id, student_id, analyzed["mood"], analyzed["learningStyle"])
        return saved
