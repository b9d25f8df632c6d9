"""
Entities shared by every storage adapter, the game engine and the API.

Field names are snake_case in Python; ``to_dict()`` renders the camelCase
keys the browser client expects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

XP_PER_LEVEL = 100

ROLES = ("student", "teacher", "parent")
MOODS = ("happy", "calm", "excited", "tired", "frustrated")
LEARNING_STYLES = ("visual", "auditory", "kinesthetic")


def level_for_xp(total_xp: int) -> int:
    """Level is derived from XP: one level per 100 XP, starting at 1."""
    return max(0, total_xp) // XP_PER_LEVEL + 1


def now_iso() -> str:
    return datetime.now().isoformat(timespec="microseconds")


@dataclass
class User:
    id: int
    username: str
    display_name: str
    role: str = "student"
    email: Optional[str] = None
    password_hash: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "displayName": self.display_name,
            "role": self.role,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }


@dataclass
class StudentProfile:
    id: int
    user_id: int
    current_mood: Optional[str] = None
    learning_style: Optional[str] = None
    interests: list[str] = field(default_factory=list)
    accessibility_needs: dict[str, bool] = field(default_factory=dict)
    level: int = 1
    total_xp: int = 0
    available_spins: int = 0
    streak: int = 0
    badges: list[str] = field(default_factory=list)
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "currentMood": self.current_mood,
            "learningStyle": self.learning_style,
            "interests": list(self.interests),
            "accessibilityNeeds": dict(self.accessibility_needs),
            "level": self.level,
            "totalXP": self.total_xp,
            "availableSpins": self.available_spins,
            "streak": self.streak,
            "badges": list(self.badges),
            "updatedAt": self.updated_at,
        }


@dataclass
class Subject:
    id: int
    name: str
    magical_name: str
    icon: str
    color: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "magicalName": self.magical_name,
            "icon": self.icon,
            "color": self.color,
            "description": self.description,
        }


@dataclass
class StudentProgress:
    id: int
    student_id: int
    subject_id: int
    progress: int = 0  # percentage 0-100
    completed_tasks: int = 0
    total_tasks: int = 0
    last_accessed: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "subjectId": self.subject_id,
            "progress": self.progress,
            "completedTasks": self.completed_tasks,
            "totalTasks": self.total_tasks,
            "lastAccessed": self.last_accessed,
        }


@dataclass
class SurveyResponse:
    id: int
    student_id: int
    responses: dict[str, Any]
    analyzed_data: Optional[dict[str, Any]] = None
    created_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "responses": self.responses,
            "analyzedData": self.analyzed_data,
            "createdAt": self.created_at,
        }


@dataclass
class Reward:
    id: int
    name: str
    type: str  # xp, badge, mini_game, unlock
    icon: str
    value: Optional[int] = None  # XP amount for xp rewards
    description: Optional[str] = None

    @property
    def grants_xp(self) -> bool:
        return self.type == "xp" and bool(self.value)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "value": self.value,
            "icon": self.icon,
            "description": self.description,
        }


@dataclass
class StudentReward:
    id: int
    student_id: int
    reward_id: int
    earned_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "studentId": self.student_id,
            "rewardId": self.reward_id,
            "earnedAt": self.earned_at,
        }


@dataclass
class SpinResult:
    """Outcome of one committed spin."""
    reward: Reward
    grant: StudentReward
    profile: StudentProfile
