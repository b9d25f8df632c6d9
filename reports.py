"""Dashboard and teacher/parent report aggregation."""

from __future__ import annotations

from typing import Any

from errors import NotFound
from game_engine import DEFAULT_TOTAL_TASKS
from storage import Storage


def _subjects_with_progress(storage: Storage, student_id: int) -> list[dict[str, Any]]:
    progress = {p.subject_id: p for p in storage.get_student_progress(student_id)}
    subjects = []
    for subject in storage.get_all_subjects():
        row = progress.get(subject.id)
        subjects.append({
            **subject.to_dict(),
            "progress": row.progress if row else 0,
            "completedTasks": row.completed_tasks if row else 0,
            "totalTasks": (row.total_tasks if row else 0) or DEFAULT_TOTAL_TASKS,
            "lastAccessed": row.last_accessed if row else None,
        })
    return subjects


def build_dashboard(storage: Storage, student_id: int) -> dict[str, Any]:
    """Profile plus every subject merged with the student's progress on it."""
    profile = storage.get_student_profile_by_id(student_id)
    if profile is None:
        raise NotFound("Student not found")
    return {
        "profile": profile.to_dict(),
        "subjects": _subjects_with_progress(storage, student_id),
    }


def build_student_report(storage: Storage, student_id: int) -> dict[str, Any]:
    """Everything a teacher or parent sees for one student.

    Combines the dashboard view with the latest survey analysis, the reward
    history (joined with reward details) and a few summary numbers.
    """
    profile = storage.get_student_profile_by_id(student_id)
    if profile is None:
        raise NotFound("Student not found")
    user = storage.get_user(profile.user_id)
    subjects = _subjects_with_progress(storage, student_id)

    latest = storage.get_latest_survey_response(student_id)
    analysis = latest.analyzed_data if latest else None

    rewards: dict[int, Any] = {}
    history = []
    for grant in storage.get_student_rewards(student_id):
        if grant.reward_id not in rewards:
            rewards[grant.reward_id] = storage.get_reward(grant.reward_id)
        reward = rewards[grant.reward_id]
        history.append({
            **grant.to_dict(),
            "reward": reward.to_dict() if reward else None,
        })

    average = round(sum(s["progress"] for s in subjects) / len(subjects)) if subjects else 0
    return {
        "student": {
            "displayName": user.display_name if user else None,
            "username": user.username if user else None,
        },
        "profile": profile.to_dict(),
        "subjects": subjects,
        "latestSurvey": latest.to_dict() if latest else None,
        "recommendations": list((analysis or {}).get("recommendations", [])),
        "rewards": history,
        "summary": {
            "averageProgress": average,
            "completedTasks": sum(s["completedTasks"] for s in subjects),
            "rewardsEarned": len(history),
            "badges": len(profile.badges),
            "level": profile.level,
            "totalXP": profile.total_xp,
        },
    }
