"""Tests for game_engine.py — XP, spins, mini-games and survey submission."""

from __future__ import annotations

import random
import threading

import pytest

from errors import InsufficientResource, InvalidArgument, NotFound
from game_engine import GameEngine
from models import level_for_xp


@pytest.fixture
def engine(storage):
    return GameEngine(storage, rng=random.Random(7))


class TestLevels:
    @pytest.mark.parametrize("xp,level", [(0, 1), (99, 1), (100, 2), (250, 3), (1000, 11)])
    def test_level_for_xp(self, xp, level):
        assert level_for_xp(xp) == level


class TestAwardXP:
    def test_award_accumulates(self, engine, profile):
        engine.award_xp(profile.id, 60)
        updated = engine.award_xp(profile.id, 60)
        assert updated.total_xp == 120
        assert updated.level == 2

    def test_negative_rejected(self, engine, profile):
        with pytest.raises(InvalidArgument):
            engine.award_xp(profile.id, -5)

    def test_unknown_profile(self, engine):
        with pytest.raises(NotFound):
            engine.award_xp(404, 10)


class TestSpin:
    def test_three_spins_then_rejected(self, engine, storage, profile):
        for expected_left in (2, 1, 0):
            result = engine.spin(profile.id)
            assert result.profile.available_spins == expected_left
        assert len(storage.get_student_rewards(profile.id)) == 3

        xp_before = storage.get_student_profile_by_id(profile.id).total_xp
        with pytest.raises(InsufficientResource):
            engine.spin(profile.id)
        after = storage.get_student_profile_by_id(profile.id)
        assert after.available_spins == 0
        assert after.total_xp == xp_before
        assert len(storage.get_student_rewards(profile.id)) == 3

    def test_reward_drawn_from_catalog(self, engine, storage, profile):
        catalog_ids = {r.id for r in storage.get_all_rewards()}
        assert engine.spin(profile.id).reward.id in catalog_ids

    def test_xp_reward_applies_level_rule(self, storage, profile):
        class PickHundred:
            def choice(self, rewards):
                return next(r for r in rewards if r.value == 100)

        engine = GameEngine(storage, rng=PickHundred())
        result = engine.spin(profile.id)
        assert result.profile.total_xp == 100
        assert result.profile.level == 2


class TestConcurrentSpins:
    def test_last_spin_cannot_be_spent_twice(self, tmp_path):
        from sql_storage import SQLiteStorage

        storage = SQLiteStorage(str(tmp_path / "race.db"))
        user = storage.upsert_user({"username": "racer"})
        profile = storage.create_student_profile({"user_id": user.id, "available_spins": 1})
        engine = GameEngine(storage)

        outcomes: list[str] = []
        lock = threading.Lock()
        start = threading.Barrier(8)

        def worker():
            start.wait()
            try:
                engine.spin(profile.id)
                result = "ok"
            except InsufficientResource:
                result = "rejected"
            finally:
                storage.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("rejected") == 7
        assert storage.get_student_profile_by_id(profile.id).available_spins == 0
        assert len(storage.get_student_rewards(profile.id)) == 1
        storage.close()


class TestCompleteGame:
    def test_high_score_earns_bonus_spin(self, engine, profile):
        outcome = engine.complete_game(profile.id, "potions_quiz", score=4)
        assert outcome.bonus_spin is True
        assert outcome.xp_earned == 80
        assert outcome.profile.available_spins == profile.available_spins + 1
        assert outcome.profile.total_xp == 80

    def test_low_score_no_bonus(self, engine, profile):
        outcome = engine.complete_game(profile.id, None, score=3, xp_earned=15)
        assert outcome.bonus_spin is False
        assert outcome.xp_earned == 15
        assert outcome.profile.available_spins == profile.available_spins

    def test_level_up_reported(self, engine, profile):
        outcome = engine.complete_game(profile.id, None, score=5, xp_earned=120)
        assert outcome.level_up is True
        assert outcome.profile.level == 2

    def test_score_out_of_range(self, engine, profile):
        with pytest.raises(InvalidArgument):
            engine.complete_game(profile.id, None, score=6)

    def test_subject_game_advances_progress(self, engine, storage, profile):
        engine.complete_game(profile.id, "subject_1", score=2)
        outcome = engine.complete_game(profile.id, "subject_1", score=2)
        assert outcome.progress.completed_tasks == 2
        assert outcome.progress.total_tasks == 10
        assert outcome.progress.progress == 20
        assert storage.get_student_progress_by_subject(profile.id, 1).completed_tasks == 2

    def test_unknown_subject_game_ignored(self, engine, storage, profile):
        outcome = engine.complete_game(profile.id, "subject_99", score=1)
        assert outcome.progress is None
        assert storage.get_student_progress(profile.id) == []


class TestSubmitSurvey:
    def test_profile_updated_from_analysis(self, engine, storage, profile):
        saved = engine.submit_survey(profile.id, {
            "mood": "tired",
            "learningStyle": "auditory",
            "interests": ["reading"],
            "accessibility": ["large_text"],
        })
        assert saved.analyzed_data["mood"] == "tired"
        updated = storage.get_student_profile_by_id(profile.id)
        assert updated.current_mood == "tired"
        assert updated.learning_style == "auditory"
        assert updated.interests == ["reading"]
        assert updated.accessibility_needs == {"large_text": True}
        assert storage.get_latest_survey_response(profile.id).id == saved.id

    def test_unknown_student(self, engine):
        with pytest.raises(NotFound):
            engine.submit_survey(999, {"mood": "happy"})

    def test_unknown_mood_and_style_not_copied_to_profile(self, engine, storage, profile):
        engine.submit_survey(profile.id, {"mood": "calm", "learningStyle": "visual"})
        saved = engine.submit_survey(profile.id, {"mood": "grumpy", "learningStyle": "telepathic",
                                                  "interests": ["art"]})
        assert saved.analyzed_data["mood"] == "grumpy"
        updated = storage.get_student_profile_by_id(profile.id)
        assert updated.current_mood == "calm"
        assert updated.learning_style == "visual"
        assert updated.interests == ["art"]
