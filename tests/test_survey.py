"""Tests for survey.py — the onboarding questionnaire analyzer."""

from __future__ import annotations

from survey import INTEREST_ADVICE, MOOD_ADVICE, STYLE_ADVICE, analyze_survey


class TestAnalyzeSurvey:
    def test_recommendation_order(self):
        result = analyze_survey({
            "mood": "frustrated",
            "learningStyle": "visual",
            "interests": ["math"],
            "accessibility": ["text_to_speech"],
        })
        assert result["accessibilityNeeds"] == {"text_to_speech": True}
        assert result["recommendations"] == [
            "Provide extra encouragement and support",
            "Break tasks into smaller, manageable steps",
            "Emphasize pictures, diagrams, and visual aids",
            "Use color-coding and visual organization",
            "Gamify mathematical concepts with potion-making themes",
        ]

    def test_interest_advice_follows_fixed_order(self):
        result = analyze_survey({"interests": ["art", "math"]})
        assert result["recommendations"] == [
            "Gamify mathematical concepts with potion-making themes",
            "Add creative and artistic learning activities",
        ]

    def test_unknown_values_contribute_nothing(self):
        result = analyze_survey({"mood": "sleepy", "learningStyle": "osmosis", "interests": ["music"]})
        assert result["recommendations"] == []
        assert result["mood"] == "sleepy"
        assert result["interests"] == ["music"]

    def test_absent_accessibility_options_omitted(self):
        result = analyze_survey({"mood": "happy", "accessibility": ["high_contrast"]})
        assert result["accessibilityNeeds"] == {"high_contrast": True}
        assert "text_to_speech" not in result["accessibilityNeeds"]

    def test_empty_answers(self):
        result = analyze_survey({})
        assert result == {
            "mood": None,
            "learningStyle": None,
            "interests": [],
            "accessibilityNeeds": {},
            "recommendations": [],
        }

    def test_tables_cover_every_option(self):
        assert set(MOOD_ADVICE) == {"happy", "calm", "excited", "tired", "frustrated"}
        assert set(STYLE_ADVICE) == {"visual", "auditory", "kinesthetic"}
        assert [tag for tag, _ in INTEREST_ADVICE] == ["math", "reading", "science", "art"]

    def test_pure(self):
        answers = {"mood": "calm", "learningStyle": "kinesthetic", "interests": ["science"]}
        assert analyze_survey(answers) == analyze_survey(answers)
        assert answers == {"mood": "calm", "learningStyle": "kinesthetic", "interests": ["science"]}
