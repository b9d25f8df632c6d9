"""
Onboarding survey analysis.

``analyze_survey`` maps the questionnaire answers to the mood, learning
style, interests, accessibility flags and a list of recommendations. It is
a pure lookup: no randomness, no I/O. The API calls it both when a survey
is submitted and for the unsaved preview.
"""

from __future__ import annotations

from typing import Any, Mapping

MOOD_ADVICE: dict[str, list[str]] = {
    "calm": [
        "Use soothing colors and gentle animations",
        "Provide meditation breaks between activities",
    ],
    "excited": [
        "Include high-energy activities and games",
        "Use bright colors and dynamic content",
    ],
    "tired": [
        "Shorter learning sessions with frequent breaks",
        "Use audio content to reduce visual strain",
    ],
    "frustrated": [
        "Provide extra encouragement and support",
        "Break tasks into smaller, manageable steps",
    ],
    "happy": [
        "Maintain positive reinforcement",
        "Include celebratory elements and rewards",
    ],
}

STYLE_ADVICE: dict[str, list[str]] = {
    "visual": [
        "Emphasize pictures, diagrams, and visual aids",
        "Use color-coding and visual organization",
    ],
    "auditory": [
        "Include audio explanations and sound effects",
        "Provide text-to-speech for all content",
    ],
    "kinesthetic": [
        "Include interactive drag-and-drop activities",
        "Provide hands-on experiments and simulations",
    ],
}

# Ordered: advice is emitted in this order, not the order the student picked.
INTEREST_ADVICE: list[tuple[str, str]] = [
    ("math", "Gamify mathematical concepts with potion-making themes"),
    ("reading", "Include storytelling and narrative elements"),
    ("science", "Incorporate nature themes and scientific discovery"),
    ("art", "Add creative and artistic learning activities"),
]


def analyze_survey(responses: Mapping[str, Any]) -> dict[str, Any]:
    """Analyze raw survey answers.

    Args:
        responses: ``{"mood", "learningStyle", "interests", "accessibility"}``
            as submitted by the client. Missing keys are treated as empty.

    Returns:
        ``{"mood", "learningStyle", "interests", "accessibilityNeeds",
        "recommendations"}``. ``accessibilityNeeds`` only contains the
        options that were selected, each set to True.
    """
    mood = responses.get("mood")
    learning_style = responses.get("learningStyle")
    interests = list(responses.get("interests") or [])
    accessibility = responses.get("accessibility") or []

    accessibility_needs = {need: True for need in accessibility}

    recommendations: list[str] = []
    recommendations.extend(MOOD_ADVICE.get(mood, []))
    recommendations.extend(STYLE_ADVICE.get(learning_style, []))
    for tag, advice in INTEREST_ADVICE:
        if tag in interests:
            recommendations.append(advice)

    return {
        "mood": mood,
        "learningStyle": learning_style,
        "interests": interests,
        "accessibilityNeeds": accessibility_needs,
        "recommendations": recommendations,
    }
