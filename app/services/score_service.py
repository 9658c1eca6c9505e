"""
Wellspring — Assessment Scoring (type code + happiness vector)

Turns raw onboarding answers into the two immutable seeds of a profile:

  1. A 4-letter type code, one letter per binary axis.
  2. A five-dimension happiness vector (positive emotion, engagement,
     relationships, meaning, accomplishment), each an integer in [1, 10].

Every dimension is scored independently from a small weighted sum of its
own signals; there is no cross-dimension normalisation.  Missing or
malformed answers never raise, they simply contribute nothing.
"""

from __future__ import annotations

import structlog

from app.schemas.assessment import DIMENSIONS, Answers, ScoreVector
from app.utils import answers as ans

logger = structlog.get_logger("wellspring.score_service")


class ScoreService:
    """Pure scoring functions for the onboarding assessment.

    Keyword rules, bonuses and bounds are class-level attributes so they can
    be introspected or overridden in tests.
    """

    # ── Type code ─────────────────────────────────────────────────────────

    DIRECT_TYPE_KEY: str = "mbti_input"

    # (answer key, keyword, letter when keyword present, letter otherwise)
    AXIS_RULES: list[tuple[str, str, str, str]] = [
        ("mbti_ei", "others", "E", "I"),
        ("mbti_sn", "tangible", "S", "N"),
        ("mbti_tf", "logical", "T", "F"),
        ("mbti_jp", "plan", "J", "P"),
    ]

    # ── Happiness vector ──────────────────────────────────────────────────

    CATEGORY_KEY: str = "content_preferences_categories"
    CATEGORY_LABELS: dict[str, str] = {
        "positive_emotion": "Positive Emotion (PE)",
        "engagement": "Engagement (E)",
        "relationships": "Relationships (R)",
        "meaning": "Meaning (M)",
        "accomplishment": "Accomplishment (A)",
    }
    CATEGORY_BONUS: int = 2

    DEFAULT_SLIDER: float = 5.0
    RUNNING_MIN: int = 0
    RUNNING_MAX: int = 10

    CONTENT_COUNT_CAP: int = 4
    RELATIONSHIP_COUNT_CAP: int = 4
    MEANING_SOURCE_CAP: int = 3

    # ══════════════════════════════════════════════════════════════════════
    # 1. derive_type_code
    # ══════════════════════════════════════════════════════════════════════

    def derive_type_code(self, answers: Answers) -> str:
        """Return the user's 4-letter type code.

        A directly supplied 4-character code wins and is only upper-cased.
        Otherwise each axis is resolved by a keyword test on its designated
        answer; an absent answer resolves to the "otherwise" letter.
        """
        direct = ans.text(answers, self.DIRECT_TYPE_KEY)
        if len(direct) == 4:
            return direct.upper()

        letters = [
            present if ans.contains(answers, key, keyword) else absent
            for key, keyword, present, absent in self.AXIS_RULES
        ]
        return "".join(letters)

    # ══════════════════════════════════════════════════════════════════════
    # 2. derive_score_vector
    # ══════════════════════════════════════════════════════════════════════

    def derive_score_vector(self, answers: Answers) -> ScoreVector:
        """Score all five dimensions and return the clamped vector.

        Each running total is clamped to [0, 10] once all of its bonuses
        are applied; ``ScoreVector`` then lifts a zero total to the floor
        of 1 so every stored dimension lies in [1, 10].
        """
        category_counts = self._category_counts(answers)

        raw = {
            "positive_emotion": self._score_positive_emotion(answers),
            "engagement": self._score_engagement(answers),
            "relationships": self._score_relationships(answers),
            "meaning": self._score_meaning(answers),
            "accomplishment": self._score_accomplishment(answers),
        }

        totals = {
            dim: self._clamp(raw[dim] + category_counts[dim] * self.CATEGORY_BONUS)
            for dim in DIMENSIONS
        }

        logger.debug("score_vector_derived", raw=raw, totals=totals)
        return ScoreVector(**totals)

    # ── Per-dimension scorers ─────────────────────────────────────────────

    def _score_positive_emotion(self, answers: Answers) -> int:
        mood = ans.number(answers, "current_mood", self.DEFAULT_SLIDER)
        past_week = ans.number(answers, "past_week_happiness", self.DEFAULT_SLIDER)
        score = ans.half_up((mood + past_week) / 2)
        if ans.text(answers, "pe_happy_events"):
            score = min(self.RUNNING_MAX, score + 1)
        return score

    def _score_engagement(self, answers: Answers) -> int:
        selected = ans.items(answers, "content_preferences")
        score = min(len(selected), self.CONTENT_COUNT_CAP)
        if any("gaming / live streams" == s.lower() for s in selected):
            score += 1
        if ans.contains(answers, "happiness_driver", "learning"):
            score += 2
        if ans.text(answers, "flow_challenge").lower() == "yes":
            score += 2
        if ans.text(answers, "e_flow_activity"):
            score += 1
        return score

    def _score_relationships(self, answers: Answers) -> int:
        score = 0
        if ans.contains(answers, "happiness_driver", "connecting"):
            score += 2
        if ans.contains(answers, "coping_preference", "talk"):
            score += 2
        score += min(
            len(ans.items(answers, "r_important_relationships")),
            self.RELATIONSHIP_COUNT_CAP,
        )
        return score

    def _score_meaning(self, answers: Answers) -> int:
        stress = ans.number(answers, "stress_burnout", self.DEFAULT_SLIDER)
        score = max(self.RUNNING_MAX - ans.half_up(stress), 0)
        if ans.text(answers, "meaningful_content"):
            score += 1
        score += min(len(ans.items(answers, "m_meaning_sources")), self.MEANING_SOURCE_CAP)
        return score

    def _score_accomplishment(self, answers: Answers) -> int:
        score = 0
        if ans.contains(answers, "happiness_driver", "creating"):
            score += 2
        if ans.contains(answers, "reward_preference", "badge"):
            score += 2
        if ans.text(answers, "a_proud_achievement"):
            score += 2
        return score

    # ── Helpers ───────────────────────────────────────────────────────────

    def _category_counts(self, answers: Answers) -> dict[str, int]:
        """Count selections explicitly labelled with each dimension."""
        selected = ans.items(answers, self.CATEGORY_KEY)
        return {
            dim: sum(1 for s in selected if label.lower() in s.lower())
            for dim, label in self.CATEGORY_LABELS.items()
        }

    def _clamp(self, value: float) -> int:
        return int(max(self.RUNNING_MIN, min(self.RUNNING_MAX, value)))
