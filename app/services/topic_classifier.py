"""
Wellspring — Topic classification

``TopicClassifier`` is the seam through which the profile builder and the
interaction learner turn free text into topics and topics into wellness
dimensions.  ``KeywordTopicClassifier`` is the default: small fixed English
word lists, matched case-insensitively.  A model-backed classifier only has
to provide the same two methods.
"""

from __future__ import annotations

import re
from typing import Protocol, runtime_checkable


@runtime_checkable
class TopicClassifier(Protocol):
    def dimensions_for(self, topic: str) -> list[str]:
        """Return every dimension ``topic`` belongs to (possibly none)."""
        ...

    def extract_topics(self, text: str) -> list[str]:
        """Return vocabulary topics found in ``text``, in vocabulary order."""
        ...


class KeywordTopicClassifier:
    """Keyword-table classifier.

    Dimension membership is a plain substring test, so a topic such as
    ``"comedy / humor"`` lands in ``positive_emotion`` and a topic may land
    in several dimensions (``"skill"`` is both engagement and
    accomplishment).  Free-text extraction anchors each keyword at a word
    start, so ``"art"`` matches "artwork" but not "party".
    """

    DIMENSION_KEYWORDS: dict[str, list[str]] = {
        "positive_emotion": [
            "comedy", "humor", "music", "fun", "joy", "relax", "nature", "animals",
        ],
        "engagement": [
            "learning", "creative", "gaming", "technology", "art", "skill", "challenge",
        ],
        "relationships": [
            "family", "friend", "social", "community", "love", "support",
        ],
        "meaning": [
            "growth", "purpose", "help", "spiritual", "meaningful", "impact",
        ],
        "accomplishment": [
            "success", "achievement", "goal", "career", "fitness", "skill",
        ],
    }

    ACTIVITY_VOCABULARY: list[str] = [
        "cooking", "reading", "writing", "music", "exercise", "travel",
        "learning", "gaming", "art", "technology", "nature", "sports",
        "meditation", "family",
    ]

    THEME_VOCABULARY: list[str] = [
        "fun", "joy", "success", "creativity", "growth", "friendship",
        "love", "achievement", "challenge", "relaxation", "adventure",
        "purpose",
    ]

    def __init__(self) -> None:
        vocabulary = list(dict.fromkeys(self.ACTIVITY_VOCABULARY + self.THEME_VOCABULARY))
        self._patterns: list[tuple[str, re.Pattern[str]]] = [
            (word, re.compile(rf"\b{re.escape(word)}", re.IGNORECASE))
            for word in vocabulary
        ]

    def dimensions_for(self, topic: str) -> list[str]:
        lowered = topic.lower()
        return [
            dim
            for dim, keywords in self.DIMENSION_KEYWORDS.items()
            if any(k in lowered for k in keywords)
        ]

    def extract_topics(self, text: str) -> list[str]:
        if not text:
            return []
        return [word for word, pattern in self._patterns if pattern.search(text)]
