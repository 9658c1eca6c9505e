"""
Wellspring — Recommendation Mixer

Blends three query sources for the video feed:

  profile      what the assessment says the user wants
  behavior     what the user actually engaged with recently
  exploration  a fixed discovery list, independent of both

The blend shifts with evidence.  Below ``COLD_START_INTERACTIONS`` the
stated profile is trusted; up to ``MATURE_INTERACTIONS`` trust moves
linearly toward behavior; beyond that the profile's weight tracks how
well it has predicted behavior (``profile_accuracy``).  ``exploration_rate``
rises when the user enjoys something outside their profile and falls on
low engagement, and feeds the exploration weight in every regime after
cold start.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from app.schemas.interaction import VideoInteraction
from app.schemas.profile import EngagementRecord, EngagementState, PersonalizationProfile
from app.schemas.recommendation import (
    BehaviorPatterns,
    MixingRatio,
    QuerySet,
    WeightedQuery,
)

logger = structlog.get_logger("wellspring.recommendation_service")

_DURATION_PATTERN = re.compile(r"PT(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?")


class RecommendationService:
    """Mixing ratio, engagement state and query generation.

    Regime boundaries, weights and bounds are class-level attributes so they
    can be tuned or overridden in tests.
    """

    # ── Mixing regimes ────────────────────────────────────────────────────

    COLD_START_INTERACTIONS: int = 10
    MATURE_INTERACTIONS: int = 50
    COLD_START_WEIGHTS: tuple[float, float, float] = (0.7, 0.2, 0.1)

    # ── Engagement state ──────────────────────────────────────────────────

    EMA_RETENTION: float = 0.9
    MAX_RECENT_ENGAGEMENT: int = 20
    ACCURACY_MIN_INTERACTIONS: int = 5
    ACCURACY_ENGAGEMENT_THRESHOLD: float = 6.0
    ACCURACY_FLOOR: float = 0.3
    EXPLORATION_BOOST_THRESHOLD: float = 7.0
    EXPLORATION_STEP_UP: float = 0.05
    EXPLORATION_CEILING: float = 0.5
    EXPLORATION_DROP_THRESHOLD: float = 4.0
    EXPLORATION_STEP_DOWN: float = 0.02
    EXPLORATION_FLOOR: float = 0.1

    # ── Queries ───────────────────────────────────────────────────────────

    PROFILE_INTEREST_COUNT: int = 3
    PROFILE_TEMPLATES: tuple[str, ...] = ("{interest} tutorial guide", "{interest} tips beginner")
    FOCUS_AREA_COUNT: int = 2
    FOCUS_PHRASES_PER_AREA: int = 2
    FOCUS_PHRASES: dict[str, list[str]] = {
        "positive_emotion": ["happiness tips", "joy practices", "gratitude exercises"],
        "engagement": ["flow state", "passion projects", "focused work"],
        "relationships": ["communication skills", "social connection", "friendship building"],
        "meaning": ["life purpose", "values clarification", "meaningful work"],
        "accomplishment": ["goal achievement", "success habits", "personal growth"],
    }
    DEFAULT_FOCUS_PHRASES: list[str] = ["personal development"]
    BEHAVIOR_ENGAGEMENT_THRESHOLD: float = 7.0
    BEHAVIOR_INTERACTION_COUNT: int = 5
    BEHAVIOR_TEMPLATES: tuple[str, ...] = ("{topic} similar content", "{topic} advanced tips")
    CHANNEL_TEMPLATE: str = "{channel} latest"
    EXPLORATION_QUERIES: list[str] = [
        "trending tutorial 2024",
        "viral educational content",
        "surprising facts",
        "life changing tips",
        "creative inspiration",
        "productivity hacks",
        "wellness motivation",
        "new skills to learn",
    ]
    MAX_QUERIES_PER_SOURCE: int = 10

    # ── Behaviour patterns ────────────────────────────────────────────────

    CHANNEL_SIGNAL: dict[str, int] = {"like": 3, "complete": 2, "view": 1}
    CHANNEL_DEFAULT_SIGNAL: int = -1
    MAX_LIKED_TOPICS: int = 10
    MAX_DISLIKED_TOPICS: int = 5
    MAX_PATTERN_CHANNELS: int = 5

    # ══════════════════════════════════════════════════════════════════════
    # 1. mixing_ratio
    # ══════════════════════════════════════════════════════════════════════

    def mixing_ratio(
        self,
        total_interactions: int,
        profile_accuracy: float,
        exploration_rate: float,
    ) -> MixingRatio:
        """Return the profile / behavior / exploration blend.

        Regimes:
          - cold start (``n < 10``): fixed ``(0.7, 0.2, 0.1)``
          - warming (``10 <= n < 50``), with ``c = n / 50``::

                profile     = 0.6 * (1 - c) + 0.3 * c
                behavior    = 0.3 * c + 0.1 * (1 - c)
                exploration = 0.1 + exploration_rate * 0.2

          - mature (``n >= 50``)::

                profile     = 0.2 + profile_accuracy * 0.3
                behavior    = 0.5 + (1 - profile_accuracy) * 0.2
                exploration = exploration_rate * 0.3

        The weights are intended, not forced, to sum to one.
        """
        if total_interactions < self.COLD_START_INTERACTIONS:
            p, b, e = self.COLD_START_WEIGHTS
            return MixingRatio(
                profile_weight=p, behavior_weight=b, exploration_weight=e, regime="cold_start",
            )

        if total_interactions < self.MATURE_INTERACTIONS:
            confidence = min(total_interactions / self.MATURE_INTERACTIONS, 1.0)
            return MixingRatio(
                profile_weight=0.6 * (1 - confidence) + 0.3 * confidence,
                behavior_weight=0.3 * confidence + 0.1 * (1 - confidence),
                exploration_weight=0.1 + exploration_rate * 0.2,
                regime="warming",
            )

        return MixingRatio(
            profile_weight=0.2 + profile_accuracy * 0.3,
            behavior_weight=0.5 + (1 - profile_accuracy) * 0.2,
            exploration_weight=exploration_rate * 0.3,
            regime="mature",
        )

    def ratio_for(self, state: EngagementState) -> MixingRatio:
        return self.mixing_ratio(
            state.total_interactions, state.profile_accuracy, state.exploration_rate,
        )

    # ══════════════════════════════════════════════════════════════════════
    # 2. record_engagement: evolve the engagement state
    # ══════════════════════════════════════════════════════════════════════

    def record_engagement(
        self,
        state: EngagementState,
        record: EngagementRecord,
        primary_interests: list[str],
    ) -> EngagementState:
        """Fold one scored interaction into the engagement state.

        Parameters
        ----------
        state:
            Current state; not modified.
        record:
            The interaction's topics, channel and engagement score (0-10).
        primary_interests:
            The profile's primary interests, used both to tag the record as
            profile-related and to measure profile accuracy.

        Returns
        -------
        EngagementState
            A new state with the counter, EMA, recent window, accuracy and
            exploration rate updated.
        """
        state = state.model_copy(deep=True)
        score = max(0.0, min(10.0, record.engagement_score))
        record = record.model_copy(
            update={
                "engagement_score": score,
                "related_to_profile": is_profile_related(record.topics, primary_interests),
            }
        )

        state.total_interactions += 1
        state.recent_engagement = [record, *state.recent_engagement][: self.MAX_RECENT_ENGAGEMENT]
        state.avg_engagement_score = (
            state.avg_engagement_score * self.EMA_RETENTION + score * (1 - self.EMA_RETENTION)
        )

        if state.total_interactions > self.ACCURACY_MIN_INTERACTIONS:
            state.profile_accuracy = self.profile_accuracy(state.recent_engagement, primary_interests)

        if score > self.EXPLORATION_BOOST_THRESHOLD and not record.related_to_profile:
            state.exploration_rate = min(
                self.EXPLORATION_CEILING, state.exploration_rate + self.EXPLORATION_STEP_UP,
            )
        elif score < self.EXPLORATION_DROP_THRESHOLD:
            state.exploration_rate = max(
                self.EXPLORATION_FLOOR, state.exploration_rate - self.EXPLORATION_STEP_DOWN,
            )

        logger.debug(
            "engagement_recorded",
            total=state.total_interactions,
            score=score,
            accuracy=round(state.profile_accuracy, 3),
            exploration=round(state.exploration_rate, 3),
        )
        return state

    def profile_accuracy(
        self,
        recent: list[EngagementRecord],
        primary_interests: list[str],
    ) -> float:
        """Fraction of primary interests seen in recent well-liked content.

        An interest counts when it is a case-insensitive substring of any
        topic from an interaction scored above
        ``ACCURACY_ENGAGEMENT_THRESHOLD``.  Plain substring containment can
        over-match (an interest "art" is found inside "party"); that
        behaviour is kept as-is.  Floored at ``ACCURACY_FLOOR``.
        """
        behavior_topics = [
            topic.lower()
            for r in recent
            if r.engagement_score > self.ACCURACY_ENGAGEMENT_THRESHOLD
            for topic in r.topics
        ]
        interests = [i.lower() for i in primary_interests]
        overlap = sum(1 for i in interests if any(i in bt for bt in behavior_topics))
        return max(self.ACCURACY_FLOOR, overlap / max(len(interests), 1))

    # ══════════════════════════════════════════════════════════════════════
    # 3. generate_queries
    # ══════════════════════════════════════════════════════════════════════

    def generate_queries(
        self,
        profile: PersonalizationProfile,
        recent_engagement: list[EngagementRecord] | None = None,
    ) -> QuerySet:
        """Expand templates into the three query lists (each at most
        ``MAX_QUERIES_PER_SOURCE``, de-duplicated, order preserved)."""
        state = profile.engagement_profile
        recent = state.recent_engagement if recent_engagement is None else recent_engagement

        profile_queries: list[str] = []
        for interest in profile.content_preferences.primary_interests[: self.PROFILE_INTEREST_COUNT]:
            profile_queries.extend(t.format(interest=interest) for t in self.PROFILE_TEMPLATES)
        for area in profile.wellness_profile.focus_areas[: self.FOCUS_AREA_COUNT]:
            phrases = self.FOCUS_PHRASES.get(area, self.DEFAULT_FOCUS_PHRASES)
            profile_queries.extend(phrases[: self.FOCUS_PHRASES_PER_AREA])

        behavior_queries: list[str] = []
        high = [r for r in recent if r.engagement_score > self.BEHAVIOR_ENGAGEMENT_THRESHOLD]
        for record in high[: self.BEHAVIOR_INTERACTION_COUNT]:
            for topic in record.topics:
                behavior_queries.extend(t.format(topic=topic) for t in self.BEHAVIOR_TEMPLATES)
            if record.channel:
                behavior_queries.append(self.CHANNEL_TEMPLATE.format(channel=record.channel))

        # Rotate the static list so consecutive feeds open differently.
        exploration_queries: list[str] = []
        if self.EXPLORATION_QUERIES:
            offset = state.total_interactions % len(self.EXPLORATION_QUERIES)
            exploration_queries = (
                self.EXPLORATION_QUERIES[offset:] + self.EXPLORATION_QUERIES[:offset]
            )

        return QuerySet(
            profile_queries=self._bounded(profile_queries),
            behavior_queries=self._bounded(behavior_queries),
            exploration_queries=self._bounded(exploration_queries),
        )

    def weighted_queries(
        self,
        queries: QuerySet,
        ratio: MixingRatio,
        budget: int = 10,
    ) -> list[WeightedQuery]:
        """Allocate ``budget`` query slots across sources by ratio.

        Slots are split with largest-remainder rounding over the normalised
        weights.  A source with fewer queries than its share hands its
        unused slots to the remaining sources, heaviest first.
        """
        sources: list[tuple[str, list[str], float]] = [
            ("profile", queries.profile_queries, ratio.profile_weight),
            ("behavior", queries.behavior_queries, ratio.behavior_weight),
            ("exploration", queries.exploration_queries, ratio.exploration_weight),
        ]
        total_weight = sum(w for _, _, w in sources) or 1.0
        shares = [budget * w / total_weight for _, _, w in sources]
        slots = [int(s) for s in shares]
        by_remainder = sorted(range(3), key=lambda i: shares[i] - slots[i], reverse=True)
        for i in by_remainder[: budget - sum(slots)]:
            slots[i] += 1

        spare = 0
        for i, (_, items, _) in enumerate(sources):
            if slots[i] > len(items):
                spare += slots[i] - len(items)
                slots[i] = len(items)
        for i in sorted(range(3), key=lambda i: sources[i][2], reverse=True):
            room = len(sources[i][1]) - slots[i]
            take = min(room, spare)
            slots[i] += take
            spare -= take

        plan: list[WeightedQuery] = []
        for (name, items, weight), count in zip(sources, slots):
            share = (weight / total_weight) / count if count else 0.0
            plan.extend(
                WeightedQuery(query=q, source=name, weight=round(share, 4)) for q in items[:count]
            )
        return plan

    # ══════════════════════════════════════════════════════════════════════
    # 4. analyze_behavior_patterns
    # ══════════════════════════════════════════════════════════════════════

    def analyze_behavior_patterns(self, interactions: list[VideoInteraction]) -> BehaviorPatterns:
        """Summarise a batch of raw video interactions."""
        if not interactions:
            return BehaviorPatterns()

        total = len(interactions)
        skipped = sum(1 for i in interactions if i.interaction_type == "skip")
        played = sum(1 for i in interactions if i.watch_duration > 0)
        ratios = [
            min(1.0, i.watch_duration / i.total_duration)
            for i in interactions
            if i.total_duration > 0
        ]

        tallies: dict[str, list[int]] = {}
        channels: dict[str, int] = {}
        for item in interactions:
            watched_most = (
                item.total_duration > 0 and item.watch_duration > item.total_duration * 0.5
            )
            liked = item.interaction_type in ("like", "complete") or watched_most
            disliked = item.interaction_type in ("dislike", "skip")
            for topic in item.topics:
                tally = tallies.setdefault(topic, [0, 0])
                if liked:
                    tally[0] += 1
                elif disliked:
                    tally[1] += 1
            if item.channel:
                channels[item.channel] = channels.get(item.channel, 0) + self.CHANNEL_SIGNAL.get(
                    item.interaction_type, self.CHANNEL_DEFAULT_SIGNAL,
                )

        liked_topics = sorted(
            (t for t, (lk, dl) in tallies.items() if lk > dl),
            key=lambda t: tallies[t][0] - tallies[t][1],
            reverse=True,
        )
        disliked_topics = sorted(
            (t for t, (lk, dl) in tallies.items() if dl > lk),
            key=lambda t: tallies[t][1] - tallies[t][0],
            reverse=True,
        )
        preferred_channels = sorted(
            (c for c, s in channels.items() if s > 0), key=lambda c: channels[c], reverse=True,
        )

        return BehaviorPatterns(
            skip_rate=skipped / total,
            play_rate=played / total,
            average_watch_ratio=sum(ratios) / len(ratios) if ratios else 0.0,
            liked_topics=liked_topics[: self.MAX_LIKED_TOPICS],
            disliked_topics=disliked_topics[: self.MAX_DISLIKED_TOPICS],
            preferred_channels=preferred_channels[: self.MAX_PATTERN_CHANNELS],
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    def _bounded(self, queries: list[str]) -> list[str]:
        return list(dict.fromkeys(q.strip() for q in queries if q.strip()))[
            : self.MAX_QUERIES_PER_SOURCE
        ]


# ──────────────────────────────────────────────────────────────────────────────
# Module-level helpers
# ──────────────────────────────────────────────────────────────────────────────

def is_profile_related(topics: list[str], primary_interests: list[str]) -> bool:
    """True when any topic and any interest contain one another (case-insensitive)."""
    interests = [i.lower() for i in primary_interests]
    for topic in (t.lower() for t in topics):
        if any(topic in i or i in topic for i in interests):
            return True
    return False


def parse_duration(duration: Any, default: int = 30) -> int:
    """Parse an ISO-8601 ``PT#H#M#S`` duration into seconds.

    Anything unparseable, or a zero-length duration, yields ``default``.
    """
    if not duration or not isinstance(duration, str):
        return default
    match = _DURATION_PATTERN.search(duration)
    if not match:
        return default
    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    total = hours * 3600 + minutes * 60 + seconds
    return total or default
