"""
Wellspring — Interaction Learner

Folds streamed interaction events into a user's profile:

  - chat turns: message counters, engagement streak, preferred-topic
    ranking, dimension-score nudges, response-style preferences
  - topic engagements: emerging / declining interest buffers with
    promotion into ``primary_interests`` and demotion into ``avoid_topics``
  - video interactions: engagement mapping, topic ranking, video metrics
  - wellness interventions: success counts and attention flags

Every ``apply_*`` method is a total function ``(profile, event) -> profile``.
The input is never mutated; a deep copy is updated and returned.  Partial
profile documents (plain dicts straight from storage) are normalised on the
way in.  Topic ranking uses event-driven decay: each update boosts the
mentioned topics and then decays every topic, so recency emerges without a
wall clock.
"""

from __future__ import annotations

import re
from typing import Any

import structlog

from app.schemas.assessment import DIMENSIONS, SCORE_MAX, SCORE_MIN
from app.schemas.interaction import (
    ChatTurn,
    TopicEngagement,
    VideoInteraction,
    WellnessInteraction,
)
from app.schemas.profile import PersonalizationProfile, RankedTopic
from app.services.profile_service import rank_dimensions
from app.services.topic_classifier import KeywordTopicClassifier, TopicClassifier

logger = structlog.get_logger("wellspring.learner_service")


class LearnerService:
    """Incrementally evolves a ``PersonalizationProfile`` from interactions.

    All decay factors, thresholds and list bounds are class-level attributes
    so they can be tuned or overridden in tests without touching the update
    rules themselves.
    """

    # ── Decay-then-boost ──────────────────────────────────────────────────

    BOOST_RETENTION: float = 0.95
    NEW_TOPIC_MULTIPLIER: float = 5.0
    DECAY_FACTOR: float = 0.99
    TOPIC_SCORE_FLOOR: float = 0.1
    TOPIC_SCORE_CEILING: float = 10.0
    MAX_RANKED_TOPICS: int = 20

    # ── Chat turns ────────────────────────────────────────────────────────

    POSITIVE_ENGAGEMENT_THRESHOLD: float = 7.0
    MAX_POSITIVE_INTERACTIONS: int = 100
    STREAK_EXTEND_THRESHOLD: float = 8.0
    STREAK_RESET_THRESHOLD: float = 3.0
    NUDGE_RATE: float = 0.05
    NUDGE_CAP: float = 0.1
    ENGAGEMENT_HIGH_AT: float = 7.0
    ENGAGEMENT_MEDIUM_AT: float = 4.0
    TRIGGER_ENGAGEMENT_THRESHOLD: float = 7.0
    RESPONSE_STYLE_THRESHOLD: float = 8.0
    MAX_RESPONSE_PREFERENCES: int = 10
    MAX_ENGAGEMENT_TRIGGERS: int = 15

    # (pattern over the assistant reply, response preference it signals)
    RESPONSE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
        (re.compile(r"\bquestion", re.IGNORECASE), "questioning"),
        (re.compile(r"\b(step|first)\b", re.IGNORECASE), "step-by-step"),
        (re.compile(r"\bexample", re.IGNORECASE), "example-based"),
        (re.compile(r"\b(feel|understand)", re.IGNORECASE), "empathetic"),
    ]

    # ── Interest buffers ──────────────────────────────────────────────────

    EMERGING_THRESHOLD: float = 8.0
    DECLINING_THRESHOLD: float = 3.0
    PROMOTION_TRIGGER: int = 3
    PROMOTION_BATCH: int = 2
    MAX_PRIMARY_INTERESTS: int = 8
    MAX_AVOID_TOPICS: int = 5

    # ── Video ─────────────────────────────────────────────────────────────

    VIDEO_ENGAGEMENT: dict[str, float] = {
        "like": 9.0,
        "dislike": 2.0,
        "skip": 1.0,
        "complete": 10.0,
    }
    PREFERRED_CHANNEL_THRESHOLD: float = 7.0
    MAX_VIDEO_TOPICS: int = 20
    MAX_PREFERRED_CHANNELS: int = 10

    # ── Wellness interventions ────────────────────────────────────────────

    INTERVENTION_SUCCESS_AT: float = 7.0
    TRENDING_UP_AT: float = 8.0
    NEEDS_ATTENTION_AT: float = 3.0

    def __init__(self, classifier: TopicClassifier | None = None) -> None:
        self._classifier = classifier or KeywordTopicClassifier()

    # ══════════════════════════════════════════════════════════════════════
    # 1. apply_chat_turn
    # ══════════════════════════════════════════════════════════════════════

    def apply_chat_turn(
        self,
        profile: PersonalizationProfile | dict[str, Any],
        turn: ChatTurn,
    ) -> PersonalizationProfile:
        """Fold one chat exchange into the profile.

        Updates, in order:
          - ``total_messages`` (+1) and ``positive_interactions`` (+1, capped,
            only for a positive turn at or above the positive threshold)
          - ``engagement_streak`` (+1 at or above 8, reset at or below 3)
          - chat ``preferred_topics`` via decay-then-boost
          - dimension nudges of ``min(NUDGE_CAP, signal * NUDGE_RATE)``
          - response preferences / engagement triggers
          - the computed read-model (overall, focus/strengths, level)
        """
        profile = _working_copy(profile)
        metrics = profile.activity_tracking.chat_metrics
        engagement = turn.engagement

        metrics.total_messages += 1
        if turn.sentiment == "positive" and engagement >= self.POSITIVE_ENGAGEMENT_THRESHOLD:
            metrics.positive_interactions = min(
                self.MAX_POSITIVE_INTERACTIONS, metrics.positive_interactions + 1,
            )

        if engagement >= self.STREAK_EXTEND_THRESHOLD:
            metrics.engagement_streak += 1
        elif engagement <= self.STREAK_RESET_THRESHOLD:
            metrics.engagement_streak = 0

        ranked = self.decay_then_boost(
            {t.topic: t.score for t in metrics.preferred_topics},
            turn.topics,
            engagement,
        )
        metrics.preferred_topics = [RankedTopic(topic=t, score=s) for t, s in ranked.items()]

        self._nudge_dimensions(profile, turn.dimension_signals)
        self._learn_response_style(profile, turn)

        metrics.last_active_time = turn.timestamp
        profile.computed.engagement_level = self._engagement_level(engagement)
        self._finish(profile, "chat", turn.timestamp)

        logger.debug(
            "chat_turn_applied",
            user_id=profile.user_id,
            total_messages=metrics.total_messages,
            streak=metrics.engagement_streak,
            topics=turn.topics,
        )
        return profile

    # ══════════════════════════════════════════════════════════════════════
    # 2. apply_topic_engagement
    # ══════════════════════════════════════════════════════════════════════

    def apply_topic_engagement(
        self,
        profile: PersonalizationProfile | dict[str, Any],
        engagement: TopicEngagement,
    ) -> PersonalizationProfile:
        """Route one topic into the emerging or declining buffer.

        A score at or above ``EMERGING_THRESHOLD`` (and not a dismissal)
        makes the topic emerging; a score at or below
        ``DECLINING_THRESHOLD`` or any dismissal makes it declining.  Once
        a buffer holds ``PROMOTION_TRIGGER`` entries, its
        ``PROMOTION_BATCH`` oldest entries are flushed into
        ``primary_interests`` (emerging) or ``avoid_topics`` (declining).
        """
        profile = _working_copy(profile)
        self._track_interest(
            profile, engagement.topic, engagement.engagement_score, engagement.is_dismissal,
        )
        self._finish(profile, "topic", engagement.timestamp)
        return profile

    # ══════════════════════════════════════════════════════════════════════
    # 3. apply_video_interaction
    # ══════════════════════════════════════════════════════════════════════

    def apply_video_interaction(
        self,
        profile: PersonalizationProfile | dict[str, Any],
        interaction: VideoInteraction,
    ) -> PersonalizationProfile:
        """Fold one video interaction into the profile.

        The interaction type is mapped to an engagement score
        (``VIDEO_ENGAGEMENT``; a plain view scores its watched fraction
        out of 10).  Topics are the supplied tags plus vocabulary keywords
        found in the title and channel.  Both the chat preferred-topic
        ranking and the content ``topic_scores`` map receive
        decay-then-boost; high engagement also feeds the emerging buffer.
        """
        profile = _working_copy(profile)
        score = self.video_engagement_score(interaction)
        topics = self.video_topics(interaction)

        metrics = profile.activity_tracking.chat_metrics
        ranked = self.decay_then_boost(
            {t.topic: t.score for t in metrics.preferred_topics}, topics, score,
        )
        metrics.preferred_topics = [RankedTopic(topic=t, score=s) for t, s in ranked.items()]

        content = profile.content_preferences
        content.topic_scores = self.decay_then_boost(content.topic_scores, topics, score)

        if score >= self.EMERGING_THRESHOLD:
            for topic in topics:
                self._track_interest(profile, topic, score, dismissed=False)

        self._update_video_metrics(profile, interaction, score, topics)
        self._finish(profile, "video", interaction.timestamp)

        logger.debug(
            "video_interaction_applied",
            user_id=profile.user_id,
            video_id=interaction.video_id,
            interaction_type=interaction.interaction_type,
            engagement=score,
            topics=topics,
        )
        return profile

    def video_engagement_score(self, interaction: VideoInteraction) -> float:
        if interaction.interaction_type in self.VIDEO_ENGAGEMENT:
            return self.VIDEO_ENGAGEMENT[interaction.interaction_type]
        if interaction.total_duration <= 0:
            return 0.0
        ratio = min(1.0, interaction.watch_duration / interaction.total_duration)
        return float(round(10 * ratio))

    def video_topics(self, interaction: VideoInteraction) -> list[str]:
        found = self._classifier.extract_topics(f"{interaction.title} {interaction.channel}")
        return list(dict.fromkeys([*interaction.topics, *found]))

    # ══════════════════════════════════════════════════════════════════════
    # 4. apply_wellness_interaction
    # ══════════════════════════════════════════════════════════════════════

    def apply_wellness_interaction(
        self,
        profile: PersonalizationProfile | dict[str, Any],
        interaction: WellnessInteraction,
    ) -> PersonalizationProfile:
        """Record how the user responded to a wellness intervention."""
        profile = _working_copy(profile)
        wellness = profile.wellness_profile
        effectiveness = interaction.effectiveness
        dimension = interaction.dimension

        if interaction.response == "completed" and effectiveness >= self.INTERVENTION_SUCCESS_AT:
            key = interaction.intervention_type
            wellness.intervention_success[key] = wellness.intervention_success.get(key, 0) + 1

        # Independent checks: a skipped but effective intervention lands in both lists.
        if dimension in DIMENSIONS:
            if effectiveness >= self.TRENDING_UP_AT:
                wellness.trending_up = _append_unique(wellness.trending_up, dimension)
                wellness.needs_attention = [d for d in wellness.needs_attention if d != dimension]
            if interaction.response == "skipped" or effectiveness <= self.NEEDS_ATTENTION_AT:
                wellness.needs_attention = _append_unique(wellness.needs_attention, dimension)

        self._finish(profile, "wellness", interaction.timestamp)
        return profile

    # ══════════════════════════════════════════════════════════════════════
    # 5. decay_then_boost
    # ══════════════════════════════════════════════════════════════════════

    def decay_then_boost(
        self,
        scores: dict[str, float],
        mentioned: list[str],
        engagement: float,
    ) -> dict[str, float]:
        """Boost the mentioned topics, decay every topic, re-rank, truncate.

        With ``increment = engagement / 10``:
          - existing topic: ``min(10, old * 0.95 + increment)``
          - new topic: ``increment * 5``
        then every topic: ``max(0.1, score * 0.99)``.  The result is sorted
        descending and truncated to ``MAX_RANKED_TOPICS``.  The input
        mapping is not modified.
        """
        increment = max(0.0, min(10.0, engagement)) / 10
        updated = dict(scores)

        for topic in mentioned:
            if topic in updated:
                updated[topic] = min(
                    self.TOPIC_SCORE_CEILING,
                    updated[topic] * self.BOOST_RETENTION + increment,
                )
            else:
                updated[topic] = increment * self.NEW_TOPIC_MULTIPLIER

        decayed = {
            topic: min(
                self.TOPIC_SCORE_CEILING,
                max(self.TOPIC_SCORE_FLOOR, score * self.DECAY_FACTOR),
            )
            for topic, score in updated.items()
        }
        ranked = sorted(decayed.items(), key=lambda kv: kv[1], reverse=True)
        return dict(ranked[: self.MAX_RANKED_TOPICS])

    # ══════════════════════════════════════════════════════════════════════
    # Internal helpers
    # ══════════════════════════════════════════════════════════════════════

    # ── Interest buffers ──────────────────────────────────────────────────

    def _track_interest(
        self,
        profile: PersonalizationProfile,
        topic: str,
        score: float,
        dismissed: bool,
    ) -> None:
        content = profile.content_preferences
        if not topic:
            return

        if score >= self.EMERGING_THRESHOLD and not dismissed:
            content.emerging_interests = _append_unique(content.emerging_interests, topic)
            content.declining_interests = [t for t in content.declining_interests if t != topic]
        elif score <= self.DECLINING_THRESHOLD or dismissed:
            content.declining_interests = _append_unique(content.declining_interests, topic)
            content.emerging_interests = [t for t in content.emerging_interests if t != topic]

        if len(content.emerging_interests) >= self.PROMOTION_TRIGGER:
            promoted = content.emerging_interests[: self.PROMOTION_BATCH]
            content.emerging_interests = content.emerging_interests[self.PROMOTION_BATCH:]
            content.primary_interests = _merge_front(
                promoted, content.primary_interests, self.MAX_PRIMARY_INTERESTS,
            )
            promoted_keys = {p.lower() for p in promoted}
            content.avoid_topics = [t for t in content.avoid_topics if t.lower() not in promoted_keys]
            logger.info("interests_promoted", user_id=profile.user_id, topics=promoted)

        if len(content.declining_interests) >= self.PROMOTION_TRIGGER:
            demoted = content.declining_interests[: self.PROMOTION_BATCH]
            content.declining_interests = content.declining_interests[self.PROMOTION_BATCH:]
            content.avoid_topics = _merge_front(
                demoted, content.avoid_topics, self.MAX_AVOID_TOPICS,
            )
            demoted_keys = {d.lower() for d in demoted}
            content.primary_interests = [
                t for t in content.primary_interests if t.lower() not in demoted_keys
            ]
            logger.info("interests_demoted", user_id=profile.user_id, topics=demoted)

    # ── Scores ────────────────────────────────────────────────────────────

    def _nudge_dimensions(
        self,
        profile: PersonalizationProfile,
        signals: dict[str, float],
    ) -> None:
        current = profile.wellness_profile.current_scores
        for dim, signal in signals.items():
            if dim not in DIMENSIONS:
                continue
            nudge = min(self.NUDGE_CAP, signal * self.NUDGE_RATE)
            value = getattr(current, dim) + nudge
            setattr(current, dim, max(float(SCORE_MIN), min(float(SCORE_MAX), value)))

    def _engagement_level(self, engagement: float) -> str:
        if engagement >= self.ENGAGEMENT_HIGH_AT:
            return "high"
        if engagement >= self.ENGAGEMENT_MEDIUM_AT:
            return "medium"
        return "low"

    # ── Persona ───────────────────────────────────────────────────────────

    def _learn_response_style(self, profile: PersonalizationProfile, turn: ChatTurn) -> None:
        persona = profile.chat_persona
        if turn.assistant_reply and turn.engagement >= self.RESPONSE_STYLE_THRESHOLD:
            for pattern, preference in self.RESPONSE_PATTERNS:
                if pattern.search(turn.assistant_reply):
                    persona.response_preferences = _append_unique(
                        persona.response_preferences, preference,
                    )[-self.MAX_RESPONSE_PREFERENCES:]
                    break

        if turn.engagement >= self.TRIGGER_ENGAGEMENT_THRESHOLD:
            triggers = persona.engagement_triggers
            for topic in turn.topics:
                triggers = _append_unique(triggers, topic)
            persona.engagement_triggers = triggers[-self.MAX_ENGAGEMENT_TRIGGERS:]

    # ── Video metrics ─────────────────────────────────────────────────────

    def _update_video_metrics(
        self,
        profile: PersonalizationProfile,
        interaction: VideoInteraction,
        score: float,
        topics: list[str],
    ) -> None:
        video = profile.activity_tracking.video_metrics
        watched_before = video.total_watched
        video.total_watched += 1

        if interaction.total_duration > 0:
            fraction = min(1.0, interaction.watch_duration / interaction.total_duration)
        else:
            fraction = 1.0 if interaction.interaction_type == "complete" else 0.0
        video.completion_rate = round(
            (video.completion_rate * watched_before + fraction) / video.total_watched, 4,
        )
        video.watch_time += interaction.watch_duration

        if interaction.interaction_type in ("like", "complete"):
            for topic in topics:
                video.liked_topics = _append_unique(video.liked_topics, topic)
            video.liked_topics = video.liked_topics[-self.MAX_VIDEO_TOPICS:]
        elif interaction.interaction_type in ("skip", "dislike"):
            for topic in topics:
                video.skipped_topics = _append_unique(video.skipped_topics, topic)
            video.skipped_topics = video.skipped_topics[-self.MAX_VIDEO_TOPICS:]

        if interaction.channel and score >= self.PREFERRED_CHANNEL_THRESHOLD:
            video.preferred_channels = _merge_front(
                [interaction.channel], video.preferred_channels, self.MAX_PREFERRED_CHANNELS,
            )

    # ── Read-model ────────────────────────────────────────────────────────

    def _finish(self, profile: PersonalizationProfile, kind: str, timestamp) -> None:
        scores = profile.wellness_profile.current_scores.as_dict()
        focus, strengths = rank_dimensions(scores)
        profile.wellness_profile.focus_areas = focus
        profile.wellness_profile.strengths = strengths

        computed = profile.computed
        computed.overall_happiness = round(sum(scores.values()) / len(scores), 2)
        computed.primary_dimension = strengths[0]
        computed.last_engagement_type = kind

        profile.update_count += 1
        profile.last_updated = timestamp


# ──────────────────────────────────────────────────────────────────────────────
# Module-level helpers
# ──────────────────────────────────────────────────────────────────────────────

def _working_copy(profile: PersonalizationProfile | dict[str, Any]) -> PersonalizationProfile:
    """Return a private, fully-populated copy of ``profile``."""
    if isinstance(profile, PersonalizationProfile):
        return profile.model_copy(deep=True)
    return PersonalizationProfile.model_validate(profile or {})


def _append_unique(items: list[str], item: str) -> list[str]:
    if item in items:
        return list(items)
    return [*items, item]


def _merge_front(new: list[str], existing: list[str], limit: int) -> list[str]:
    """Put ``new`` ahead of ``existing`` (case-insensitive de-dup), keep ``limit``."""
    merged: list[str] = []
    seen: set[str] = set()
    for item in [*new, *existing]:
        key = item.lower()
        if key not in seen:
            seen.add(key)
            merged.append(item)
    return merged[:limit]
