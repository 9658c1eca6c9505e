"""
Wellspring — Session Context Assembler

Builds the strings the chat assistant receives at the start of a session:

  1. Continuity context    last session's summary, topics, needs and notes,
                           profile-aware hints and cross-session recurring
                           topics, joined with ". ".
  2. Recent interactions   one line over the two newest summaries.
  3. Personalization       a flattened, human-readable rendering of the
                           profile's salient fields.

Everything here is pure string assembly: no I/O, no mutation and no length
cap (the assistant call governs prompt length).
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone

import structlog

from app.schemas.profile import PersonalizationProfile
from app.schemas.session import ChatMessage, SessionContext, SessionSignals, SessionSummary

logger = structlog.get_logger("wellspring.session_service")


def _label(dimension: str) -> str:
    return dimension.replace("_", " ")


class SessionService:
    """Pure assembly of session-start context.

    Thresholds, keyword tables and phrasing are class-level attributes so
    they can be overridden in tests.
    """

    MAX_SUMMARIES: int = 3
    RECENT_SUMMARY_COUNT: int = 2
    ENGAGED_TOPIC_COUNT: int = 2

    LOW_MOOD_THRESHOLD: float = 4.0
    HIGH_MOOD_THRESHOLD: float = 8.0
    LOW_MOOD_HINT: str = "User may need extra emotional support right now"
    HIGH_MOOD_HINT: str = "User is in a positive state - good time for growth conversations"

    # ── Personalization rendering ─────────────────────────────────────────

    PERSONALIZATION_PREFIX: str = "Personalization context: "
    INTEREST_COUNT: int = 5
    MOST_ENGAGED_COUNT: int = 3

    # ── In-session signals ────────────────────────────────────────────────

    NEUTRAL_MOOD: int = 5
    POSITIVE_WORDS: tuple[str, ...] = ("happy", "great", "good", "excited", "love")
    NEGATIVE_WORDS: tuple[str, ...] = ("sad", "stressed", "tired", "anxious", "difficult")
    TOPIC_PATTERNS: dict[str, tuple[str, ...]] = {
        "career": ("work", "job", "career"),
        "relationships": ("relationship", "partner", "friend"),
        "health": ("health", "exercise", "fitness"),
        "stress-management": ("stress", "anxiety", "worry"),
        "goal-setting": ("goal", "dream", "plan"),
    }
    TOPIC_DIMENSIONS: dict[str, str] = {
        "career": "accomplishment",
        "relationships": "relationships",
        "health": "positive_emotion",
        "stress-management": "positive_emotion",
        "goal-setting": "accomplishment",
    }
    SESSION_GOALS: dict[str, str] = {
        "stress-management": "Reduce stress and improve emotional wellbeing",
        "goal-setting": "Clarify and work towards personal goals",
        "relationships": "Improve social connections and communication",
    }
    DEFAULT_GOAL: str = "Support overall wellbeing and personal growth"

    # ── Session lifecycle ─────────────────────────────────────────────────

    MAX_SESSION_MESSAGES: int = 50
    MAX_SESSION_IDLE: timedelta = timedelta(hours=24)

    # ══════════════════════════════════════════════════════════════════════
    # 1. build_context
    # ══════════════════════════════════════════════════════════════════════

    def build_context(
        self,
        summaries: list[SessionSummary],
        profile: PersonalizationProfile | None = None,
    ) -> SessionContext:
        """Assemble continuity and recent-interaction strings.

        Parameters
        ----------
        summaries:
            Previous session summaries, newest first.  Only the first
            ``MAX_SUMMARIES`` are considered.
        profile:
            Current profile; when given, focus areas, the top engaged topics
            and a mood hint are appended.

        Returns
        -------
        SessionContext
            Empty strings when there is nothing to say.
        """
        summaries = summaries[: self.MAX_SUMMARIES]
        parts: list[str] = []

        if summaries:
            latest = summaries[0]
            if latest.summary:
                parts.append(f"Last conversation: {latest.summary}")
            if latest.key_topics:
                parts.append(f"Recent topics: {', '.join(latest.key_topics)}")
            if latest.user_needs:
                parts.append(f"User was seeking: {', '.join(latest.user_needs)}")
            if latest.important_context:
                parts.append(f"Important context: {latest.important_context}")

        if profile is not None:
            parts.extend(self._profile_hints(profile))

        recurring = self.recurring_topics(summaries)
        if recurring:
            parts.append(f"Recurring interests: {', '.join(recurring)}")

        return SessionContext(
            continuity_context=". ".join(parts),
            recent_interactions=self.build_recent_interactions(summaries),
        )

    def build_recent_interactions(self, summaries: list[SessionSummary]) -> str:
        lines = [
            f"{s.summary} ({s.emotional_state} mood)"
            for s in summaries[: self.RECENT_SUMMARY_COUNT]
            if s.summary
        ]
        if not lines:
            return ""
        return "Recent conversations: " + "; ".join(lines)

    def recurring_topics(self, summaries: list[SessionSummary]) -> list[str]:
        """Topics appearing in more than one summary, first-seen order."""
        counts: Counter[str] = Counter()
        for summary in summaries[: self.MAX_SUMMARIES]:
            counts.update({t.lower() for t in summary.key_topics})
        return [topic for topic, n in counts.items() if n > 1]

    def _profile_hints(self, profile: PersonalizationProfile) -> list[str]:
        hints: list[str] = []
        focus = profile.wellness_profile.focus_areas
        if focus:
            hints.append(f"User is working on improving: {', '.join(_label(f) for f in focus)}")

        # Learned chat ranking; onboarding topics until chat produces one.
        engaged = profile.activity_tracking.chat_metrics.preferred_topics or sorted(
            profile.chat_persona.preferred_topics, key=lambda t: t.score, reverse=True,
        )
        top = list(dict.fromkeys(t.topic for t in engaged))[: self.ENGAGED_TOPIC_COUNT]
        if top:
            hints.append(f"User especially engages with: {', '.join(top)}")

        overall = profile.computed.overall_happiness
        if overall <= self.LOW_MOOD_THRESHOLD:
            hints.append(self.LOW_MOOD_HINT)
        elif overall >= self.HIGH_MOOD_THRESHOLD:
            hints.append(self.HIGH_MOOD_HINT)
        return hints

    # ══════════════════════════════════════════════════════════════════════
    # 2. format_personalization_context
    # ══════════════════════════════════════════════════════════════════════

    def format_personalization_context(self, profile: PersonalizationProfile) -> str:
        """Flatten the profile into one paragraph for the assistant prompt."""
        persona = profile.chat_persona
        prefs = profile.content_preferences
        parts = [f"Preferred communication style: {persona.communication_style}"]

        if profile.wellness_profile.focus_areas:
            areas = ", ".join(_label(f) for f in profile.wellness_profile.focus_areas)
            parts.append(f"PRIORITY: Help improve these PERMA areas: {areas}")
        if prefs.primary_interests:
            parts.append(
                f"Primary interests: {', '.join(prefs.primary_interests[: self.INTEREST_COUNT])}"
            )
        if prefs.avoid_topics:
            parts.append(f"Topics to avoid: {', '.join(prefs.avoid_topics)}")

        ranked = profile.activity_tracking.chat_metrics.preferred_topics
        if ranked:
            engaged = ", ".join(
                f"{t.topic} ({t.score:.1f})" for t in ranked[: self.MOST_ENGAGED_COUNT]
            )
            parts.append(f"Most engaged topics: {engaged}")

        parts.append(f"Current happiness level: {profile.computed.overall_happiness:.1f}/10")
        return self.PERSONALIZATION_PREFIX + ". ".join(parts)

    def format_context_for_assistant(
        self,
        context: SessionContext,
        personalization: str = "",
    ) -> str:
        sections = [
            context.continuity_context,
            context.recent_interactions,
            personalization,
        ]
        return "\n\n".join(s for s in sections if s)

    # ══════════════════════════════════════════════════════════════════════
    # 3. determine_session_context: cheap in-session read
    # ══════════════════════════════════════════════════════════════════════

    def determine_session_context(
        self,
        messages: list[ChatMessage],
        profile: PersonalizationProfile | None = None,
    ) -> SessionSignals:
        """Estimate mood, topics, wellness focus and a goal from user messages.

        Mood starts at ``NEUTRAL_MOOD`` and moves one point per distinct
        positive or negative keyword present, clamped to [1, 10].
        """
        text = " ".join(m.content for m in messages if m.role == "user").lower()

        mood = self.NEUTRAL_MOOD
        mood += sum(1 for w in self.POSITIVE_WORDS if w in text)
        mood -= sum(1 for w in self.NEGATIVE_WORDS if w in text)
        mood = max(1, min(10, mood))

        topics = [
            topic
            for topic, keywords in self.TOPIC_PATTERNS.items()
            if any(k in text for k in keywords)
        ]

        focus = [self.TOPIC_DIMENSIONS[t] for t in topics if t in self.TOPIC_DIMENSIONS]
        if profile is not None:
            focus.extend(profile.wellness_profile.focus_areas)
        wellness_focus = list(dict.fromkeys(focus))

        goal = next(
            (self.SESSION_GOALS[t] for t in self.SESSION_GOALS if t in topics),
            self.DEFAULT_GOAL,
        )

        logger.debug("session_signals", mood=mood, topics=topics)
        return SessionSignals(
            user_mood=mood,
            primary_topics=topics,
            wellness_focus=wellness_focus,
            session_goal=goal,
        )

    # ══════════════════════════════════════════════════════════════════════
    # 4. should_close_session
    # ══════════════════════════════════════════════════════════════════════

    def should_close_session(
        self,
        message_count: int,
        last_activity: datetime | None,
        now: datetime | None = None,
    ) -> bool:
        if message_count >= self.MAX_SESSION_MESSAGES:
            return True
        if last_activity is None:
            return False
        now = now or datetime.now(timezone.utc)
        if last_activity.tzinfo is None:
            last_activity = last_activity.replace(tzinfo=timezone.utc)
        return now - last_activity >= self.MAX_SESSION_IDLE
