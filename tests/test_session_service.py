"""Unit tests for SessionService — session-start context assembly."""
from datetime import datetime, timedelta, timezone

import pytest

from app.schemas.interaction import ChatTurn
from app.schemas.profile import RankedTopic
from app.schemas.session import ChatMessage, SessionContext, SessionSummary
from app.services.learner_service import LearnerService
from app.services.session_service import SessionService


@pytest.fixture
def sessions():
    return SessionService()


class TestBuildContext:

    def test_full_context_uses_onboarding_topics_before_chat(
        self, sessions, session_summaries, built_profile,
    ):
        context = sessions.build_context(session_summaries, built_profile)
        assert context.continuity_context == ". ".join([
            "Last conversation: Talked through a stressful week at work",
            "Recent topics: work, sleep",
            "User was seeking: stress relief",
            "Important context: Has a performance review on Friday",
            "User is working on improving: relationships, accomplishment",
            "User especially engages with: comedy / humor, music / entertainment",
            "Recurring interests: work",
        ])
        assert context.recent_interactions == (
            "Recent conversations: Talked through a stressful week at work (anxious mood); "
            "Planned a weekend hike with a friend (calm mood)"
        )

    def test_learned_chat_topics_lead(self, sessions, built_profile):
        learner = LearnerService()
        profile = built_profile
        for _ in range(5):
            profile = learner.apply_chat_turn(profile, ChatTurn(topics=["hiking"], engagement=10))
        context = sessions.build_context([], profile)
        assert "User especially engages with: hiking" in context.continuity_context
        assert "comedy / humor" not in context.continuity_context

    def test_learned_topics_capped_at_two(self, sessions, built_profile):
        built_profile.activity_tracking.chat_metrics.preferred_topics = [
            RankedTopic(topic="work", score=4.5),
            RankedTopic(topic="sleep", score=3.2),
            RankedTopic(topic="hiking", score=1.0),
        ]
        context = sessions.build_context([], built_profile)
        assert context.continuity_context.endswith("User especially engages with: work, sleep")

    def test_without_profile(self, sessions, session_summaries):
        context = sessions.build_context(session_summaries)
        assert "User is working on improving" not in context.continuity_context
        assert context.continuity_context.endswith("Recurring interests: work")

    def test_no_history_no_profile(self, sessions):
        context = sessions.build_context([])
        assert context == SessionContext(continuity_context="", recent_interactions="")

    def test_profile_only(self, sessions, built_profile):
        context = sessions.build_context([], built_profile)
        assert context.continuity_context.startswith("User is working on improving")
        assert context.recent_interactions == ""

    def test_low_mood_hint(self, sessions, built_profile):
        built_profile.computed.overall_happiness = 3.2
        context = sessions.build_context([], built_profile)
        assert context.continuity_context.endswith(sessions.LOW_MOOD_HINT)

    def test_high_mood_hint(self, sessions, built_profile):
        built_profile.computed.overall_happiness = 8.5
        context = sessions.build_context([], built_profile)
        assert context.continuity_context.endswith(sessions.HIGH_MOOD_HINT)

    def test_only_three_summaries_considered(self, sessions, session_summaries):
        older = SessionSummary(session_id="s0", summary="Old", key_topics=["sleep"])
        context = sessions.build_context([*session_summaries, older])
        assert context.continuity_context.endswith("Recurring interests: work")
        assert sessions.recurring_topics([*session_summaries, older]) == ["work"]

    def test_recurring_topics_case_insensitive(self, sessions, session_summaries):
        assert sessions.recurring_topics(session_summaries) == ["work"]

    def test_topic_repeated_within_one_summary_is_not_recurring(self, sessions):
        summaries = [SessionSummary(key_topics=["Sleep", "sleep"])]
        assert sessions.recurring_topics(summaries) == []


class TestPersonalizationContext:

    def test_rendering(self, sessions, built_profile):
        text = sessions.format_personalization_context(built_profile)
        assert text == (
            "Personalization context: "
            "Preferred communication style: analytical. "
            "PRIORITY: Help improve these PERMA areas: relationships, accomplishment. "
            "Primary interests: learning something new, comedy / humor, "
            "learning / education, music / entertainment, music. "
            "Topics to avoid: social pressure, competitive social, high-pressure activities, "
            "time-intensive, perfectionism-focused. "
            "Current happiness level: 4.8/10"
        )

    def test_most_engaged_topics(self, sessions, built_profile):
        built_profile.activity_tracking.chat_metrics.preferred_topics = [
            RankedTopic(topic="work", score=4.5),
            RankedTopic(topic="sleep", score=3.21),
            RankedTopic(topic="hiking", score=1.0),
            RankedTopic(topic="chess", score=0.5),
        ]
        text = sessions.format_personalization_context(built_profile)
        assert "Most engaged topics: work (4.5), sleep (3.2), hiking (1.0)." in text
        assert "chess" not in text

    def test_assistant_context_skips_empty_sections(self, sessions):
        context = SessionContext(continuity_context="A", recent_interactions="")
        assert sessions.format_context_for_assistant(context, "C") == "A\n\nC"
        assert sessions.format_context_for_assistant(SessionContext()) == ""


class TestDetermineSessionContext:

    def test_stress_message(self, sessions, built_profile):
        messages = [
            ChatMessage(role="user", content="I'm stressed about my job and tired"),
            ChatMessage(role="assistant", content="That sounds hard. Tell me what feels good."),
        ]
        signals = sessions.determine_session_context(messages, built_profile)
        assert signals.user_mood == 3
        assert signals.primary_topics == ["career", "stress-management"]
        assert signals.wellness_focus == ["accomplishment", "positive_emotion", "relationships"]
        assert signals.session_goal == "Reduce stress and improve emotional wellbeing"

    def test_positive_goal_setting(self, sessions):
        messages = [ChatMessage(role="user", content="I'm excited and happy, I have a new goal")]
        signals = sessions.determine_session_context(messages)
        assert signals.user_mood == 7
        assert signals.primary_topics == ["goal-setting"]
        assert signals.wellness_focus == ["accomplishment"]
        assert signals.session_goal == "Clarify and work towards personal goals"

    def test_default_goal(self, sessions):
        signals = sessions.determine_session_context([ChatMessage(role="user", content="Hello")])
        assert signals.user_mood == 5
        assert signals.primary_topics == []
        assert signals.session_goal == sessions.DEFAULT_GOAL

    def test_mood_clamped(self, sessions):
        text = "sad stressed tired anxious difficult"
        signals = sessions.determine_session_context(
            [ChatMessage(role="user", content=text)] * 3,
        )
        assert signals.user_mood == 1


class TestShouldCloseSession:

    NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_message_limit(self, sessions):
        assert sessions.should_close_session(50, None, self.NOW)
        assert not sessions.should_close_session(49, None, self.NOW)

    def test_idle_limit(self, sessions):
        assert sessions.should_close_session(3, self.NOW - timedelta(hours=24), self.NOW)
        assert not sessions.should_close_session(3, self.NOW - timedelta(hours=23), self.NOW)

    def test_naive_timestamp_treated_as_utc(self, sessions):
        naive = datetime(2026, 3, 9, 11, 0)
        assert sessions.should_close_session(3, naive, self.NOW)
