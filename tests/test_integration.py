"""Integration tests for the full Wellspring personalization pipeline.

These tests drive the real services end to end: assessment -> profile ->
interaction learning -> recommendation mix -> session context.  Nothing is
mocked; persistence and the external collaborators are not involved.
"""
import pytest

from app.schemas.interaction import ChatTurn, TopicEngagement, VideoInteraction
from app.schemas.profile import EngagementRecord
from app.services.learner_service import LearnerService
from app.services.profile_service import ProfileService
from app.services.recommendation_service import RecommendationService
from app.services.score_service import ScoreService
from app.services.session_service import SessionService
from app.services.topic_classifier import KeywordTopicClassifier


@pytest.fixture
def pipeline():
    classifier = KeywordTopicClassifier()
    scores = ScoreService()
    return {
        "scores": scores,
        "profiles": ProfileService(score_service=scores, classifier=classifier),
        "learner": LearnerService(classifier=classifier),
        "mixer": RecommendationService(),
        "sessions": SessionService(),
    }


def _watch(pipeline, profile, interaction):
    learner, mixer = pipeline["learner"], pipeline["mixer"]
    profile = learner.apply_video_interaction(profile, interaction)
    record = EngagementRecord(
        topics=learner.video_topics(interaction),
        channel=interaction.channel,
        engagement_score=learner.video_engagement_score(interaction),
    )
    profile.engagement_profile = mixer.record_engagement(
        profile.engagement_profile, record, profile.content_preferences.primary_interests,
    )
    return profile


class TestMinimalAssessmentScenario:
    """Four answers in, a usable profile and cold-start feed out."""

    def test_seeds(self, pipeline, minimal_answers):
        assert pipeline["scores"].derive_type_code(minimal_answers) == "INFP"
        profile = pipeline["profiles"].build_profile(minimal_answers, user_id="u1")
        assert profile.chat_persona.type_code == "INFP"
        assert profile.chat_persona.communication_style == "creative"
        assert profile.content_preferences.primary_interests[:2] == [
            "learning something new", "comedy / humor",
        ]

    def test_cold_start_mix(self, pipeline, minimal_answers):
        profile = pipeline["profiles"].build_profile(minimal_answers, user_id="u1")
        mixer = pipeline["mixer"]
        ratio = mixer.ratio_for(profile.engagement_profile)
        assert ratio.regime == "cold_start"

        plan = mixer.weighted_queries(mixer.generate_queries(profile), ratio)
        assert len(plan) == 10
        assert {q.source for q in plan} == {"profile", "exploration"}
        assert [q.query for q in plan if q.source == "exploration"] == [
            "trending tutorial 2024", "viral educational content",
        ]


class TestLearningLoop:

    def test_watching_moves_into_warming_regime(self, pipeline, built_profile):
        profile = built_profile
        for i in range(12):
            profile = _watch(pipeline, profile, VideoInteraction(
                video_id=f"v{i}",
                title="Evening meditation for sleep",
                channel="Calm Corner",
                interaction_type="complete",
            ))

        state = profile.engagement_profile
        assert state.total_interactions == 12
        assert state.exploration_rate == pytest.approx(0.5)
        assert len(state.recent_engagement) == 12
        assert profile.activity_tracking.video_metrics.preferred_channels == ["Calm Corner"]
        assert profile.content_preferences.emerging_interests == ["meditation"]
        assert profile.update_count == 12

        mixer = pipeline["mixer"]
        ratio = mixer.ratio_for(state)
        assert ratio.regime == "warming"
        queries = mixer.generate_queries(profile)
        assert queries.behavior_queries[:3] == [
            "meditation similar content", "meditation advanced tips", "Calm Corner latest",
        ]
        plan = mixer.weighted_queries(queries, ratio)
        assert len(plan) == 10
        assert any(q.source == "behavior" for q in plan)

    def test_topic_dismissals_become_avoid_topics(self, pipeline, built_profile):
        learner = pipeline["learner"]
        profile = built_profile
        for topic in ("news", "politics", "crypto"):
            profile = learner.apply_topic_engagement(
                profile, TopicEngagement(topic=topic, interaction_type="dismiss"),
            )
        avoid = profile.content_preferences.avoid_topics
        assert avoid[:2] == ["news", "politics"]
        assert len(avoid) == 5
        assert profile.content_preferences.declining_interests == ["crypto"]

    def test_input_profile_never_mutated(self, pipeline, built_profile):
        before = built_profile.model_dump()
        pipeline["learner"].apply_chat_turn(
            built_profile, ChatTurn(topics=["work"], engagement=9, sentiment="positive"),
        )
        assert built_profile.model_dump() == before


class TestSessionContext:

    def test_chat_history_reaches_assistant_context(
        self, pipeline, built_profile, session_summaries,
    ):
        profile = pipeline["learner"].apply_chat_turn(
            built_profile, ChatTurn(topics=["work"], engagement=9, sentiment="positive"),
        )
        sessions = pipeline["sessions"]
        context = sessions.build_context(session_summaries, profile)
        rendered = sessions.format_context_for_assistant(
            context, sessions.format_personalization_context(profile),
        )

        assert rendered.startswith("Last conversation: Talked through a stressful week at work")
        assert "Recurring interests: work" in rendered
        assert "Recent conversations: " in rendered
        assert "Most engaged topics: work (4.5)" in rendered
