"""HTTP-level tests for the Wellspring API (services wired, I/O faked)."""
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.api.deps import ServiceContainer, get_services
from app.main import app
from app.schemas.interaction import ChatTurn
from app.schemas.profile import ProfileEnvelope
from app.schemas.recommendation import VideoResult
from app.schemas.session import SessionSummary
from app.services.assistant_service import AssistantError, AssistantService
from app.services.learner_service import LearnerService
from app.services.profile_cache import ProfileCache
from app.services.profile_service import ProfileService
from app.services.recommendation_service import RecommendationService
from app.services.score_service import ScoreService
from app.services.session_service import SessionService
from app.services.video_search_service import VideoSearchError, VideoSearchService

API = "/api/v1"


class InMemoryRepository:
    """Dict-backed stand-in with the same async surface as ProfileRepository."""

    def __init__(self):
        self.profiles = {}
        self.summaries = {}

    async def get_envelope(self, user_id):
        if user_id not in self.profiles:
            return None
        revision, profile = self.profiles[user_id]
        return ProfileEnvelope(
            user_id=user_id, revision=revision, profile=profile.model_copy(deep=True),
        )

    async def get_profile(self, user_id):
        envelope = await self.get_envelope(user_id)
        return envelope.profile if envelope else None

    async def put_profile(self, user_id, profile, now=None):
        revision = self.profiles.get(user_id, (0, None))[0] + 1
        stored = profile.model_copy(deep=True)
        stored.user_id = user_id
        self.profiles[user_id] = (revision, stored)
        return ProfileEnvelope(user_id=user_id, revision=revision, profile=stored)

    async def list_session_summaries(self, user_id, limit=3):
        return list(reversed(self.summaries.get(user_id, [])))[:limit]

    async def add_session_summary(self, user_id, summary):
        stored = summary.model_copy(update={"created_at": datetime.now(timezone.utc)})
        self.summaries.setdefault(user_id, []).append(stored)
        return stored


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def container(repository):
    return ServiceContainer(
        scores=ScoreService(),
        profiles=ProfileService(),
        learner=LearnerService(),
        recommendations=RecommendationService(),
        sessions=SessionService(),
        cache=ProfileCache(),
        repository=repository,
        assistant=MagicMock(spec=AssistantService),
        video_search=MagicMock(spec=VideoSearchService),
    )


@pytest.fixture
def client(container):
    app.dependency_overrides[get_services] = lambda: container
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def onboarded(client, sample_answers):
    resp = client.post(f"{API}/assessment/user-1", json={"answers": sample_answers})
    assert resp.status_code == 201
    return resp.json()


class TestHealth:

    def test_liveness(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy"}

    def test_request_id_echoed(self, client):
        assert client.get("/health", headers={"X-Request-ID": "abc"}).headers["X-Request-ID"] == "abc"
        assert len(client.get("/health").headers["X-Request-ID"]) == 32


class TestAssessment:

    def test_submit(self, onboarded):
        assert onboarded["type_code"] == "INTJ"
        assert onboarded["scores"] == {
            "positive_emotion": 8,
            "engagement": 10,
            "relationships": 1,
            "meaning": 3,
            "accomplishment": 2,
        }
        assert onboarded["focus_areas"] == ["relationships", "accomplishment"]
        assert onboarded["primary_interests"][0] == "learning something new"
        assert onboarded["revision"] == 1

    def test_resubmit_replaces_profile(self, client, onboarded, minimal_answers):
        resp = client.post(f"{API}/assessment/user-1", json={"answers": minimal_answers})
        assert resp.status_code == 201
        assert resp.json()["revision"] == 2
        assert resp.json()["type_code"] == "INFP"

    def test_empty_body_accepted(self, client):
        resp = client.post(f"{API}/assessment/user-9", json={})
        assert resp.status_code == 201
        assert resp.json()["type_code"] == "INFP"


class TestProfiles:

    def test_unknown_user(self, client):
        resp = client.get(f"{API}/profiles/nobody")
        assert resp.status_code == 404

    def test_get_profile(self, client, onboarded):
        resp = client.get(f"{API}/profiles/user-1")
        assert resp.status_code == 200
        body = resp.json()
        assert body["revision"] == 1
        profile = body["profile"]
        assert profile["user_id"] == "user-1"
        assert profile["chat_persona"]["communication_style"] == "analytical"
        assert profile["content_preferences"]["avoid_topics"][0] == "social pressure"


class TestInteractions:

    def test_unknown_user(self, client):
        resp = client.post(f"{API}/interactions/nobody/topic", json={"topic": "yoga"})
        assert resp.status_code == 404

    def test_topic_promotion(self, client, onboarded):
        for topic in ("yoga", "chess", "podcasts"):
            resp = client.post(
                f"{API}/interactions/user-1/topic",
                json={"topic": topic, "engagementScore": 9},
            )
            assert resp.status_code == 200
        body = resp.json()
        assert body["primary_interests"][:2] == ["yoga", "chess"]
        assert body["emerging_interests"] == ["podcasts"]
        assert body["update_count"] == 3

    def test_mobile_dismissal_accepted(self, client, repository, onboarded):
        resp = client.post(
            f"{API}/interactions/user-1/topic",
            json={"topic": "news", "engagementScore": 9, "interactionType": "dismissal"},
        )
        assert resp.status_code == 200
        _, profile = repository.profiles["user-1"]
        assert profile.content_preferences.declining_interests == ["news"]

    def test_invalid_score_rejected(self, client, onboarded):
        resp = client.post(
            f"{API}/interactions/user-1/topic", json={"topic": "yoga", "engagementScore": 11},
        )
        assert resp.status_code == 422

    def test_video_updates_engagement_state(self, client, repository, onboarded):
        resp = client.post(
            f"{API}/interactions/user-1/video",
            json={
                "videoId": "abc123",
                "title": "Morning meditation for beginners",
                "channel": "Calm Corner",
                "interactionType": "like",
                "watchDuration": 300,
                "totalDuration": 600,
            },
        )
        assert resp.status_code == 200
        _, profile = repository.profiles["user-1"]
        state = profile.engagement_profile
        assert state.total_interactions == 1
        assert state.recent_engagement[0].topics == ["meditation"]
        assert state.recent_engagement[0].engagement_score == 9.0
        assert state.exploration_rate == pytest.approx(0.35)
        assert profile.activity_tracking.video_metrics.total_watched == 1

    def test_chat_turn(self, client, repository, onboarded):
        resp = client.post(
            f"{API}/interactions/user-1/chat",
            json={"topics": ["Sleep"], "sentiment": "positive", "engagement": 8,
                  "dimensionSignals": {"relationships": 2}},
        )
        assert resp.status_code == 200
        _, profile = repository.profiles["user-1"]
        assert profile.activity_tracking.chat_metrics.total_messages == 1
        assert profile.wellness_profile.current_scores.relationships == pytest.approx(1.1)

    def test_wellness(self, client, repository, onboarded):
        resp = client.post(
            f"{API}/interactions/user-1/wellness",
            json={"interventionType": "breathing", "response": "completed",
                  "effectiveness": 9, "dimension": "meaning"},
        )
        assert resp.status_code == 200
        _, profile = repository.profiles["user-1"]
        assert profile.wellness_profile.intervention_success == {"breathing": 1}
        assert profile.wellness_profile.trending_up == ["meaning"]


class TestRecommendations:

    def test_mix_cold_start(self, client, onboarded):
        resp = client.get(f"{API}/recommendations/user-1/mix")
        assert resp.status_code == 200
        body = resp.json()
        assert body["ratio"]["regime"] == "cold_start"
        assert len(body["plan"]) == 10
        assert body["plan"][0]["query"] == "learning something new tutorial guide"

    def test_mix_budget(self, client, onboarded):
        assert len(client.get(f"{API}/recommendations/user-1/mix?budget=4").json()["plan"]) == 4
        assert client.get(f"{API}/recommendations/user-1/mix?budget=0").status_code == 422

    def test_videos(self, client, container, onboarded):
        container.video_search.search_plan.return_value = [
            VideoResult(video_id="v1", title="Gentle Yoga", duration_seconds=750),
        ]
        resp = client.get(f"{API}/recommendations/user-1/videos")
        assert resp.status_code == 200
        assert resp.json()["videos"][0]["video_id"] == "v1"
        plan = container.video_search.search_plan.call_args.args[0]
        assert len(plan) == 10

    def test_videos_upstream_failure(self, client, container, onboarded):
        container.video_search.search_plan.side_effect = VideoSearchError("quota")
        resp = client.get(f"{API}/recommendations/user-1/videos")
        assert resp.status_code == 502


class TestSessions:

    def test_context_without_profile(self, client):
        resp = client.post(
            f"{API}/sessions/new-user/context",
            json={"messages": [{"role": "user", "content": "I have a new goal"}]},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["assistant_context"] == ""
        assert body["signals"]["primary_topics"] == ["goal-setting"]

    def test_context_with_history_and_profile(self, client, repository, onboarded, session_summaries):
        repository.summaries["user-1"] = list(reversed(session_summaries))
        resp = client.post(f"{API}/sessions/user-1/context", json={})
        body = resp.json()
        assert body["context"]["continuity_context"].startswith(
            "Last conversation: Talked through a stressful week at work"
        )
        assert "Personalization context: " in body["assistant_context"]
        assert body["signals"]["wellness_focus"] == ["relationships", "accomplishment"]

    def test_message_learns_from_turn(self, client, container, repository, onboarded):
        container.assistant.reply.return_value = "Tell me more about your sleep."
        container.assistant.analyze_turn.return_value = ChatTurn(
            message="I slept badly", topics=["sleep"], engagement=8,
        )
        resp = client.post(
            f"{API}/sessions/user-1/message",
            json={"session_id": "s1", "message": "I slept badly"},
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "session_id": "s1",
            "reply": "Tell me more about your sleep.",
            "should_close": False,
        }
        context = container.assistant.reply.call_args.args[2]
        assert "Personalization context: " in context
        revision, profile = repository.profiles["user-1"]
        assert revision == 2
        assert profile.activity_tracking.chat_metrics.preferred_topics[0].topic == "sleep"

    def test_message_reply_failure(self, client, container, onboarded):
        container.assistant.reply.side_effect = AssistantError("down")
        resp = client.post(
            f"{API}/sessions/user-1/message", json={"session_id": "s1", "message": "hi"},
        )
        assert resp.status_code == 502

    def test_message_analysis_failure_keeps_reply(self, client, container, repository, onboarded):
        container.assistant.reply.return_value = "Hello!"
        container.assistant.analyze_turn.side_effect = AssistantError("bad json")
        resp = client.post(
            f"{API}/sessions/user-1/message", json={"session_id": "s1", "message": "hi"},
        )
        assert resp.status_code == 200
        assert repository.profiles["user-1"][0] == 1

    def test_message_flags_long_session(self, client, container):
        container.assistant.reply.return_value = "ok"
        history = [{"role": "user", "content": f"m{i}"} for i in range(48)]
        resp = client.post(
            f"{API}/sessions/anon/message",
            json={"session_id": "s1", "message": "still here", "history": history},
        )
        assert resp.json()["should_close"] is True
        container.assistant.analyze_turn.assert_not_called()

    def test_close_stores_summary(self, client, container, repository):
        container.assistant.summarize_session.return_value = SessionSummary(
            session_id="s1", summary="Talked about sleep", key_topics=["sleep"], message_count=2,
        )
        resp = client.post(
            f"{API}/sessions/user-1/close",
            json={"session_id": "s1", "messages": [
                {"role": "user", "content": "I can't sleep"},
                {"role": "assistant", "content": "Let's look at that."},
            ]},
        )
        assert resp.status_code == 201
        assert resp.json()["summary"] == "Talked about sleep"
        assert repository.summaries["user-1"][0].key_topics == ["sleep"]

    def test_close_falls_back_on_assistant_error(self, client, container, repository):
        container.assistant.summarize_session.side_effect = AssistantError("down")
        container.assistant.fallback_summary.return_value = SessionSummary(
            session_id="s1", summary="Session completed", message_count=1,
        )
        resp = client.post(
            f"{API}/sessions/user-1/close",
            json={"session_id": "s1", "messages": [{"role": "user", "content": "bye"}]},
        )
        assert resp.status_code == 201
        assert resp.json()["summary"] == "Session completed"
        container.assistant.fallback_summary.assert_called_once_with("s1", 1)
