"""
Wellspring — Service container and FastAPI dependencies

Every service, the profile cache and both external collaborators are built
once in the application lifespan and stored on ``app.state.services``.
Routes receive them through the ``Depends`` helpers below, which tests
replace with ``app.dependency_overrides``.
"""

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.schemas.profile import ProfileEnvelope
from app.services.assistant_service import AssistantService
from app.services.learner_service import LearnerService
from app.services.profile_cache import ProfileCache
from app.services.profile_repository import ProfileRepository
from app.services.profile_service import ProfileService
from app.services.recommendation_service import RecommendationService
from app.services.score_service import ScoreService
from app.services.session_service import SessionService
from app.services.topic_classifier import KeywordTopicClassifier
from app.services.video_search_service import VideoSearchService


@dataclass
class ServiceContainer:
    scores: ScoreService
    profiles: ProfileService
    learner: LearnerService
    recommendations: RecommendationService
    sessions: SessionService
    cache: ProfileCache
    repository: ProfileRepository
    assistant: AssistantService
    video_search: VideoSearchService
    session_history_limit: int = 3
    video_query_budget: int = 10


def build_container(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> ServiceContainer:
    """Wire the object graph.  One classifier instance is shared by the
    profile builder and the learner."""
    classifier = KeywordTopicClassifier()
    scores = ScoreService()
    cache = ProfileCache(maxsize=settings.PROFILE_CACHE_SIZE)
    return ServiceContainer(
        scores=scores,
        profiles=ProfileService(score_service=scores, classifier=classifier),
        learner=LearnerService(classifier=classifier),
        recommendations=RecommendationService(),
        sessions=SessionService(),
        cache=cache,
        repository=ProfileRepository(session_factory, cache=cache),
        assistant=AssistantService(),
        video_search=VideoSearchService(),
        session_history_limit=settings.SESSION_HISTORY_LIMIT,
        video_query_budget=settings.VIDEO_QUERY_BUDGET,
    )


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


async def get_profile_or_404(
    user_id: str,
    services: ServiceContainer = Depends(get_services),
) -> ProfileEnvelope:
    """Load the user's profile or raise 404."""
    envelope = await services.repository.get_envelope(user_id)
    if envelope is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No personalization profile for user {user_id}.",
        )
    return envelope
