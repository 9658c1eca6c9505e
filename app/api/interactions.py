"""
Wellspring — Interactions API

Applies one interaction event to the user's profile and persists the
result (last write wins).  Events for the same user must be sent one at a
time; concurrent writes are not merged.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from app.api.deps import ServiceContainer, get_profile_or_404, get_services
from app.schemas.interaction import (
    ChatTurn,
    InteractionResult,
    TopicEngagement,
    VideoInteraction,
    WellnessInteraction,
)
from app.schemas.profile import EngagementRecord, PersonalizationProfile, ProfileEnvelope

logger = structlog.get_logger("wellspring.api.interactions")

router = APIRouter()


async def _store(
    services: ServiceContainer,
    user_id: str,
    profile: PersonalizationProfile,
) -> InteractionResult:
    envelope = await services.repository.put_profile(user_id, profile)
    stored = envelope.profile
    return InteractionResult(
        user_id=user_id,
        update_count=stored.update_count,
        overall_happiness=round(stored.computed.overall_happiness, 3),
        focus_areas=stored.wellness_profile.focus_areas,
        primary_interests=stored.content_preferences.primary_interests,
        emerging_interests=stored.content_preferences.emerging_interests,
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/chat: Apply an analysed chat turn
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/{user_id}/chat", response_model=InteractionResult, summary="Apply a chat turn")
async def apply_chat(
    user_id: str,
    turn: ChatTurn,
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
    services: ServiceContainer = Depends(get_services),
) -> InteractionResult:
    logger.bind(user_id=user_id).info("chat_turn_received", topics=turn.topics)
    profile = services.learner.apply_chat_turn(envelope.profile, turn)
    return await _store(services, user_id, profile)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/topic: Apply a topic engagement
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/{user_id}/topic", response_model=InteractionResult, summary="Apply a topic engagement")
async def apply_topic(
    user_id: str,
    engagement: TopicEngagement,
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
    services: ServiceContainer = Depends(get_services),
) -> InteractionResult:
    logger.bind(user_id=user_id).info(
        "topic_engagement_received",
        topic=engagement.topic,
        score=engagement.engagement_score,
    )
    profile = services.learner.apply_topic_engagement(envelope.profile, engagement)
    return await _store(services, user_id, profile)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/video: Apply a video interaction (+ engagement state)
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/{user_id}/video", response_model=InteractionResult, summary="Apply a video interaction")
async def apply_video(
    user_id: str,
    interaction: VideoInteraction,
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
    services: ServiceContainer = Depends(get_services),
) -> InteractionResult:
    log = logger.bind(user_id=user_id, video_id=interaction.video_id)
    log.info("video_interaction_received", interaction_type=interaction.interaction_type)

    learner = services.learner
    profile = learner.apply_video_interaction(envelope.profile, interaction)
    record = EngagementRecord(
        topics=learner.video_topics(interaction),
        channel=interaction.channel,
        engagement_score=learner.video_engagement_score(interaction),
        timestamp=interaction.timestamp,
    )
    profile.engagement_profile = services.recommendations.record_engagement(
        profile.engagement_profile,
        record,
        profile.content_preferences.primary_interests,
    )
    return await _store(services, user_id, profile)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/wellness: Apply a wellness-intervention response
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/wellness",
    response_model=InteractionResult,
    summary="Apply a wellness intervention response",
)
async def apply_wellness(
    user_id: str,
    interaction: WellnessInteraction,
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
    services: ServiceContainer = Depends(get_services),
) -> InteractionResult:
    logger.bind(user_id=user_id).info(
        "wellness_interaction_received",
        intervention_type=interaction.intervention_type,
        response=interaction.response,
    )
    profile = services.learner.apply_wellness_interaction(envelope.profile, interaction)
    return await _store(services, user_id, profile)
