"""
Wellspring — Recommendations API

Exposes the recommendation mixer: the current mixing ratio with its
weighted query plan, and a video feed produced by running that plan
through the video-search collaborator.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import ServiceContainer, get_profile_or_404, get_services
from app.schemas.profile import ProfileEnvelope
from app.schemas.recommendation import RecommendationMix, VideoFeed
from app.services.video_search_service import VideoSearchError

logger = structlog.get_logger("wellspring.api.recommendations")

router = APIRouter()


def _mix(
    services: ServiceContainer,
    envelope: ProfileEnvelope,
    budget: int | None,
) -> RecommendationMix:
    mixer = services.recommendations
    profile = envelope.profile
    ratio = mixer.ratio_for(profile.engagement_profile)
    queries = mixer.generate_queries(profile)
    plan = mixer.weighted_queries(queries, ratio, budget or services.video_query_budget)
    return RecommendationMix(user_id=envelope.user_id, ratio=ratio, queries=queries, plan=plan)


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id}/mix: Mixing ratio + weighted query plan
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}/mix",
    response_model=RecommendationMix,
    summary="Get the recommendation mixing ratio and query plan",
)
async def get_mix(
    budget: int | None = Query(None, ge=1, le=30, description="Number of queries to plan"),
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
    services: ServiceContainer = Depends(get_services),
) -> RecommendationMix:
    mix = _mix(services, envelope, budget)
    logger.bind(user_id=envelope.user_id).info(
        "recommendation_mix_built",
        regime=mix.ratio.regime,
        planned=len(mix.plan),
    )
    return mix


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id}/videos: Run the plan through video search
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}/videos",
    response_model=VideoFeed,
    summary="Get a personalised video feed",
)
async def get_videos(
    budget: int | None = Query(None, ge=1, le=30, description="Number of queries to run"),
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
    services: ServiceContainer = Depends(get_services),
) -> VideoFeed:
    log = logger.bind(user_id=envelope.user_id)
    mix = _mix(services, envelope, budget)

    try:
        videos = await services.video_search.search_plan(mix.plan)
    except VideoSearchError as exc:
        log.error("video_feed_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Video search is unavailable.",
        ) from exc

    log.info("video_feed_built", videos=len(videos), regime=mix.ratio.regime)
    return VideoFeed(user_id=envelope.user_id, ratio=mix.ratio, videos=videos)
