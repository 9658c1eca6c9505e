"""
Wellspring — Assessment API

Turns onboarding answers into the immutable seeds (type code, score vector)
and the initial personalization profile.  Re-submitting replaces the
profile wholesale.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, status

from app.api.deps import ServiceContainer, get_services
from app.schemas.assessment import AssessmentResponse, AssessmentSubmit

logger = structlog.get_logger("wellspring.api.assessment")

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}: Score answers and build the profile
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}",
    response_model=AssessmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit assessment answers and build the personalization profile",
)
async def submit_assessment(
    user_id: str,
    payload: AssessmentSubmit,
    services: ServiceContainer = Depends(get_services),
) -> AssessmentResponse:
    log = logger.bind(user_id=user_id)
    log.info("assessment_submit_start", answers=len(payload.answers))

    type_code = services.scores.derive_type_code(payload.answers)
    scores = services.scores.derive_score_vector(payload.answers)
    profile = services.profiles.build_profile(
        payload.answers, type_code=type_code, scores=scores, user_id=user_id,
    )
    envelope = await services.repository.put_profile(user_id, profile)

    log.info("assessment_submit_complete", type_code=type_code, revision=envelope.revision)
    return AssessmentResponse(
        user_id=user_id,
        type_code=type_code,
        scores=scores,
        focus_areas=profile.wellness_profile.focus_areas,
        strengths=profile.wellness_profile.strengths,
        primary_interests=profile.content_preferences.primary_interests,
        revision=envelope.revision,
    )
