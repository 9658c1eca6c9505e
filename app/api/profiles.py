"""
Wellspring — Profiles API

Read access to the stored personalization document (cache first).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from app.api.deps import get_profile_or_404
from app.schemas.profile import ProfileEnvelope

router = APIRouter()


# ──────────────────────────────────────────────────────────────────────────────
# GET /{user_id}: Fetch the profile document
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{user_id}",
    response_model=ProfileEnvelope,
    summary="Get a user's personalization profile",
)
async def get_profile(
    envelope: ProfileEnvelope = Depends(get_profile_or_404),
) -> ProfileEnvelope:
    return envelope
