"""
Wellspring — Main API Router

Aggregates all sub-routers under a single prefix so that ``app.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from app.api import assessment, interactions, profiles, recommendations, sessions

router = APIRouter()

router.include_router(assessment.router, prefix="/assessment", tags=["Assessment"])
router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
router.include_router(interactions.router, prefix="/interactions", tags=["Interactions"])
router.include_router(recommendations.router, prefix="/recommendations", tags=["Recommendations"])
router.include_router(sessions.router, prefix="/sessions", tags=["Sessions"])
