"""
Wellspring — Sessions API

Chat-session lifecycle around the assistant collaborator:

  - ``/context``  continuity + personalization strings for a new session
  - ``/message``  one assistant reply; the exchange is analysed and folded
                  into the profile
  - ``/close``    summarise the transcript and store it for next time
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import ServiceContainer, get_services
from app.schemas.profile import PersonalizationProfile
from app.schemas.session import (
    CloseSessionRequest,
    ContextRequest,
    ContextResponse,
    MessageRequest,
    MessageResponse,
    SessionContext,
    SessionSummary,
)
from app.services.assistant_service import AssistantError

logger = structlog.get_logger("wellspring.api.sessions")

router = APIRouter()


async def _assistant_context(
    services: ServiceContainer,
    user_id: str,
    profile: PersonalizationProfile | None,
) -> tuple[SessionContext, str]:
    summaries = await services.repository.list_session_summaries(
        user_id, limit=services.session_history_limit,
    )
    sessions = services.sessions
    context = sessions.build_context(summaries, profile)
    personalization = sessions.format_personalization_context(profile) if profile else ""
    return context, sessions.format_context_for_assistant(context, personalization)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/context: Session-start context
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/context",
    response_model=ContextResponse,
    summary="Build the session-start context for the chat assistant",
)
async def build_session_context(
    user_id: str,
    payload: ContextRequest,
    services: ServiceContainer = Depends(get_services),
) -> ContextResponse:
    log = logger.bind(user_id=user_id)
    profile = await services.repository.get_profile(user_id)
    context, assistant_context = await _assistant_context(services, user_id, profile)
    signals = services.sessions.determine_session_context(payload.messages, profile)

    log.info(
        "session_context_built",
        has_profile=profile is not None,
        context_chars=len(assistant_context),
        mood=signals.user_mood,
    )
    return ContextResponse(
        user_id=user_id,
        context=context,
        signals=signals,
        assistant_context=assistant_context,
    )


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/message: Assistant reply + learning
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/message",
    response_model=MessageResponse,
    summary="Send a message to the assistant",
)
async def send_message(
    user_id: str,
    payload: MessageRequest,
    services: ServiceContainer = Depends(get_services),
) -> MessageResponse:
    log = logger.bind(user_id=user_id, session_id=payload.session_id)
    profile = await services.repository.get_profile(user_id)
    _, assistant_context = await _assistant_context(services, user_id, profile)

    try:
        reply = await services.assistant.reply(payload.message, payload.history, assistant_context)
    except AssistantError as exc:
        log.error("assistant_reply_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="The assistant is unavailable.",
        ) from exc

    if profile is not None:
        try:
            turn = await services.assistant.analyze_turn(payload.message, reply)
        except AssistantError as exc:
            # The reply already succeeded; only this turn goes unlearned.
            log.warning("turn_analysis_failed", error=str(exc))
        else:
            updated = services.learner.apply_chat_turn(profile, turn)
            await services.repository.put_profile(user_id, updated)

    last_activity = payload.history[-1].timestamp if payload.history else None
    should_close = services.sessions.should_close_session(
        len(payload.history) + 2, last_activity,
    )
    log.info("assistant_replied", reply_chars=len(reply), should_close=should_close)
    return MessageResponse(session_id=payload.session_id, reply=reply, should_close=should_close)


# ──────────────────────────────────────────────────────────────────────────────
# POST /{user_id}/close: Summarise and store the session
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{user_id}/close",
    response_model=SessionSummary,
    status_code=status.HTTP_201_CREATED,
    summary="Close a chat session and store its summary",
)
async def close_session(
    user_id: str,
    payload: CloseSessionRequest,
    services: ServiceContainer = Depends(get_services),
) -> SessionSummary:
    log = logger.bind(user_id=user_id, session_id=payload.session_id)

    try:
        summary = await services.assistant.summarize_session(payload.session_id, payload.messages)
    except AssistantError as exc:
        log.warning("session_summary_fallback", error=str(exc))
        summary = services.assistant.fallback_summary(payload.session_id, len(payload.messages))

    stored = await services.repository.add_session_summary(user_id, summary)
    log.info("session_closed", messages=len(payload.messages))
    return stored
