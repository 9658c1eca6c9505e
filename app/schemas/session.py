from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.schemas.assessment import DOCUMENT_CONFIG


class SessionSummary(BaseModel):
    """Summary of a closed chat session, produced by the assistant collaborator."""

    model_config = DOCUMENT_CONFIG | ConfigDict(from_attributes=True)

    session_id: str = ""
    summary: str = ""
    key_topics: list[str] = Field(default_factory=list)
    emotional_state: str = "neutral"
    user_needs: list[str] = Field(default_factory=list)
    important_context: str = ""
    perma_insights: dict[str, float] = Field(default_factory=dict)
    message_count: int = 0
    created_at: datetime | None = None
    completed_at: datetime | None = None

    @field_validator("key_topics", "user_needs", mode="before")
    @classmethod
    def _listify(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(item) for item in v if str(item).strip()]

    @field_validator("perma_insights", mode="before")
    @classmethod
    def _numeric_insights(cls, v):
        if not isinstance(v, dict):
            return {}
        out: dict[str, float] = {}
        for key, value in v.items():
            try:
                out[str(key)] = float(value)
            except (TypeError, ValueError):
                continue
        return out


class SessionContext(BaseModel):
    continuity_context: str = ""
    recent_interactions: str = ""


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    timestamp: datetime | None = None


class SessionSignals(BaseModel):
    """Lightweight in-session read of the conversation (no LLM involved)."""

    user_mood: int = 5
    primary_topics: list[str] = Field(default_factory=list)
    wellness_focus: list[str] = Field(default_factory=list)
    session_goal: str = ""


class ContextRequest(BaseModel):
    messages: list[ChatMessage] = Field(default_factory=list)


class ContextResponse(BaseModel):
    user_id: str
    context: SessionContext
    signals: SessionSignals
    assistant_context: str


class MessageRequest(BaseModel):
    session_id: str
    message: str
    history: list[ChatMessage] = Field(default_factory=list)


class MessageResponse(BaseModel):
    session_id: str
    reply: str
    should_close: bool


class CloseSessionRequest(BaseModel):
    session_id: str
    messages: list[ChatMessage] = Field(default_factory=list)
