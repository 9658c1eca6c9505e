from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_snake

from app.schemas.assessment import DOCUMENT_CONFIG


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalise_topics(value: Any) -> list[str]:
    """Lower-case, strip and de-duplicate a topic list (order preserved)."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    topics: list[str] = []
    for item in value:
        topic = str(item).strip().lower()
        if topic and topic not in topics:
            topics.append(topic)
    return topics


class _Event(BaseModel):
    model_config = DOCUMENT_CONFIG

    timestamp: datetime = Field(default_factory=_utcnow)


class ChatTurn(_Event):
    """Signals extracted from one user/assistant exchange."""

    message: str = ""
    assistant_reply: str = ""
    topics: list[str] = Field(default_factory=list)
    sentiment: Literal["positive", "neutral", "negative"] = "neutral"
    engagement: float = Field(5.0, ge=0, le=10)
    # dimension -> signal strength; nudges current_scores by min(0.1, s * 0.05)
    dimension_signals: dict[str, float] = Field(default_factory=dict)

    @field_validator("topics", mode="before")
    @classmethod
    def _topics(cls, v: Any) -> list[str]:
        return normalise_topics(v)

    @field_validator("dimension_signals", mode="before")
    @classmethod
    def _snake_case_dimensions(cls, v: Any) -> dict:
        if not isinstance(v, dict):
            return {}
        return {to_snake(str(k)): s for k, s in v.items()}


class TopicEngagement(_Event):
    topic: str
    engagement_score: float = Field(5.0, ge=0, le=10)
    interaction_type: Literal[
        "view", "like", "share", "save", "dismiss",
        "mention", "question", "followup", "dismissal",
    ] = "view"

    @field_validator("topic")
    @classmethod
    def _normalise_topic(cls, v: str) -> str:
        return v.strip().lower()

    @property
    def is_dismissal(self) -> bool:
        return self.interaction_type in ("dismiss", "dismissal")


class VideoInteraction(_Event):
    video_id: str
    title: str = ""
    channel: str = ""
    interaction_type: Literal["view", "like", "dislike", "skip", "complete"] = "view"
    watch_duration: float = Field(0.0, ge=0)
    total_duration: float = Field(0.0, ge=0)
    topics: list[str] = Field(default_factory=list)

    @field_validator("topics", mode="before")
    @classmethod
    def _topics(cls, v: Any) -> list[str]:
        return normalise_topics(v)


class WellnessInteraction(_Event):
    intervention_type: str
    response: Literal["engaged", "skipped", "completed"] = "engaged"
    effectiveness: float = Field(5.0, ge=0, le=10)
    dimension: str = ""

    @field_validator("dimension")
    @classmethod
    def _snake_case_dimension(cls, v: str) -> str:
        return to_snake(v.strip()) if v else v


class InteractionResult(BaseModel):
    """Response body for the interaction endpoints."""

    user_id: str
    update_count: int
    overall_happiness: float
    focus_areas: list[str]
    primary_interests: list[str]
    emerging_interests: list[str]
