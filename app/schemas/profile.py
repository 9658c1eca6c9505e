"""
Wellspring — PersonalizationProfile document schema (version 3).

One typed, versioned document per user.  Every nested object and every
optional field carries an explicit default, so the services can assume a
total structure.  Partial or legacy documents (camelCase keys, missing
sub-objects, top-level ``happinessScores``) are normalised once, here, by
``PersonalizationProfile.model_validate``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from app.schemas.assessment import DIMENSIONS, DOCUMENT_CONFIG, ScoreVector, clamp_score

SCHEMA_VERSION = 3

CommunicationStyle = Literal["direct", "analytical", "supportive", "creative"]
Level = Literal["low", "medium", "high"]
SocialPreference = Literal["solo", "social", "mixed"]


class _Document(BaseModel):
    model_config = DOCUMENT_CONFIG


def _empty_dimension_map() -> dict[str, list[str]]:
    return {d: [] for d in DIMENSIONS}


# ──────────────────────────────────────────────────────────────────────────────
# Chat persona
# ──────────────────────────────────────────────────────────────────────────────

class PreferredTopic(_Document):
    topic: str
    dimension: str = Field(
        default=DIMENSIONS[0],
        validation_alias=AliasChoices("dimension", "permaDimension", "perma_dimension"),
    )
    score: float = 1.0


class ChatPersona(_Document):
    type_code: str = ""
    communication_style: CommunicationStyle = "supportive"
    preferred_topics: list[PreferredTopic] = Field(default_factory=list)
    emotional_support: Level = "medium"
    response_preferences: list[str] = Field(default_factory=list)
    engagement_triggers: list[str] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────────────────────
# Content preferences
# ──────────────────────────────────────────────────────────────────────────────

class ContentPreferences(_Document):
    dimension_topic_map: dict[str, list[str]] = Field(default_factory=_empty_dimension_map)
    primary_interests: list[str] = Field(default_factory=list)
    avoid_topics: list[str] = Field(default_factory=list)
    emerging_interests: list[str] = Field(default_factory=list)
    declining_interests: list[str] = Field(default_factory=list)
    topic_scores: dict[str, float] = Field(default_factory=dict)

    @field_validator("topic_scores", mode="before")
    @classmethod
    def _clamp_topic_scores(cls, v: Any) -> dict[str, float]:
        if not isinstance(v, dict):
            return {}
        return {str(k): clamp_score(s, 0, 10) for k, s in v.items()}


# ──────────────────────────────────────────────────────────────────────────────
# Wellness profile
# ──────────────────────────────────────────────────────────────────────────────

class DimensionScores(_Document):
    """Evolving (fractional) dimension scores, each in [1, 10]."""

    positive_emotion: float = 5.0
    engagement: float = 5.0
    relationships: float = 5.0
    meaning: float = 5.0
    accomplishment: float = 5.0

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> float:
        return clamp_score(v)

    @classmethod
    def from_vector(cls, scores: ScoreVector) -> "DimensionScores":
        return cls(**scores.as_dict())

    def as_dict(self) -> dict[str, float]:
        return {d: getattr(self, d) for d in DIMENSIONS}

    @property
    def overall(self) -> float:
        return sum(self.as_dict().values()) / len(DIMENSIONS)


class WellnessProfile(_Document):
    baseline_scores: ScoreVector = Field(default_factory=ScoreVector)
    current_scores: DimensionScores = Field(default_factory=DimensionScores)
    focus_areas: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    challenge_level: Level = "medium"
    social_preference: SocialPreference = "mixed"
    needs_attention: list[str] = Field(default_factory=list)
    trending_up: list[str] = Field(default_factory=list)
    intervention_success: dict[str, int] = Field(default_factory=dict)


# ──────────────────────────────────────────────────────────────────────────────
# Service personalization (computed once at assessment time)
# ──────────────────────────────────────────────────────────────────────────────

class EngagementStyle(_Document):
    preferred_time: Literal["morning", "afternoon", "evening", "flexible"] = "flexible"
    motivation_type: Literal["gamified", "community", "guided", "self-driven"] = "self-driven"
    learning_preference: Literal["visual", "auditory", "kinesthetic", "mixed"] = "mixed"


class ServicePersonalization(_Document):
    recommended_service_types: list[str] = Field(default_factory=list)
    delivery_method: Literal["self-directed", "human-guided", "hybrid"] = "hybrid"
    session_length: Literal["short", "medium", "long"] = "medium"
    frequency: Literal["daily", "weekly", "as-needed"] = "as-needed"
    cost_sensitivity: Literal["low", "moderate", "high"] = "moderate"
    wellness_goals: list[str] = Field(default_factory=list)
    avoidance_patterns: list[str] = Field(default_factory=list)
    engagement_style: EngagementStyle = Field(default_factory=EngagementStyle)


# ──────────────────────────────────────────────────────────────────────────────
# Activity tracking & recommendation state
# ──────────────────────────────────────────────────────────────────────────────

class RankedTopic(_Document):
    topic: str
    score: float = 0.1


class ChatMetrics(_Document):
    total_messages: int = 0
    positive_interactions: int = 0
    engagement_streak: int = 0
    preferred_topics: list[RankedTopic] = Field(default_factory=list)
    last_active_time: datetime | None = None


class VideoMetrics(_Document):
    total_watched: int = 0
    completion_rate: float = 0.0
    liked_topics: list[str] = Field(default_factory=list)
    skipped_topics: list[str] = Field(default_factory=list)
    watch_time: float = 0.0
    preferred_channels: list[str] = Field(default_factory=list)

    @field_validator("watch_time", mode="before")
    @classmethod
    def _total_watch_time(cls, v: Any) -> float:
        # The mobile client stored watch time per topic.
        values = v.values() if isinstance(v, dict) else [v]
        total = 0.0
        for amount in values:
            try:
                total += max(0.0, float(amount))
            except (TypeError, ValueError):
                continue
        return total


class ActivityTracking(_Document):
    chat_metrics: ChatMetrics = Field(default_factory=ChatMetrics)
    video_metrics: VideoMetrics = Field(default_factory=VideoMetrics)


class EngagementRecord(_Document):
    """One scored interaction kept for the recommendation mixer."""

    topics: list[str] = Field(default_factory=list)
    channel: str = ""
    engagement_score: float = 0.0
    related_to_profile: bool = False
    timestamp: datetime | None = None


class EngagementState(_Document):
    total_interactions: int = 0
    avg_engagement_score: float = 5.0
    profile_accuracy: float = 0.8
    exploration_rate: float = 0.3
    recent_engagement: list[EngagementRecord] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────────────────────
# Derived read-model and personal details
# ──────────────────────────────────────────────────────────────────────────────

class ComputedFields(_Document):
    overall_happiness: float = 5.0
    primary_dimension: str = DIMENSIONS[0]
    engagement_level: Level = "medium"
    last_engagement_type: str | None = None


class PersonalInfo(_Document):
    nickname: str = ""
    happy_events: str = ""
    flow_activity: str = ""
    proud_achievement: str = ""


# ──────────────────────────────────────────────────────────────────────────────
# Aggregate
# ──────────────────────────────────────────────────────────────────────────────

class PersonalizationProfile(_Document):
    """The aggregate personalization document owned by one user."""

    user_id: str = ""
    version: int = SCHEMA_VERSION

    chat_persona: ChatPersona = Field(default_factory=ChatPersona)
    content_preferences: ContentPreferences = Field(default_factory=ContentPreferences)
    wellness_profile: WellnessProfile = Field(default_factory=WellnessProfile)
    service_personalization: ServicePersonalization = Field(
        default_factory=ServicePersonalization
    )
    activity_tracking: ActivityTracking = Field(default_factory=ActivityTracking)
    engagement_profile: EngagementState = Field(default_factory=EngagementState)
    computed: ComputedFields = Field(default_factory=ComputedFields)

    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    emotion_baseline: float = 5.0

    update_count: int = 0
    created_at: datetime | None = None
    last_updated: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _upgrade_legacy_document(cls, data: Any) -> Any:
        """Lift pre-v3 documents into the current shape.

        Older documents kept the dimension scores at the top level
        (``happinessScores`` / ``permaScores``) and had no ``version``.
        Whatever version arrives, the normalised document is always
        ``SCHEMA_VERSION``.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        legacy_scores = data.pop("happinessScores", None) or data.pop("permaScores", None)
        if isinstance(legacy_scores, dict):
            wellness = dict(data.get("wellnessProfile") or data.get("wellness_profile") or {})
            for camel, snake in (
                ("currentScores", "current_scores"),
                ("baselineScores", "baseline_scores"),
            ):
                if camel not in wellness and snake not in wellness:
                    wellness[snake] = legacy_scores
            data.pop("wellnessProfile", None)
            data["wellness_profile"] = wellness
        data["version"] = SCHEMA_VERSION
        return data


class ProfileEnvelope(BaseModel):
    """Response wrapper used by the profile endpoints."""

    model_config = ConfigDict(from_attributes=True)

    user_id: str
    revision: int
    profile: PersonalizationProfile
