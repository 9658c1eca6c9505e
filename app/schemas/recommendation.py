from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class MixingRatio(BaseModel):
    """Three-way blend of query sources.  Intended, not enforced, to sum to 1."""

    profile_weight: float
    behavior_weight: float
    exploration_weight: float
    regime: Literal["cold_start", "warming", "mature"]

    @property
    def total(self) -> float:
        return self.profile_weight + self.behavior_weight + self.exploration_weight


class QuerySet(BaseModel):
    profile_queries: list[str] = Field(default_factory=list)
    behavior_queries: list[str] = Field(default_factory=list)
    exploration_queries: list[str] = Field(default_factory=list)


class WeightedQuery(BaseModel):
    query: str
    source: Literal["profile", "behavior", "exploration"]
    weight: float


class BehaviorPatterns(BaseModel):
    skip_rate: float = 0.0
    play_rate: float = 0.0
    average_watch_ratio: float = 0.0
    liked_topics: list[str] = Field(default_factory=list)
    disliked_topics: list[str] = Field(default_factory=list)
    preferred_channels: list[str] = Field(default_factory=list)


class RecommendationMix(BaseModel):
    """Response body for ``GET /recommendations/{user_id}/mix``."""

    user_id: str
    ratio: MixingRatio
    queries: QuerySet
    plan: list[WeightedQuery]


class VideoResult(BaseModel):
    video_id: str
    title: str
    channel: str = ""
    description: str = ""
    thumbnail_url: str = ""
    duration_seconds: int = 0
    source_query: str = ""
    source: Literal["profile", "behavior", "exploration"] = "profile"


class VideoFeed(BaseModel):
    user_id: str
    ratio: MixingRatio
    videos: list[VideoResult]
