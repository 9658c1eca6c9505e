from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import (
    AliasGenerator,
    BaseModel,
    ConfigDict,
    Field,
    StringConstraints,
    field_validator,
)
from pydantic.alias_generators import to_camel

# The five wellness (PERMA) dimensions, in canonical order.  This order is
# also the tie-break order whenever dimensions are ranked by score.
DIMENSIONS: tuple[str, ...] = (
    "positive_emotion",
    "engagement",
    "relationships",
    "meaning",
    "accomplishment",
)

SCORE_MIN = 1
SCORE_MAX = 10

# Raw questionnaire answers keyed by question id.  Values are strings,
# lists of strings, or numbers (sliders may arrive as numeric strings).
Answers = dict[str, Any]

# Stored documents and mobile clients send camelCase keys; both spellings are
# accepted on input and snake_case is always emitted.
DOCUMENT_CONFIG = ConfigDict(
    alias_generator=AliasGenerator(validation_alias=to_camel),
    populate_by_name=True,
    extra="ignore",
)

TypeCode = Annotated[
    str, StringConstraints(strip_whitespace=True, to_upper=True, min_length=4, max_length=4)
]


def clamp_score(value: Any, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    """Coerce ``value`` to a float inside ``[low, high]``.

    Non-numeric input falls back to the midpoint of the range.
    """
    try:
        number = float(value)
    except (TypeError, ValueError):
        return (low + high) / 2
    if number != number:  # NaN
        return (low + high) / 2
    return max(low, min(high, number))


class ScoreVector(BaseModel):
    """Five-dimension happiness vector derived once from the assessment."""

    model_config = DOCUMENT_CONFIG | ConfigDict(frozen=True)

    positive_emotion: int = Field(5, ge=SCORE_MIN, le=SCORE_MAX)
    engagement: int = Field(5, ge=SCORE_MIN, le=SCORE_MAX)
    relationships: int = Field(5, ge=SCORE_MIN, le=SCORE_MAX)
    meaning: int = Field(5, ge=SCORE_MIN, le=SCORE_MAX)
    accomplishment: int = Field(5, ge=SCORE_MIN, le=SCORE_MAX)

    @field_validator("*", mode="before")
    @classmethod
    def _clamp(cls, v: Any) -> int:
        return int(math.floor(clamp_score(v) + 0.5))

    def as_dict(self) -> dict[str, float]:
        return {d: float(getattr(self, d)) for d in DIMENSIONS}

    @property
    def overall(self) -> float:
        return sum(getattr(self, d) for d in DIMENSIONS) / len(DIMENSIONS)


class AssessmentSubmit(BaseModel):
    """Request body for ``POST /assessment/{user_id}``."""

    answers: Answers = Field(default_factory=dict)


class AssessmentResponse(BaseModel):
    user_id: str
    type_code: str
    scores: ScoreVector
    focus_areas: list[str]
    strengths: list[str]
    primary_interests: list[str]
    revision: int
