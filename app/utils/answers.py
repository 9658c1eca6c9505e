"""
Tolerant readers for raw questionnaire answers.

Answers arrive from the mobile client as ``{question_id: value}`` where the
value may be a string, a list of strings, a number, a numeric string, or
missing entirely.  None of these helpers raise: a malformed or absent answer
reads as the neutral default.
"""

from __future__ import annotations

import math
from typing import Any

from app.schemas.assessment import Answers


def text(answers: Answers, key: str) -> str:
    """Return the answer as stripped text (lists are joined with ", ")."""
    value = answers.get(key)
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v).strip() for v in value if str(v).strip())
    return str(value).strip()


def items(answers: Answers, key: str) -> list[str]:
    """Return the answer as a list of non-empty strings."""
    value = answers.get(key)
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    single = str(value).strip()
    return [single] if single else []


def number(answers: Answers, key: str, default: float) -> float:
    """Return the answer as a float, or ``default`` when it is not numeric."""
    value: Any = answers.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None or value == "":
        return default
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return default
    return default if math.isnan(parsed) else parsed


def contains(answers: Answers, key: str, needle: str) -> bool:
    """Case-insensitive substring test against the answer text."""
    return needle.lower() in text(answers, key).lower()


def half_up(value: float) -> int:
    """Round half away from zero for non-negative input (2.5 -> 3)."""
    return int(math.floor(value + 0.5))
