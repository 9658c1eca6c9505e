"""
Wellspring — AssistantService: Gemini chat-assistant collaborator

Wraps the Gemini LLM for the three things the integration layer needs from
a chat model:

- ``reply``              free-text answer to the user, primed with the
                         continuity and personalization context strings
- ``analyze_turn``       structured signals (topics, sentiment, engagement,
                         dimension signals) extracted from one exchange,
                         returned as a ``ChatTurn`` for the interaction
                         learner
- ``summarize_session``  a ``SessionSummary`` for a closed transcript

Each call walks the configured model chain (primary -> fallback) and moves
on when a model fails.  There is no retry/backoff within a model.  JSON
output is parsed with several fallback strategies, ``json_repair`` last.

The personalization core never calls this service; it only consumes the
records it produces.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from typing import Any

import google.generativeai as genai
import structlog
from google.generativeai.types import HarmBlockThreshold, HarmCategory
from json_repair import repair_json
from pydantic import ValidationError

from app.config import get_settings
from app.schemas.assessment import DIMENSIONS
from app.schemas.interaction import ChatTurn
from app.schemas.session import ChatMessage, SessionSummary

logger = structlog.get_logger("wellspring.assistant_service")


class AssistantError(RuntimeError):
    """Every model in the chain failed, or returned unusable output."""


class AssistantService:
    """Gemini-backed chat assistant, turn analyzer and session summarizer."""

    # ── Class-level constants ─────────────────────────────────────────

    SYSTEM_PROMPT: str = (
        "You are Wellspring, a warm and practical wellness companion. "
        "Keep answers concise, concrete and kind. Never diagnose; suggest "
        "professional help when the user describes a crisis."
    )

    HISTORY_TURNS: int = 10
    TRANSCRIPT_CHAR_LIMIT: int = 12_000

    FALLBACK_SUMMARY: str = "Session completed"

    # ── Initialisation ────────────────────────────────────────────────

    def __init__(self) -> None:
        """Configure the Gemini client and the model fallback chain.

        Uses ``get_settings()`` for the API key, model identifiers and the
        output token limit.
        """
        settings = get_settings()

        genai.configure(api_key=settings.GEMINI_API_KEY)

        self._model_chain: list[str] = settings.gemini_model_chain

        # Wellness conversations mention self-harm and medical topics;
        # only block content the model itself rates as high risk.
        self._safety_settings = {
            HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
            HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_ONLY_HIGH,
            HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
            HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_ONLY_HIGH,
        }

        self._text_config = genai.GenerationConfig(
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
        )
        self._json_config = genai.GenerationConfig(
            max_output_tokens=settings.GEMINI_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )

        logger.info("assistant_service_initialised", model_chain=self._model_chain)

    # ══════════════════════════════════════════════════════════════════
    # Public API
    # ══════════════════════════════════════════════════════════════════

    async def reply(
        self,
        message: str,
        history: list[ChatMessage] | None = None,
        context: str = "",
    ) -> str:
        """Generate the assistant's reply to ``message``.

        Parameters
        ----------
        message:
            The user's latest message.
        history:
            Earlier turns of the current session, oldest first.  Only the
            last ``HISTORY_TURNS`` are sent.
        context:
            Output of ``SessionService.format_context_for_assistant``.

        Returns
        -------
        str
            The reply text, stripped.

        Raises
        ------
        AssistantError
            If every model in the chain fails.
        """
        prompt = self._build_reply_prompt(message, history or [], context)
        text = await self._generate(prompt, json_output=False, purpose="reply")
        return text.strip()

    async def analyze_turn(self, message: str, assistant_reply: str = "") -> ChatTurn:
        """Extract learner signals from one user/assistant exchange."""
        prompt = self._build_analysis_prompt(message, assistant_reply)
        text = await self._generate(prompt, json_output=True, purpose="analyze_turn")
        parsed = self._parse_or_raise(text)

        try:
            turn = ChatTurn.model_validate(
                {
                    "message": message,
                    "assistant_reply": assistant_reply,
                    "topics": parsed.get("topics") or [],
                    "sentiment": _coerce_sentiment(parsed.get("sentiment")),
                    "engagement": _coerce_float(parsed.get("engagement"), 5.0, 0.0, 10.0),
                    "dimension_signals": _coerce_signals(
                        parsed.get("dimensionSignals") or parsed.get("dimension_signals")
                    ),
                }
            )
        except ValidationError as exc:
            raise AssistantError(f"Unusable turn analysis: {exc}") from exc
        logger.debug(
            "turn_analyzed",
            topics=turn.topics,
            sentiment=turn.sentiment,
            engagement=turn.engagement,
        )
        return turn

    async def summarize_session(
        self,
        session_id: str,
        messages: list[ChatMessage],
    ) -> SessionSummary:
        """Summarise a closed transcript.

        An empty transcript yields ``fallback_summary`` without calling the
        model.

        Raises
        ------
        AssistantError
            If the model chain fails or its output does not parse into a
            valid summary.
        """
        if not messages:
            return self.fallback_summary(session_id, 0)

        prompt = self._build_summary_prompt(messages)
        text = await self._generate(prompt, json_output=True, purpose="summarize_session")
        parsed = self._parse_or_raise(text)

        try:
            summary = SessionSummary.model_validate(
                {
                    **parsed,
                    "session_id": session_id,
                    "message_count": len(messages),
                    "completed_at": datetime.now(timezone.utc),
                }
            )
        except ValidationError as exc:
            logger.warning(
                "summary_shape_invalid", session_id=session_id, errors=exc.error_count(),
            )
            raise AssistantError(f"Unusable session summary: {exc}") from exc
        if not summary.summary:
            summary.summary = self.FALLBACK_SUMMARY
        logger.info(
            "session_summarized",
            session_id=session_id,
            messages=len(messages),
            emotional_state=summary.emotional_state,
        )
        return summary

    def fallback_summary(self, session_id: str, message_count: int) -> SessionSummary:
        return SessionSummary(
            session_id=session_id,
            summary=self.FALLBACK_SUMMARY,
            emotional_state="neutral",
            message_count=message_count,
            completed_at=datetime.now(timezone.utc),
        )

    # ══════════════════════════════════════════════════════════════════
    # Model chain
    # ══════════════════════════════════════════════════════════════════

    async def _generate(self, prompt: str, *, json_output: bool, purpose: str) -> str:
        """Try each model in the chain; return the first non-empty text."""
        config = self._json_config if json_output else self._text_config
        last_exception: Exception | None = None

        for model_name in self._model_chain:
            try:
                model = genai.GenerativeModel(model_name)
                response = await model.generate_content_async(
                    prompt,
                    safety_settings=self._safety_settings,
                    generation_config=config,
                )

                if not response.candidates:
                    raise ValueError(
                        f"Gemini returned no candidates for model {model_name}. "
                        f"Prompt feedback: {response.prompt_feedback}"
                    )

                text = response.text
                if not text or not text.strip():
                    raise ValueError(f"Gemini returned empty text for model {model_name}")

                logger.debug("gemini_call_complete", model=model_name, purpose=purpose)
                return text

            except Exception as exc:
                last_exception = exc
                logger.warning(
                    "model_fallback",
                    failed_model=model_name,
                    purpose=purpose,
                    error=str(exc),
                )
                continue

        raise AssistantError(
            f"All models in chain exhausted for {purpose}. Last error: {last_exception}"
        )

    def _parse_or_raise(self, text: str) -> dict:
        try:
            return self._parse_json_response(text)
        except ValueError as exc:
            raise AssistantError(str(exc)) from exc

    # ══════════════════════════════════════════════════════════════════
    # Prompt construction
    # ══════════════════════════════════════════════════════════════════

    def _build_reply_prompt(
        self,
        message: str,
        history: list[ChatMessage],
        context: str,
    ) -> str:
        sections = [self.SYSTEM_PROMPT]
        if context:
            sections.append(f"CONTEXT ABOUT THIS USER:\n{context}")
        if history:
            turns = "\n".join(
                f"{m.role.upper()}: {m.content}" for m in history[-self.HISTORY_TURNS :]
            )
            sections.append(f"CONVERSATION SO FAR:\n{turns}")
        sections.append(f"USER: {message}\nASSISTANT:")
        return "\n\n".join(sections)

    def _build_analysis_prompt(self, message: str, assistant_reply: str) -> str:
        dimensions = ", ".join(DIMENSIONS)
        return (
            "Analyse this exchange from a wellness conversation and respond "
            "with ONLY a JSON object, no markdown:\n"
            "{\n"
            '  "topics": ["1-5 short lowercase topics the user talked about"],\n'
            '  "sentiment": "positive" | "neutral" | "negative",\n'
            '  "engagement": <0-10, how engaged the user seems>,\n'
            '  "dimensionSignals": {"<dimension>": <0-2 signal strength>}\n'
            "}\n"
            f"Valid dimensions: {dimensions}. Omit dimensions with no signal.\n\n"
            f"USER: {message}\n"
            f"ASSISTANT: {assistant_reply}"
        )

    def _build_summary_prompt(self, messages: list[ChatMessage]) -> str:
        transcript = "\n".join(f"{m.role}: {m.content}" for m in messages)
        if len(transcript) > self.TRANSCRIPT_CHAR_LIMIT:
            transcript = transcript[-self.TRANSCRIPT_CHAR_LIMIT :]
        dimensions = ", ".join(DIMENSIONS)
        return (
            "Summarise this wellness conversation for the assistant's memory. "
            "Respond with ONLY a JSON object, no markdown:\n"
            "{\n"
            '  "summary": "2-3 sentence summary",\n'
            '  "keyTopics": ["main topics"],\n'
            '  "emotionalState": "one word for the user\'s overall mood",\n'
            '  "userNeeds": ["what the user was looking for"],\n'
            '  "importantContext": "facts worth remembering next time",\n'
            '  "permaInsights": {"<dimension>": <1-10 estimate>}\n'
            "}\n"
            f"Valid dimensions: {dimensions}.\n\n"
            f"CONVERSATION:\n{transcript}"
        )

    # ══════════════════════════════════════════════════════════════════
    # JSON parsing
    # ══════════════════════════════════════════════════════════════════

    def _parse_json_response(self, text: str) -> dict:
        """Parse a JSON object from model output.

        Pipeline:
        1. Direct ``json.loads`` on the raw text
        2. Markdown code-fence extraction
        3. First ``{`` to last ``}`` extraction
        4. ``json_repair`` as a last resort

        Raises
        ------
        ValueError
            If no strategy yields a JSON object.
        """
        if not text or not text.strip():
            raise ValueError("Empty response text, cannot parse JSON")

        cleaned = text.strip()

        # Strategy 1: Direct parse
        try:
            result = json.loads(cleaned)
            if isinstance(result, dict):
                return result
        except (json.JSONDecodeError, TypeError):
            pass

        # Strategy 2: Markdown code-fence extraction
        md_match = re.search(r"```(?:json)?\s*\n?(.*?)\n?\s*```", cleaned, re.DOTALL)
        if md_match:
            try:
                result = json.loads(md_match.group(1).strip())
                if isinstance(result, dict):
                    return result
            except (json.JSONDecodeError, TypeError):
                pass

        # Strategy 3: Brace extraction
        first_brace = cleaned.find("{")
        last_brace = cleaned.rfind("}")
        candidate = cleaned
        if first_brace >= 0 and last_brace > first_brace:
            candidate = cleaned[first_brace : last_brace + 1]
            try:
                result = json.loads(candidate)
                if isinstance(result, dict):
                    return result
            except (json.JSONDecodeError, TypeError):
                pass

        # Strategy 4: json_repair (best-effort)
        try:
            result = json.loads(repair_json(candidate))
            if isinstance(result, dict):
                logger.info("json_parsed_via_json_repair", original_preview=cleaned[:80])
                return result
        except (json.JSONDecodeError, TypeError, ValueError) as exc:
            logger.debug("json_repair_failed", error=str(exc))

        raise ValueError(f"Failed to parse JSON from Gemini response. Preview: {cleaned[:200]}")


# ──────────────────────────────────────────────────────────────────────────────
# Module-level coercion helpers
# ──────────────────────────────────────────────────────────────────────────────

def _coerce_float(value: Any, default: float, low: float, high: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:
        return default
    return max(low, min(high, number))


def _coerce_sentiment(value: Any) -> str:
    sentiment = str(value or "").strip().lower()
    return sentiment if sentiment in ("positive", "neutral", "negative") else "neutral"


def _coerce_signals(value: Any) -> dict[str, float]:
    if not isinstance(value, dict):
        return {}
    signals: dict[str, float] = {}
    for key, raw in value.items():
        strength = _coerce_float(raw, 0.0, 0.0, 10.0)
        if strength > 0:
            signals[str(key)] = strength
    return signals
