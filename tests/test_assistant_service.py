"""Unit tests for AssistantService — Gemini model chain and response parsing."""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.schemas.session import ChatMessage
from app.services.assistant_service import AssistantError, AssistantService


def _response(text):
    response = MagicMock()
    response.candidates = [MagicMock()]
    response.text = text
    return response


@pytest.fixture
def mock_genai():
    """Patch settings and the Gemini SDK for the lifetime of a test."""
    with patch("app.services.assistant_service.get_settings") as mock_settings:
        settings = MagicMock()
        settings.GEMINI_API_KEY = "test-key"
        settings.GEMINI_MAX_OUTPUT_TOKENS = 1024
        settings.gemini_model_chain = ["gemini-primary", "gemini-fallback"]
        mock_settings.return_value = settings
        with patch("app.services.assistant_service.genai") as genai:
            genai.GenerativeModel.return_value.generate_content_async = AsyncMock()
            yield genai


@pytest.fixture
def assistant(mock_genai):
    return AssistantService()


@pytest.fixture
def generate(mock_genai):
    return mock_genai.GenerativeModel.return_value.generate_content_async


class TestModelChain:

    @pytest.mark.asyncio
    async def test_reply_stripped(self, assistant, generate):
        generate.return_value = _response("  Sounds like a full week.  \n")
        reply = await assistant.reply("I'm tired")
        assert reply == "Sounds like a full week."

    @pytest.mark.asyncio
    async def test_falls_back_to_next_model(self, assistant, mock_genai, generate):
        generate.side_effect = [RuntimeError("quota"), _response("Hello again")]
        assert await assistant.reply("hi") == "Hello again"
        models = [c.args[0] for c in mock_genai.GenerativeModel.call_args_list]
        assert models == ["gemini-primary", "gemini-fallback"]

    @pytest.mark.asyncio
    async def test_empty_candidates_fall_back(self, assistant, generate):
        blocked = MagicMock()
        blocked.candidates = []
        generate.side_effect = [blocked, _response("ok")]
        assert await assistant.reply("hi") == "ok"

    @pytest.mark.asyncio
    async def test_all_models_fail(self, assistant, generate):
        generate.side_effect = [RuntimeError("a"), _response("   ")]
        with pytest.raises(AssistantError):
            await assistant.reply("hi")

    def test_reply_prompt_includes_context_and_recent_history(self, assistant):
        history = [ChatMessage(role="user", content=f"turn {i}") for i in range(12)]
        prompt = assistant._build_reply_prompt("latest", history, "Recurring interests: work")
        assert "CONTEXT ABOUT THIS USER:\nRecurring interests: work" in prompt
        assert "USER: turn 11" in prompt
        assert "USER: turn 1\n" not in prompt
        assert prompt.endswith("USER: latest\nASSISTANT:")


class TestAnalyzeTurn:

    @pytest.mark.asyncio
    async def test_signals_coerced(self, assistant, generate):
        generate.return_value = _response(
            '```json\n{"topics": ["Sleep", "work"], "sentiment": "Positive", '
            '"engagement": "12", "dimensionSignals": {"positiveEmotion": 1.5, "meaning": 0}}\n```'
        )
        turn = await assistant.analyze_turn("I slept well", "Great to hear!")
        assert turn.topics == ["sleep", "work"]
        assert turn.sentiment == "positive"
        assert turn.engagement == 10.0
        assert turn.dimension_signals == {"positive_emotion": 1.5}
        assert turn.message == "I slept well"
        assert turn.assistant_reply == "Great to hear!"

    @pytest.mark.asyncio
    async def test_unknown_sentiment_is_neutral(self, assistant, generate):
        generate.return_value = _response('{"sentiment": "ecstatic", "engagement": null}')
        turn = await assistant.analyze_turn("hm")
        assert turn.sentiment == "neutral"
        assert turn.engagement == 5.0
        assert turn.topics == []

    @pytest.mark.asyncio
    async def test_unparseable_output(self, assistant, generate):
        generate.return_value = _response("I'd rather not answer in JSON.")
        with pytest.raises(AssistantError):
            await assistant.analyze_turn("hm")


class TestSummarizeSession:

    @pytest.mark.asyncio
    async def test_empty_transcript_skips_model(self, assistant, generate):
        summary = await assistant.summarize_session("s1", [])
        assert summary.summary == "Session completed"
        assert summary.emotional_state == "neutral"
        assert summary.message_count == 0
        generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_summary_fields(self, assistant, generate):
        generate.return_value = _response(
            '{"summary": "Talked about sleep.", "keyTopics": ["sleep"], '
            '"emotionalState": "calm", "userNeeds": "rest", '
            '"importantContext": "Night shifts", "permaInsights": {"meaning": "6", "x": "n/a"}}'
        )
        messages = [
            ChatMessage(role="user", content="I can't sleep"),
            ChatMessage(role="assistant", content="Let's look at your evenings."),
        ]
        summary = await assistant.summarize_session("s1", messages)
        assert summary.session_id == "s1"
        assert summary.summary == "Talked about sleep."
        assert summary.key_topics == ["sleep"]
        assert summary.emotional_state == "calm"
        assert summary.user_needs == ["rest"]
        assert summary.important_context == "Night shifts"
        assert summary.perma_insights == {"meaning": 6.0}
        assert summary.message_count == 2
        assert summary.completed_at is not None

    @pytest.mark.asyncio
    async def test_blank_summary_text_replaced(self, assistant, generate):
        generate.return_value = _response('{"summary": "", "keyTopics": []}')
        summary = await assistant.summarize_session(
            "s1", [ChatMessage(role="user", content="hi")],
        )
        assert summary.summary == "Session completed"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            '{"summary": "Talked.", "emotionalState": null}',
            '{"summary": "Talked.", "importantContext": ["night shifts", "exams"]}',
        ],
    )
    async def test_malformed_fields_raise_assistant_error(self, assistant, generate, payload):
        generate.return_value = _response(payload)
        with pytest.raises(AssistantError):
            await assistant.summarize_session(
                "s1", [ChatMessage(role="user", content="hi")],
            )


class TestParseJsonResponse:

    def test_direct(self, assistant):
        assert assistant._parse_json_response('{"a": 1}') == {"a": 1}

    def test_markdown_fence(self, assistant):
        assert assistant._parse_json_response('```json\n{"a": 1}\n```') == {"a": 1}

    def test_brace_extraction(self, assistant):
        text = 'Sure! Here it is: {"a": 1} Hope that helps.'
        assert assistant._parse_json_response(text) == {"a": 1}

    def test_repair(self, assistant):
        text = 'Result: {"topics": ["sleep",], }'
        assert assistant._parse_json_response(text) == {"topics": ["sleep"]}

    def test_non_object_rejected(self, assistant):
        with pytest.raises(ValueError):
            assistant._parse_json_response("[1, 2]")

    def test_empty_rejected(self, assistant):
        with pytest.raises(ValueError):
            assistant._parse_json_response("   ")
