import json

import httpx
import pytest

from common.config import SLMSettings
from common.errors import CleanupError
from common.schemas import CleanedSegment, CleanupMethod, RawSegment
from slm_service.cleaner import (
    FILLER_PHRASES,
    accept_ai_output,
    attempt_ai_cleanup,
    clean_segments,
    clean_text,
    local_cleanup,
)
from slm_service.gemini_client import candidate_text, generate_content
from slm_service.models import ParseStatus
from slm_service.parsing import find_array_span, parse_segment_array
from slm_service.prompts import build_cleanup_prompt, format_transcript, serialize_segments


def gemini_reply(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def ai_array(segments, prefix="Clean"):
    return json.dumps([
        {"id": i + 1, "start": s.start, "end": s.end, "cleanedText": f"{prefix} {i + 1}"}
        for i, s in enumerate(segments)
    ])


def mock_client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def settings():
    return SLMSettings(api_key="gm-test", model_name="gemini-test")


class TestPrompts:
    def test_serialize_segments_numbers_from_one(self, raw_segments):
        data = json.loads(serialize_segments(raw_segments))
        assert [s["id"] for s in data["segments"]] == [1, 2, 3]
        assert data["segments"][1]["start"] == 2.5
        assert data["segments"][1]["text"] == raw_segments[1].text

    def test_cleanup_prompt_embeds_batch_and_format(self, raw_segments):
        prompt = build_cleanup_prompt(raw_segments)
        assert "INPUT JSON" in prompt
        assert raw_segments[2].text in prompt
        assert "cleanedText" in prompt
        assert "JSON array" in prompt

    def test_format_transcript_raw_and_cleaned(self):
        raw = [RawSegment(start=0.0, end=2.5, text="hello")]
        cleaned = [CleanedSegment(start=2.5, end=6.125, cleaned_text="Hi there")]
        assert format_transcript(raw) == "[1] 0.00s - 2.50s: hello"
        assert format_transcript(cleaned) == "[1] 2.50s - 6.12s: Hi there"


class TestParsing:
    def test_bare_array(self):
        outcome = parse_segment_array('[{"id": 1, "cleanedText": "a"}]')
        assert outcome.ok
        assert outcome.items == [{"id": 1, "cleanedText": "a"}]

    def test_array_wrapped_in_prose(self):
        text = 'Here is the result:\n[{"id": 1, "start": 0, "end": 1, "cleanedText": "Hi"}]\nHope this helps'
        outcome = parse_segment_array(text)
        assert outcome.status is ParseStatus.ok
        assert outcome.items[0]["cleanedText"] == "Hi"

    def test_markdown_fence(self):
        text = '```json\n[{"id": 1, "cleanedText": "ok"}]\n```'
        assert parse_segment_array(text).items == [{"id": 1, "cleanedText": "ok"}]

    def test_brackets_inside_strings_are_ignored(self):
        text = 'Result: [{"cleanedText": "a ] tricky [ one \\" ]"}] trailing ] text'
        assert find_array_span(text) == '[{"cleanedText": "a ] tricky [ one \\" ]"}]'
        assert parse_segment_array(text).items[0]["cleanedText"] == 'a ] tricky [ one " ]'

    def test_object_wrapping_array(self):
        outcome = parse_segment_array('{"segments": [{"id": 1, "cleanedText": "x"}]}')
        assert outcome.ok
        assert outcome.items == [{"id": 1, "cleanedText": "x"}]

    def test_empty_array(self):
        assert parse_segment_array("Sure! []").status is ParseStatus.empty

    @pytest.mark.parametrize("text", [
        "",
        "   ",
        "no json here",
        "[{\"id\": 1, ",
        "[{'id': 1}]",
        '{"id": 1}',
    ])
    def test_malformed(self, text):
        outcome = parse_segment_array(text)
        assert outcome.status is ParseStatus.malformed
        assert outcome.detail


class TestLocalCleanup:
    def test_filler_example(self):
        assert clean_text("um so like I think, you know, it works") == "I think, it works"

    def test_no_filler_left_as_word(self):
        text = " ".join(FILLER_PHRASES) + " we ship it"
        cleaned = clean_text(text).lower()
        assert cleaned == "we ship it"

    def test_word_boundaries_respected(self):
        assert clean_text("The likely outcome is sonar") == "The likely outcome is sonar"

    def test_spacing_and_punctuation(self):
        assert clean_text("uh   hello   ,  world  !") == "Hello, world!"

    def test_dangling_commas_after_removed_filler(self):
        assert clean_text("So, we deploy it, right?") == "We deploy it?"

    def test_pronoun_capitalised(self):
        assert clean_text("i said i'm done") == "I said I'm done"

    def test_only_fillers_keeps_final_punctuation(self):
        assert clean_text("Um, uh, you know.") == "."

    def test_leading_decimal_point_kept(self):
        assert clean_text(".5 percent of users") == ".5 percent of users"

    def test_leading_ellipsis_kept(self):
        assert clean_text("well... okay") == "..."

    def test_keeps_timestamps_and_original(self, raw_segments):
        cleaned = local_cleanup(raw_segments)
        assert [(c.start, c.end) for c in cleaned] == [(s.start, s.end) for s in raw_segments]
        assert [c.original_text for c in cleaned] == [s.text for s in raw_segments]
        assert [c.cleaned_text for c in cleaned] == [
            "I think, it works.",
            "We deploy it?",
            "That's the whole idea.",
        ]


class TestAcceptAIOutput:
    def test_uses_input_timestamps(self, raw_segments):
        reply = json.dumps([
            {"id": i + 1, "start": 99, "end": 100, "cleanedText": " text "}
            for i in range(len(raw_segments))
        ])
        cleaned = accept_ai_output(raw_segments, reply)
        assert [(c.start, c.end) for c in cleaned] == [(s.start, s.end) for s in raw_segments]
        assert all(c.cleaned_text == "text" for c in cleaned)
        assert cleaned[0].original_text == raw_segments[0].text

    def test_count_mismatch(self, raw_segments):
        with pytest.raises(CleanupError, match="2 segments for 3"):
            accept_ai_output(raw_segments, ai_array(raw_segments[:2]))

    def test_wrong_id(self, raw_segments):
        items = json.loads(ai_array(raw_segments))
        items[1]["id"] = 7
        with pytest.raises(CleanupError, match="id 7"):
            accept_ai_output(raw_segments, json.dumps(items))

    def test_missing_cleaned_text(self, raw_segments):
        items = json.loads(ai_array(raw_segments))
        del items[2]["cleanedText"]
        with pytest.raises(CleanupError, match="cleanedText"):
            accept_ai_output(raw_segments, json.dumps(items))

    def test_non_numeric_timestamp(self, raw_segments):
        items = json.loads(ai_array(raw_segments))
        items[0]["start"] = "0.0"
        with pytest.raises(CleanupError, match="numeric start"):
            accept_ai_output(raw_segments, json.dumps(items))

    def test_non_object_item(self, raw_segments):
        with pytest.raises(CleanupError, match="not an object"):
            accept_ai_output(raw_segments, '["a", "b", "c"]')


class TestGeminiClient:
    @pytest.mark.asyncio
    async def test_request_shape(self, settings):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["key"] = request.headers["x-goog-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=gemini_reply("[]"))

        async with mock_client(handler) as client:
            text = await generate_content("clean this", settings, client)

        assert text == "[]"
        assert seen["url"].endswith("/models/gemini-test:generateContent")
        assert "key=" not in seen["url"]
        assert seen["key"] == "gm-test"
        assert seen["body"]["contents"][0]["parts"][0]["text"] == "clean this"
        assert seen["body"]["generationConfig"] == {
            "temperature": 0.1, "topK": 1, "topP": 1.0, "maxOutputTokens": 8192,
        }

    def test_candidate_text_joins_parts(self):
        data = {"candidates": [{"content": {"parts": [{"text": "[1"}, {"text": "]"}]}}]}
        assert candidate_text(data) == "[1]"

    def test_candidate_text_blocked(self):
        with pytest.raises(CleanupError, match="SAFETY"):
            candidate_text({"promptFeedback": {"blockReason": "SAFETY"}})

    def test_candidate_text_empty(self):
        with pytest.raises(CleanupError, match="empty"):
            candidate_text(gemini_reply("   "))


class TestCleanSegments:
    @pytest.mark.asyncio
    async def test_ai_tier(self, raw_segments, settings):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=gemini_reply(ai_array(raw_segments)))

        async with mock_client(handler) as client:
            outcome = await clean_segments(raw_segments, settings, client)

        assert len(calls) == 1
        assert outcome.method is CleanupMethod.ai
        assert [c.cleaned_text for c in outcome.segments] == ["Clean 1", "Clean 2", "Clean 3"]
        assert outcome.fallback_reason == ""

    @pytest.mark.parametrize("response", [
        httpx.Response(500, json={"error": {"message": "boom"}}),
        httpx.Response(429, text="rate limited"),
        httpx.Response(200, json=gemini_reply("I cannot help with that.")),
        httpx.Response(200, json=gemini_reply("[]")),
        httpx.Response(200, json=gemini_reply('{"not": "an array"}')),
        httpx.Response(200, json=gemini_reply('[{"id": 1, "start": 0, "end": 2.5}]')),
        httpx.Response(200, json={"candidates": []}),
        httpx.Response(200, text="<html>not json</html>"),
    ])
    @pytest.mark.asyncio
    async def test_falls_back_for_every_failure(self, raw_segments, settings, response):
        async with mock_client(lambda request: response) as client:
            outcome = await clean_segments(raw_segments, settings, client)

        assert outcome.method is CleanupMethod.local
        assert outcome.fallback_reason
        assert len(outcome.segments) == len(raw_segments)
        assert [(c.start, c.end) for c in outcome.segments] == [(s.start, s.end) for s in raw_segments]
        assert outcome.segments[0].cleaned_text == "I think, it works."

    @pytest.mark.asyncio
    async def test_falls_back_on_network_error(self, raw_segments, settings):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with mock_client(handler) as client:
            attempt = await attempt_ai_cleanup(raw_segments, settings, client)
            outcome = await clean_segments(raw_segments, settings, client)

        assert not attempt.succeeded
        assert "request failed" in attempt.reason
        assert outcome.method is CleanupMethod.local

    @pytest.mark.asyncio
    async def test_falls_back_on_timeout(self, raw_segments, settings):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        async with mock_client(handler) as client:
            attempt = await attempt_ai_cleanup(raw_segments, settings, client)

        assert "timed out" in attempt.reason

    @pytest.mark.asyncio
    async def test_empty_input_skips_model(self, settings):
        def handler(request):
            raise AssertionError("model should not be called")

        async with mock_client(handler) as client:
            outcome = await clean_segments([], settings, client)

        assert outcome.segments == []
        assert outcome.method is CleanupMethod.local

    @pytest.mark.asyncio
    async def test_no_partial_acceptance(self, raw_segments, settings):
        items = json.loads(ai_array(raw_segments))
        items[2] = {"id": 3, "start": 6.1, "end": 9.0, "cleanedText": None}

        async with mock_client(
            lambda request: httpx.Response(200, json=gemini_reply(json.dumps(items)))
        ) as client:
            outcome = await clean_segments(raw_segments, settings, client)

        assert outcome.method is CleanupMethod.local
        assert "Clean 1" not in [c.cleaned_text for c in outcome.segments]
