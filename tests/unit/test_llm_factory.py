"""
Unit Tests - Language Model Client
==================================
Reasoning extraction, partial JSON decoding and the OpenAI-compatible
client against a mock transport.
"""

import json

import httpx
import pytest
from pydantic import BaseModel

from exceptions import ProviderBusyError, ProviderError
from services.llm_factory import (
    LanguageModelClient,
    StepFinish,
    StreamDelta,
    ThinkTagExtractor,
    ToolCall,
    extract_partial_string_field,
    strip_code_fences,
    strip_think_tags,
)
from fakes import (
    FakeUpstream,
    completion_response,
    sse_chunk,
    sse_response,
    text_stream,
    tool_call_stream,
)


def make_client(upstream: FakeUpstream, reasoning: bool = False, api_key: str = "test-key") -> LanguageModelClient:
    return LanguageModelClient(
        base_url="https://llm.test/v1",
        model="test-model",
        api_key=api_key,
        provider="groq",
        reasoning=reasoning,
        transport=upstream.transport,
    )


def merged(deltas) -> dict:
    """Concatenate deltas per channel."""
    out = {"text": "", "reasoning": ""}
    for delta in deltas:
        out[delta.type] += delta.text
    return out


class TestThinkTagExtractor:

    @pytest.mark.unit
    def test_splits_reasoning_from_text(self):
        extractor = ThinkTagExtractor()
        deltas = extractor.feed("<think>ponder</think>Answer") + extractor.flush()

        assert merged(deltas) == {"text": "Answer", "reasoning": "ponder"}

    @pytest.mark.unit
    def test_tags_split_across_chunks(self):
        extractor = ThinkTagExtractor()
        deltas = []
        for chunk in ["<thi", "nk>deep ", "thought</th", "ink>", "Final"]:
            deltas += extractor.feed(chunk)
        deltas += extractor.flush()

        assert merged(deltas) == {"text": "Final", "reasoning": "deep thought"}

    @pytest.mark.unit
    def test_angle_bracket_that_is_not_a_tag_is_released(self):
        extractor = ThinkTagExtractor()
        deltas = extractor.feed("a <b") + extractor.feed(" c") + extractor.flush()

        assert merged(deltas)["text"] == "a <b c"

    @pytest.mark.unit
    def test_strip_think_tags(self):
        assert strip_think_tags("<think>hidden</think>\nVisible") == "Visible"
        assert strip_think_tags("<think>never closed") == ""


class TestPartialJson:

    @pytest.mark.unit
    def test_none_before_value_starts(self):
        assert extract_partial_string_field('{"sv', "svg") is None
        assert extract_partial_string_field('{"svg": ', "svg") is None

    @pytest.mark.unit
    def test_growing_prefixes(self):
        full = json.dumps({"svg": '<svg width="10">\n</svg>'})
        values = [extract_partial_string_field(full[:i], "svg") for i in range(len(full) + 1)]
        seen = [v for v in values if v is not None]

        for previous, current in zip(seen, seen[1:]):
            assert current.startswith(previous)
        assert seen[-1] == '<svg width="10">\n</svg>'

    @pytest.mark.unit
    def test_incomplete_escape_is_held_back(self):
        assert extract_partial_string_field('{"code": "a\\', "code") == "a"
        assert extract_partial_string_field('{"code": "a\\u00', "code") == "a"
        assert extract_partial_string_field('{"code": "a\\u00e9', "code") == "aé"

    @pytest.mark.unit
    def test_surrogate_pair(self):
        encoded = json.dumps({"text": "smile 😀"})
        assert extract_partial_string_field(encoded, "text") == "smile 😀"

    @pytest.mark.unit
    def test_high_surrogate_waits_for_its_pair(self):
        assert extract_partial_string_field('{"text": "a\\ud83d', "text") == "a"
        assert extract_partial_string_field('{"text": "a\\ud83d\\', "text") == "a"
        assert extract_partial_string_field('{"text": "a\\ud83d\\ude', "text") == "a"

    @pytest.mark.unit
    def test_unpaired_surrogates_become_replacement_characters(self):
        assert extract_partial_string_field('{"text": "a\\ud83dbc"}', "text") == "a\ufffdbc"
        assert extract_partial_string_field('{"text": "\\ud83d\\n"}', "text") == "\ufffd\n"
        assert extract_partial_string_field('{"text": "\\ude00x"}', "text") == "\ufffdx"

        value = extract_partial_string_field('{"text": "\\ud83d\\u0041"}', "text")
        assert value == "\ufffdA"
        assert value.encode("utf-8") == b"\xef\xbf\xbdA"

    @pytest.mark.unit
    def test_unpaired_surrogate_does_not_stall_deltas(self):
        full = '{"text": "x\\ud83dyz and more"}'
        values = [extract_partial_string_field(full[:i], "text") for i in range(len(full) + 1)]
        seen = [v for v in values if v is not None]

        for previous, current in zip(seen, seen[1:]):
            assert current.startswith(previous)
        assert seen[-1] == "x\ufffdyz and more"

    @pytest.mark.unit
    def test_strip_code_fences(self):
        assert strip_code_fences("```html\n<p>x</p>\n```") == "<p>x</p>"
        assert strip_code_fences("  plain  ") == "plain"


class TestGenerate:

    @pytest.mark.unit
    async def test_generate_returns_text_and_usage(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(completion_response("Hello there"))

        async with make_client(upstream) as llm:
            text, usage = await llm.generate(prompt="Hi", system_prompt="Be brief", max_tokens=50)

        assert text == "Hello there"
        assert usage["completion_tokens"] == 34
        body = upstream.chat_requests()[0]
        assert body["model"] == "test-model"
        assert body["stream"] is False
        assert body["max_tokens"] == 50
        assert body["messages"] == [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hi"},
        ]
        assert upstream.requests[0].headers["authorization"] == "Bearer test-key"

    @pytest.mark.unit
    async def test_reasoning_model_output_has_think_removed(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(completion_response("<think>hmm</think>Result"))

        async with make_client(upstream, reasoning=True) as llm:
            text, _ = await llm.generate(prompt="q")

        assert text == "Result"

    @pytest.mark.unit
    async def test_busy_provider_is_retried(self):
        upstream = FakeUpstream()
        upstream.chat_responses += [
            httpx.Response(429, json={"error": "slow down"}),
            completion_response("finally"),
        ]

        async with make_client(upstream) as llm:
            text, _ = await llm.generate(prompt="q")

        assert text == "finally"
        assert len(upstream.chat_requests()) == 2

    @pytest.mark.unit
    async def test_busy_provider_gives_up_after_three_attempts(self):
        upstream = FakeUpstream()
        upstream.chat_responses += [httpx.Response(503) for _ in range(3)]

        async with make_client(upstream) as llm:
            with pytest.raises(ProviderBusyError):
                await llm.generate(prompt="q")

        assert len(upstream.chat_requests()) == 3

    @pytest.mark.unit
    async def test_client_errors_are_not_retried(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(httpx.Response(400, json={"error": "bad"}))

        async with make_client(upstream) as llm:
            with pytest.raises(ProviderError) as exc_info:
                await llm.generate(prompt="q")

        assert not isinstance(exc_info.value, ProviderBusyError)
        assert exc_info.value.context["status"] == 400
        assert len(upstream.chat_requests()) == 1

    @pytest.mark.unit
    async def test_missing_key_fails_without_request(self):
        upstream = FakeUpstream()

        async with make_client(upstream, api_key=None) as llm:
            with pytest.raises(ProviderError, match="Missing API key for provider groq"):
                await llm.generate(prompt="q")

        assert upstream.requests == []

    @pytest.mark.unit
    async def test_generate_structured(self):
        class Title(BaseModel):
            title: str

        upstream = FakeUpstream()
        upstream.chat_responses.append(completion_response('```json\n{"title": "Launch plan"}\n```'))

        async with make_client(upstream) as llm:
            result = await llm.generate_structured("Name it", Title)

        assert result == Title(title="Launch plan")
        assert upstream.chat_requests()[0]["response_format"] == {"type": "json_object"}


class TestStreaming:

    @pytest.mark.unit
    async def test_stream_text(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(text_stream("Hel", "lo"))

        async with make_client(upstream) as llm:
            deltas = [d async for d in llm.stream_text(prompt="q")]

        assert deltas == [StreamDelta("text", "Hel"), StreamDelta("text", "lo")]
        assert upstream.chat_requests()[0]["stream"] is True

    @pytest.mark.unit
    async def test_reasoning_field_and_think_tags(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(sse_response([
            sse_chunk(reasoning="native "),
            sse_chunk(content="<think>tagged</think>"),
            sse_chunk(content="answer"),
            sse_chunk(finish_reason="stop"),
        ]))

        async with make_client(upstream, reasoning=True) as llm:
            deltas = [d async for d in llm.stream_text(prompt="q")]

        assert merged(deltas) == {"text": "answer", "reasoning": "native tagged"}

    @pytest.mark.unit
    async def test_chat_step_with_tool_call(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(
            tool_call_stream("call_1", "createDocument", {"title": "Poem", "kind": "text"})
        )

        async with make_client(upstream) as llm:
            events = [e async for e in llm.chat_completion_stream([{"role": "user", "content": "q"}], tools=[{"x": 1}])]

        assert events[0] == ToolCall(id="call_1", name="createDocument", args={"title": "Poem", "kind": "text"})
        assert isinstance(events[-1], StepFinish)
        assert events[-1].finish_reason == "tool_calls"
        assert upstream.chat_requests()[0]["tools"] == [{"x": 1}]

    @pytest.mark.unit
    async def test_stream_object_yields_growing_values(self):
        upstream = FakeUpstream()
        upstream.chat_responses.append(text_stream('{"svg": "<svg', '>', '</svg>', '"}'))

        async with make_client(upstream) as llm:
            values = [v async for v in llm.stream_object("Draw", "svg")]

        assert values == ["<svg", "<svg>", "<svg></svg>"]
        system = upstream.chat_requests()[0]["messages"][0]["content"]
        assert '{"svg": string}' in system
