"""
Optima AI - LLM Factory
=======================
Async client for OpenAI-compatible chat completion APIs with streaming,
reasoning extraction, partial-object streaming and tool calls.
"""

import json
import re
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from exceptions import ProviderBusyError, ProviderError
from logging_config import get_logger
import metrics as app_metrics

logger = get_logger(__name__)


T = TypeVar("T", bound=BaseModel)

BUSY_STATUSES = (429, 503)
MAX_ATTEMPTS = 3


# =============================================================================
# Stream Events
# =============================================================================

@dataclass
class StreamDelta:
    """Incremental output on the ``text`` or ``reasoning`` channel."""

    type: str
    text: str


@dataclass
class ToolCall:
    id: str
    name: str
    args: Dict[str, Any]


@dataclass
class StepFinish:
    finish_reason: str
    usage: Dict[str, Any] = field(default_factory=dict)


ChatEvent = Union[StreamDelta, ToolCall, StepFinish]


# =============================================================================
# Reasoning Extraction
# =============================================================================

class ThinkTagExtractor:
    """
    Splits a text stream into text and reasoning around ``<think>`` tags.

    Tags may be split across chunks; a possible partial tag at the end of a
    chunk is held back until the next chunk arrives.
    """

    OPEN_TAG = "<think>"
    CLOSE_TAG = "</think>"

    def __init__(self):
        self._buffer = ""
        self._in_reasoning = False

    @staticmethod
    def _partial_tag_length(buffer: str, tag: str) -> int:
        for size in range(min(len(tag) - 1, len(buffer)), 0, -1):
            if buffer.endswith(tag[:size]):
                return size
        return 0

    def _channel(self) -> str:
        return "reasoning" if self._in_reasoning else "text"

    def feed(self, chunk: str) -> List[StreamDelta]:
        self._buffer += chunk
        deltas: List[StreamDelta] = []

        while self._buffer:
            tag = self.CLOSE_TAG if self._in_reasoning else self.OPEN_TAG
            index = self._buffer.find(tag)
            if index >= 0:
                if index:
                    deltas.append(StreamDelta(self._channel(), self._buffer[:index]))
                self._buffer = self._buffer[index + len(tag):]
                self._in_reasoning = not self._in_reasoning
                continue

            held = self._partial_tag_length(self._buffer, tag)
            ready = self._buffer[: len(self._buffer) - held]
            if ready:
                deltas.append(StreamDelta(self._channel(), ready))
            self._buffer = self._buffer[len(self._buffer) - held:]
            break

        return deltas

    def flush(self) -> List[StreamDelta]:
        if not self._buffer:
            return []
        delta = StreamDelta(self._channel(), self._buffer)
        self._buffer = ""
        return [delta]


def strip_think_tags(text: str) -> str:
    return re.sub(r"<think>.*?(</think>|$)", "", text, flags=re.DOTALL).strip()


# =============================================================================
# Partial JSON
# =============================================================================

REPLACEMENT_CHARACTER = "\ufffd"

_SIMPLE_ESCAPES = {
    '"': '"', "\\": "\\", "/": "/",
    "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t",
}


def extract_partial_string_field(buffer: str, field_name: str) -> Optional[str]:
    """
    Value decoded so far of string property ``field_name`` in incomplete JSON.

    Returns None until the opening quote of the value has been seen. Escape
    sequences cut off at the end of ``buffer`` are not decoded yet, so
    successive calls on a growing buffer return growing prefixes.
    """
    match = re.search(r'"%s"\s*:\s*"' % re.escape(field_name), buffer)
    if not match:
        return None

    chars: List[str] = []
    i = match.end()
    n = len(buffer)
    while i < n:
        ch = buffer[i]
        if ch == '"':
            break
        if ch != "\\":
            chars.append(ch)
            i += 1
            continue

        if i + 1 >= n:
            break
        escape = buffer[i + 1]
        if escape != "u":
            chars.append(_SIMPLE_ESCAPES.get(escape, escape))
            i += 2
            continue

        digits = buffer[i + 2:i + 6]
        if len(digits) < 4:
            break
        try:
            code = int(digits, 16)
        except ValueError:
            break
        i += 6

        # UTF-16 surrogate pair; unpaired halves decode as U+FFFD
        if 0xD800 <= code <= 0xDBFF:
            rest = buffer[i:i + 6]
            if rest and not "\\u".startswith(rest[:2]):
                chars.append(REPLACEMENT_CHARACTER)
                continue
            if len(rest) < 6:
                break
            try:
                low = int(rest[2:], 16)
            except ValueError:
                low = None
            if low is not None and 0xDC00 <= low <= 0xDFFF:
                code = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                i += 6
            else:
                chars.append(REPLACEMENT_CHARACTER)
                continue
        elif 0xDC00 <= code <= 0xDFFF:
            code = ord(REPLACEMENT_CHARACTER)
        chars.append(chr(code))

    return "".join(chars)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    clean = text.strip()
    if clean.startswith("```"):
        clean = re.sub(r"^```[a-zA-Z0-9_-]*\s*\n?", "", clean)
    if clean.endswith("```"):
        clean = clean[:-3]
    return clean.strip()


# =============================================================================
# Language Model Client
# =============================================================================

def _log_retry(retry_state) -> None:
    logger.warning(
        "Provider busy, retrying",
        attempt=retry_state.attempt_number,
        max_attempts=MAX_ATTEMPTS,
        sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
    )


class LanguageModelClient:
    """
    Async client for one model behind an OpenAI-compatible API.

    Features:
    - Text generation, streamed or complete
    - ``<think>`` reasoning extraction for reasoning models
    - Structured output validated with Pydantic
    - Partial object streaming of a single string property
    - Tool-calling chat steps
    - Retry with exponential backoff on 429/503

    Example:
        ```python
        async with registry.language_model("artifact-model") as llm:
            async for delta in llm.stream_text("Write a haiku"):
                print(delta.text)
        ```
    """

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        provider: str = "openai-compatible",
        reasoning: bool = False,
        extra_headers: Optional[Dict[str, str]] = None,
        timeout: float = 300.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.provider = provider
        self.reasoning = reasoning
        self._api_key = api_key
        self._extra_headers = extra_headers or {}
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "LanguageModelClient":
        self._get_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Content-Type": "application/json", **self._extra_headers}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                headers=headers,
                transport=self._transport,
            )
        return self._client

    def _error(self, message: str, status: Optional[int] = None, original_error: Optional[Exception] = None) -> ProviderError:
        return ProviderError(
            message,
            provider=self.provider,
            model=self.model,
            status=status,
            original_error=original_error,
        )

    def _build_body(
        self,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int],
        temperature: Optional[float],
        stream: bool,
        json_mode: bool = False,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"model": self.model, "messages": messages, "stream": stream}
        if max_tokens is not None:
            body["max_tokens"] = max_tokens
        if temperature is not None:
            body["temperature"] = temperature
        if json_mode:
            body["response_format"] = {"type": "json_object"}
        if tools:
            body["tools"] = tools
        return body

    @staticmethod
    def _messages(prompt: Optional[str], system_prompt: Optional[str], messages: Optional[List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
        built: List[Dict[str, Any]] = []
        if system_prompt:
            built.append({"role": "system", "content": system_prompt})
        if messages:
            built.extend(messages)
        if prompt is not None:
            built.append({"role": "user", "content": prompt})
        return built

    def _check_key(self) -> None:
        if not self._api_key:
            logger.warning("Missing API key", provider=self.provider)
            raise self._error(f"Missing API key for provider {self.provider}")

    async def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code in BUSY_STATUSES:
            await response.aclose()
            raise ProviderBusyError(
                f"{self.provider} is busy (HTTP {response.status_code})",
                provider=self.provider,
                model=self.model,
                status=response.status_code,
            )
        if response.status_code >= 400:
            detail = (await response.aread()).decode("utf-8", errors="replace")[:500]
            await response.aclose()
            logger.error(
                "Provider request failed",
                provider=self.provider,
                model=self.model,
                status=response.status_code,
                detail=detail,
            )
            raise self._error(
                f"{self.provider} request failed with HTTP {response.status_code}",
                status=response.status_code,
            )

    @retry(
        retry=retry_if_exception_type(ProviderBusyError),
        stop=stop_after_attempt(MAX_ATTEMPTS),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=8),
        before_sleep=_log_retry,
        reraise=True,
    )
    async def _send(self, body: Dict[str, Any], stream: bool) -> httpx.Response:
        """POST to /chat/completions; busy answers are retried."""
        client = self._get_client()
        request = client.build_request("POST", "/chat/completions", json=body)
        try:
            response = await client.send(request, stream=stream)
        except httpx.RequestError as e:
            logger.error("Provider connection error", provider=self.provider, error=str(e))
            raise self._error(f"Connection error: {e}", original_error=e) from e

        await self._raise_for_status(response)
        return response

    async def _iter_sse(self, response: httpx.Response) -> AsyncIterator[Dict[str, Any]]:
        """Decode ``data:`` lines of a server-sent-events response."""
        try:
            async for line in response.aiter_lines():
                line = line.strip()
                if not line or line.startswith(":") or not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                try:
                    yield json.loads(data)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed stream chunk", provider=self.provider, chunk=data[:200])
        except httpx.RequestError as e:
            raise self._error(f"Stream interrupted: {e}", original_error=e) from e
        finally:
            await response.aclose()

    # =========================================================================
    # Generation
    # =========================================================================

    async def generate(
        self,
        prompt: Optional[str] = None,
        system_prompt: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        max_tokens: Optional[int] = 2048,
        temperature: Optional[float] = 0.7,
        json_mode: bool = False,
    ) -> tuple[str, dict]:
        """
        Generate a complete response.

        Returns:
            Tuple of (generated_text, usage_stats). Reasoning is removed from
            the text of reasoning models.

        Raises:
            ProviderBusyError: Still busy after all attempts
            ProviderError: Other provider failures
        """
        self._check_key()
        start_time = time.perf_counter()
        app_metrics.llm_requests_total.labels(provider=self.provider, mode="generate").inc()

        body = self._build_body(
            self._messages(prompt, system_prompt, messages),
            max_tokens, temperature, stream=False, json_mode=json_mode,
        )
        try:
            response = await self._send(body, stream=False)
            data = response.json()
            text = data["choices"][0]["message"].get("content") or ""
        except ProviderError:
            app_metrics.llm_failures_total.labels(provider=self.provider).inc()
            raise
        except (KeyError, IndexError, ValueError) as e:
            app_metrics.llm_failures_total.labels(provider=self.provider).inc()
            raise self._error(f"Malformed completion payload: {e}", original_error=e) from e

        usage = data.get("usage") or {}
        latency = time.perf_counter() - start_time
        app_metrics.llm_request_duration_seconds.labels(provider=self.provider).observe(latency)
        logger.info(
            "LLM generation complete",
            provider=self.provider,
            model=self.model,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=round(latency * 1000, 2),
        )

        if self.reasoning:
            text = strip_think_tags(text)
        return text, usage

    async def stream_text(
        self,
        prompt: Optional[str] = None,
        system_prompt: Optional[str] = None,
        messages: Optional[List[Dict[str, Any]]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        json_mode: bool = False,
    ) -> AsyncIterator[StreamDelta]:
        """
        Stream a response as text and reasoning deltas.

        Yields:
            StreamDelta items in arrival order
        """
        async for event in self._stream(
            self._messages(prompt, system_prompt, messages),
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=json_mode,
            mode="stream",
        ):
            if isinstance(event, StreamDelta):
                yield event

    async def chat_completion_stream(
        self,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[ChatEvent]:
        """
        Run one chat step.

        Yields:
            StreamDelta items while generating, then one ToolCall per
            requested tool, then a single StepFinish
        """
        async for event in self._stream(
            messages, max_tokens=max_tokens, temperature=temperature, tools=tools, mode="chat",
        ):
            yield event

    async def _stream(
        self,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int],
        temperature: Optional[float],
        mode: str,
        json_mode: bool = False,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> AsyncIterator[ChatEvent]:
        self._check_key()
        start_time = time.perf_counter()
        app_metrics.llm_requests_total.labels(provider=self.provider, mode=mode).inc()

        body = self._build_body(messages, max_tokens, temperature, stream=True, json_mode=json_mode, tools=tools)
        extractor = ThinkTagExtractor() if self.reasoning else None
        pending_calls: Dict[int, Dict[str, str]] = {}
        finish_reason = "stop"
        usage: Dict[str, Any] = {}

        try:
            response = await self._send(body, stream=True)
            async for chunk in self._iter_sse(response):
                if chunk.get("usage"):
                    usage = chunk["usage"]
                choices = chunk.get("choices") or []
                if not choices:
                    continue
                choice = choices[0]
                delta = choice.get("delta") or {}

                reasoning = delta.get("reasoning_content") or delta.get("reasoning")
                if reasoning:
                    yield StreamDelta("reasoning", reasoning)

                content = delta.get("content")
                if content:
                    if extractor:
                        for part in extractor.feed(content):
                            yield part
                    else:
                        yield StreamDelta("text", content)

                for call in delta.get("tool_calls") or []:
                    slot = pending_calls.setdefault(call.get("index", 0), {"id": "", "name": "", "arguments": ""})
                    if call.get("id"):
                        slot["id"] = call["id"]
                    function = call.get("function") or {}
                    if function.get("name"):
                        slot["name"] = function["name"]
                    if function.get("arguments"):
                        slot["arguments"] += function["arguments"]

                if choice.get("finish_reason"):
                    finish_reason = choice["finish_reason"]
        except ProviderError:
            app_metrics.llm_failures_total.labels(provider=self.provider).inc()
            raise

        if extractor:
            for part in extractor.flush():
                yield part

        for index in sorted(pending_calls):
            slot = pending_calls[index]
            try:
                args = json.loads(slot["arguments"]) if slot["arguments"] else {}
            except json.JSONDecodeError:
                logger.warning("Tool call arguments are not valid JSON", tool=slot["name"])
                args = {}
            yield ToolCall(id=slot["id"] or f"call_{uuid.uuid4().hex[:24]}", name=slot["name"], args=args)

        latency = time.perf_counter() - start_time
        app_metrics.llm_request_duration_seconds.labels(provider=self.provider).observe(latency)
        logger.info(
            "LLM stream complete",
            provider=self.provider,
            model=self.model,
            finish_reason=finish_reason,
            tool_calls=len(pending_calls),
            latency_ms=round(latency * 1000, 2),
        )
        yield StepFinish(finish_reason=finish_reason, usage=usage)

    # =========================================================================
    # Structured Output
    # =========================================================================

    async def generate_structured(
        self,
        prompt: str,
        pydantic_model: Type[T],
        system_prompt: Optional[str] = None,
        max_tokens: int = 4096,
    ) -> T:
        """
        Generate structured output validated against a Pydantic model.

        The JSON schema is appended to the system prompt.

        Raises:
            ProviderError: Invalid JSON or schema validation failure
        """
        schema_str = json.dumps(pydantic_model.model_json_schema(), indent=2)
        full_system_prompt = (
            f"{system_prompt or 'You are a data extraction engine.'}\n\n"
            f"Output MUST be valid JSON adhering to this schema:\n{schema_str}\n"
            f"Return ONLY the JSON object, no other text."
        )

        generated_text, _ = await self.generate(
            prompt=prompt,
            system_prompt=full_system_prompt,
            max_tokens=max_tokens,
            temperature=0.1,
            json_mode=True,
        )

        try:
            return pydantic_model.model_validate(json.loads(strip_code_fences(generated_text)))
        except json.JSONDecodeError as e:
            logger.error("LLM returned invalid JSON", error=str(e), response=generated_text[:500])
            raise self._error(f"Invalid JSON from model: {e}", original_error=e) from e
        except ValueError as e:
            logger.error("Structured output failed validation", error=str(e))
            raise self._error(f"Schema validation failed: {e}", original_error=e) from e

    async def stream_object(
        self,
        prompt: str,
        field_name: str,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """
        Stream ``{"<field_name>": "..."}`` and yield the property as it grows.

        Each yielded value extends the previous one. After the stream ends the
        complete JSON is parsed once more and, when it yields a different
        final value, that value is yielded last.
        """
        instruction = (
            f'Respond with a single JSON object of the form {{"{field_name}": string}} '
            f"and nothing else."
        )
        full_system_prompt = f"{system_prompt}\n\n{instruction}" if system_prompt else instruction

        buffer = ""
        last = ""
        async for delta in self.stream_text(
            prompt=prompt,
            system_prompt=full_system_prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            json_mode=True,
        ):
            if delta.type != "text":
                continue
            buffer += delta.text
            value = extract_partial_string_field(buffer, field_name)
            if value is not None and len(value) > len(last):
                last = value
                yield value

        try:
            final = json.loads(strip_code_fences(buffer)).get(field_name)
        except (json.JSONDecodeError, AttributeError):
            final = None
        if isinstance(final, str) and final != last and final.startswith(last):
            yield final
