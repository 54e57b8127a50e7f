"""
Optima AI - Data Stream
=======================
Writer for the client-visible delta stream and its line-oriented wire format.

Each part is one line: ``<code>:<json>\\n``.

    0  text delta          (JSON string)
    g  reasoning delta     (JSON string)
    2  data parts          (JSON array)
    3  error               (JSON string)
    9  tool call           ({toolCallId, toolName, args})
    a  tool result         ({toolCallId, result})
    e  finish step         ({finishReason, isContinued})
    d  finish message      ({finishReason})
"""

import asyncio
import json
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

from logging_config import get_logger

logger = get_logger(__name__)

DATA_STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"
DATA_STREAM_HEADERS = {"X-Vercel-AI-Data-Stream": "v1", "Cache-Control": "no-cache"}

_END = object()


def format_part(code: str, value: Any) -> str:
    """Encode a single stream part."""
    return f"{code}:{json.dumps(value, separators=(',', ':'), ensure_ascii=False)}\n"


def parse_part(line: str) -> tuple[str, Any]:
    """Decode a single stream part (inverse of format_part)."""
    code, _, payload = line.rstrip("\n").partition(":")
    return code, json.loads(payload)


class DataStreamWriter:
    """
    Collects stream parts and forwards them to a queue consumer.

    Data parts written through ``write_data`` are also kept in ``data_parts``
    so callers without a live consumer can inspect what was sent.
    """

    def __init__(self, queue: Optional[asyncio.Queue] = None):
        self._queue = queue
        self.data_parts: list[dict[str, Any]] = []
        self.closed = False

    def _emit(self, code: str, value: Any) -> None:
        if self.closed:
            logger.debug("Dropping part written after stream close", code=code)
            return
        if self._queue is not None:
            self._queue.put_nowait(format_part(code, value))

    def write_data(self, part: dict[str, Any]) -> None:
        """Write a data part such as ``{"type": "svg-delta", "content": "..."}``."""
        self.data_parts.append(part)
        self._emit("2", [part])

    def write_text(self, delta: str) -> None:
        if delta:
            self._emit("0", delta)

    def write_reasoning(self, delta: str) -> None:
        if delta:
            self._emit("g", delta)

    def write_error(self, message: str) -> None:
        self._emit("3", message)

    def write_tool_call(self, tool_call_id: str, tool_name: str, args: dict[str, Any]) -> None:
        self._emit("9", {"toolCallId": tool_call_id, "toolName": tool_name, "args": args})

    def write_tool_result(self, tool_call_id: str, result: Any) -> None:
        self._emit("a", {"toolCallId": tool_call_id, "result": result})

    def finish_step(self, finish_reason: str, is_continued: bool = False) -> None:
        self._emit("e", {"finishReason": finish_reason, "isContinued": is_continued})

    def finish(self, finish_reason: str = "stop") -> None:
        self._emit("d", {"finishReason": finish_reason})

    def parts_of_type(self, part_type: str) -> list[dict[str, Any]]:
        return [p for p in self.data_parts if p.get("type") == part_type]


async def create_data_stream(
    execute: Callable[[DataStreamWriter], Awaitable[None]],
    on_error: Optional[Callable[[Exception], str]] = None,
) -> AsyncIterator[str]:
    """
    Run ``execute`` concurrently and yield encoded stream lines as they arrive.

    An exception raised by ``execute`` becomes a single error part carrying
    ``on_error(exc)`` (or a generic message) and ends the stream.

    Args:
        execute: Coroutine function producing parts through the writer
        on_error: Maps an exception to the client-visible error message

    Yields:
        Encoded parts, one line each
    """
    queue: asyncio.Queue = asyncio.Queue()
    writer = DataStreamWriter(queue)

    async def runner() -> None:
        try:
            await execute(writer)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception("Data stream producer failed", error=str(e))
            writer.write_error(on_error(e) if on_error else "An error occurred.")
        finally:
            writer.closed = True
            queue.put_nowait(_END)

    task = asyncio.create_task(runner())

    try:
        while True:
            item = await queue.get()
            if item is _END:
                break
            yield item
    finally:
        # Client disconnected mid-stream
        if not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
