"""Provider chunk normalization.

Turns LangChain ``AIMessageChunk``s from ``llm.astream()`` into the four
:mod:`~toolstream.streaming.events` the decoder consumes. Two chunk shapes
are understood:

- Anthropic content blocks: ``content`` is a list of ``text``,
  ``tool_use`` and ``input_json_delta`` blocks, and the tool call is closed
  by a chunk whose ``stop_reason`` is ``tool_use``.
- OpenAI-style ``tool_call_chunks`` merged by index, closed by a
  ``finish_reason`` of ``tool_calls``. Parallel calls are serialized: when
  a new index starts, a completion event for the previous one is emitted
  first.

Already-normalized events pass through untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from toolstream.streaming.events import (
    ArgumentDelta,
    InvocationStarted,
    StreamEvent,
    TextDelta,
    TurnEnded,
)

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, AsyncIterable

logger = logging.getLogger(__name__)

_EVENT_TYPES = (TextDelta, InvocationStarted, ArgumentDelta, TurnEnded)
_TOOL_BLOCK_TYPES = frozenset({"tool_use", "input_json_delta"})


def extract_stop_reason(chunk: Any) -> str | None:
    """Find the provider stop reason on a chunk, if any.

    LangChain versions differ on where it lives: ``additional_kwargs`` or
    ``response_metadata``, under ``stop_reason`` or ``finish_reason``.
    """
    for attr in ("additional_kwargs", "response_metadata"):
        meta = getattr(chunk, attr, None) or {}
        for key in ("stop_reason", "finish_reason"):
            value = meta.get(key)
            if value:
                return str(value)
    return None


def _block_events(blocks: list[Any]) -> list[StreamEvent]:
    events: list[StreamEvent] = []
    for block in blocks:
        if isinstance(block, str):
            if block:
                events.append(TextDelta(block))
            continue
        if not isinstance(block, dict):
            logger.debug("Ignoring content block of type %s", type(block).__name__)
            continue

        block_type = block.get("type")
        if block_type == "text":
            text = block.get("text") or ""
            if text:
                events.append(TextDelta(text))
        elif block_type == "tool_use":
            # Some adapter versions relabel argument deltas as nameless tool_use blocks
            if block.get("name"):
                events.append(
                    InvocationStarted(name=block["name"], correlation_id=block.get("id") or None)
                )
            if block.get("partial_json"):
                events.append(ArgumentDelta(str(block["partial_json"])))
        elif block_type == "input_json_delta":
            # Older adapters used "input", current ones "partial_json"
            fragment = block.get("partial_json")
            if fragment is None:
                fragment = block.get("input")
            if fragment:
                events.append(ArgumentDelta(str(fragment)))
        else:
            logger.debug("Ignoring unhandled content block type %r", block_type)
    return events


class ChunkNormalizer:
    """Stateful translator from provider chunks to stream events.

    State is limited to the index of the open OpenAI-style tool call, so one
    normalizer must be used per stream.
    """

    def __init__(self) -> None:
        self._open_tool_index: int | None = None

    def feed(self, chunk: Any) -> list[StreamEvent]:
        """Translate one chunk into zero or more events."""
        if isinstance(chunk, _EVENT_TYPES):
            return [chunk]

        events: list[StreamEvent] = []
        content = getattr(chunk, "content", None)
        tool_call_chunks = getattr(chunk, "tool_call_chunks", None) or []

        if isinstance(content, list):
            events.extend(_block_events(content))
            uses_blocks = any(
                isinstance(b, dict) and b.get("type") in _TOOL_BLOCK_TYPES for b in content
            )
        else:
            # Skip text co-located with tool chunks to avoid leaking partial JSON
            if isinstance(content, str) and content and not tool_call_chunks:
                events.append(TextDelta(content))
            uses_blocks = False

        if tool_call_chunks and not uses_blocks:
            events.extend(self._tool_call_chunk_events(tool_call_chunks))

        stop_reason = extract_stop_reason(chunk)
        if stop_reason:
            self._open_tool_index = None
            events.append(TurnEnded(stop_reason=stop_reason))

        return events

    def _tool_call_chunk_events(self, tool_call_chunks: list[dict[str, Any]]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        for tc_chunk in tool_call_chunks:
            idx = tc_chunk.get("index") or 0
            if tc_chunk.get("name"):
                if self._open_tool_index is not None and self._open_tool_index != idx:
                    events.append(TurnEnded(stop_reason="tool_calls"))
                self._open_tool_index = idx
                events.append(
                    InvocationStarted(name=tc_chunk["name"], correlation_id=tc_chunk.get("id") or None)
                )
            if tc_chunk.get("args"):
                events.append(ArgumentDelta(tc_chunk["args"]))
        return events


async def iter_stream_events(source: AsyncIterable[Any]) -> AsyncGenerator[StreamEvent, None]:
    """Normalize an async chunk source into stream events.

    Args:
        source: Async iterable of ``AIMessageChunk`` objects or events.

    Yields:
        StreamEvent instances in provider order.
    """
    normalizer = ChunkNormalizer()
    async for chunk in source:
        for event in normalizer.feed(chunk):
            yield event
