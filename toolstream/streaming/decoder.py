"""Stream decoder: rebuild text and tool calls from a provider stream.

The decoder is a small state machine driven by normalized stream events:

    IDLE / ACCUMULATING_TEXT --text-->            ACCUMULATING_TEXT
    IDLE / ACCUMULATING_TEXT --tool start-->      ACCUMULATING_TOOL_ARGS
    ACCUMULATING_TOOL_ARGS   --argument delta-->  ACCUMULATING_TOOL_ARGS
    ACCUMULATING_TOOL_ARGS   --tool-use end-->    finalize, IDLE

Finalizing a tool call persists the invocation, writes it downstream,
awaits the capability executor, then persists and writes the outcome, all
before the next chunk is read. Text that follows a tool call in the
provider stream therefore always reaches the client after that call's
result.

Upstream failures never escape :meth:`StreamDecoder.decode`: the client
gets one canned text frame and the caller gets the text gathered so far.
Persistence failures do escape, as losing a message silently would
corrupt the conversation. A failing writer or an abort only stops
frames: a tool call already dispatched still runs and its outcome is
persisted.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from toolstream.exceptions import SinkError
from toolstream.messages import Message, ToolInvocation, ToolOutcome
from toolstream.streaming.chunks import iter_stream_events
from toolstream.streaming.errors import StreamFailure, classify_stream_error, user_message_for
from toolstream.streaming.events import ArgumentDelta, InvocationStarted, TextDelta, TurnEnded
from toolstream.streaming.frames import encode_text, encode_tool_call, encode_tool_result
from toolstream.tools.executor import CapabilityResult

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Callable

    from toolstream.storage.sink import ConversationSink
    from toolstream.streaming.events import StreamEvent
    from toolstream.streaming.writer import StreamWriter
    from toolstream.tools.executor import CapabilityExecutor

logger = logging.getLogger(__name__)


class DecoderState(StrEnum):
    """States of the decode loop."""

    IDLE = "idle"
    ACCUMULATING_TEXT = "accumulating_text"
    ACCUMULATING_TOOL_ARGS = "accumulating_tool_args"


class ToolUseIdGenerator:
    """Correlation ids for tool calls the provider left unnamed.

    Scoped to one turn: ids are ``<prefix>_<n>`` with a per-instance
    counter, so concurrent turns never share state.
    """

    def __init__(self, prefix: str | None = None) -> None:
        self._prefix = prefix or f"tool_{int(time.time() * 1000)}"
        self._count = 0

    def __call__(self) -> str:
        self._count += 1
        return f"{self._prefix}_{self._count}"


def parse_tool_arguments(buffer: str) -> dict[str, Any]:
    """Decode accumulated argument JSON.

    A blank buffer means a call without arguments and decodes to ``{}``.

    Raises:
        ValueError: If the buffer is not valid JSON or not a JSON object.
    """
    if not buffer.strip():
        return {}
    value = json.loads(buffer)
    if not isinstance(value, dict):
        raise ValueError(f"Tool arguments must be a JSON object, got {type(value).__name__}")
    return value


@dataclass
class DecodeResult:
    """Outcome of decoding one provider stream.

    Attributes:
        text: All assistant text accumulated from the stream.
        messages: Tool invocation/outcome messages persisted, in order.
        failure: Upstream failure kind, if the stream broke.
        aborted: True when the caller stopped the turn early.
    """

    text: str = ""
    messages: list[Message] = field(default_factory=list)
    failure: StreamFailure | None = None
    aborted: bool = False

    @property
    def invocations(self) -> list[ToolInvocation]:
        return [m.content for m in self.messages if isinstance(m.content, ToolInvocation)]

    @property
    def outcomes(self) -> list[ToolOutcome]:
        return [m.content for m in self.messages if isinstance(m.content, ToolOutcome)]


@dataclass
class _PendingInvocation:
    name: str
    correlation_id: str
    arguments_buffer: str = ""


class StreamDecoder:
    """Decode one provider stream for one conversation turn.

    An instance owns its buffers and is meant for a single :meth:`decode`
    call.

    Args:
        writer: Downstream frame writer.
        executor: Runs completed tool calls.
        sink: Conversation store for invocation and outcome messages.
        conversation_id: Conversation the turn belongs to.
        id_generator: Correlation id source for tool calls without one.
        abort_event: When set, the decoder stops reading and writing.
    """

    def __init__(
        self,
        *,
        writer: StreamWriter,
        executor: CapabilityExecutor,
        sink: ConversationSink,
        conversation_id: str,
        id_generator: Callable[[], str] | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> None:
        self._writer = writer
        self._executor = executor
        self._sink = sink
        self._conversation_id = conversation_id
        self._next_id = id_generator or ToolUseIdGenerator()
        self._abort_event = abort_event

        self._state = DecoderState.IDLE
        self._text_parts: list[str] = []
        self._pending: _PendingInvocation | None = None
        self._result = DecodeResult()

    @property
    def state(self) -> DecoderState:
        return self._state

    @property
    def text(self) -> str:
        return "".join(self._text_parts)

    async def decode(self, source: AsyncIterable[Any]) -> DecodeResult:
        """Consume ``source`` to exhaustion and return what was decoded.

        Args:
            source: Provider chunks (``AIMessageChunk``) or stream events.

        Returns:
            DecodeResult with the accumulated text and persisted tool messages.

        Raises:
            SinkError: If a message could not be persisted.
            asyncio.CancelledError: If the caller cancelled the turn; an
                in-flight tool call is completed and persisted first.
        """
        event_count = 0
        try:
            async with aclosing(iter_stream_events(source)) as events:
                async for event in events:
                    if self._abort_requested():
                        logger.info("Turn aborted by caller after %d events", event_count)
                        self._result.aborted = True
                        break
                    event_count += 1
                    await self._handle(event)
        except asyncio.CancelledError:
            self._result.aborted = True
            raise
        except SinkError:
            raise
        except Exception as e:
            failure = classify_stream_error(e)
            logger.error(
                "Error processing provider stream (%s) after %d events: %s",
                failure,
                event_count,
                e,
                exc_info=True,
            )
            self._result.failure = failure
            await self._emit(encode_text(user_message_for(failure)))
        else:
            if self._pending is not None:
                logger.warning(
                    "Stream ended before tool call '%s' completed; dropping it",
                    self._pending.name,
                )
                self._pending = None
            logger.info(
                "Stream processing complete: %d events, %d chars of text",
                event_count,
                len(self.text),
            )

        self._state = DecoderState.IDLE
        self._result.text = self.text
        return self._result

    def _abort_requested(self) -> bool:
        if self._result.aborted:
            return True
        if self._abort_event is not None and self._abort_event.is_set():
            return True
        return bool(getattr(self._writer, "aborted", False))

    async def _emit(self, frame: str) -> None:
        if self._abort_requested():
            self._result.aborted = True
            return
        try:
            await self._writer.write(frame)
        except Exception as e:
            # Client is gone; stop writing but let a dispatched call finish
            logger.warning("Downstream write failed, dropping further frames: %s", e)
            self._result.aborted = True

    async def _handle(self, event: StreamEvent) -> None:
        match event:
            case TextDelta(text=text):
                if not text:
                    return
                self._text_parts.append(text)
                if self._state is not DecoderState.ACCUMULATING_TOOL_ARGS:
                    self._state = DecoderState.ACCUMULATING_TEXT
                await self._emit(encode_text(text))

            case InvocationStarted(name=name, correlation_id=correlation_id):
                if self._pending is not None:
                    logger.warning(
                        "Tool call '%s' started before '%s' completed; dropping the earlier one",
                        name,
                        self._pending.name,
                    )
                self._pending = _PendingInvocation(
                    name=name,
                    correlation_id=correlation_id or self._next_id(),
                )
                self._state = DecoderState.ACCUMULATING_TOOL_ARGS
                logger.info(
                    "Started tool call '%s' (%s)", name, self._pending.correlation_id
                )

            case ArgumentDelta(text=fragment):
                if self._pending is None:
                    logger.debug("Ignoring argument delta with no open tool call")
                    return
                self._pending.arguments_buffer += fragment

            case TurnEnded() as ended:
                if ended.completes_tool_call and self._pending is not None:
                    await self._finalize_tool_call()
                elif self._state is DecoderState.ACCUMULATING_TEXT:
                    self._state = DecoderState.IDLE

    async def _finalize_tool_call(self) -> None:
        pending = self._pending
        assert pending is not None
        self._pending = None
        self._state = DecoderState.IDLE

        if not pending.name:
            logger.warning("Skipping tool call with empty name (likely truncated output)")
            return

        try:
            arguments = parse_tool_arguments(pending.arguments_buffer)
        except ValueError as e:
            logger.warning(
                "Skipping tool call '%s': arguments could not be parsed (%s). Raw: %s",
                pending.name,
                e,
                pending.arguments_buffer[:200] or "(empty)",
            )
            return

        invocation = ToolInvocation(
            name=pending.name,
            correlation_id=pending.correlation_id,
            arguments=arguments,
        )

        # Once dispatched, the call runs to completion even if the turn is cancelled
        task = asyncio.ensure_future(self._run_tool_call(invocation))
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            self._result.aborted = True
            logger.info(
                "Turn cancelled during tool call '%s'; finishing it before stopping",
                invocation.name,
            )
            await task
            raise

    async def _run_tool_call(self, invocation: ToolInvocation) -> None:
        await self._persist(Message.invocation(invocation, self._conversation_id))
        await self._emit(encode_tool_call(invocation))

        logger.info("Executing tool call '%s' (%s)", invocation.name, invocation.correlation_id)
        try:
            result = await self._executor.execute(invocation.name, invocation.arguments)
        except Exception as e:
            logger.exception("Executor raised for tool call '%s'", invocation.name)
            result = CapabilityResult.failure(f"Tool {invocation.name} failed: {e}")

        outcome = ToolOutcome(
            correlation_id=invocation.correlation_id,
            payload=result.payload,
            succeeded=result.succeeded,
        )
        await self._persist(Message.outcome(outcome, self._conversation_id))
        await self._emit(encode_tool_result(outcome, invocation.name))
        logger.info(
            "Tool call '%s' finished (succeeded=%s)", invocation.name, outcome.succeeded
        )

    async def _persist(self, message: Message) -> None:
        try:
            await self._sink.append(self._conversation_id, message)
        except SinkError:
            raise
        except Exception as e:
            raise SinkError(
                f"Failed to persist {type(message.content).__name__}: {e}",
                conversation_id=self._conversation_id,
            ) from e
        self._result.messages.append(message)


async def decode_stream(
    source: AsyncIterable[Any],
    *,
    writer: StreamWriter,
    executor: CapabilityExecutor,
    sink: ConversationSink,
    conversation_id: str,
    id_generator: Callable[[], str] | None = None,
    abort_event: asyncio.Event | None = None,
) -> DecodeResult:
    """Decode a provider stream with a fresh :class:`StreamDecoder`."""
    decoder = StreamDecoder(
        writer=writer,
        executor=executor,
        sink=sink,
        conversation_id=conversation_id,
        id_generator=id_generator,
        abort_event=abort_event,
    )
    return await decoder.decode(source)
