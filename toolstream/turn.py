"""One conversation turn, end to end.

Persist the user message, rebuild the context window from stored history,
stream the model, decode the stream, persist the assistant's final text
and finish the client stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from toolstream.context import WindowConfig, build_window, to_langchain_messages
from toolstream.messages import Message, validate_message
from toolstream.persona import StaticPersona, system_message_for
from toolstream.settings import get_settings
from toolstream.streaming.decoder import StreamDecoder, ToolUseIdGenerator
from toolstream.streaming.frames import encode_done

if TYPE_CHECKING:
    import asyncio

    from toolstream.persona import PersonaSupplier
    from toolstream.settings import Settings
    from toolstream.storage.sink import ConversationSink
    from toolstream.streaming.errors import StreamFailure
    from toolstream.streaming.writer import StreamWriter
    from toolstream.tools.executor import CapabilityExecutor

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """What a turn produced.

    Attributes:
        conversation_id: Conversation the turn ran in.
        text: Assistant text decoded from the stream.
        tool_messages: Invocation/outcome messages persisted during the turn.
        window_size: Messages sent to the model, system message included.
        failure: Upstream failure kind, if the stream broke.
        aborted: True when the caller stopped the turn early.
    """

    conversation_id: str
    text: str = ""
    tool_messages: list[Message] = field(default_factory=list)
    window_size: int = 0
    failure: StreamFailure | None = None
    aborted: bool = False


async def run_turn(
    conversation_id: str,
    user_text: str,
    *,
    llm: Any,
    writer: StreamWriter,
    executor: CapabilityExecutor,
    sink: ConversationSink,
    persona: PersonaSupplier | None = None,
    config: WindowConfig | None = None,
    abort_event: asyncio.Event | None = None,
    settings: Settings | None = None,
) -> TurnResult:
    """Run one turn and stream it to ``writer``.

    Args:
        conversation_id: Conversation identifier.
        user_text: The user's new message.
        llm: Chat model exposing ``astream(messages)``, tools already bound.
        writer: Downstream frame writer; always closed on return.
        executor: Runs tool calls the model makes.
        sink: Conversation store.
        persona: System message supplier (defaults to the configured text).
        config: Window bounds (defaults to settings).
        abort_event: Set by the caller to stop the turn early.
        settings: Settings override.

    Returns:
        TurnResult for the turn.

    Raises:
        ValidationError: If ``user_text`` is blank.
        SinkError: If a message could not be stored.
    """
    settings = settings or get_settings()
    persona = persona or StaticPersona(settings.persona_text)
    config = config or WindowConfig.from_settings(settings)

    try:
        user_message = validate_message(Message.user(user_text, conversation_id))
        await sink.append(conversation_id, user_message)

        history = await sink.load_recent(conversation_id, settings.history_limit)
        system_message = await system_message_for(persona, conversation_id)
        window = build_window(history, system_message, config)
        logger.info(
            "Turn for %s: %d stored messages, %d in window",
            conversation_id,
            len(history),
            len(window),
        )

        decoder = StreamDecoder(
            writer=writer,
            executor=executor,
            sink=sink,
            conversation_id=conversation_id,
            id_generator=ToolUseIdGenerator(),
            abort_event=abort_event,
        )
        decoded = await decoder.decode(llm.astream(to_langchain_messages(window)))

        if decoded.text.strip() and not decoded.aborted:
            await sink.append(
                conversation_id, Message.assistant(decoded.text, conversation_id)
            )

        if not decoded.aborted:
            await writer.write(encode_done())

        return TurnResult(
            conversation_id=conversation_id,
            text=decoded.text,
            tool_messages=decoded.messages,
            window_size=len(window),
            failure=decoded.failure,
            aborted=decoded.aborted,
        )
    finally:
        await writer.close()
