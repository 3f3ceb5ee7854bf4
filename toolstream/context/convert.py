"""Convert a conversation window to LangChain messages."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, assert_never

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage

from toolstream.messages import Role, TextContent, ToolInvocation, ToolOutcome

if TYPE_CHECKING:
    from toolstream.messages import Message


def _outcome_text(payload: Any) -> str:
    """Tool results go to the provider as strings; structured payloads as JSON."""
    if isinstance(payload, str):
        return payload
    return json.dumps(payload if payload is not None else {}, default=str)


def to_langchain_message(message: Message) -> BaseMessage:
    """Convert one message to its LangChain equivalent.

    Args:
        message: Message to convert.

    Returns:
        SystemMessage, HumanMessage, AIMessage (with ``tool_calls`` for
        invocations) or ToolMessage.
    """
    content = message.content
    match content:
        case TextContent(text=text):
            if message.role is Role.SYSTEM:
                return SystemMessage(content=text)
            if message.role is Role.USER:
                return HumanMessage(content=text)
            return AIMessage(content=text)
        case ToolInvocation(name=name, correlation_id=correlation_id, arguments=arguments):
            return AIMessage(
                content="",
                tool_calls=[{"name": name, "args": arguments, "id": correlation_id}],
            )
        case ToolOutcome(correlation_id=correlation_id, payload=payload, succeeded=succeeded):
            return ToolMessage(
                content=_outcome_text(payload),
                tool_call_id=correlation_id,
                status="success" if succeeded else "error",
            )
        case _:
            assert_never(content)


def to_langchain_messages(window: list[Message]) -> list[BaseMessage]:
    """Convert a whole window, preserving order."""
    return [to_langchain_message(m) for m in window]
