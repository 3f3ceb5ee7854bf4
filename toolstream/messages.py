"""Conversation message model.

A message carries exactly one kind of content: plain text, a tool
invocation requested by the assistant, or the outcome of that invocation.
Content kinds are explicit dataclasses; consumers dispatch on them with
``match`` and ``assert_never`` so that adding a kind is a type error
everywhere it is not handled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, assert_never

from toolstream.exceptions import ValidationError


class Role(StrEnum):
    """Author of a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class TextContent:
    """Plain text content."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    """A capability call requested by the assistant.

    Attributes:
        name: Capability identifier.
        correlation_id: Links this invocation to its ToolOutcome.
        arguments: Decoded arguments; never None.
    """

    name: str
    correlation_id: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.arguments is None:
            object.__setattr__(self, "arguments", {})


@dataclass(frozen=True, slots=True)
class ToolOutcome:
    """Result of executing a ToolInvocation.

    Attributes:
        correlation_id: Matches the invocation that produced it.
        payload: Capability result (any JSON-compatible value or None).
        succeeded: Informational success flag.
    """

    correlation_id: str
    payload: Any = None
    succeeded: bool = True


MessageContent = TextContent | ToolInvocation | ToolOutcome


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class Message:
    """One immutable conversation turn unit."""

    role: Role
    content: MessageContent
    timestamp: datetime = field(default_factory=_utcnow)
    conversation_id: str | None = None

    @classmethod
    def system(cls, text: str, conversation_id: str | None = None) -> Message:
        return cls(role=Role.SYSTEM, content=TextContent(text), conversation_id=conversation_id)

    @classmethod
    def user(cls, text: str, conversation_id: str | None = None) -> Message:
        return cls(role=Role.USER, content=TextContent(text), conversation_id=conversation_id)

    @classmethod
    def assistant(cls, text: str, conversation_id: str | None = None) -> Message:
        return cls(role=Role.ASSISTANT, content=TextContent(text), conversation_id=conversation_id)

    @classmethod
    def invocation(cls, invocation: ToolInvocation, conversation_id: str | None = None) -> Message:
        """Wrap a tool invocation as an assistant message."""
        return cls(role=Role.ASSISTANT, content=invocation, conversation_id=conversation_id)

    @classmethod
    def outcome(cls, outcome: ToolOutcome, conversation_id: str | None = None) -> Message:
        """Wrap a tool outcome as a user message (providers expect results on the user side)."""
        return cls(role=Role.USER, content=outcome, conversation_id=conversation_id)

    @property
    def is_system(self) -> bool:
        return self.role is Role.SYSTEM

    @property
    def is_blank_text(self) -> bool:
        """True for text content that is empty or whitespace only."""
        return isinstance(self.content, TextContent) and not self.content.text.strip()


def validate_message(message: Message) -> Message:
    """Reject messages the provider would refuse.

    Args:
        message: Message to check.

    Returns:
        The same message, for chaining.

    Raises:
        ValidationError: If a non-system message has blank text content.
    """
    if message.role is not Role.SYSTEM and message.is_blank_text:
        raise ValidationError(f"{message.role} message must not have empty text content")
    return message


def content_kind(content: MessageContent) -> str:
    """Return the stable kind tag used when storing content."""
    match content:
        case TextContent():
            return "text"
        case ToolInvocation():
            return "tool_invocation"
        case ToolOutcome():
            return "tool_outcome"
        case _:
            assert_never(content)


def content_to_dict(content: MessageContent) -> dict[str, Any]:
    """Serialize message content to a JSON-compatible dict."""
    match content:
        case TextContent(text=text):
            return {"kind": "text", "text": text}
        case ToolInvocation(name=name, correlation_id=correlation_id, arguments=arguments):
            return {
                "kind": "tool_invocation",
                "name": name,
                "correlation_id": correlation_id,
                "arguments": arguments,
            }
        case ToolOutcome(correlation_id=correlation_id, payload=payload, succeeded=succeeded):
            return {
                "kind": "tool_outcome",
                "correlation_id": correlation_id,
                "payload": payload,
                "succeeded": succeeded,
            }
        case _:
            assert_never(content)


def content_from_dict(data: dict[str, Any]) -> MessageContent:
    """Rebuild message content from its stored dict form.

    Raises:
        ValidationError: If the kind tag is unknown.
    """
    kind = data.get("kind")
    if kind == "text":
        return TextContent(text=data.get("text", ""))
    if kind == "tool_invocation":
        return ToolInvocation(
            name=data["name"],
            correlation_id=data["correlation_id"],
            arguments=data.get("arguments") or {},
        )
    if kind == "tool_outcome":
        return ToolOutcome(
            correlation_id=data["correlation_id"],
            payload=data.get("payload"),
            succeeded=bool(data.get("succeeded", True)),
        )
    raise ValidationError(f"Unknown message content kind: {kind!r}")
