"""Provider stream event types.

The decoder only understands these four events. Provider-specific chunk
shapes are normalized into them by :mod:`toolstream.streaming.chunks`.
"""

from __future__ import annotations

from dataclasses import dataclass

# Stop reasons meaning "the tool call block is complete"
# (Anthropic: tool_use, OpenAI: tool_calls)
TOOL_USE_STOP_REASONS = frozenset({"tool_use", "tool_calls"})


@dataclass(frozen=True, slots=True)
class TextDelta:
    """A piece of assistant text."""

    text: str


@dataclass(frozen=True, slots=True)
class InvocationStarted:
    """Start of a tool call block.

    Attributes:
        name: Capability identifier.
        correlation_id: Provider-supplied id, or None when absent.
    """

    name: str
    correlation_id: str | None = None


@dataclass(frozen=True, slots=True)
class ArgumentDelta:
    """A fragment of the JSON arguments of the open tool call."""

    text: str


@dataclass(frozen=True, slots=True)
class TurnEnded:
    """End-of-turn signal carrying the provider stop reason."""

    stop_reason: str | None = None

    @property
    def completes_tool_call(self) -> bool:
        return self.stop_reason in TOOL_USE_STOP_REASONS


StreamEvent = TextDelta | InvocationStarted | ArgumentDelta | TurnEnded

# The signal that closes a tool call block in the provider stream
TOOL_CALL_COMPLETE = TurnEnded(stop_reason="tool_use")
