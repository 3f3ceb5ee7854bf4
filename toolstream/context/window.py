"""Context window builder.

Selects which part of a conversation's history goes into the next model
call. Recent messages matter most, so the walk runs newest to oldest
until the message cap or the token budget is hit. The system message is
never pruned.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from toolstream.context.estimator import DEFAULT_TOOL_OVERHEAD, estimate_tokens
from toolstream.context.pairing import ensure_tool_pairing
from toolstream.exceptions import ConfigurationError
from toolstream.messages import ToolInvocation, ToolOutcome

if TYPE_CHECKING:
    from toolstream.messages import Message
    from toolstream.settings import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WindowConfig:
    """Bounds applied when building a window.

    Attributes:
        max_messages: Cap on non-system messages kept.
        min_messages: Floor kept regardless of budget when history allows.
        token_budget: Approximate budget, system message included.
        tool_overhead: Flat cost per tool invocation/outcome estimate.
    """

    max_messages: int = 15
    min_messages: int = 8
    token_budget: int = 50_000
    tool_overhead: int = DEFAULT_TOOL_OVERHEAD

    def __post_init__(self) -> None:
        if self.max_messages < 1:
            raise ConfigurationError("max_messages must be at least 1")
        if self.min_messages < 0 or self.min_messages > self.max_messages:
            raise ConfigurationError(
                f"min_messages must be between 0 and max_messages ({self.max_messages})"
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> WindowConfig:
        return cls(
            max_messages=settings.window_max_messages,
            min_messages=settings.window_min_messages,
            token_budget=settings.window_token_budget,
            tool_overhead=settings.tool_token_overhead,
        )


def _floor_start(conversation: list[Message], floor: int) -> int:
    """Start of the floored slice, pulled back so it never opens on a split pair."""
    start = len(conversation) - floor
    if start > 0:
        first, before = conversation[start].content, conversation[start - 1].content
        if (
            isinstance(first, ToolOutcome)
            and isinstance(before, ToolInvocation)
            and before.correlation_id == first.correlation_id
        ):
            start -= 1
    return start


def build_window(
    history: list[Message],
    system_message: Message,
    config: WindowConfig | None = None,
) -> list[Message]:
    """Build the bounded message window for the next model call.

    System messages inside ``history`` are ignored; the fresh
    ``system_message`` always leads the window. Blank text messages are
    skipped since providers reject them.

    Args:
        history: Full conversation history, oldest first.
        system_message: Persona message for this turn.
        config: Window bounds (defaults to ``WindowConfig()``).

    Returns:
        ``[system_message, *kept]`` satisfying the pairing invariant, or an
        empty list when there is no history.
    """
    if not history:
        return []

    config = config or WindowConfig()
    conversation = [m for m in history if not m.is_system and not m.is_blank_text]

    total_tokens = estimate_tokens(system_message, tool_overhead=config.tool_overhead)
    kept: list[Message] = []

    for message in reversed(conversation):
        if len(kept) >= config.max_messages:
            break
        cost = estimate_tokens(message, tool_overhead=config.tool_overhead)
        if total_tokens + cost > config.token_budget:
            break
        total_tokens += cost
        kept.append(message)

    floor = config.min_messages
    if len(kept) < floor <= len(conversation):
        logger.info(
            "Enforcing minimum of %d messages despite token estimate (kept %d)",
            floor,
            len(kept),
        )
        kept = list(reversed(conversation[_floor_start(conversation, floor):]))

    kept.reverse()
    window = ensure_tool_pairing([system_message, *kept])

    logger.debug(
        "Built window: %d of %d messages, ~%d tokens",
        len(window) - 1,
        len(conversation),
        total_tokens,
    )
    return window
