"""Token estimation for context budgeting.

A rough heuristic, not a tokenizer: one token per four characters of
text, and for tool content the length of its JSON serialization plus a
flat overhead for the structural blocks the provider adds around it.
Use it to compare and budget, never to predict exact provider counts.
"""

from __future__ import annotations

import json
import math
from typing import Any, assert_never

from toolstream.messages import Message, MessageContent, TextContent, ToolInvocation, ToolOutcome

CHARS_PER_TOKEN = 4
DEFAULT_TOOL_OVERHEAD = 50


def _serialized_length(value: Any) -> int:
    return len(json.dumps(value, default=str, ensure_ascii=False))


def estimate_tokens(
    content: MessageContent | Message | str,
    *,
    tool_overhead: int = DEFAULT_TOOL_OVERHEAD,
) -> int:
    """Estimate the token cost of a message or its content.

    Args:
        content: A Message, its content, or a bare string.
        tool_overhead: Flat cost added to tool invocations and outcomes.

    Returns:
        Non-negative estimated token count.
    """
    if isinstance(content, Message):
        content = content.content
    if isinstance(content, str):
        return math.ceil(len(content) / CHARS_PER_TOKEN)

    match content:
        case TextContent(text=text):
            return math.ceil(len(text) / CHARS_PER_TOKEN)
        case ToolInvocation(arguments=arguments):
            return math.ceil(_serialized_length(arguments) / CHARS_PER_TOKEN) + tool_overhead
        case ToolOutcome(payload=payload):
            return math.ceil(_serialized_length(payload) / CHARS_PER_TOKEN) + tool_overhead
        case _:
            assert_never(content)


def estimate_total(messages: list[Message], *, tool_overhead: int = DEFAULT_TOOL_OVERHEAD) -> int:
    """Sum the estimates of a message sequence."""
    return sum(estimate_tokens(m, tool_overhead=tool_overhead) for m in messages)
