"""Tool invocation / outcome pairing guard.

Providers reject a history in which a tool call is not immediately
answered by its result. The guard drops anything that breaks that
adjacency instead of trying to repair it.
"""

from __future__ import annotations

import logging

from toolstream.messages import Message, ToolInvocation, ToolOutcome

logger = logging.getLogger(__name__)


def ensure_tool_pairing(messages: list[Message]) -> list[Message]:
    """Return a copy of ``messages`` where every tool call is directly answered.

    A ToolInvocation survives only when the next message is a ToolOutcome
    with the same correlation id; both are then kept. An unanswered
    invocation is dropped, together with a directly following ToolOutcome
    (which cannot belong to any other invocation). ToolOutcomes with no
    invocation right before them are dropped. Everything else passes
    through in order.

    Args:
        messages: Ordered message sequence.

    Returns:
        New list satisfying the pairing invariant.
    """
    cleaned: list[Message] = []
    dropped = 0
    i = 0

    while i < len(messages):
        current = messages[i]
        nxt = messages[i + 1] if i + 1 < len(messages) else None

        if isinstance(current.content, ToolInvocation):
            if (
                nxt is not None
                and isinstance(nxt.content, ToolOutcome)
                and nxt.content.correlation_id == current.content.correlation_id
            ):
                cleaned.append(current)
                cleaned.append(nxt)
                i += 2
                continue

            dropped += 1
            if nxt is not None and isinstance(nxt.content, ToolOutcome):
                dropped += 1
                i += 2
            else:
                i += 1
            continue

        if isinstance(current.content, ToolOutcome):
            # Reaching here means no invocation claimed it
            dropped += 1
            i += 1
            continue

        cleaned.append(current)
        i += 1

    if dropped:
        logger.info("Dropped %d unpaired tool message(s)", dropped)

    return cleaned


def is_well_paired(messages: list[Message]) -> bool:
    """Check the pairing invariant without modifying anything."""
    for i, message in enumerate(messages):
        if isinstance(message.content, ToolInvocation):
            nxt = messages[i + 1] if i + 1 < len(messages) else None
            if not (
                nxt is not None
                and isinstance(nxt.content, ToolOutcome)
                and nxt.content.correlation_id == message.content.correlation_id
            ):
                return False
        elif isinstance(message.content, ToolOutcome):
            prev = messages[i - 1] if i > 0 else None
            if not (
                prev is not None
                and isinstance(prev.content, ToolInvocation)
                and prev.content.correlation_id == message.content.correlation_id
            ):
                return False
    return True
