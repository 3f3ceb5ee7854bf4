"""Client-facing frame encoding.

Frames are newline-delimited records written to the downstream writer:

- ``0:<json string>`` : a piece of assistant text
- ``2:{"tool_call": {...}}`` : informational tool call; clients must not
  execute it
- ``2:{"tool_result": {...}}`` : tool outcome, carrying the tool name so
  clients can pick a renderer
- ``data: {"type":"done"}`` : end of the turn

Every frame ends with a blank line.
"""

from __future__ import annotations

import json
from typing import Any

from toolstream.messages import ToolInvocation, ToolOutcome

TEXT_PREFIX = "0:"
DATA_PREFIX = "2:"
DONE_FRAME = 'data: {"type":"done"}\n\n'
FRAME_SEPARATOR = "\n\n"


def encode_text(text: str) -> str:
    """Encode an assistant text delta."""
    return f"{TEXT_PREFIX}{json.dumps(text)}{FRAME_SEPARATOR}"


def encode_tool_call(invocation: ToolInvocation) -> str:
    """Encode a tool invocation for display."""
    body = {
        "tool_call": {
            "type": "tool_use",
            "name": invocation.name,
            "id": invocation.correlation_id,
            "input": invocation.arguments,
        }
    }
    return f"{DATA_PREFIX}{json.dumps(body, default=str)}{FRAME_SEPARATOR}"


def encode_tool_result(outcome: ToolOutcome, name: str) -> str:
    """Encode a tool outcome, tagged with the tool name."""
    body = {
        "tool_result": {
            "type": "tool_result",
            "tool_use_id": outcome.correlation_id,
            "data": outcome.payload,
            "succeeded": outcome.succeeded,
            "name": name,
        }
    }
    return f"{DATA_PREFIX}{json.dumps(body, default=str)}{FRAME_SEPARATOR}"


def encode_done() -> str:
    return DONE_FRAME


def parse_frame(frame: str) -> tuple[str, Any]:
    """Decode a single frame back into ``(kind, value)``.

    ``kind`` is ``"text"``, ``"tool_call"``, ``"tool_result"`` or ``"done"``.

    Raises:
        ValueError: If the frame is not in a known format.
    """
    body = frame.rstrip("\n")
    if body.startswith(TEXT_PREFIX):
        return "text", json.loads(body[len(TEXT_PREFIX) :])
    if body.startswith(DATA_PREFIX):
        data = json.loads(body[len(DATA_PREFIX) :])
        for kind in ("tool_call", "tool_result"):
            if kind in data:
                return kind, data[kind]
        raise ValueError(f"Unknown data frame: {body[:80]!r}")
    if body.startswith("data: "):
        data = json.loads(body[len("data: ") :])
        if data.get("type") == "done":
            return "done", None
    raise ValueError(f"Unknown frame: {body[:80]!r}")
