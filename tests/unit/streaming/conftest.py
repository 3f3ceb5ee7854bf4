"""Shared helpers for streaming module tests."""

from typing import Any

from langchain_core.messages import AIMessageChunk


def make_tool_call_chunk(name: str, args_str: str, call_id: str, index: int = 0) -> AIMessageChunk:
    """Create an OpenAI-style AIMessageChunk with a tool call chunk."""
    chunk = AIMessageChunk(content="")
    chunk.tool_call_chunks = [{"name": name, "args": args_str, "id": call_id, "index": index}]
    return chunk


def text_block_chunk(text: str) -> AIMessageChunk:
    """Anthropic-style chunk carrying a text block."""
    return AIMessageChunk(content=[{"type": "text", "text": text, "index": 0}])


def tool_use_chunk(name: str, tool_id: str | None = None) -> AIMessageChunk:
    """Anthropic-style chunk opening a tool_use block."""
    block: dict[str, Any] = {"type": "tool_use", "name": name, "input": {}, "index": 1}
    if tool_id is not None:
        block["id"] = tool_id
    return AIMessageChunk(content=[block])


def input_json_chunk(fragment: str) -> AIMessageChunk:
    """Anthropic-style chunk carrying an argument fragment."""
    return AIMessageChunk(content=[{"type": "input_json_delta", "partial_json": fragment, "index": 1}])


def tool_stop_chunk() -> AIMessageChunk:
    """Empty chunk whose stop reason closes the tool call."""
    return AIMessageChunk(content=[], additional_kwargs={"stop_reason": "tool_use"})


async def async_iter(items):
    """Convert a list to an async iterator."""
    for item in items:
        yield item


async def failing_iter(items, error: BaseException):
    """Yield ``items`` then raise ``error``."""
    for item in items:
        yield item
    raise error
