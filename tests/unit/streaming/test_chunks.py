"""Unit tests for provider chunk normalization."""

import pytest
from langchain_core.messages import AIMessageChunk

from toolstream.streaming.chunks import ChunkNormalizer, extract_stop_reason, iter_stream_events
from toolstream.streaming.events import ArgumentDelta, InvocationStarted, TextDelta, TurnEnded

from tests.unit.streaming.conftest import (
    async_iter,
    input_json_chunk,
    make_tool_call_chunk,
    text_block_chunk,
    tool_stop_chunk,
    tool_use_chunk,
)


class TestExtractStopReason:
    def test_additional_kwargs(self):
        assert extract_stop_reason(tool_stop_chunk()) == "tool_use"

    def test_response_metadata(self):
        chunk = AIMessageChunk(content="", response_metadata={"finish_reason": "tool_calls"})
        assert extract_stop_reason(chunk) == "tool_calls"

    def test_absent(self):
        assert extract_stop_reason(AIMessageChunk(content="hi")) is None


class TestAnthropicBlocks:
    """Content-block chunks."""

    def test_text_block(self):
        assert ChunkNormalizer().feed(text_block_chunk("Hello")) == [TextDelta("Hello")]

    def test_tool_use_block(self):
        events = ChunkNormalizer().feed(tool_use_chunk("lookup", "t1"))
        assert events == [InvocationStarted(name="lookup", correlation_id="t1")]

    def test_tool_use_without_id(self):
        events = ChunkNormalizer().feed(tool_use_chunk("lookup"))
        assert events == [InvocationStarted(name="lookup", correlation_id=None)]

    def test_input_json_delta(self):
        assert ChunkNormalizer().feed(input_json_chunk('{"q":')) == [ArgumentDelta('{"q":')]

    def test_input_json_delta_legacy_input_key(self):
        chunk = AIMessageChunk(content=[{"type": "input_json_delta", "input": '"cats"}'}])
        assert ChunkNormalizer().feed(chunk) == [ArgumentDelta('"cats"}')]

    def test_stop_chunk(self):
        assert ChunkNormalizer().feed(tool_stop_chunk()) == [TurnEnded(stop_reason="tool_use")]

    def test_unknown_block_ignored(self):
        chunk = AIMessageChunk(content=[{"type": "thinking", "thinking": "hmm"}])
        assert ChunkNormalizer().feed(chunk) == []

    def test_block_tool_chunks_not_duplicated(self):
        chunk = tool_use_chunk("lookup", "t1")
        chunk.tool_call_chunks = [{"name": "lookup", "args": "", "id": "t1", "index": 1}]
        assert ChunkNormalizer().feed(chunk) == [InvocationStarted(name="lookup", correlation_id="t1")]


class TestOpenAIToolCallChunks:
    """tool_call_chunks merged by index."""

    def test_string_content(self):
        assert ChunkNormalizer().feed(AIMessageChunk(content="Hi")) == [TextDelta("Hi")]

    def test_empty_string_content(self):
        assert ChunkNormalizer().feed(AIMessageChunk(content="")) == []

    def test_start_and_args(self):
        normalizer = ChunkNormalizer()
        events = normalizer.feed(make_tool_call_chunk("lookup", '{"q":', "call-1"))
        events += normalizer.feed(make_tool_call_chunk("", ' "cats"}', ""))
        assert events == [
            InvocationStarted(name="lookup", correlation_id="call-1"),
            ArgumentDelta('{"q":'),
            ArgumentDelta(' "cats"}'),
        ]

    def test_parallel_calls_serialized(self):
        normalizer = ChunkNormalizer()
        normalizer.feed(make_tool_call_chunk("a", "{}", "call-1", index=0))
        events = normalizer.feed(make_tool_call_chunk("b", "{}", "call-2", index=1))
        assert events == [
            TurnEnded(stop_reason="tool_calls"),
            InvocationStarted(name="b", correlation_id="call-2"),
            ArgumentDelta("{}"),
        ]

    def test_finish_reason_closes_call(self):
        normalizer = ChunkNormalizer()
        normalizer.feed(make_tool_call_chunk("a", "{}", "call-1"))
        chunk = AIMessageChunk(content="", response_metadata={"finish_reason": "tool_calls"})
        assert normalizer.feed(chunk) == [TurnEnded(stop_reason="tool_calls")]


class TestPassThrough:
    def test_events_untouched(self):
        event = InvocationStarted(name="x", correlation_id="1")
        assert ChunkNormalizer().feed(event) == [event]

    @pytest.mark.asyncio
    async def test_iter_stream_events(self):
        chunks = [text_block_chunk("Hi"), tool_use_chunk("lookup", "t1"), input_json_chunk("{}"), tool_stop_chunk()]
        events = [e async for e in iter_stream_events(async_iter(chunks))]
        assert events == [
            TextDelta("Hi"),
            InvocationStarted(name="lookup", correlation_id="t1"),
            ArgumentDelta("{}"),
            TurnEnded(stop_reason="tool_use"),
        ]
