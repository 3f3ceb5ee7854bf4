"""Unit tests for client frame encoding."""

import json

import pytest

from toolstream.messages import ToolInvocation, ToolOutcome
from toolstream.streaming.frames import (
    DONE_FRAME,
    encode_done,
    encode_text,
    encode_tool_call,
    encode_tool_result,
    parse_frame,
)


class TestEncode:
    def test_text_frame(self):
        assert encode_text("Hello") == '0:"Hello"\n\n'

    def test_text_frame_escapes(self):
        frame = encode_text('say "hi"\nnow')
        assert frame.count("\n") == 2
        assert parse_frame(frame) == ("text", 'say "hi"\nnow')

    def test_tool_call_frame(self):
        frame = encode_tool_call(ToolInvocation(name="lookup", correlation_id="t1", arguments={"query": "cats"}))
        assert frame.startswith("2:")
        assert frame.endswith("\n\n")
        body = json.loads(frame[2:])
        assert body == {"tool_call": {"type": "tool_use", "name": "lookup", "id": "t1", "input": {"query": "cats"}}}

    def test_tool_result_frame_carries_name(self):
        frame = encode_tool_result(ToolOutcome(correlation_id="t1", payload=[1], succeeded=False), "lookup")
        body = json.loads(frame[2:])["tool_result"]
        assert body == {
            "type": "tool_result",
            "tool_use_id": "t1",
            "data": [1],
            "succeeded": False,
            "name": "lookup",
        }

    def test_done_frame(self):
        assert encode_done() == DONE_FRAME == 'data: {"type":"done"}\n\n'


class TestParseFrame:
    def test_kinds(self):
        invocation = ToolInvocation(name="n", correlation_id="c")
        assert parse_frame(encode_tool_call(invocation))[0] == "tool_call"
        assert parse_frame(encode_tool_result(ToolOutcome(correlation_id="c"), "n"))[0] == "tool_result"
        assert parse_frame(DONE_FRAME) == ("done", None)

    @pytest.mark.parametrize("frame", ["garbage\n\n", '2:{"other": 1}\n\n', 'data: {"type":"ping"}\n\n'])
    def test_unknown(self, frame):
        with pytest.raises(ValueError):
            parse_frame(frame)
