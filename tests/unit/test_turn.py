"""Tests for the end-to-end turn runner."""

import asyncio

import pytest
from langchain_core.messages import AIMessageChunk, HumanMessage, SystemMessage

from toolstream.context.window import WindowConfig
from toolstream.exceptions import ValidationError
from toolstream.messages import Role, TextContent, ToolInvocation, ToolOutcome
from toolstream.persona import StaticPersona
from toolstream.streaming.errors import StreamFailure
from toolstream.streaming.frames import DONE_FRAME, parse_frame
from toolstream.turn import run_turn

from tests.conftest import assistant, user
from tests.unit.streaming.conftest import input_json_chunk, text_block_chunk, tool_stop_chunk, tool_use_chunk


class FakeChatModel:
    """Chat model double streaming canned chunks."""

    def __init__(self, chunks=None, error: Exception | None = None):
        self.chunks = chunks or []
        self.error = error
        self.calls: list[list] = []
        self.bound_tools: list | None = None

    def bind_tools(self, tools):
        self.bound_tools = tools
        return self

    async def astream(self, messages):
        self.calls.append(list(messages))
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


def _run(llm, writer, executor, sink, text="What's up?", **kwargs):
    return run_turn(
        "conv-1",
        text,
        llm=llm,
        writer=writer,
        executor=executor,
        sink=sink,
        persona=kwargs.pop("persona", StaticPersona("Persona for {conversation_id}")),
        **kwargs,
    )


class TestRunTurn:
    @pytest.mark.asyncio
    async def test_text_turn(self, writer, executor, sink):
        llm = FakeChatModel([AIMessageChunk(content="All "), AIMessageChunk(content="good.")])

        result = await _run(llm, writer, executor, sink)

        assert result.text == "All good."
        assert result.window_size == 2
        stored = await sink.load_recent("conv-1", 10)
        assert [(m.role, m.content) for m in stored] == [
            (Role.USER, TextContent("What's up?")),
            (Role.ASSISTANT, TextContent("All good.")),
        ]
        assert writer.frames[-1] == DONE_FRAME
        assert writer.close_calls == 1

    @pytest.mark.asyncio
    async def test_model_receives_window(self, writer, executor, sink):
        await sink.append("conv-1", user("earlier question"))
        await sink.append("conv-1", assistant("earlier answer"))
        llm = FakeChatModel([AIMessageChunk(content="ok")])

        await _run(llm, writer, executor, sink)

        (sent,) = llm.calls
        assert isinstance(sent[0], SystemMessage)
        assert sent[0].content == "Persona for conv-1"
        assert isinstance(sent[-1], HumanMessage)
        assert sent[-1].content == "What's up?"
        assert len(sent) == 4

    @pytest.mark.asyncio
    async def test_window_config_applied(self, writer, executor, sink):
        for i in range(10):
            await sink.append("conv-1", user(f"old {i}"))
        llm = FakeChatModel([AIMessageChunk(content="ok")])

        result = await _run(llm, writer, executor, sink, config=WindowConfig(max_messages=3, min_messages=1))

        assert result.window_size == 4
        assert len(llm.calls[0]) == 4

    @pytest.mark.asyncio
    async def test_tool_turn_persists_in_order(self, writer, executor, sink):
        llm = FakeChatModel(
            [
                tool_use_chunk("lookup", "t1"),
                input_json_chunk('{"query": "cats"}'),
                tool_stop_chunk(),
                text_block_chunk("There are cats."),
            ]
        )

        result = await _run(llm, writer, executor, sink)

        stored = await sink.load_recent("conv-1", 10)
        assert [type(m.content) for m in stored] == [TextContent, ToolInvocation, ToolOutcome, TextContent]
        assert len(result.tool_messages) == 2
        assert [parse_frame(f)[0] for f in writer.frames] == ["tool_call", "tool_result", "text", "done"]

    @pytest.mark.asyncio
    async def test_blank_user_message_rejected(self, writer, executor, sink):
        llm = FakeChatModel()

        with pytest.raises(ValidationError):
            await _run(llm, writer, executor, sink, text="   ")

        assert sink.count("conv-1") == 0
        assert llm.calls == []
        assert writer.close_calls == 1

    @pytest.mark.asyncio
    async def test_stream_failure(self, writer, executor, sink):
        llm = FakeChatModel(error=RuntimeError("overloaded_error"))

        result = await _run(llm, writer, executor, sink)

        assert result.failure is StreamFailure.OVERLOAD
        assert sink.count("conv-1") == 1
        assert writer.frames[-1] == DONE_FRAME
        assert parse_frame(writer.frames[0])[0] == "text"

    @pytest.mark.asyncio
    async def test_aborted_turn(self, writer, executor, sink):
        abort = asyncio.Event()
        abort.set()
        llm = FakeChatModel([AIMessageChunk(content="ignored")])

        result = await _run(llm, writer, executor, sink, abort_event=abort)

        assert result.aborted
        assert writer.frames == []
        assert sink.count("conv-1") == 1
        assert writer.close_calls == 1

    @pytest.mark.asyncio
    async def test_default_persona_from_settings(self, writer, executor, sink, monkeypatch):
        monkeypatch.setenv("PERSONA_TEXT", "Configured {conversation_id}")
        llm = FakeChatModel([AIMessageChunk(content="ok")])

        await _run(llm, writer, executor, sink, persona=None)

        assert llm.calls[0][0].content == "Configured conv-1"
