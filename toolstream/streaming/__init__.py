"""Streaming module: provider stream decoding and client frame output.

Provides the stream decoder state machine plus the pieces around it:
chunk normalization, frame encoding, writers and failure classification.
"""

from toolstream.streaming.chunks import ChunkNormalizer, iter_stream_events
from toolstream.streaming.decoder import (
    DecodeResult,
    DecoderState,
    StreamDecoder,
    ToolUseIdGenerator,
    decode_stream,
    parse_tool_arguments,
)
from toolstream.streaming.errors import StreamFailure, classify_stream_error
from toolstream.streaming.events import (
    TOOL_CALL_COMPLETE,
    ArgumentDelta,
    InvocationStarted,
    StreamEvent,
    TextDelta,
    TurnEnded,
)
from toolstream.streaming.writer import BufferedWriter, QueueStreamWriter, StreamWriter

__all__ = [
    "TOOL_CALL_COMPLETE",
    "ArgumentDelta",
    "BufferedWriter",
    "ChunkNormalizer",
    "DecodeResult",
    "DecoderState",
    "InvocationStarted",
    "QueueStreamWriter",
    "StreamDecoder",
    "StreamEvent",
    "StreamFailure",
    "StreamWriter",
    "TextDelta",
    "ToolUseIdGenerator",
    "TurnEnded",
    "classify_stream_error",
    "decode_stream",
    "iter_stream_events",
    "parse_tool_arguments",
]
