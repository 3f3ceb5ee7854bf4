"""Context window assembly: estimation, pairing, pruning and provider conversion."""

from toolstream.context.convert import to_langchain_message, to_langchain_messages
from toolstream.context.estimator import estimate_tokens, estimate_total
from toolstream.context.pairing import ensure_tool_pairing, is_well_paired
from toolstream.context.window import WindowConfig, build_window

__all__ = [
    "WindowConfig",
    "build_window",
    "ensure_tool_pairing",
    "estimate_tokens",
    "estimate_total",
    "is_well_paired",
    "to_langchain_message",
    "to_langchain_messages",
]
