"""Classification of upstream stream failures.

The user only ever sees a canned message; the raw provider error stays in
the logs.
"""

from __future__ import annotations

from enum import StrEnum

OVERLOADED_MESSAGE = "The AI service is currently overloaded. Please try again in a few moments."
GENERIC_MESSAGE = "Something went wrong while generating a response. Please try again."

_OVERLOAD_MARKERS = ("overloaded", "overload")


class StreamFailure(StrEnum):
    """Kinds of upstream stream failure."""

    OVERLOAD = "overload"
    GENERIC = "generic"


def _mentions_overload(error: BaseException | None) -> bool:
    if error is None:
        return False
    text = str(error).lower()
    return any(marker in text for marker in _OVERLOAD_MARKERS)


def classify_stream_error(error: BaseException) -> StreamFailure:
    """Classify a provider stream error by sniffing its message and its cause."""
    if _mentions_overload(error) or _mentions_overload(error.__cause__):
        return StreamFailure.OVERLOAD
    return StreamFailure.GENERIC


def user_message_for(failure: StreamFailure) -> str:
    """Canned user-facing text for a failure kind."""
    if failure is StreamFailure.OVERLOAD:
        return OVERLOADED_MESSAGE
    return GENERIC_MESSAGE
