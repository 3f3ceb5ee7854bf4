"""toolstream exception hierarchy.

Base exceptions for all layers with correlation ID support.

Usage:
    from toolstream.exceptions import SinkError

    try:
        await sink.append(conversation_id, message)
    except SinkError as e:
        logger.error("Append failed (%s): %s", e.correlation_id, e)
"""

import uuid


class ToolstreamError(Exception):
    """Base exception for all toolstream errors.

    Carries a correlation_id for tracing errors across layers.
    """

    def __init__(self, message: str, *, correlation_id: str | None = None):
        self.correlation_id = correlation_id or str(uuid.uuid4())
        super().__init__(message)


class SinkError(ToolstreamError):
    """Errors from the conversation store.

    Never recovered inside the decoder: losing a message would corrupt
    the conversation history.
    """

    def __init__(self, message: str, *, conversation_id: str | None = None, **kwargs):
        self.conversation_id = conversation_id
        super().__init__(message, **kwargs)


class LLMError(ToolstreamError):
    """Errors from LLM provider setup."""

    def __init__(self, message: str, *, provider: str | None = None, **kwargs):
        self.provider = provider
        super().__init__(message, **kwargs)


class ValidationError(ToolstreamError):
    """Errors from message validation (beyond Pydantic)."""

    pass


class ConfigurationError(ToolstreamError):
    """Errors from application configuration."""

    pass
