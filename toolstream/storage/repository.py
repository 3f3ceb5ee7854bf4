"""SQL-backed conversation sink."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from toolstream.exceptions import SinkError
from toolstream.storage.models import ConversationMessage

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from sqlalchemy.ext.asyncio import AsyncSession

    from toolstream.messages import Message

logger = logging.getLogger(__name__)

# Attempts at claiming the next sequence number under concurrent appends
MAX_APPEND_ATTEMPTS = 5


class SqlConversationSink:
    """Conversation sink storing messages in the ``conversation_message`` table.

    Each append runs in its own session and commits, so a message is durable
    once ``append`` returns. Sequence numbers are ``max + 1``; a concurrent
    writer claiming the same number trips the unique constraint and the
    append is retried.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """Initialize the sink.

        Args:
            session_factory: Callable returning an async session context manager
        """
        self._session_factory = session_factory

    async def append(self, conversation_id: str, message: Message) -> int:
        """Append a message.

        Args:
            conversation_id: Conversation identifier
            message: Message to store

        Returns:
            Assigned sequence number

        Raises:
            SinkError: If the message could not be stored
        """
        last_error: Exception | None = None
        for attempt in range(MAX_APPEND_ATTEMPTS):
            async with self._session_factory() as session:
                try:
                    result = await session.execute(
                        select(func.coalesce(func.max(ConversationMessage.sequence), 0)).where(
                            ConversationMessage.conversation_id == conversation_id
                        )
                    )
                    sequence = int(result.scalar_one()) + 1
                    session.add(ConversationMessage.from_message(conversation_id, sequence, message))
                    await session.commit()
                    return sequence
                except IntegrityError as e:
                    await session.rollback()
                    last_error = e
                    logger.debug(
                        "Sequence collision on %s (attempt %d/%d)",
                        conversation_id,
                        attempt + 1,
                        MAX_APPEND_ATTEMPTS,
                    )
                except SQLAlchemyError as e:
                    await session.rollback()
                    raise SinkError(
                        f"Failed to append message: {e}", conversation_id=conversation_id
                    ) from e

        raise SinkError(
            f"Could not claim a sequence number after {MAX_APPEND_ATTEMPTS} attempts",
            conversation_id=conversation_id,
        ) from last_error

    async def load_recent(self, conversation_id: str, limit: int) -> list[Message]:
        """Get the last ``limit`` messages of a conversation.

        Args:
            conversation_id: Conversation identifier
            limit: Number of messages to retrieve

        Returns:
            Messages, oldest first
        """
        if limit <= 0:
            return []
        query = (
            select(ConversationMessage)
            .where(ConversationMessage.conversation_id == conversation_id)
            .order_by(ConversationMessage.sequence.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            try:
                result = await session.execute(query)
            except SQLAlchemyError as e:
                raise SinkError(
                    f"Failed to load messages: {e}", conversation_id=conversation_id
                ) from e
            records = list(result.scalars().all())

        records.reverse()
        return [record.to_message() for record in records]
