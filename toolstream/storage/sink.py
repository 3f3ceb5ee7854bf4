"""Conversation sink interface and in-memory implementation.

A sink is an append-only message log per conversation. It owns sequence
numbering: every append gets the next integer for its conversation, even
under concurrent appends.
"""

from __future__ import annotations

import asyncio
import dataclasses
from collections import defaultdict
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from toolstream.messages import Message


@runtime_checkable
class ConversationSink(Protocol):
    """Durable, append-only message store."""

    async def append(self, conversation_id: str, message: Message) -> int:
        """Append a message and return its sequence number (1-based)."""
        ...

    async def load_recent(self, conversation_id: str, limit: int) -> list[Message]:
        """Return the last ``limit`` messages, oldest first."""
        ...


class InMemoryConversationSink:
    """Process-local sink for tests, the CLI and single-process use."""

    def __init__(self) -> None:
        self._messages: dict[str, list[Message]] = defaultdict(list)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def append(self, conversation_id: str, message: Message) -> int:
        if message.conversation_id != conversation_id:
            message = dataclasses.replace(message, conversation_id=conversation_id)
        async with self._locks[conversation_id]:
            log = self._messages[conversation_id]
            log.append(message)
            return len(log)

    async def load_recent(self, conversation_id: str, limit: int) -> list[Message]:
        if limit <= 0:
            return []
        return list(self._messages.get(conversation_id, [])[-limit:])

    def count(self, conversation_id: str) -> int:
        return len(self._messages.get(conversation_id, []))
