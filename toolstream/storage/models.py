"""SQLAlchemy base model and conversation message entity."""

from datetime import datetime
from typing import Any
from uuid import uuid4

from sqlalchemy import JSON, DateTime, Integer, MetaData, String, UniqueConstraint, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, declared_attr, mapped_column

from toolstream.messages import Message, Role, content_from_dict, content_kind, content_to_dict

# Naming convention for constraints (helps with migrations)
NAMING_CONVENTION: dict[str, str] = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models.

    Table names are derived from class names in snake_case.
    """

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    @declared_attr.directive
    @classmethod
    def __tablename__(cls) -> str:
        """Generate table name from class name in snake_case."""
        name = cls.__name__
        result: list[str] = []
        for i, char in enumerate(name):
            if char.isupper() and i > 0:
                result.append("_")
            result.append(char.lower())
        return "".join(result)

    def to_dict(self) -> dict[str, Any]:
        """Convert model instance to dictionary."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


class ConversationMessage(Base):
    """One stored message of a conversation.

    ``sequence`` is 1-based and gap-free per conversation; the unique
    constraint turns a lost race between concurrent appends into a retry.
    """

    __table_args__ = (UniqueConstraint("conversation_id", "sequence"),)

    id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
        doc="Unique identifier (UUID v4)",
    )
    conversation_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        doc="Conversation this message belongs to",
    )
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        doc="Position within the conversation, starting at 1",
    )
    role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="Message author: user, assistant, system",
    )
    kind: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        doc="Content kind: text, tool_invocation, tool_outcome",
    )
    content: Mapped[dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
        doc="Serialized message content",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        doc="Message timestamp",
    )

    @classmethod
    def from_message(cls, conversation_id: str, sequence: int, message: Message) -> "ConversationMessage":
        return cls(
            id=str(uuid4()),
            conversation_id=conversation_id,
            sequence=sequence,
            role=message.role.value,
            kind=content_kind(message.content),
            content=content_to_dict(message.content),
            created_at=message.timestamp,
        )

    def to_message(self) -> Message:
        return Message(
            role=Role(self.role),
            content=content_from_dict(self.content),
            timestamp=self.created_at,
            conversation_id=self.conversation_id,
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<ConversationMessage(conversation_id={self.conversation_id!r}, "
            f"sequence={self.sequence}, kind={self.kind!r})>"
        )
