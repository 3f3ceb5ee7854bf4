"""System message suppliers.

The persona text is opaque to the window builder; it is rebuilt for
every turn and never stored.
"""

from typing import Protocol, runtime_checkable

from toolstream.messages import Message
from toolstream.settings import get_settings

CONVERSATION_PLACEHOLDER = "{conversation_id}"


@runtime_checkable
class PersonaSupplier(Protocol):
    """Produces the system message text for a conversation."""

    async def system_text(self, conversation_id: str) -> str: ...


class StaticPersona:
    """Persona built from a fixed template.

    The only substitution is ``{conversation_id}``. Other braces are left
    alone, so templates may contain literal JSON.
    """

    def __init__(self, template: str | None = None) -> None:
        self.template = template if template is not None else get_settings().persona_text

    async def system_text(self, conversation_id: str) -> str:
        return self.template.replace(CONVERSATION_PLACEHOLDER, conversation_id)


def build_system_message(text: str, conversation_id: str | None = None) -> Message:
    """Wrap persona text as the system message placed first in the window."""
    return Message.system(text, conversation_id=conversation_id)


async def system_message_for(supplier: PersonaSupplier, conversation_id: str) -> Message:
    """Ask a supplier for its text and wrap it as a system message."""
    text = await supplier.system_text(conversation_id)
    return build_system_message(text, conversation_id)
