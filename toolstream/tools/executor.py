"""Capability execution.

The decoder hands every completed tool call to a :class:`CapabilityExecutor`.
Executors never raise for a failing capability; they report it as a
``CapabilityResult`` with ``succeeded=False`` so one broken tool cannot
abort a turn.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

from toolstream.settings import get_settings

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)

# Argument keys that must never reach a capability from model output
STRIPPED_ARGUMENT_KEYS = frozenset({"authToken"})


@dataclass(frozen=True, slots=True)
class CapabilityResult:
    """What a capability returned.

    Attributes:
        payload: Result data (any JSON-compatible value or None).
        succeeded: Whether the capability completed normally.
    """

    payload: Any = None
    succeeded: bool = True

    @classmethod
    def failure(cls, error: str) -> CapabilityResult:
        return cls(payload={"error": error}, succeeded=False)


class CapabilityExecutor(Protocol):
    """Runs a named capability with decoded arguments."""

    async def execute(self, name: str, arguments: dict[str, Any]) -> CapabilityResult: ...


class ToolRegistryExecutor:
    """Executor backed by a name → tool mapping.

    Tools are LangChain tools (anything with ``ainvoke``) or plain callables
    taking the arguments dict, sync or async.
    """

    def __init__(
        self,
        tools: Mapping[str, Any],
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._tools = dict(tools)
        if timeout_seconds is None:
            timeout_seconds = float(get_settings().tool_timeout_seconds)
        self._timeout = timeout_seconds or None

    @classmethod
    def from_tools(cls, tools: Iterable[Any], **kwargs: Any) -> ToolRegistryExecutor:
        """Build a registry from objects exposing a ``name`` attribute."""
        return cls({tool.name: tool for tool in tools}, **kwargs)

    @property
    def tool_names(self) -> list[str]:
        return sorted(self._tools)

    async def execute(self, name: str, arguments: dict[str, Any]) -> CapabilityResult:
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Unknown tool called: %s", name)
            return CapabilityResult.failure(f"Unknown tool: {name}")

        clean_args = {k: v for k, v in arguments.items() if k not in STRIPPED_ARGUMENT_KEYS}

        try:
            if self._timeout:
                result = await asyncio.wait_for(self._invoke(tool, clean_args), self._timeout)
            else:
                result = await self._invoke(tool, clean_args)
        except TimeoutError:
            logger.warning("Tool %s timed out after %ss", name, self._timeout)
            return CapabilityResult.failure(f"Tool {name} timed out after {self._timeout}s")
        except Exception as e:
            logger.exception("Tool %s failed", name)
            return CapabilityResult.failure(f"Tool {name} failed: {e}")

        succeeded = not (isinstance(result, dict) and result.get("success") is False)
        return CapabilityResult(payload=result, succeeded=succeeded)

    @staticmethod
    async def _invoke(tool: Any, arguments: dict[str, Any]) -> Any:
        if hasattr(tool, "ainvoke"):
            return await tool.ainvoke(arguments)
        result = tool(arguments)
        if inspect.isawaitable(result):
            result = await result
        return result
