"""Capability execution for tool calls made by the model."""

from toolstream.tools.executor import CapabilityExecutor, CapabilityResult, ToolRegistryExecutor

__all__ = ["CapabilityExecutor", "CapabilityResult", "ToolRegistryExecutor"]
