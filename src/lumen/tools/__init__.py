"""Lumen Tools: definitions and the concurrent executor."""

from lumen.tools.base import ToolConfig, ToolDefinition, ToolHandler, ToolParam
from lumen.tools.executor import ToolExecutor

__all__ = ["ToolConfig", "ToolDefinition", "ToolHandler", "ToolParam", "ToolExecutor"]
