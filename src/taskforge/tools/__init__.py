"""Tool registry and built-in tools."""

from taskforge.tools.registry import (
    Tool,
    ToolContext,
    ToolDefinition,
    ToolExecutor,
    ToolRegistry,
)
from taskforge.tools.rlm_tools import RLMTools, create_default_registry

__all__ = [
    "RLMTools",
    "Tool",
    "ToolContext",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRegistry",
    "create_default_registry",
]
