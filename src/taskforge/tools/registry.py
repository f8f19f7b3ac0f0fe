"""Tool registration and execution.

The executor only depends on ``ToolRegistry.execute``. Registries are plain
objects handed to the executor; there is no process-wide instance.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import BaseModel, Field

from taskforge.errors import ToolNotFoundError, ToolTimeoutError

logger = logging.getLogger(__name__)


class ToolDefinition(BaseModel):
    """Name, description and JSON-schema parameters advertised to the planner."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class ToolContext(BaseModel):
    """Ambient information passed to every tool call."""

    api_keys: dict[str, str] = Field(default_factory=dict)
    workspace_root: str | None = None


ToolFunc = Callable[..., Any] | Callable[..., Awaitable[Any]]


@dataclass
class Tool:
    definition: ToolDefinition
    func: ToolFunc
    timeout: float | None = None  # Seconds; None means no limit
    accepts_context: bool = False

    @property
    def name(self) -> str:
        return self.definition.name


class ToolExecutor(Protocol):
    """The one method the executor needs from a registry."""

    async def execute(
        self, tool_name: str, args: dict[str, Any], context: ToolContext | None = None
    ) -> Any: ...


class ToolRegistry:
    """In-memory registry of callable tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            logger.warning(f"Replacing already registered tool: {tool.name}")
        self._tools[tool.name] = tool

    def register_function(
        self,
        name: str,
        func: ToolFunc,
        description: str = "",
        parameters: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> Tool:
        """Wrap a plain (sync or async) function as a tool and register it.

        The function receives the tool arguments as keyword arguments, plus
        ``tool_context`` when its signature declares that parameter.
        """
        definition = ToolDefinition(name=name, description=description)
        if parameters is not None:
            definition.parameters = parameters
        tool = Tool(
            definition=definition,
            func=func,
            timeout=timeout,
            accepts_context="tool_context" in inspect.signature(func).parameters,
        )
        self.register(tool)
        return tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def list_definitions(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute(
        self, tool_name: str, args: dict[str, Any], context: ToolContext | None = None
    ) -> Any:
        """Run a tool. Tool exceptions propagate unchanged."""
        tool = self._tools.get(tool_name)
        if tool is None:
            raise ToolNotFoundError(tool_name)

        kwargs = _accepted_arguments(tool, args)
        if tool.accepts_context:
            kwargs["tool_context"] = context or ToolContext()

        if inspect.iscoroutinefunction(tool.func):
            call = tool.func(**kwargs)
        else:
            call = asyncio.to_thread(tool.func, **kwargs)

        if tool.timeout is None:
            return await call

        try:
            return await asyncio.wait_for(call, timeout=tool.timeout)
        except asyncio.TimeoutError as e:
            raise ToolTimeoutError(tool_name, tool.timeout) from e


def _accepted_arguments(tool: Tool, args: dict[str, Any]) -> dict[str, Any]:
    """Drop arguments the tool does not declare, unless it takes ``**kwargs``."""
    parameters = inspect.signature(tool.func).parameters
    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in parameters.values()):
        return dict(args)

    accepted = {key: value for key, value in args.items() if key in parameters}
    dropped = sorted(set(args) - set(accepted))
    if dropped:
        logger.debug(f"Tool {tool.name} ignores arguments: {', '.join(dropped)}")
    return accepted
