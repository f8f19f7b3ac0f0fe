"""Tools that expose recursive processing through the tool registry."""

import asyncio
import logging
from pathlib import Path
from typing import Any

from taskforge.llm.caller import ModelCaller
from taskforge.rlm.context_builder import (
    ContextBuildOptions,
    build_codebase_context,
    build_file_context,
)
from taskforge.rlm.executor import RLMExecutor
from taskforge.rlm.models import ProcessingStrategy, RLMConfig
from taskforge.rlm.prompts import ANALYSIS_PROMPTS
from taskforge.tools.registry import Tool, ToolContext, ToolDefinition, ToolRegistry

logger = logging.getLogger(__name__)

STRATEGIES = [s.value for s in ProcessingStrategy]

RECURSIVE_PROCESS_DEFINITION = ToolDefinition(
    name="recursive_process",
    description="""Process large inputs recursively by chunking them across many model calls.

Use this tool when dealing with:
- Multiple files or entire codebases
- Long documents or datasets
- Complex multi-step analysis
- Tasks that exceed context window limits

Strategies:
- map-reduce: Split data, process chunks in parallel, aggregate (best for uniform data)
- recursive-decomposition: Break task into subtasks automatically (best for complex tasks)
- sequential-processing: Process items in order with state (best for dependent steps)
- tree-traversal: Navigate hierarchical structures (best for nested data)""",
    parameters={
        "type": "object",
        "properties": {
            "task": {"type": "string", "description": "The high-level task to accomplish"},
            "strategy": {
                "type": "string",
                "enum": STRATEGIES,
                "description": "Processing strategy to use. Default: map-reduce",
            },
            "context_type": {
                "type": "string",
                "enum": ["codebase", "files", "custom"],
                "description": "Type of context to process. Default: custom",
            },
            "codebase_path": {
                "type": "string",
                "description": "Path to codebase directory (if context_type=codebase)",
            },
            "file_paths": {
                "type": "array",
                "items": {"type": "string"},
                "description": "File paths (if context_type=files)",
            },
            "extensions": {
                "type": "array",
                "items": {"type": "string"},
                "description": "File extensions to include (if context_type=codebase)",
            },
            "context": {
                "type": "object",
                "description": "Custom context variables (if context_type=custom)",
            },
            "max_recursion_depth": {
                "type": "integer",
                "description": "Maximum recursion depth. Default: 10",
            },
        },
        "required": ["task"],
    },
)

ANALYZE_CODEBASE_DEFINITION = ToolDefinition(
    name="analyze_codebase",
    description="""Analyze an entire codebase with recursive processing.

Scans code files and processes them chunk by chunk to:
- Identify patterns and architecture
- Find security vulnerabilities
- Analyze code quality
- Generate documentation
- Find bugs and issues""",
    parameters={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Path to the codebase directory. Default: current directory",
            },
            "analysis_type": {
                "type": "string",
                "enum": list(ANALYSIS_PROMPTS),
                "description": "Type of analysis to perform. Default: general",
            },
            "file_extensions": {
                "type": "array",
                "items": {"type": "string"},
                "description": "File extensions to analyze, e.g. ['.py']. Default: common code files",
            },
        },
        "required": [],
    },
)


def files_as_items(files: dict[str, str]) -> list[dict[str, str]]:
    """Turn a path -> content mapping into a list so it can be chunked by file."""
    return [{"path": path, "content": content} for path, content in files.items()]


class RLMTools:
    """Tool implementations bound to one ModelCaller and RLM configuration."""

    def __init__(self, model_caller: ModelCaller, config: RLMConfig | None = None):
        self.model_caller = model_caller
        self.config = config or RLMConfig()

    async def recursive_process(
        self,
        task: str,
        strategy: str = ProcessingStrategy.MAP_REDUCE.value,
        context_type: str = "custom",
        codebase_path: str | None = None,
        file_paths: list[str] | None = None,
        extensions: list[str] | None = None,
        context: dict[str, Any] | None = None,
        max_recursion_depth: int | None = None,
        tool_context: ToolContext | None = None,
    ) -> dict[str, Any]:
        """Build the requested context and run the RLM executor over it."""
        workspace_root = tool_context.workspace_root if tool_context else None
        variables: dict[str, Any]

        if context_type == "codebase" and codebase_path:
            options = ContextBuildOptions()
            if extensions:
                options.extensions = extensions
            root = Path(workspace_root or ".") / codebase_path
            codebase = await asyncio.to_thread(build_codebase_context, root, options)
            variables = {
                "files": files_as_items(codebase.files),
                "stats": codebase.stats.model_dump(),
            }
        elif context_type == "files" and file_paths:
            files = await asyncio.to_thread(build_file_context, file_paths, workspace_root)
            variables = {"files": files_as_items(files)}
        elif context_type == "custom" and context:
            variables = dict(context)
        else:
            return {
                "success": False,
                "error": "Invalid context configuration. Provide codebase_path, file_paths, or context.",
            }

        logger.info(f"recursive_process ({strategy}) over variables: {', '.join(variables)}")

        config = self.config
        if max_recursion_depth is not None:
            config = config.model_copy(update={"max_recursion_depth": max_recursion_depth})

        executor = RLMExecutor(self.model_caller, config)
        outcome = await executor.execute(task, variables, strategy)

        if not outcome.success:
            return {
                "success": False,
                "error": outcome.error,
                "error_type": outcome.error_type,
                "execution_time": outcome.execution_time,
                "trajectory": {"total_calls": outcome.trajectory.total_calls},
            }

        total_calls = outcome.trajectory.total_calls
        return {
            "success": True,
            "result": outcome.result,
            "strategy_used": strategy,
            "execution_time": outcome.execution_time,
            "trajectory": {
                "total_calls": total_calls,
                "max_depth": outcome.trajectory.max_depth,
            },
            "message": f"Processing completed using {strategy} strategy. Made {total_calls} calls.",
        }

    async def analyze_codebase(
        self,
        path: str = ".",
        analysis_type: str = "general",
        file_extensions: list[str] | None = None,
        tool_context: ToolContext | None = None,
    ) -> dict[str, Any]:
        task = ANALYSIS_PROMPTS.get(analysis_type, ANALYSIS_PROMPTS["general"])
        return await self.recursive_process(
            task=task,
            strategy=ProcessingStrategy.MAP_REDUCE.value,
            context_type="codebase",
            codebase_path=path,
            extensions=file_extensions,
            tool_context=tool_context,
        )

    def register(self, registry: ToolRegistry) -> None:
        registry.register(
            Tool(
                definition=RECURSIVE_PROCESS_DEFINITION,
                func=self.recursive_process,
                accepts_context=True,
            )
        )
        registry.register(
            Tool(
                definition=ANALYZE_CODEBASE_DEFINITION,
                func=self.analyze_codebase,
                accepts_context=True,
            )
        )


def create_default_registry(
    model_caller: ModelCaller, rlm_config: RLMConfig | None = None
) -> ToolRegistry:
    """Registry holding the recursive processing tools."""
    registry = ToolRegistry()
    RLMTools(model_caller, rlm_config).register(registry)
    return registry
