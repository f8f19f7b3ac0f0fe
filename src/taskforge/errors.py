"""Structured error hierarchy for planning, execution and recursive processing."""

from __future__ import annotations


class TaskForgeError(Exception):
    """Base error carrying a stable code and the underlying cause."""

    def __init__(self, code: str, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause


class PlanningError(TaskForgeError):
    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__("PLANNING_ERROR", message, cause)


class CyclicDependencyError(PlanningError):
    """A task depends on itself, directly or through other tasks."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Circular dependency detected: {task_id}")
        self.code = "CYCLIC_DEPENDENCY"
        self.task_id = task_id


class TaskExecutionError(TaskForgeError):
    def __init__(self, task_id: str, message: str, cause: Exception | None = None) -> None:
        super().__init__("TASK_EXECUTION_ERROR", message, cause)
        self.task_id = task_id


class ToolError(TaskForgeError):
    def __init__(
        self, code: str, tool_name: str, message: str, cause: Exception | None = None
    ) -> None:
        super().__init__(code, message, cause)
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    def __init__(self, tool_name: str) -> None:
        super().__init__("TOOL_NOT_FOUND", tool_name, f"Tool {tool_name} not found")


class ToolTimeoutError(ToolError):
    def __init__(self, tool_name: str, timeout_seconds: float) -> None:
        super().__init__(
            "TOOL_TIMEOUT",
            tool_name,
            f'Tool "{tool_name}" timed out after {timeout_seconds:g}s',
        )
        self.timeout_seconds = timeout_seconds


class ModelCallError(TaskForgeError):
    """A text-generation backend failed to return a response."""

    def __init__(self, provider: str, message: str, cause: Exception | None = None) -> None:
        super().__init__("MODEL_CALL_ERROR", message, cause)
        self.provider = provider


class RLMError(TaskForgeError):
    pass


class RLMLimitError(RLMError):
    """A resource bound of the recursive executor was hit."""


class RecursionDepthExceededError(RLMLimitError):
    def __init__(self, max_depth: int) -> None:
        super().__init__(
            "RLM_DEPTH_EXCEEDED", f"Max recursion depth ({max_depth}) exceeded"
        )
        self.max_depth = max_depth


class ExecutionTimeExceededError(RLMLimitError):
    def __init__(self, max_seconds: float) -> None:
        super().__init__(
            "RLM_TIMEOUT", f"Max execution time ({max_seconds:g}s) exceeded"
        )
        self.max_seconds = max_seconds


class MapPhaseError(RLMError):
    def __init__(self, failed: int, total: int, first_error: str) -> None:
        super().__init__(
            "RLM_MAP_FAILED",
            f"{failed} of {total} map calls failed: {first_error}",
        )
        self.failed = failed
        self.total = total


class UnsupportedDataError(TaskForgeError):
    def __init__(self, type_name: str) -> None:
        super().__init__(
            "UNSUPPORTED_DATA", f"Unsupported data type for chunking: {type_name}"
        )
