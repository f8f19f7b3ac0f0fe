"""Dependency-aware task execution with bounded concurrency.

Three scheduling modes, chosen by the plan's strategy:

- sequential: plan order, stop at the first failure
- parallel: fixed-size batches, each awaited in full
- mixed: launch every ready task (up to the concurrency limit), wake up
  when any in-flight task finishes, recompute readiness

A task is ready when every dependency has a recorded result. Tasks whose
dependencies can never be satisfied are marked skipped instead of
waiting forever.
"""

import asyncio
import inspect
import json
import logging
import re
import time
from collections.abc import Callable, Mapping
from typing import Any

from pydantic import BaseModel, Field

from taskforge.agent.prompts import DIRECT_ANSWER_PROMPT
from taskforge.errors import PlanningError, TaskExecutionError
from taskforge.llm.caller import ModelCaller
from taskforge.models.task import (
    ExecutionResult,
    PlanStatus,
    PlanStrategy,
    Task,
    TaskPlan,
    TaskStatus,
)
from taskforge.tools.registry import ToolContext, ToolExecutor

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{([^}]+)\}")

NO_TOOL_ERROR = "Task has no tool specified"
DEADLOCK_ERROR = "Unmet dependencies or deadlock"
NOT_RUN_ERROR = "Not run: an earlier task failed"

ProgressCallback = Callable[[Task], Any]
FailureCallback = Callable[[Task, Exception], Any]

_MISSING = object()


class ExecutorConfig(BaseModel):
    """Concurrency and retry settings for the executor."""

    max_parallel_tasks: int = Field(default=5, ge=1)
    max_retries: int = Field(default=2, ge=0)
    retry_backoff_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Base delay; attempt n waits base * 2**n seconds (0 retries immediately)",
    )
    retry_backoff_max_seconds: float = Field(default=8.0, ge=0.0)


class ParallelExecutor:
    """Runs task plans against an injected tool registry."""

    def __init__(
        self,
        tool_registry: ToolExecutor,
        model_caller: ModelCaller | None = None,
        config: ExecutorConfig | None = None,
        tool_context: ToolContext | None = None,
        on_progress: ProgressCallback | None = None,
        on_task_complete: ProgressCallback | None = None,
        on_task_failed: FailureCallback | None = None,
    ):
        """Initialize the executor.

        Args:
            tool_registry: Anything with ``execute(tool_name, args, context)``.
            model_caller: Answers tasks that have no tool bound. Without it
                such tasks fail immediately.
            config: Concurrency and retry settings.
            tool_context: Passed to every tool call.
            on_progress: Called with the task when an attempt starts.
            on_task_complete: Called with the task after it completes.
            on_task_failed: Called with the task and the error once retries are exhausted.
        """
        self.tool_registry = tool_registry
        self.model_caller = model_caller
        self.config = config or ExecutorConfig()
        self.tool_context = tool_context or ToolContext()
        self.on_progress = on_progress
        self.on_task_complete = on_task_complete
        self.on_task_failed = on_task_failed
        self._callback_tasks: set[asyncio.Future[Any]] = set()

    async def execute_plan(
        self, plan: TaskPlan, seed_results: Mapping[str, Any] | None = None
    ) -> ExecutionResult:
        """Execute all pending tasks of a plan.

        Args:
            plan: The plan to run. Task statuses are updated in place.
            seed_results: Results of tasks outside this plan that tasks in it
                may depend on.

        Returns:
            ExecutionResult with every recorded result and the tasks that
            failed or were skipped for unmet dependencies.
        """
        ids = [task.id for task in plan.tasks]
        if len(set(ids)) != len(ids):
            raise PlanningError(f"Duplicate task ids in plan {plan.id}")

        results: dict[str, Any] = dict(seed_results or {})
        failed: list[Task] = []
        pending = [task for task in plan.tasks if task.status == TaskStatus.PENDING]

        plan.status = PlanStatus.EXECUTING
        logger.info(
            f"Executing plan {plan.id}: {len(pending)} tasks ({plan.strategy.value}, "
            f"max {self.config.max_parallel_tasks} in flight)"
        )

        try:
            if plan.strategy == PlanStrategy.SEQUENTIAL:
                await self._execute_sequential(pending, results, failed)
            elif plan.strategy == PlanStrategy.PARALLEL:
                await self._execute_parallel(pending, results, failed)
            else:
                await self._execute_mixed(pending, results, failed)
        except BaseException:
            plan.status = PlanStatus.FAILED
            raise

        plan.status = PlanStatus.FAILED if failed else PlanStatus.COMPLETED
        plan.completed_tasks = sum(1 for task in plan.tasks if task.status == TaskStatus.COMPLETED)
        logger.info(
            f"Plan {plan.id} {plan.status.value}: "
            f"{plan.completed_tasks}/{plan.total_tasks} tasks completed"
        )
        return ExecutionResult(success=not failed, results=results, failed_tasks=failed)

    async def execute_one(self, task: Task, results: Mapping[str, Any] | None = None) -> Any:
        """Execute a single task outside of a plan and return its result.

        Raises:
            TaskExecutionError: If the task failed after all retries.
        """
        if not await self._run_task(task, dict(results or {}), []):
            raise TaskExecutionError(task.id, task.error or "Task failed")
        return task.result

    # =========================================================================
    # Scheduling modes
    # =========================================================================

    async def _execute_sequential(
        self, tasks: list[Task], results: dict[str, Any], failed: list[Task]
    ) -> None:
        for index, task in enumerate(tasks):
            if self._dependencies_met(task, results):
                ok = await self._run_task(task, results, failed)
            else:
                self._skip(task, self._unmet_message(task, results))
                failed.append(task)
                ok = False

            if not ok:
                for remaining in tasks[index + 1 :]:
                    if remaining.status == TaskStatus.PENDING:
                        self._skip(remaining, NOT_RUN_ERROR)
                break

    async def _execute_parallel(
        self, tasks: list[Task], results: dict[str, Any], failed: list[Task]
    ) -> None:
        size = self.config.max_parallel_tasks
        for start in range(0, len(tasks), size):
            runnable = []
            for task in tasks[start : start + size]:
                if self._dependencies_met(task, results):
                    runnable.append(task)
                else:
                    self._skip(task, self._unmet_message(task, results))
                    failed.append(task)

            await asyncio.gather(*(self._run_task(task, results, failed) for task in runnable))

    async def _execute_mixed(
        self, tasks: list[Task], results: dict[str, Any], failed: list[Task]
    ) -> None:
        pending = list(tasks)
        in_flight: dict[asyncio.Task[bool], Task] = {}

        try:
            while pending or in_flight:
                for task in [t for t in pending if self._dependencies_met(t, results)]:
                    if len(in_flight) >= self.config.max_parallel_tasks:
                        break
                    pending.remove(task)
                    runner = asyncio.create_task(self._run_task(task, results, failed))
                    in_flight[runner] = task

                if not in_flight:
                    logger.warning(
                        f"Unmet dependencies or deadlock, skipping: {[t.id for t in pending]}"
                    )
                    for task in pending:
                        self._skip(task, DEADLOCK_ERROR)
                        failed.append(task)
                    pending.clear()
                    break

                done, _ = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for runner in done:
                    del in_flight[runner]
                    runner.result()
        finally:
            for runner in in_flight:
                runner.cancel()

    # =========================================================================
    # Per-task execution
    # =========================================================================

    async def _run_task(self, task: Task, results: dict[str, Any], failed: list[Task]) -> bool:
        """Execute one task with retries and record the outcome. Never raises."""
        try:
            result = await self._execute_with_retries(task, results)
        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            failed.append(task)
            logger.warning(f"Task {task.id} failed after {task.retries + 1} attempt(s): {e}")
            self._notify(self.on_task_failed, task, e)
            return False

        task.status = TaskStatus.COMPLETED
        task.result = result
        results[task.id] = result
        logger.debug(f"Task {task.id} completed in {task.duration_seconds or 0:.2f}s")
        self._notify(self.on_task_complete, task)
        return True

    async def _execute_with_retries(self, task: Task, results: Mapping[str, Any]) -> Any:
        task.status = TaskStatus.IN_PROGRESS
        task.start_time = time.time()
        task.error = None
        self._notify(self.on_progress, task)

        if not task.tool and self.model_caller is None:
            task.end_time = time.time()
            raise TaskExecutionError(task.id, NO_TOOL_ERROR)

        while True:
            try:
                result = await self._invoke(task, results)
            except Exception as e:
                if task.retries >= self.config.max_retries:
                    task.end_time = time.time()
                    raise
                delay = self.backoff_delay(task.retries)
                task.retries += 1
                logger.debug(
                    f"Retrying task {task.id} (attempt {task.retries + 1}) in {delay:.2f}s: {e}"
                )
                if delay > 0:
                    await asyncio.sleep(delay)
                self._notify(self.on_progress, task)
                continue

            task.end_time = time.time()
            return result

    async def _invoke(self, task: Task, results: Mapping[str, Any]) -> Any:
        args = self.resolve_arguments(task, results)

        if not task.tool:
            prompt = DIRECT_ANSWER_PROMPT.format(
                description=task.description,
                context=f"\nContext:\n{json.dumps(args, indent=2, default=str)}" if args else "",
            )
            return await self.model_caller.call(prompt)  # type: ignore[union-attr]

        result = await self.tool_registry.execute(task.tool, args, self.tool_context)
        if isinstance(result, Mapping) and result.get("success") is False:
            raise TaskExecutionError(task.id, str(result.get("error") or "Tool reported failure"))
        return result

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``."""
        return min(
            self.config.retry_backoff_seconds * 2**attempt,
            self.config.retry_backoff_max_seconds,
        )

    # =========================================================================
    # Dependency resolution
    # =========================================================================

    @staticmethod
    def _dependencies_met(task: Task, results: Mapping[str, Any]) -> bool:
        return all(dep in results for dep in task.dependencies)

    @staticmethod
    def _unmet_message(task: Task, results: Mapping[str, Any]) -> str:
        missing = [dep for dep in task.dependencies if dep not in results]
        return f"Unmet dependencies: {', '.join(missing)}"

    @staticmethod
    def _skip(task: Task, reason: str) -> None:
        task.status = TaskStatus.SKIPPED
        task.error = reason

    def resolve_arguments(self, task: Task, results: Mapping[str, Any]) -> dict[str, Any]:
        """Build the argument bag for a task from its args and dependency results.

        Each recorded dependency result is exposed as ``__dep_<id>``, and
        ``${taskId.path}`` placeholders inside string arguments are replaced
        with the referenced value. Unresolvable placeholders are left as-is.
        """
        args = {key: self._substitute(value, results) for key, value in task.args.items()}
        for dep in task.dependencies:
            if dep in results:
                args[f"__dep_{dep}"] = results[dep]
        return args

    def _substitute(self, value: Any, results: Mapping[str, Any]) -> Any:
        if isinstance(value, str):
            return PLACEHOLDER_PATTERN.sub(lambda m: self._render(m, results), value)
        if isinstance(value, list):
            return [self._substitute(item, results) for item in value]
        if isinstance(value, dict):
            return {key: self._substitute(item, results) for key, item in value.items()}
        return value

    @staticmethod
    def _render(match: re.Match[str], results: Mapping[str, Any]) -> str:
        task_id, *path = match.group(1).strip().split(".")
        if task_id not in results:
            return match.group(0)

        value = results[task_id]
        for index, key in enumerate(path):
            # "${task-0.result}" is the whole result unless it has its own "result" key
            if index == 0 and key == "result" and not (isinstance(value, Mapping) and "result" in value):
                continue
            value = _lookup(value, key)
            if value is _MISSING:
                return match.group(0)

        return value if isinstance(value, str) else json.dumps(value, default=str)

    # =========================================================================
    # Observers
    # =========================================================================

    def _notify(self, callback: Callable[..., Any] | None, *args: Any) -> None:
        """Fire an observer callback without letting it affect scheduling."""
        if callback is None:
            return
        try:
            outcome = callback(*args)
        except Exception as e:
            logger.error(f"Observer callback {getattr(callback, '__name__', callback)} failed: {e}")
            return

        if inspect.isawaitable(outcome):
            future = asyncio.ensure_future(outcome)
            self._callback_tasks.add(future)
            future.add_done_callback(self._callback_done)

    def _callback_done(self, future: asyncio.Future[Any]) -> None:
        self._callback_tasks.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error(f"Observer callback failed: {future.exception()}")


def _lookup(value: Any, key: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(key, _MISSING)
    if isinstance(value, list) and key.lstrip("-").isdigit():
        index = int(key)
        return value[index] if -len(value) <= index < len(value) else _MISSING
    return _MISSING
