"""LangGraph node definitions for the plan → execute → reflect → recover loop."""

import logging
import re
import time
from collections.abc import Callable
from typing import Any

from taskforge.agent.executor import ParallelExecutor
from taskforge.agent.planner import AgentPlanner
from taskforge.agent.reflector import AgentReflector
from taskforge.errors import PlanningError
from taskforge.models.state import AgentState, FailureRecord, StepTiming
from taskforge.models.task import PlanningContext, PlanStatus, Task, TaskPlan, TaskStatus

logger = logging.getLogger(__name__)

STEP_DESCRIPTIONS = {
    "plan": "Breaking the request into tasks...",
    "optimize": "Ordering tasks by dependency...",
    "execute": "Running tasks...",
    "reflect": "Reviewing failed tasks...",
    "recover": "Preparing corrected tasks...",
    "finalize": "Summarizing the run...",
}


def _start_step(
    step_name: str,
    on_step_start: Callable[[str, str], None] | None = None,
) -> dict:
    """Record step start time and description."""
    description = STEP_DESCRIPTIONS.get(step_name, f"Running {step_name}...")

    if on_step_start:
        try:
            on_step_start(step_name, description)
        except Exception as e:
            logger.error(f"Step start callback failed for {step_name}: {e}")

    return {
        "current_step": step_name,
        "current_step_description": description,
        "current_step_start": time.time(),
    }


def _end_step(state: AgentState, step_name: str, updates: dict) -> dict:
    """Record step end time and compute duration."""
    end_time = time.time()
    start_time = updates.get("current_step_start") or end_time

    timing = StepTiming(
        step_name=step_name,
        start_time=start_time,
        end_time=end_time,
        duration_seconds=end_time - start_time,
    )
    updates["step_timings"] = state.get("step_timings", []) + [timing]
    return updates


def _rewire(value: Any, replaced: dict[str, str]) -> Any:
    """Point ``${old-id...}`` placeholders at the ids of replacement tasks."""
    if isinstance(value, str):
        for old, new in replaced.items():
            value = re.sub(r"\$\{\s*" + re.escape(old) + r"(?=[.}])", "${" + new, value)
        return value
    if isinstance(value, list):
        return [_rewire(item, replaced) for item in value]
    if isinstance(value, dict):
        return {key: _rewire(item, replaced) for key, item in value.items()}
    return value


def _final_task_id(task_id: str, replaced: dict[str, str]) -> str:
    """Follow replacements to the task that finally stands in for ``task_id``."""
    seen = {task_id}
    while task_id in replaced and replaced[task_id] not in seen:
        task_id = replaced[task_id]
        seen.add(task_id)
    return task_id


def requeue_skipped(
    tasks: list[Task],
    replaced: dict[str, str],
    results: dict[str, Any],
    recovery_ids: set[str],
) -> list[Task]:
    """Fresh copies of skipped tasks whose dependencies can now be satisfied.

    Dependencies on replaced tasks are rewired to the replacements. A skipped
    task is re-queued only if every dependency already has a result, is a
    recovery task, or is itself re-queued.
    """
    skipped = [t for t in tasks if t.status == TaskStatus.SKIPPED]
    candidates = {
        t.id: t.model_copy(
            update={
                "status": TaskStatus.PENDING,
                "error": None,
                "result": None,
                "retries": 0,
                "start_time": None,
                "end_time": None,
                "dependencies": [replaced.get(dep, dep) for dep in t.dependencies],
                "args": _rewire(t.args, replaced),
            },
            deep=True,
        )
        for t in skipped
    }

    # Drop candidates until the remaining set is closed under its dependencies
    changed = True
    while changed:
        changed = False
        for task_id, task in list(candidates.items()):
            satisfiable = all(
                dep in results or dep in recovery_ids or dep in candidates
                for dep in task.dependencies
            )
            if not satisfiable:
                del candidates[task_id]
                changed = True

    return list(candidates.values())


def create_nodes(
    planner: AgentPlanner,
    executor: ParallelExecutor,
    reflector: AgentReflector,
    available_tools: list[str],
    on_step_start: Callable[[str, str], None] | None = None,
) -> dict:
    """Create all workflow nodes around the given agent components.

    Args:
        planner: Turns the request into a plan and proposes replacement tasks.
        executor: Runs plans.
        reflector: Judges failed tasks and proposes corrections.
        available_tools: Tool names advertised to the planner.
        on_step_start: Optional callback(step_name, description) fired when a step starts.

    Returns:
        dict: Dictionary of node functions.
    """

    async def plan(state: AgentState) -> dict:
        step_name = "plan"
        result = _start_step(step_name, on_step_start)
        request = (state.get("request") or "").strip()

        if not request:
            result["errors"] = state.get("errors", []) + ["Request is empty"]
            return _end_step(state, step_name, result)

        context = state.get("planning_context") or PlanningContext()
        if not context.available_tools:
            context = context.model_copy(update={"available_tools": available_tools})

        try:
            result["plan"] = await planner.plan(request, context)
        except PlanningError as e:
            logger.error(f"Planning failed: {e.message}")
            result["errors"] = state.get("errors", []) + [f"Planning failed: {e.message}"]

        return _end_step(state, step_name, result)

    async def optimize(state: AgentState) -> dict:
        step_name = "optimize"
        result = _start_step(step_name, on_step_start)

        try:
            result["active_plan"] = planner.optimize_plan(state["plan"])
        except PlanningError as e:
            logger.error(f"Plan optimization failed: {e.message}")
            result["errors"] = state.get("errors", []) + [f"Planning failed: {e.message}"]

        return _end_step(state, step_name, result)

    async def execute(state: AgentState) -> dict:
        step_name = "execute"
        result = _start_step(step_name, on_step_start)
        active = state["active_plan"]
        previous = state.get("results", {})

        execution = await executor.execute_plan(active, seed_results=previous)

        result["execution"] = execution
        result["results"] = {**previous, **execution.results}
        result["execution_history"] = state.get("execution_history", []) + list(active.tasks)
        result["recovery_tasks"] = []
        return _end_step(state, step_name, result)

    async def reflect(state: AgentState) -> dict:
        """Reflect on failed tasks and collect replacements for the fixable ones."""
        step_name = "reflect"
        result = _start_step(step_name, on_step_start)
        active = state["active_plan"]
        execution = state["execution"]

        failures: list[FailureRecord] = list(state.get("failures", []))
        recovery: list[Task] = []
        replaced: dict[str, str] = {}
        all_replaced = dict(state.get("replaced_tasks", {}))

        for task in execution.failed_tasks:
            if task.status != TaskStatus.FAILED:
                continue

            error = task.error or "Task failed"
            reflection = await reflector.analyze_result(task)
            failures.append(FailureRecord(task=task, error=error, reflection=reflection))
            if not reflection.should_retry:
                continue

            corrected = await reflector.propose_correction(task, error)
            if corrected is not None:
                replacements = [corrected]
            else:
                replacements = await planner.replan(
                    state.get("plan") or active, task, error, available_tools
                )

            if replacements:
                recovery.extend(replacements)
                # Dependents wait on the last replacement task
                replaced[task.id] = replacements[-1].id

        if recovery:
            requeued = requeue_skipped(
                active.tasks,
                replaced,
                state.get("results", {}),
                {t.id for t in recovery},
            )
            recovery.extend(requeued)
            logger.info(
                f"Recovery round {state.get('recovery_round', 0) + 1}: "
                f"{len(recovery) - len(requeued)} replacement and {len(requeued)} re-queued tasks"
            )

        result["failures"] = failures
        result["recovery_tasks"] = recovery
        result["replaced_tasks"] = {**all_replaced, **replaced}
        result["recovery_round"] = state.get("recovery_round", 0) + 1
        return _end_step(state, step_name, result)

    async def recover(state: AgentState) -> dict:
        step_name = "recover"
        result = _start_step(step_name, on_step_start)
        original = state.get("plan") or state["active_plan"]

        recovery_plan = TaskPlan(
            original_request=original.original_request,
            tasks=state["recovery_tasks"],
        )
        try:
            result["active_plan"] = planner.optimize_plan(
                recovery_plan, satisfied=state.get("results", {}).keys()
            )
        except PlanningError as e:
            logger.error(f"Recovery plan rejected: {e.message}")
            result["errors"] = state.get("errors", []) + [f"Recovery failed: {e.message}"]

        return _end_step(state, step_name, result)

    async def finalize(state: AgentState) -> dict:
        """Record the overall outcome and distill learnings from failures."""
        step_name = "finalize"
        result = _start_step(step_name, on_step_start)
        history = state.get("execution_history", [])
        plan = state.get("plan")

        if plan is not None:
            completed = {t.id for t in history if t.status == TaskStatus.COMPLETED}
            replaced = state.get("replaced_tasks", {})
            resolved = sum(
                1 for t in plan.tasks if _final_task_id(t.id, replaced) in completed
            )
            plan.completed_tasks = resolved
            plan.status = PlanStatus.COMPLETED if resolved == plan.total_tasks else PlanStatus.FAILED
            result["plan"] = plan

        learnings = list(state.get("learnings", []))
        if any(t.status == TaskStatus.FAILED for t in history):
            patterns = await reflector.analyze_patterns(history)
            learnings.extend(patterns.common_issues)
            learnings.extend(patterns.recommendations)
        result["learnings"] = learnings

        return _end_step(state, step_name, result)

    return {
        "plan": plan,
        "optimize": optimize,
        "execute": execute,
        "reflect": reflect,
        "recover": recover,
        "finalize": finalize,
    }
