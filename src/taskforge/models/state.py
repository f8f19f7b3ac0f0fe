"""LangGraph state models for the agent loop."""

from typing import Any, TypedDict

from taskforge.models.task import ExecutionResult, PlanningContext, ReflectionResult, Task, TaskPlan


class StepTiming(TypedDict):
    """Timing information for a single workflow step."""

    step_name: str
    start_time: float  # Unix timestamp
    end_time: float | None
    duration_seconds: float | None


class FailureRecord(TypedDict):
    """A failed task together with the reflection made on it."""

    task: Task
    error: str
    reflection: ReflectionResult


class AgentState(TypedDict, total=False):
    """Main state for the plan → execute → reflect → recover loop."""

    # Input
    request: str
    planning_context: PlanningContext

    # Planning
    plan: TaskPlan | None  # As produced by the planner
    active_plan: TaskPlan | None  # The plan the next execute step runs

    # Execution
    execution: ExecutionResult | None
    results: dict[str, Any]  # Accumulated over recovery rounds
    execution_history: list[Task]

    # Reflection / recovery
    failures: list[FailureRecord]
    recovery_tasks: list[Task]
    replaced_tasks: dict[str, str]  # Failed task id -> id of the task that replaces it
    recovery_round: int
    max_recovery_rounds: int
    learnings: list[str]

    # Metadata
    step_timings: list[StepTiming]
    current_step: str
    current_step_start: float | None
    current_step_description: str
    errors: list[str]
