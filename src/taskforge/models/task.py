"""Task, plan and reflection models for the planning/execution agent."""

import time
import uuid
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, computed_field


class TaskStatus(str, Enum):
    """Lifecycle state of a single task."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class PlanStrategy(str, Enum):
    """How the executor schedules a plan."""

    SEQUENTIAL = "sequential"  # One by one, fail-fast
    PARALLEL = "parallel"  # Independent tasks in fixed-size batches
    MIXED = "mixed"  # Dependency-driven readiness loop


class PlanStatus(str, Enum):
    PLANNING = "planning"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class TaskMetadata(BaseModel):
    priority: int | None = None
    estimated_duration: float | None = None
    tags: list[str] = Field(default_factory=list)


class Task(BaseModel):
    """A unit of work bound (optionally) to a tool."""

    id: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    tool: str | None = None
    args: dict[str, Any] = Field(default_factory=dict)
    dependencies: list[str] = Field(default_factory=list)
    result: Any = None
    error: str | None = None
    start_time: float | None = None
    end_time: float | None = None
    retries: int = 0
    subtasks: list["Task"] = Field(default_factory=list)
    metadata: TaskMetadata = Field(default_factory=TaskMetadata)

    @property
    def duration_seconds(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time


class TaskPlan(BaseModel):
    """A dependency graph of tasks plus the strategy chosen to run it."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    original_request: str
    tasks: list[Task] = Field(default_factory=list)
    strategy: PlanStrategy = PlanStrategy.SEQUENTIAL
    status: PlanStatus = PlanStatus.PLANNING
    completed_tasks: int = 0
    created_at: float = Field(default_factory=time.time)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_tasks(self) -> int:
        return len(self.tasks)

    def get_task(self, task_id: str) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None


class PlanningConstraints(BaseModel):
    max_parallel_tasks: int | None = None
    max_total_tasks: int | None = None
    time_limit: float | None = None


class PlanningContext(BaseModel):
    """Inputs the planner sees besides the request itself."""

    history: list[dict[str, str]] = Field(default_factory=list)
    available_tools: list[str] = Field(default_factory=list)
    project_context: Any = None
    constraints: PlanningConstraints = Field(default_factory=PlanningConstraints)


class ExecutionResult(BaseModel):
    """Outcome of running a plan: per-task results plus the tasks that did not succeed."""

    success: bool
    results: dict[str, Any] = Field(default_factory=dict)
    failed_tasks: list[Task] = Field(default_factory=list)


class ReflectionResult(BaseModel):
    """Structured post-hoc evaluation of a task outcome."""

    success: bool
    confidence: float = Field(ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    should_retry: bool = False
    alternative_approach: Task | None = None


class PatternAnalysis(BaseModel):
    common_issues: list[str] = Field(default_factory=list)
    success_patterns: list[str] = Field(default_factory=list)
    recommendations: list[str] = Field(default_factory=list)


class PlanEvaluation(BaseModel):
    score: float = Field(default=0.5, ge=0.0, le=1.0)
    concerns: list[str] = Field(default_factory=list)
    improvements: list[str] = Field(default_factory=list)
