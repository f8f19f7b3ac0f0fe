"""Data models for TaskForge."""

from taskforge.models.state import AgentState, FailureRecord, StepTiming
from taskforge.models.task import (
    ExecutionResult,
    PatternAnalysis,
    PlanEvaluation,
    PlanningConstraints,
    PlanningContext,
    PlanStatus,
    PlanStrategy,
    ReflectionResult,
    Task,
    TaskMetadata,
    TaskPlan,
    TaskStatus,
)

__all__ = [
    "AgentState",
    "ExecutionResult",
    "FailureRecord",
    "PatternAnalysis",
    "PlanEvaluation",
    "PlanningConstraints",
    "PlanningContext",
    "PlanStatus",
    "PlanStrategy",
    "ReflectionResult",
    "StepTiming",
    "Task",
    "TaskMetadata",
    "TaskPlan",
    "TaskStatus",
]
