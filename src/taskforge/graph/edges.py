"""Conditional edge functions for LangGraph workflow."""

from typing import Literal

from taskforge.models.state import AgentState
from taskforge.models.task import TaskStatus


def should_continue_after_planning(
    state: AgentState,
) -> Literal["continue", "error"]:
    """Check if a plan was produced.

    Args:
        state: Current workflow state.

    Returns:
        "continue" if a plan exists and no errors were recorded, "error" otherwise.
    """
    if state.get("errors") and len(state["errors"]) > 0:
        return "error"

    if state.get("plan") is None:
        return "error"

    return "continue"


def should_continue_after_optimization(
    state: AgentState,
) -> Literal["continue", "error"]:
    if state.get("errors") and len(state["errors"]) > 0:
        return "error"
    if state.get("active_plan") is None:
        return "error"
    return "continue"


def should_reflect(
    state: AgentState,
) -> Literal["reflect", "finalize"]:
    """Reflect when tasks failed and recovery rounds remain.

    Skipped tasks alone do not trigger reflection; they are re-queued only
    when a failed task they depend on gets a replacement.
    """
    execution = state.get("execution")
    if execution is None or execution.success:
        return "finalize"

    if not any(t.status == TaskStatus.FAILED for t in execution.failed_tasks):
        return "finalize"

    if state.get("recovery_round", 0) >= state.get("max_recovery_rounds", 0):
        return "finalize"

    return "reflect"


def should_recover(
    state: AgentState,
) -> Literal["recover", "finalize"]:
    if state.get("recovery_tasks"):
        return "recover"
    return "finalize"


def should_continue_after_recovery(
    state: AgentState,
) -> Literal["continue", "error"]:
    if state.get("errors") and len(state["errors"]) > 0:
        return "error"
    return "continue"
