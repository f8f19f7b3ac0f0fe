"""Tests for conditional edge functions in LangGraph workflow."""

from taskforge.graph.edges import (
    should_continue_after_optimization,
    should_continue_after_planning,
    should_continue_after_recovery,
    should_recover,
    should_reflect,
)
from taskforge.models.task import ExecutionResult, Task, TaskStatus

from helpers import make_plan


def _failed(task_id: str = "task-1") -> Task:
    return Task(id=task_id, description="d", status=TaskStatus.FAILED, error="boom")


def _skipped(task_id: str = "task-2") -> Task:
    return Task(id=task_id, description="d", status=TaskStatus.SKIPPED, error="unmet")


class TestShouldContinueAfterPlanning:
    """Tests for should_continue_after_planning edge function."""

    def test_plan_without_errors_continues(self) -> None:
        state = {"errors": [], "plan": make_plan([])}
        assert should_continue_after_planning(state) == "continue"

    def test_missing_errors_key_continues(self) -> None:
        state = {"plan": make_plan([])}
        assert should_continue_after_planning(state) == "continue"

    def test_none_errors_continues(self) -> None:
        state = {"errors": None, "plan": make_plan([])}
        assert should_continue_after_planning(state) == "continue"

    def test_errors_stop_the_run(self) -> None:
        """Test that recorded errors win even when a plan exists."""
        state = {"errors": ["Request is empty"], "plan": make_plan([])}
        assert should_continue_after_planning(state) == "error"

    def test_missing_plan_is_error(self) -> None:
        assert should_continue_after_planning({"errors": []}) == "error"
        assert should_continue_after_planning({"plan": None}) == "error"


class TestShouldContinueAfterOptimization:
    def test_active_plan_continues(self) -> None:
        state = {"active_plan": make_plan([])}
        assert should_continue_after_optimization(state) == "continue"

    def test_cycle_error_stops(self) -> None:
        state = {"errors": ["Planning failed: Circular dependency detected: a"]}
        assert should_continue_after_optimization(state) == "error"

    def test_missing_active_plan_is_error(self) -> None:
        assert should_continue_after_optimization({}) == "error"


class TestShouldReflect:
    """Tests for should_reflect edge function."""

    def test_no_execution_finalizes(self) -> None:
        assert should_reflect({}) == "finalize"

    def test_successful_execution_finalizes(self) -> None:
        state = {
            "execution": ExecutionResult(success=True, results={"a": 1}),
            "recovery_round": 0,
            "max_recovery_rounds": 2,
        }
        assert should_reflect(state) == "finalize"

    def test_failure_with_rounds_left_reflects(self) -> None:
        state = {
            "execution": ExecutionResult(success=False, failed_tasks=[_failed()]),
            "recovery_round": 1,
            "max_recovery_rounds": 2,
        }
        assert should_reflect(state) == "reflect"

    def test_rounds_exhausted_finalizes(self) -> None:
        state = {
            "execution": ExecutionResult(success=False, failed_tasks=[_failed()]),
            "recovery_round": 2,
            "max_recovery_rounds": 2,
        }
        assert should_reflect(state) == "finalize"

    def test_recovery_disabled_finalizes(self) -> None:
        state = {"execution": ExecutionResult(success=False, failed_tasks=[_failed()])}
        assert should_reflect(state) == "finalize"

    def test_only_skipped_tasks_finalizes(self) -> None:
        """Test that skipped tasks alone never trigger reflection."""
        state = {
            "execution": ExecutionResult(success=False, failed_tasks=[_skipped()]),
            "recovery_round": 0,
            "max_recovery_rounds": 3,
        }
        assert should_reflect(state) == "finalize"


class TestShouldRecover:
    def test_recovery_tasks_recover(self) -> None:
        state = {"recovery_tasks": [Task(id="task-1-retry", description="d")]}
        assert should_recover(state) == "recover"

    def test_nothing_to_recover_finalizes(self) -> None:
        assert should_recover({"recovery_tasks": []}) == "finalize"
        assert should_recover({}) == "finalize"


class TestShouldContinueAfterRecovery:
    def test_no_errors_continues(self) -> None:
        assert should_continue_after_recovery({"errors": []}) == "continue"

    def test_rejected_recovery_plan_is_error(self) -> None:
        state = {"errors": ["Recovery failed: Circular dependency detected: x"]}
        assert should_continue_after_recovery(state) == "error"
