"""Tests for the command-line interface."""

from pathlib import Path
from unittest.mock import AsyncMock, patch

from typer.testing import CliRunner

from taskforge.main import app, format_time, preview
from taskforge.models.task import PlanStatus, Task, TaskStatus

from helpers import FakeModelCaller, make_plan, plan_json

runner = CliRunner()


def _final_state(plan_status: PlanStatus = PlanStatus.COMPLETED, **overrides) -> dict:
    task = Task(id="task-0", description="Say hi", tool="echo", status=TaskStatus.COMPLETED, result="hi")
    plan = make_plan([task])
    plan.status = plan_status
    plan.completed_tasks = 1 if plan_status == PlanStatus.COMPLETED else 0
    state = {
        "plan": plan,
        "execution_history": [task],
        "learnings": [],
        "errors": [],
    }
    state.update(overrides)
    return state


class TestHelpers:
    def test_format_time(self) -> None:
        assert format_time(4.3) == "4.3s"
        assert format_time(125) == "2m 5s"

    def test_preview(self) -> None:
        assert preview(None) == ""
        assert preview({"a": 1}) == '{"a": 1}'
        assert preview("line one\n  line two") == "line one line two"
        assert preview("x" * 100, limit=10) == "xxxxxxx..."


class TestVersion:
    def test_version(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "TaskForge v0.1.0" in result.output


class TestRun:
    def test_completed_plan(self) -> None:
        with patch("taskforge.main.run_agent", new=AsyncMock(return_value=_final_state())) as agent:
            result = runner.invoke(app, ["run", "Greet me", "--recovery-rounds", "2"])

        assert result.exit_code == 0
        assert "task-0" in result.output
        assert "completed" in result.output
        assert agent.call_args.kwargs["max_recovery_rounds"] == 2

    def test_workspace_passed_to_tools(self, tmp_path: Path) -> None:
        with patch("taskforge.main.run_agent", new=AsyncMock(return_value=_final_state())) as agent:
            runner.invoke(app, ["run", "Greet me", "-w", str(tmp_path)])

        assert agent.call_args.kwargs["tool_context"].workspace_root == str(tmp_path)

    def test_failed_plan_exits_nonzero(self) -> None:
        state = _final_state(PlanStatus.FAILED, learnings=["Check credentials"])

        with patch("taskforge.main.run_agent", new=AsyncMock(return_value=state)):
            result = runner.invoke(app, ["run", "Greet me"])

        assert result.exit_code == 1
        assert "Check credentials" in result.output

    def test_errors_reported(self) -> None:
        state = _final_state(plan=None, errors=["Request is empty"])

        with patch("taskforge.main.run_agent", new=AsyncMock(return_value=state)):
            result = runner.invoke(app, ["run", " "])

        assert result.exit_code == 1
        assert "Request is empty" in result.output

    def test_unexpected_exception(self) -> None:
        with patch("taskforge.main.run_agent", new=AsyncMock(side_effect=ValueError("no API key"))):
            result = runner.invoke(app, ["run", "Greet me"])

        assert result.exit_code == 1
        assert "no API key" in result.output


class TestPlan:
    def test_prints_plan(self) -> None:
        planner = FakeModelCaller(
            plan_json({"description": "Scan", "tool": "analyze_codebase"}, {"description": "Sum up"})
        )

        with patch(
            "taskforge.main.create_model_callers", return_value=(FakeModelCaller(), planner)
        ):
            result = runner.invoke(app, ["plan", "Review the repo", "--max-tasks", "3"])

        assert result.exit_code == 0
        assert "task-0" in result.output
        assert "task-1" in result.output
        assert "Use at most 3 tasks" in planner.prompts[0]
        assert "- recursive_process" in planner.prompts[0]


class TestProcess:
    def test_requires_input(self) -> None:
        result = runner.invoke(app, ["process", "Summarize"])

        assert result.exit_code == 1
        assert "Provide --path or at least one --file" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["process", "Summarize", "-f", str(tmp_path / "nope.py")])

        assert result.exit_code == 1
        assert "File not found" in result.output

    def test_codebase(self, sample_codebase: Path) -> None:
        caller = FakeModelCaller("Small Go and Python project")

        with patch("taskforge.main.create_model_callers", return_value=(caller, caller)):
            result = runner.invoke(app, ["process", "Describe", "--path", str(sample_codebase)])

        assert result.exit_code == 0
        assert "Small Go and Python project" in result.output
        assert "1 model calls" in result.output
        assert "src/app.py" in caller.prompts[0]

    def test_files(self, sample_codebase: Path) -> None:
        caller = FakeModelCaller("reviewed")
        target = sample_codebase / "main.go"

        with patch("taskforge.main.create_model_callers", return_value=(caller, caller)):
            result = runner.invoke(
                app, ["process", "Review", "-f", str(target), "-s", "tree-traversal"]
            )

        assert result.exit_code == 0
        assert "package main" in caller.prompts[0]

    def test_backend_failure(self, sample_codebase: Path) -> None:
        caller = FakeModelCaller([RuntimeError("backend down")])

        with patch("taskforge.main.create_model_callers", return_value=(caller, caller)):
            result = runner.invoke(app, ["process", "Describe", "--path", str(sample_codebase)])

        assert result.exit_code == 1
        assert "backend_error" in result.output
