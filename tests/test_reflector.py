"""Tests for the agent reflector."""

import json

import pytest

from taskforge.agent.reflector import AgentReflector
from taskforge.models.task import Task, TaskMetadata, TaskStatus

from helpers import FakeModelCaller


@pytest.fixture
def failed_task() -> Task:
    return Task(
        id="task-1",
        description="Fetch the report",
        tool="fetch",
        args={"url": "https://example.com/report"},
        dependencies=["task-0"],
        status=TaskStatus.FAILED,
        error="HTTP 404",
        metadata=TaskMetadata(priority=2, tags=["network"]),
    )


class TestAnalyzeResult:
    @pytest.mark.asyncio
    async def test_parses_reflection(self, failed_task: Task) -> None:
        response = json.dumps(
            {
                "success": False,
                "confidence": 0.9,
                "issues": ["Wrong URL"],
                "suggestions": ["Use the archive URL"],
                "shouldRetry": True,
                "alternativeApproach": {
                    "description": "Fetch from archive",
                    "tool": "fetch",
                    "args": {"url": "https://archive.example.com/report"},
                },
            }
        )
        caller = FakeModelCaller(f"Here you go:\n{response}")

        reflection = await AgentReflector(caller).analyze_result(failed_task, "A PDF report")

        assert reflection.success is False
        assert reflection.confidence == 0.9
        assert reflection.issues == ["Wrong URL"]
        assert reflection.should_retry is True
        alt = reflection.alternative_approach
        assert alt.id == "task-1-alt"
        assert alt.dependencies == ["task-0"]
        assert alt.args == {"url": "https://archive.example.com/report"}
        prompt = caller.prompts[0]
        assert "Error: HTTP 404" in prompt
        assert "Expected Outcome: A PDF report" in prompt

    @pytest.mark.asyncio
    async def test_unreachable_backend_is_deterministic(self, failed_task: Task) -> None:
        reflector = AgentReflector(FakeModelCaller([ConnectionError("offline")]))

        first = await reflector.analyze_result(failed_task)
        second = await reflector.analyze_result(failed_task)

        assert first == second
        assert first.success is False
        assert first.confidence == 0.0
        assert first.issues == ["HTTP 404"]
        assert first.should_retry is True

    @pytest.mark.asyncio
    async def test_invalid_response_falls_back(self, failed_task: Task) -> None:
        reflector = AgentReflector(FakeModelCaller('{"success": "maybe"}'))

        reflection = await reflector.analyze_result(failed_task)

        assert reflection == AgentReflector.fallback_reflection(failed_task)


class TestFallbackReflection:
    def test_completed(self) -> None:
        task = Task(id="t", description="d", status=TaskStatus.COMPLETED, result="x")
        reflection = AgentReflector.fallback_reflection(task)
        assert reflection.success is True
        assert reflection.confidence == 0.8
        assert reflection.should_retry is False

    def test_failed_without_error(self) -> None:
        task = Task(id="t", description="d", status=TaskStatus.FAILED)
        reflection = AgentReflector.fallback_reflection(task)
        assert reflection.issues == ["Task failed"]
        assert reflection.should_retry is True

    def test_skipped(self) -> None:
        task = Task(id="t", description="d", status=TaskStatus.SKIPPED)
        reflection = AgentReflector.fallback_reflection(task)
        assert reflection.success is False
        assert reflection.confidence == 0.5
        assert reflection.should_retry is False


class TestProposeCorrection:
    @pytest.mark.asyncio
    async def test_corrected_task(self, failed_task: Task) -> None:
        caller = FakeModelCaller(
            json.dumps(
                {
                    "canFix": True,
                    "alternative": {
                        "description": "Fetch the report from the mirror",
                        "tool": "fetch",
                        "args": {"url": "https://mirror.example.com/report"},
                    },
                }
            )
        )

        corrected = await AgentReflector(caller).propose_correction(failed_task, "HTTP 404")

        assert corrected.id == "task-1-retry"
        assert corrected.status == TaskStatus.PENDING
        assert corrected.dependencies == ["task-0"]
        assert corrected.metadata.tags == ["network", "retry", "corrected"]
        assert corrected.metadata.priority == 2
        assert failed_task.metadata.tags == ["network"]
        assert '"url": "https://example.com/report"' in caller.prompts[0]

    @pytest.mark.asyncio
    async def test_unfixable_and_unparseable_look_the_same(self, failed_task: Task) -> None:
        unfixable = AgentReflector(FakeModelCaller('{"canFix": false}'))
        garbled = AgentReflector(FakeModelCaller("canFix: probably"))

        assert await unfixable.propose_correction(failed_task, "HTTP 404") is None
        assert await garbled.propose_correction(failed_task, "HTTP 404") is None

    @pytest.mark.asyncio
    async def test_backend_failure_returns_none(self, failed_task: Task) -> None:
        reflector = AgentReflector(FakeModelCaller([RuntimeError("down")]))
        assert await reflector.propose_correction(failed_task, RuntimeError("boom")) is None


class TestPatternsAndEvaluation:
    @pytest.mark.asyncio
    async def test_analyze_patterns(self, failed_task: Task) -> None:
        caller = FakeModelCaller(
            '{"commonIssues": ["Bad URLs"], "successPatterns": [], "recommendations": ["Validate URLs"]}'
        )
        done = Task(id="task-0", description="Start", tool="echo", status=TaskStatus.COMPLETED)

        patterns = await AgentReflector(caller).analyze_patterns([done, failed_task])

        assert patterns.common_issues == ["Bad URLs"]
        assert patterns.recommendations == ["Validate URLs"]
        assert "Fetch the report (fetch): HTTP 404" in caller.prompts[0]

    @pytest.mark.asyncio
    async def test_analyze_patterns_fallback(self, failed_task: Task) -> None:
        patterns = await AgentReflector(FakeModelCaller("nothing")).analyze_patterns([failed_task])
        assert patterns.common_issues == []
        assert patterns.recommendations == []

    @pytest.mark.asyncio
    async def test_evaluate_plan(self, failed_task: Task) -> None:
        caller = FakeModelCaller('{"score": 0.7, "concerns": ["No validation"], "improvements": []}')

        evaluation = await AgentReflector(caller).evaluate_plan([failed_task], ["fetch"])

        assert evaluation.score == 0.7
        assert evaluation.concerns == ["No validation"]
        assert "Deps: task-0" in caller.prompts[0]

    @pytest.mark.asyncio
    async def test_evaluate_plan_fallback(self, failed_task: Task) -> None:
        reflector = AgentReflector(FakeModelCaller([RuntimeError("down")]))

        evaluation = await reflector.evaluate_plan([failed_task], [])

        assert evaluation.score == 0.5
        assert evaluation.concerns == ["Failed to evaluate plan"]
