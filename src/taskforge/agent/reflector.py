"""Post-hoc evaluation of tasks and plans."""

import json
import logging
from typing import Any

from taskforge.agent.prompts import (
    CORRECTION_PROMPT,
    EVALUATION_PROMPT,
    PATTERN_PROMPT,
    REFLECTION_PROMPT,
)
from taskforge.llm.caller import ModelCaller
from taskforge.models.task import (
    PatternAnalysis,
    PlanEvaluation,
    ReflectionResult,
    Task,
    TaskMetadata,
    TaskStatus,
)
from taskforge.validation import (
    CorrectionSchema,
    EvaluationSchema,
    Invalid,
    PatternSchema,
    ReflectionSchema,
    parse_json_object,
)

logger = logging.getLogger(__name__)

RESULT_PREVIEW_CHARS = 500


class AgentReflector:
    """Asks a ModelCaller to judge task outcomes; never raises on bad responses."""

    def __init__(self, model_caller: ModelCaller, model_hint: str | None = None):
        self.model_caller = model_caller
        self.model_hint = model_hint

    async def _ask(self, prompt: str, purpose: str) -> str | None:
        try:
            return await self.model_caller.call(prompt, self.model_hint)
        except Exception as e:
            logger.warning(f"{purpose} call failed: {e}")
            return None

    async def analyze_result(
        self, task: Task, expected_outcome: str | None = None
    ) -> ReflectionResult:
        """Judge a task's outcome.

        Falls back to a verdict derived from the task's status when the
        backend fails or returns something unusable.
        """
        details = []
        if task.result is not None:
            details.append(f"Result: {_preview(task.result)}")
        if task.error:
            details.append(f"Error: {task.error}")
        if expected_outcome:
            details.append(f"Expected Outcome: {expected_outcome}")

        prompt = REFLECTION_PROMPT.format(
            description=task.description,
            tool=task.tool or "None",
            status=task.status.value,
            details="\n".join(details) + "\n" if details else "",
        )

        response = await self._ask(prompt, "Reflection")
        if response is None:
            return self.fallback_reflection(task)

        parsed = parse_json_object(response, ReflectionSchema)
        if isinstance(parsed, Invalid):
            logger.warning(f"Unusable reflection for {task.id} ({parsed.reason}), using fallback")
            return self.fallback_reflection(task)

        reflection = parsed.value
        alternative = None
        if reflection.alternative_approach is not None:
            alt = reflection.alternative_approach
            alternative = Task(
                id=f"{task.id}-alt",
                description=alt.description,
                tool=alt.tool,
                args=alt.args or {},
                dependencies=list(task.dependencies),
            )

        return ReflectionResult(
            success=reflection.success,
            confidence=reflection.confidence,
            issues=reflection.issues,
            suggestions=reflection.suggestions,
            should_retry=reflection.should_retry,
            alternative_approach=alternative,
        )

    async def propose_correction(self, failed_task: Task, error: str | Exception) -> Task | None:
        """Propose a corrected replacement for a failed task.

        Returns ``None`` when the backend says the task cannot be fixed, and
        also when its response cannot be used. Callers cannot tell the two
        apart from the return value; only the log distinguishes them.
        """
        prompt = CORRECTION_PROMPT.format(
            description=failed_task.description,
            tool=failed_task.tool or "None",
            args=json.dumps(failed_task.args, indent=2, default=str),
            error=str(error),
        )

        response = await self._ask(prompt, "Correction")
        if response is None:
            return None

        parsed = parse_json_object(response, CorrectionSchema)
        if isinstance(parsed, Invalid):
            logger.warning(f"Unusable correction for {failed_task.id}: {parsed.reason}")
            return None

        correction = parsed.value
        if not correction.can_fix or correction.alternative is None:
            logger.info(f"Task {failed_task.id} reported as not fixable")
            return None

        alt = correction.alternative
        tags = [*failed_task.metadata.tags, "retry", "corrected"]
        return Task(
            id=f"{failed_task.id}-retry",
            description=alt.description,
            tool=alt.tool,
            args=alt.args or {},
            dependencies=list(failed_task.dependencies),
            metadata=TaskMetadata(
                priority=failed_task.metadata.priority,
                estimated_duration=failed_task.metadata.estimated_duration,
                tags=tags,
            ),
        )

    async def analyze_patterns(self, tasks: list[Task]) -> PatternAnalysis:
        completed = [t for t in tasks if t.status == TaskStatus.COMPLETED]
        failed = [t for t in tasks if t.status == TaskStatus.FAILED]

        prompt = PATTERN_PROMPT.format(
            completed_count=len(completed),
            completed="\n".join(f"- {t.description} ({t.tool})" for t in completed) or "- none",
            failed_count=len(failed),
            failed="\n".join(f"- {t.description} ({t.tool}): {t.error}" for t in failed) or "- none",
        )

        response = await self._ask(prompt, "Pattern analysis")
        if response is None:
            return PatternAnalysis()

        parsed = parse_json_object(response, PatternSchema)
        if isinstance(parsed, Invalid):
            logger.warning(f"Unusable pattern analysis: {parsed.reason}")
            return PatternAnalysis()

        return PatternAnalysis(**parsed.value.model_dump())

    async def evaluate_plan(self, tasks: list[Task], available_tools: list[str]) -> PlanEvaluation:
        lines = []
        for i, t in enumerate(tasks, start=1):
            deps = ", ".join(t.dependencies) or "none"
            lines.append(f"{i}. {t.description} (Tool: {t.tool}, Deps: {deps})")

        prompt = EVALUATION_PROMPT.format(
            tasks="\n".join(lines),
            tools=", ".join(available_tools) or "none",
        )

        response = await self._ask(prompt, "Plan evaluation")
        parsed = parse_json_object(response, EvaluationSchema) if response is not None else None
        if parsed is None or isinstance(parsed, Invalid):
            return PlanEvaluation(score=0.5, concerns=["Failed to evaluate plan"], improvements=[])

        return PlanEvaluation(**parsed.value.model_dump())

    @staticmethod
    def fallback_reflection(task: Task) -> ReflectionResult:
        """Verdict derived purely from the task's status."""
        if task.status == TaskStatus.COMPLETED:
            return ReflectionResult(success=True, confidence=0.8, should_retry=False)
        if task.status == TaskStatus.FAILED:
            return ReflectionResult(
                success=False,
                confidence=0.0,
                issues=[task.error or "Task failed"],
                suggestions=["Try a different approach", "Check tool arguments"],
                should_retry=True,
            )
        return ReflectionResult(
            success=False,
            confidence=0.5,
            issues=["Task did not complete"],
            should_retry=False,
        )


def _preview(result: Any) -> str:
    if isinstance(result, str):
        return result[:RESULT_PREVIEW_CHARS]
    text = json.dumps(result, indent=2, default=str)
    if len(text) > RESULT_PREVIEW_CHARS:
        return text[:RESULT_PREVIEW_CHARS] + "..."
    return text
