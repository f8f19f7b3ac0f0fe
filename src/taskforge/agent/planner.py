"""Turn a user request into a dependency graph of tool-bound tasks."""

import logging
from collections.abc import Iterable

from taskforge.agent.prompts import PLANNING_PROMPT, REPLAN_PROMPT
from taskforge.errors import CyclicDependencyError, PlanningError
from taskforge.llm.caller import ModelCaller
from taskforge.models.task import PlanningContext, PlanStrategy, Task, TaskPlan
from taskforge.validation import Invalid, ParseResult, PlanSchema, Valid, parse_json_object

logger = logging.getLogger(__name__)

HISTORY_MESSAGES = 3
HISTORY_CHARS = 200


class AgentPlanner:
    """Plans requests with a ModelCaller and validates what comes back."""

    def __init__(self, model_caller: ModelCaller, model_hint: str | None = None):
        self.model_caller = model_caller
        self.model_hint = model_hint

    async def plan(self, request: str, context: PlanningContext | None = None) -> TaskPlan:
        """Plan a request.

        Any unusable backend response (or a backend failure) produces a
        single-task fallback plan so the caller can still answer directly.

        Raises:
            CyclicDependencyError: If the proposed tasks depend on each other in a cycle.
        """
        context = context or PlanningContext()
        prompt = self._build_planning_prompt(request, context)

        try:
            response = await self.model_caller.call(prompt, self.model_hint)
        except Exception as e:
            logger.warning(f"Planning call failed, using fallback plan: {e}")
            return self.create_fallback_plan(request)

        parsed = self._parse_tasks(response, context.available_tools, "task")
        if isinstance(parsed, Valid):
            parsed = self._check_task_limit(parsed.value, context.constraints.max_total_tasks)
        if isinstance(parsed, Invalid):
            logger.warning(f"Unusable plan ({parsed.reason}), using fallback plan")
            return self.create_fallback_plan(request)

        tasks = parsed.value
        # Cycle detection; order is settled later by optimize_plan
        self._topological_sort(tasks)

        plan = TaskPlan(
            original_request=request,
            tasks=tasks,
            strategy=self.determine_strategy(tasks),
        )
        logger.info(f"Planned {plan.total_tasks} tasks ({plan.strategy.value})")
        return plan

    async def replan(
        self,
        plan: TaskPlan,
        failed_task: Task,
        error: str,
        available_tools: list[str] | None = None,
    ) -> list[Task]:
        """Ask for replacement tasks for a failed one.

        Returns an empty list when no usable alternative comes back; this
        never raises. Replacement tasks inherit the failed task's dependencies.
        """
        prompt = REPLAN_PROMPT.format(
            description=failed_task.description,
            tool=failed_task.tool or "None",
            error=error,
            request=plan.original_request,
            tools=self._format_tools(available_tools or []),
        )

        try:
            response = await self.model_caller.call(prompt, self.model_hint)
        except Exception as e:
            logger.warning(f"Replanning call failed: {e}")
            return []

        prefix = f"replan-{failed_task.id}"
        parsed = self._parse_tasks(response, available_tools, prefix)
        if isinstance(parsed, Invalid):
            logger.warning(f"Unusable replan for {failed_task.id}: {parsed.reason}")
            return []

        tasks = parsed.value
        try:
            self._topological_sort(tasks)
        except PlanningError as e:
            logger.warning(f"Unusable replan for {failed_task.id}: {e.message}")
            return []

        for task in tasks:
            inherited = [dep for dep in failed_task.dependencies if dep not in task.dependencies]
            task.dependencies = inherited + task.dependencies
            task.metadata.tags.append("replan")
        return tasks

    def optimize_plan(
        self, plan: TaskPlan, satisfied: Iterable[str] | None = None
    ) -> TaskPlan:
        """Return a copy of the plan in dependency order with its strategy re-derived.

        Args:
            plan: The plan to order.
            satisfied: Ids of tasks outside the plan that already have results.
                Dependencies on them are accepted without a matching task.

        Raises:
            CyclicDependencyError: If tasks depend on each other in a cycle.
            PlanningError: If a task depends on an id that is not in the plan.
        """
        ordered = self._topological_sort(plan.tasks, frozenset(satisfied or ()))
        return plan.model_copy(
            update={"tasks": ordered, "strategy": self.determine_strategy(ordered)}
        )

    @staticmethod
    def determine_strategy(tasks: list[Task]) -> PlanStrategy:
        has_dependencies = any(task.dependencies for task in tasks)

        if not has_dependencies and len(tasks) > 1:
            return PlanStrategy.PARALLEL
        if has_dependencies and len(tasks) > 3:
            return PlanStrategy.MIXED
        return PlanStrategy.SEQUENTIAL

    @staticmethod
    def create_fallback_plan(request: str) -> TaskPlan:
        """Single task carrying the literal request, with no tool bound."""
        return TaskPlan(
            original_request=request,
            tasks=[Task(id="task-0", description=request)],
            strategy=PlanStrategy.SEQUENTIAL,
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _build_planning_prompt(self, request: str, context: PlanningContext) -> str:
        recent = context.history[-HISTORY_MESSAGES:]
        history = "\n".join(
            f"{msg.get('role', 'user')}: {msg.get('content', '')[:HISTORY_CHARS]}" for msg in recent
        )

        project = ""
        if context.project_context:
            project = f"\nProject Context:\n{context.project_context}\n"

        limit_rule = ""
        if context.constraints.max_total_tasks:
            limit_rule = f"7. Use at most {context.constraints.max_total_tasks} tasks\n"

        return PLANNING_PROMPT.format(
            request=request,
            tools=self._format_tools(context.available_tools),
            history=history or "(none)",
            project_context=project,
            limit_rule=limit_rule,
        )

    @staticmethod
    def _format_tools(tools: list[str]) -> str:
        if not tools:
            return "- (any tool you know of)"
        return "\n".join(f"- {tool}" for tool in tools)

    @staticmethod
    def _parse_tasks(
        response: str, available_tools: list[str] | None, id_prefix: str
    ) -> ParseResult[list[Task]]:
        """Validate a plan response and convert it into Task objects.

        Dependencies are written as ``task-N`` (position in the list) and
        renamed to ``<id_prefix>-N``.
        """
        parsed = parse_json_object(response, PlanSchema)
        if isinstance(parsed, Invalid):
            return parsed

        definitions = parsed.value.tasks
        ids = {f"task-{idx}": f"{id_prefix}-{idx}" for idx in range(len(definitions))}
        tasks = []

        for idx, definition in enumerate(definitions):
            task_id = f"{id_prefix}-{idx}"
            dependencies = []
            for dep in definition.dependencies or []:
                if dep not in ids:
                    return Invalid(f"Task {idx} depends on unknown task '{dep}'")
                if ids[dep] == task_id:
                    return Invalid(f"Task {idx} depends on itself")
                if ids[dep] not in dependencies:
                    dependencies.append(ids[dep])

            if (
                definition.tool
                and available_tools
                and definition.tool not in available_tools
            ):
                logger.warning(f"Unknown tool in plan: {definition.tool}")

            tasks.append(
                Task(
                    id=task_id,
                    description=definition.description,
                    tool=definition.tool,
                    args=definition.args or {},
                    dependencies=dependencies,
                )
            )

        return Valid(tasks)

    @staticmethod
    def _check_task_limit(tasks: list[Task], limit: int | None) -> ParseResult[list[Task]]:
        if limit is not None and len(tasks) > limit:
            return Invalid(f"Plan has {len(tasks)} tasks, limit is {limit}")
        return Valid(tasks)

    @staticmethod
    def _topological_sort(
        tasks: list[Task], satisfied: frozenset[str] = frozenset()
    ) -> list[Task]:
        """Depth-first topological sort; dependencies come before dependents."""
        by_id = {task.id: task for task in tasks}
        ordered: list[Task] = []
        visited: set[str] = set()
        visiting: set[str] = set()

        def visit(task: Task) -> None:
            if task.id in visited:
                return
            if task.id in visiting:
                raise CyclicDependencyError(task.id)

            visiting.add(task.id)
            for dep_id in task.dependencies:
                dep = by_id.get(dep_id)
                if dep is None and dep_id in satisfied:
                    continue
                if dep is None:
                    raise PlanningError(f"Task {task.id} depends on unknown task {dep_id}")
                visit(dep)
            visiting.discard(task.id)
            visited.add(task.id)
            ordered.append(task)

        for task in tasks:
            visit(task)
        return ordered
