"""Fakes and builders shared by the test modules."""

import asyncio
import json
from collections.abc import Callable
from typing import Any

from taskforge.models.task import PlanStrategy, Task, TaskPlan

Responder = Callable[[str], Any]


class FakeModelCaller:
    """ModelCaller that answers from a script and records every prompt.

    ``responses`` may be a list (consumed in order, the last one repeats), a
    single string, or a callable taking the prompt. Exceptions in the script
    are raised instead of returned.
    """

    def __init__(
        self,
        responses: list[Any] | str | Responder = "ok",
        delay: float = 0.0,
    ) -> None:
        self.responses = responses
        self.delay = delay
        self.prompts: list[str] = []
        self.hints: list[str | None] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def call(self, prompt: str, model_hint: str | None = None) -> str:
        self.prompts.append(prompt)
        self.hints.append(model_hint)
        response = self._next(prompt)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1

        if isinstance(response, BaseException):
            raise response
        return response

    def _next(self, prompt: str) -> Any:
        if callable(self.responses):
            return self.responses(prompt)
        if isinstance(self.responses, list):
            index = min(len(self.prompts) - 1, len(self.responses) - 1)
            return self.responses[index]
        return self.responses


class ConcurrencyProbe:
    """Async tool that tracks how many of its calls overlap."""

    def __init__(self, delay: float = 0.02) -> None:
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self.calls: list[dict[str, Any]] = []

    async def run(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(kwargs)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
        finally:
            self.in_flight -= 1
        return {"success": True, "echo": kwargs.get("value")}


def plan_json(*tasks: dict[str, Any], reasoning: str = "test plan") -> str:
    """Serialize a planner response the way a model would return it."""
    return "```json\n" + json.dumps({"tasks": list(tasks), "reasoning": reasoning}) + "\n```"


def make_plan(tasks: list[Task], strategy: PlanStrategy = PlanStrategy.SEQUENTIAL) -> TaskPlan:
    return TaskPlan(original_request="test request", tasks=tasks, strategy=strategy)


# Leading text of each agent prompt, most specific first
PROMPT_PREFIXES = {
    "plan": "You are an AI task planner",
    "correction": "The following task failed. Propose",
    "replan": "The following task failed:",
    "reflection": "Analyze the following task execution",
    "patterns": "Analyze these task execution patterns",
    "answer": "Complete the following task",
}


def route_by_prompt(default: Any = "ok", **responses: Any) -> Responder:
    """Responder that answers by prompt kind, e.g. ``route_by_prompt(plan=plan_json(...))``."""

    def respond(prompt: str) -> Any:
        for kind, prefix in PROMPT_PREFIXES.items():
            if prompt.startswith(prefix):
                return responses.get(kind, default)
        return default

    return respond


def reflection_json(should_retry: bool = True) -> str:
    return json.dumps({"success": False, "confidence": 0.6, "shouldRetry": should_retry})


def correction_json(description: str, tool: str | None, args: dict[str, Any] | None = None) -> str:
    alternative = {"description": description, "tool": tool, "args": args or {}}
    return json.dumps({"canFix": True, "alternative": alternative})
