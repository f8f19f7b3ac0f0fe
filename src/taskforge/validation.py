"""Parsing of untrusted structured text returned by a generative backend.

Model output is never trusted as-is. Each response goes through two steps:

1. Locate a JSON value inside free-form text (fenced code blocks are
   preferred, otherwise the first balanced ``{...}`` or ``[...]`` block).
2. Validate it against a strict pydantic schema.

Both steps report failure as an ``Invalid`` value instead of raising, so
callers can degrade to a named fallback.
"""

import json
import re
from dataclasses import dataclass
from typing import Annotated, Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, TypeAdapter, ValidationError

T = TypeVar("T")

FENCED_BLOCK_PATTERN = re.compile(r"```(?:json)?\s*\n?(.*?)```", re.DOTALL | re.IGNORECASE)


@dataclass(frozen=True)
class Valid(Generic[T]):
    """Successfully parsed and validated value."""

    value: T


@dataclass(frozen=True)
class Invalid:
    """Parse or validation failure with a human-readable reason."""

    reason: str


ParseResult = Valid[T] | Invalid


# =============================================================================
# Schemas for model responses
# =============================================================================


class _Schema(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TaskDefinition(_Schema):
    """One task as proposed by the planner backend."""

    description: StrictStr
    tool: StrictStr | None = None
    args: dict[str, Any] | None = None
    dependencies: list[StrictStr] | None = None


class PlanSchema(_Schema):
    tasks: list[TaskDefinition] = Field(min_length=1)
    reasoning: StrictStr | None = None


class SubtaskSpec(_Schema):
    """One entry of a recursive-decomposition response."""

    subtask: StrictStr
    needs: list[StrictStr] = Field(default_factory=list)


class AlternativeTask(_Schema):
    description: StrictStr
    tool: StrictStr | None = None
    args: dict[str, Any] | None = None
    reasoning: StrictStr | None = None


class ReflectionSchema(_Schema):
    success: StrictBool
    confidence: float = Field(ge=0.0, le=1.0)
    issues: list[StrictStr] = Field(default_factory=list)
    suggestions: list[StrictStr] = Field(default_factory=list)
    should_retry: StrictBool = Field(alias="shouldRetry")
    alternative_approach: AlternativeTask | None = Field(default=None, alias="alternativeApproach")


class CorrectionSchema(_Schema):
    can_fix: StrictBool = Field(alias="canFix")
    alternative: AlternativeTask | None = None


class PatternSchema(_Schema):
    common_issues: list[StrictStr] = Field(default_factory=list, alias="commonIssues")
    success_patterns: list[StrictStr] = Field(default_factory=list, alias="successPatterns")
    recommendations: list[StrictStr] = Field(default_factory=list)


class EvaluationSchema(_Schema):
    score: float = Field(default=0.5, ge=0.0, le=1.0)
    concerns: list[StrictStr] = Field(default_factory=list)
    improvements: list[StrictStr] = Field(default_factory=list)


SubtaskList = TypeAdapter(Annotated[list[SubtaskSpec], Field(min_length=1, max_length=5)])


# =============================================================================
# JSON extraction
# =============================================================================


def _balanced_block(text: str, start: int) -> str | None:
    """Return the bracketed block starting at ``start`` if it closes."""
    opener = text[start]
    closer = "}" if opener == "{" else "]"
    depth = 0
    in_string = False
    escaped = False

    for pos in range(start, len(text)):
        char = text[pos]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return text[start : pos + 1]

    return None


def _extract(text: str, opener: Literal["{", "["]) -> str | None:
    candidates = [m.group(1) for m in FENCED_BLOCK_PATTERN.finditer(text)]
    candidates.append(text)

    for candidate in candidates:
        pos = candidate.find(opener)
        while pos != -1:
            block = _balanced_block(candidate, pos)
            if block is not None:
                return block
            pos = candidate.find(opener, pos + 1)

    return None


def extract_json_object(text: str) -> str | None:
    """Find the first balanced ``{...}`` block, preferring fenced code blocks."""
    return _extract(text, "{")


def extract_json_array(text: str) -> str | None:
    """Find the first balanced ``[...]`` block, preferring fenced code blocks."""
    return _extract(text, "[")


# =============================================================================
# Parse + validate
# =============================================================================


def _validate(raw: str, adapter: TypeAdapter[T]) -> ParseResult[T]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        return Invalid(f"Malformed JSON: {e.msg}")

    try:
        return Valid(adapter.validate_python(data))
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"]) or "<root>"
        return Invalid(f"Schema violation at {location}: {first['msg']}")


def parse_json_object(text: str, schema: type[T]) -> ParseResult[T]:
    """Extract a JSON object from model output and validate it against ``schema``."""
    if not text or not text.strip():
        return Invalid("Empty response")

    raw = extract_json_object(text)
    if raw is None:
        return Invalid("No JSON object found in response")

    return _validate(raw, TypeAdapter(schema))


def parse_json_array(text: str, adapter: TypeAdapter[T]) -> ParseResult[T]:
    """Extract a JSON array from model output and validate it with ``adapter``."""
    if not text or not text.strip():
        return Invalid("Empty response")

    raw = extract_json_array(text)
    if raw is None:
        return Invalid("No JSON array found in response")

    return _validate(raw, adapter)
