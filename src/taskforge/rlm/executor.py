"""Recursive processing engine.

Applies one of four strategies to inputs that are too large for a single
model call: the largest context variable is split with the DataChunker,
each piece is handled by its own model call, and the partial answers are
combined by a final call.

All state of one ``execute`` invocation (deadline, recorded calls,
concurrency semaphore) lives in an ``RLMRunState`` created per call, so a
single executor can serve concurrent invocations. Depth travels in an
immutable ``RecursionFrame`` passed down explicitly.
"""

import asyncio
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from taskforge.errors import (
    ExecutionTimeExceededError,
    MapPhaseError,
    RecursionDepthExceededError,
    RLMLimitError,
    UnsupportedDataError,
)
from taskforge.llm.caller import ModelCaller
from taskforge.rlm.chunking import DataChunker
from taskforge.rlm.models import (
    ChunkingStrategy,
    ChunkMethod,
    ErrorType,
    ProcessingStrategy,
    RLMCall,
    RLMConfig,
    RLMExecutionResult,
    RLMRunState,
    RLMTrajectory,
)
from taskforge.rlm.prompts import (
    CONTEXT_HEADER,
    RLM_COMBINE_PROMPT,
    RLM_DECOMPOSE_PROMPT,
    RLM_MAP_PROMPT,
    RLM_PREVIOUS_RESULT_NOTE,
    RLM_REDUCE_PROMPT,
    RLM_SEQUENTIAL_PROMPT,
    RLM_TREE_PROMPT,
    TRUNCATION_NOTE,
)
from taskforge.validation import Invalid, SubtaskList, parse_json_array

logger = logging.getLogger(__name__)

# Rough per-item weight used when sizing list variables
LIST_ITEM_WEIGHT = 100


@dataclass(frozen=True)
class RecursionFrame:
    """Variables visible at one level of recursion, plus where that level sits."""

    variables: Mapping[str, Any]
    depth: int = 0
    call_stack: tuple[str, ...] = field(default_factory=tuple)

    def descend(self, label: str, variables: Mapping[str, Any] | None = None) -> "RecursionFrame":
        return RecursionFrame(
            variables=self.variables if variables is None else variables,
            depth=self.depth + 1,
            call_stack=(*self.call_stack, label),
        )


class RLMExecutor:
    """Runs recursive processing strategies over a ModelCaller."""

    def __init__(self, model_caller: ModelCaller, config: RLMConfig | None = None):
        self.model_caller = model_caller
        self.config = config or RLMConfig()
        self.chunker = DataChunker()

    async def execute(
        self,
        task: str,
        variables: Mapping[str, Any],
        strategy: ProcessingStrategy | str = ProcessingStrategy.MAP_REDUCE,
        chunking: ChunkingStrategy | None = None,
    ) -> RLMExecutionResult:
        """Process ``task`` over ``variables`` with the given strategy.

        Never raises for processing failures; the result carries the error,
        its type and the calls made so far.
        """
        run = RLMRunState(self.config.max_execution_time, self.config.max_concurrency)

        try:
            strategy = ProcessingStrategy(strategy)
        except ValueError:
            return self._finish(run, error=f"Unknown strategy: {strategy}", error_type="invalid_input")

        frame = RecursionFrame(variables=dict(variables))
        handlers = {
            ProcessingStrategy.MAP_REDUCE: self._map_reduce,
            ProcessingStrategy.RECURSIVE_DECOMPOSITION: self._recursive_decomposition,
            ProcessingStrategy.SEQUENTIAL_PROCESSING: self._sequential_processing,
            ProcessingStrategy.TREE_TRAVERSAL: self._tree_traversal,
        }

        try:
            result = await handlers[strategy](task, frame, run, chunking)
        except RecursionDepthExceededError as e:
            return self._finish(run, error=e.message, error_type="depth_exceeded")
        except ExecutionTimeExceededError as e:
            return self._finish(run, error=e.message, error_type="timeout")
        except MapPhaseError as e:
            return self._finish(run, error=e.message, error_type="map_failed")
        except (UnsupportedDataError, ValueError) as e:
            return self._finish(run, error=str(e), error_type="invalid_input")
        except Exception as e:
            logger.error(f"RLM {strategy.value} failed: {e}")
            return self._finish(run, error=str(e), error_type="backend_error")

        outcome = self._finish(run, result=result)
        logger.info(
            f"RLM {strategy.value} completed: {outcome.trajectory.total_calls} calls, "
            f"max depth {outcome.trajectory.max_depth}, {outcome.execution_time:.1f}s"
        )
        return outcome

    # =========================================================================
    # Strategies
    # =========================================================================

    async def _map_reduce(
        self,
        task: str,
        frame: RecursionFrame,
        run: RLMRunState,
        chunking: ChunkingStrategy | None,
    ) -> Any:
        largest = self.find_largest_variable(frame.variables)
        if largest is None:
            return await self._direct(task, frame, run)

        name, data = largest
        chunks = self._chunk_data(data, chunking)
        if len(chunks) <= 1:
            return await self._direct(task, frame, run)

        total = len(chunks)
        logger.debug(f"Map phase over '{name}': {total} chunks at depth {frame.depth + 1}")

        async def map_chunk(index: int, chunk: Any) -> Any:
            label = f"map-{index}"
            child = frame.descend(
                label,
                {**frame.variables, name: chunk, "chunk_index": index, "total_chunks": total},
            )
            prompt = RLM_MAP_PROMPT.format(task=task, index=index + 1, total=total)
            async with run.semaphore:
                call = await self._call(prompt, child, run, label)
            return call.result

        outcomes = await asyncio.gather(
            *(map_chunk(i, chunk) for i, chunk in enumerate(chunks)),
            return_exceptions=True,
        )
        errors = _collect_errors(outcomes)
        if errors:
            reduce_frame = frame.descend("reduce")
            message = f"aborted: {len(errors)} of {total} map calls failed"
            self._record_aborted(
                RLM_REDUCE_PROMPT.format(task=task, count=total), reduce_frame, run, "reduce", message
            )
            raise MapPhaseError(len(errors), total, str(errors[0])) from errors[0]

        reduce_variables = {k: v for k, v in frame.variables.items() if k != name}
        reduce_variables["chunk_results"] = list(outcomes)
        reduce_frame = frame.descend("reduce", reduce_variables)
        call = await self._call(
            RLM_REDUCE_PROMPT.format(task=task, count=total), reduce_frame, run, "reduce"
        )
        return call.result

    async def _recursive_decomposition(
        self,
        task: str,
        frame: RecursionFrame,
        run: RLMRunState,
        chunking: ChunkingStrategy | None,
    ) -> Any:
        if self.find_largest_variable(frame.variables) is None:
            return await self._direct(task, frame, run)

        names = ", ".join(frame.variables) or "(none)"
        decompose = await self._call(
            RLM_DECOMPOSE_PROMPT.format(task=task, variable_names=names), frame, run, "decompose"
        )

        parsed = parse_json_array(str(decompose.result), SubtaskList)
        if isinstance(parsed, Invalid):
            logger.warning(f"Decomposition unusable ({parsed.reason}), processing directly")
            return await self._direct(task, frame, run)
        subtasks = parsed.value

        async def run_subtask(index: int, description: str, needs: list[str]) -> Any:
            label = f"subtask-{index}"
            visible = {key: frame.variables[key] for key in needs if key in frame.variables}
            child = frame.descend(label, visible)
            async with run.semaphore:
                call = await self._call(description, child, run, label, parent_id=decompose.id)
            return call.result

        outcomes = await asyncio.gather(
            *(run_subtask(i, spec.subtask, spec.needs) for i, spec in enumerate(subtasks)),
            return_exceptions=True,
        )
        errors = _collect_errors(outcomes)
        if errors:
            raise errors[0]

        combine_frame = frame.descend(
            "combine",
            {"subtasks": [spec.subtask for spec in subtasks], "subtask_results": list(outcomes)},
        )
        call = await self._call(
            RLM_COMBINE_PROMPT.format(task=task), combine_frame, run, "combine", parent_id=decompose.id
        )
        return call.result

    async def _sequential_processing(
        self,
        task: str,
        frame: RecursionFrame,
        run: RLMRunState,
        chunking: ChunkingStrategy | None,
    ) -> Any:
        largest = self.find_largest_variable(frame.variables)
        if largest is None:
            return await self._direct(task, frame, run)

        name, data = largest
        items = data if isinstance(data, list) else self._chunk_data(data, chunking)
        total = len(items)

        accumulated: Any = None
        previous_id: str | None = None
        for index, item in enumerate(items):
            label = f"seq-{index}"
            child = frame.descend(
                label,
                {
                    **frame.variables,
                    name: item,
                    "previous_result": accumulated,
                    "item_index": index,
                    "total_items": total,
                },
            )
            prompt = RLM_SEQUENTIAL_PROMPT.format(
                task=task,
                index=index + 1,
                total=total,
                previous_note=RLM_PREVIOUS_RESULT_NOTE if accumulated else "",
            )
            call = await self._call(prompt, child, run, label, parent_id=previous_id)
            accumulated = call.result
            previous_id = call.id

        return accumulated

    async def _tree_traversal(
        self,
        task: str,
        frame: RecursionFrame,
        run: RLMRunState,
        chunking: ChunkingStrategy | None,
    ) -> Any:
        # TODO: walk nested dicts level by level once a per-node prompt is settled
        call = await self._call(RLM_TREE_PROMPT.format(task=task), frame, run, "tree-traversal")
        return call.result

    async def _direct(self, task: str, frame: RecursionFrame, run: RLMRunState) -> Any:
        call = await self._call(task, frame, run, "direct-call")
        return call.result

    # =========================================================================
    # Calls
    # =========================================================================

    def _check_limits(self, frame: RecursionFrame, run: RLMRunState) -> None:
        if frame.depth >= self.config.max_recursion_depth:
            raise RecursionDepthExceededError(self.config.max_recursion_depth)
        if time.monotonic() >= run.deadline:
            raise ExecutionTimeExceededError(self.config.max_execution_time)

    async def _call(
        self,
        prompt: str,
        frame: RecursionFrame,
        run: RLMRunState,
        label: str,
        parent_id: str | None = None,
    ) -> RLMCall:
        """Make one model call and record it on the run's trajectory."""
        self._check_limits(frame, run)

        full_prompt, truncated = self.build_prompt(prompt, frame.variables)
        call = RLMCall(
            label=label,
            prompt=full_prompt,
            depth=frame.depth,
            parent_id=parent_id,
            status="running",
            truncated_variables=truncated,
            start_time=time.time(),
        )
        run.calls.append(call)
        logger.debug(f"RLM call {label} at depth {frame.depth} ({'/'.join(frame.call_stack) or 'root'})")

        try:
            call.result = await self.model_caller.call(full_prompt, self.config.model_hint)
        except Exception as e:
            call.status = "failed"
            call.error = str(e)
            call.end_time = time.time()
            raise

        call.status = "completed"
        call.end_time = time.time()
        return call

    @staticmethod
    def _record_aborted(
        prompt: str, frame: RecursionFrame, run: RLMRunState, label: str, message: str
    ) -> None:
        now = time.time()
        run.calls.append(
            RLMCall(
                label=label,
                prompt=prompt,
                depth=frame.depth,
                status="failed",
                error=message,
                start_time=now,
                end_time=now,
            )
        )

    def build_prompt(self, prompt: str, variables: Mapping[str, Any]) -> tuple[str, list[str]]:
        """Append serialized context variables to a prompt.

        Returns:
            The full prompt and the names of variables that were truncated.
        """
        limit = self.config.variable_char_limit
        parts = [prompt, "", CONTEXT_HEADER, ""]
        truncated = []

        for key, value in variables.items():
            text = serialize_value(value)
            if len(text) > limit:
                text = text[:limit] + TRUNCATION_NOTE.format(total=len(text))
                truncated.append(key)
            parts.append(f"## {key}:\n{text}\n")

        return "\n".join(parts), truncated

    # =========================================================================
    # Helpers
    # =========================================================================

    def find_largest_variable(self, variables: Mapping[str, Any]) -> tuple[str, Any] | None:
        """The largest variable by serialized size, if it exceeds the size threshold."""
        largest: tuple[str, Any] | None = None
        largest_size = 0

        for key, value in variables.items():
            size = variable_size(value)
            if size > largest_size:
                largest_size = size
                largest = (key, value)

        return largest if largest_size > self.config.size_threshold else None

    def _chunk_data(self, data: Any, chunking: ChunkingStrategy | None) -> list[Any]:
        if isinstance(data, str):
            strategy = chunking or ChunkingStrategy(
                method=ChunkMethod.SEMANTIC, chunk_size=self.config.string_chunk_size
            )
            return self.chunker.chunk(data, strategy)
        if isinstance(data, list):
            size = chunking.chunk_size if chunking and chunking.chunk_size else self.config.list_chunk_size
            return self.chunker.chunk_list(data, size)
        return [data]

    def _finish(
        self,
        run: RLMRunState,
        result: Any = None,
        error: str | None = None,
        error_type: ErrorType | None = None,
    ) -> RLMExecutionResult:
        elapsed = run.elapsed()
        calls = tuple(run.calls)
        trajectory = RLMTrajectory(
            root_call=calls[0] if calls else None,
            calls=calls,
            total_calls=len(calls),
            max_depth=max((c.depth for c in calls), default=0),
            execution_time=elapsed,
        )
        if error is not None:
            logger.warning(f"RLM execution failed ({error_type}): {error}")
        return RLMExecutionResult(
            success=error is None,
            result=result,
            trajectory=trajectory,
            error=error,
            error_type=error_type,
            execution_time=elapsed,
        )


def _collect_errors(outcomes: list[Any]) -> list[BaseException]:
    """Exceptions from a gather(return_exceptions=True).

    Limit errors and cancellation are re-raised instead of collected.
    """
    errors = [o for o in outcomes if isinstance(o, BaseException)]
    for error in errors:
        if not isinstance(error, Exception):
            raise error
    for error in errors:
        if isinstance(error, RLMLimitError):
            raise error
    return errors


def variable_size(value: Any) -> int:
    if isinstance(value, str):
        return len(value)
    if isinstance(value, list):
        return len(value) * LIST_ITEM_WEIGHT
    return len(json.dumps(value, default=str))


def serialize_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool | int | float):
        return str(value)
    return json.dumps(value, indent=2, default=str)
