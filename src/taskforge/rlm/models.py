"""Pydantic models for RLM components."""

import asyncio
import time
import uuid
from collections.abc import Callable
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ProcessingStrategy(str, Enum):
    """How the RLM executor handles input that is too large for one call."""

    MAP_REDUCE = "map-reduce"  # Split, process chunks in parallel, aggregate
    RECURSIVE_DECOMPOSITION = "recursive-decomposition"  # Break task into subtasks
    SEQUENTIAL_PROCESSING = "sequential-processing"  # Process items in order with state
    TREE_TRAVERSAL = "tree-traversal"  # Navigate hierarchical structures


class ChunkMethod(str, Enum):
    FIXED_SIZE = "fixed-size"
    SEMANTIC = "semantic"
    STRUCTURAL = "structural"
    CUSTOM = "custom"


class ChunkingStrategy(BaseModel):
    """Stateless chunking configuration."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    method: ChunkMethod = ChunkMethod.FIXED_SIZE
    chunk_size: int | None = Field(default=None, ge=1)
    overlap: int = Field(default=0, ge=0)
    separator: str | None = None
    custom_chunker: Callable[[str], list[str]] | None = Field(default=None, exclude=True)

    @model_validator(mode="after")
    def _check_overlap(self) -> "ChunkingStrategy":
        if self.chunk_size is not None and self.overlap >= self.chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")
        return self


CallStatus = Literal["pending", "running", "completed", "failed"]


class RLMCall(BaseModel):
    """One model invocation made during an RLM execution."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    label: str  # e.g. "direct-call", "map-3", "reduce"
    prompt: str
    depth: int
    parent_id: str | None = None
    status: CallStatus = "pending"
    result: Any = None
    error: str | None = None
    truncated_variables: list[str] = Field(default_factory=list)
    start_time: float | None = None
    end_time: float | None = None

    @property
    def duration_ms(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000


class RLMTrajectory(BaseModel):
    """All calls made during one top-level execute invocation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    root_call: RLMCall | None = None
    calls: tuple[RLMCall, ...] = ()
    total_calls: int = 0
    max_depth: int = 0
    execution_time: float = 0.0  # Seconds


ErrorType = Literal["depth_exceeded", "timeout", "map_failed", "backend_error", "invalid_input"]


class RLMExecutionResult(BaseModel):
    """Result from an RLM execution, successful or not."""

    success: bool
    result: Any = None
    trajectory: RLMTrajectory = Field(default_factory=RLMTrajectory)
    error: str | None = None
    error_type: ErrorType | None = None
    execution_time: float = 0.0  # Seconds


class RLMConfig(BaseModel):
    """Configuration for recursive processing."""

    # Resource bounds
    max_recursion_depth: int = Field(default=10, ge=0, le=50)
    max_execution_time: float = Field(default=300.0, gt=0, description="Seconds")
    max_concurrency: int = Field(default=5, ge=1, le=64)

    # Context thresholds
    size_threshold: int = Field(
        default=1000,
        ge=0,
        description="Serialized size above which the largest variable is chunked",
    )
    variable_char_limit: int = Field(
        default=5000,
        ge=1,
        description="Per-variable character ceiling in leaf prompts",
    )

    # Default chunking
    string_chunk_size: int = Field(default=2000, ge=1)
    list_chunk_size: int = Field(default=10, ge=1)

    # Model selection
    model_hint: str | None = None


class RLMRunState:
    """Mutable bookkeeping for a single execute invocation."""

    def __init__(self, max_execution_time: float, max_concurrency: int):
        self.start_time = time.monotonic()
        self.deadline = self.start_time + max_execution_time
        self.calls: list[RLMCall] = []
        self.semaphore = asyncio.Semaphore(max_concurrency)

    def elapsed(self) -> float:
        return time.monotonic() - self.start_time
