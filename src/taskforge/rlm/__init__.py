"""Recursive processing of inputs too large for a single model call."""

from taskforge.rlm.chunking import DataChunker
from taskforge.rlm.executor import RecursionFrame, RLMExecutor
from taskforge.rlm.models import (
    ChunkingStrategy,
    ChunkMethod,
    ProcessingStrategy,
    RLMCall,
    RLMConfig,
    RLMExecutionResult,
    RLMTrajectory,
)

__all__ = [
    "ChunkMethod",
    "ChunkingStrategy",
    "DataChunker",
    "ProcessingStrategy",
    "RLMCall",
    "RLMConfig",
    "RLMExecutionResult",
    "RLMExecutor",
    "RLMTrajectory",
    "RecursionFrame",
]
