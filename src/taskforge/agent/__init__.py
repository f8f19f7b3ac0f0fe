"""Planning, execution and reflection for multi-step requests."""

from taskforge.agent.executor import ExecutorConfig, ParallelExecutor
from taskforge.agent.planner import AgentPlanner
from taskforge.agent.reflector import AgentReflector

__all__ = [
    "AgentPlanner",
    "AgentReflector",
    "ExecutorConfig",
    "ParallelExecutor",
]
