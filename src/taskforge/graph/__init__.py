"""LangGraph agent loop."""

from taskforge.graph.workflow import create_agent_graph, run_agent

__all__ = ["create_agent_graph", "run_agent"]
