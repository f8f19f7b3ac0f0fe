"""Main LangGraph workflow assembly.

The agent loop plans a request, executes the plan, and when tasks fail
reflects on them and runs corrected tasks for a bounded number of rounds.
"""

import time
from collections.abc import Callable

from langgraph.graph import END, START, StateGraph

from taskforge.agent.executor import ParallelExecutor
from taskforge.agent.planner import AgentPlanner
from taskforge.agent.reflector import AgentReflector
from taskforge.config import ProviderName, get_settings
from taskforge.graph.edges import (
    should_continue_after_optimization,
    should_continue_after_planning,
    should_continue_after_recovery,
    should_recover,
    should_reflect,
)
from taskforge.graph.nodes import STEP_DESCRIPTIONS, create_nodes
from taskforge.llm.base import DEFAULT_MODELS, FAST_MODELS
from taskforge.llm.caller import ModelCaller, create_model_caller
from taskforge.models.state import AgentState
from taskforge.models.task import PlanningContext
from taskforge.tools.registry import ToolContext, ToolRegistry
from taskforge.tools.rlm_tools import create_default_registry


def create_model_callers(
    provider: ProviderName | None = None,
    api_key: str | None = None,
) -> tuple[ModelCaller, ModelCaller]:
    """Create the execution and planning model callers for a provider.

    Dual-model strategy: planning and reflection use the provider's fast
    model, task execution and recursive processing use the balanced one.
    Both can be overridden in settings.
    """
    settings = get_settings()
    provider = provider or settings.provider
    if api_key is None:
        api_key = settings.api_key_for(provider)

    model = settings.model or DEFAULT_MODELS[provider]
    planner_model = settings.planner_model or FAST_MODELS[provider]
    return (
        create_model_caller(provider, model, api_key),
        create_model_caller(provider, planner_model, api_key),
    )


def create_agent_graph(
    model_caller: ModelCaller,
    planner_caller: ModelCaller | None = None,
    tool_registry: ToolRegistry | None = None,
    tool_context: ToolContext | None = None,
    on_step_start: Callable[[str, str], None] | None = None,
):
    """Create and compile the agent workflow graph.

    Args:
        model_caller: Used for tool-less tasks and recursive processing tools.
        planner_caller: Used for planning and reflection (defaults to model_caller).
        tool_registry: Tools available to tasks. Defaults to the recursive
            processing tools.
        tool_context: Passed to every tool call.
        on_step_start: Optional callback(step_name, description) fired when a step starts.

    Returns:
        Compiled StateGraph.
    """
    settings = get_settings()
    planner_caller = planner_caller or model_caller
    registry = tool_registry or create_default_registry(model_caller, settings.rlm_config)

    planner = AgentPlanner(planner_caller)
    reflector = AgentReflector(planner_caller)
    executor = ParallelExecutor(
        registry,
        model_caller=model_caller,
        config=settings.executor_config,
        tool_context=tool_context,
    )
    nodes = create_nodes(planner, executor, reflector, registry.names(), on_step_start)

    workflow = StateGraph(AgentState)

    workflow.add_node("plan", nodes["plan"])
    workflow.add_node("optimize", nodes["optimize"])
    workflow.add_node("execute", nodes["execute"])
    workflow.add_node("reflect", nodes["reflect"])
    workflow.add_node("recover", nodes["recover"])
    workflow.add_node("finalize", nodes["finalize"])

    workflow.add_edge(START, "plan")

    workflow.add_conditional_edges(
        "plan",
        should_continue_after_planning,
        {
            "continue": "optimize",
            "error": END,
        },
    )
    workflow.add_conditional_edges(
        "optimize",
        should_continue_after_optimization,
        {
            "continue": "execute",
            "error": END,
        },
    )

    # Reflect-and-recover loop, bounded by max_recovery_rounds
    workflow.add_conditional_edges(
        "execute",
        should_reflect,
        {
            "reflect": "reflect",
            "finalize": "finalize",
        },
    )
    workflow.add_conditional_edges(
        "reflect",
        should_recover,
        {
            "recover": "recover",
            "finalize": "finalize",
        },
    )
    workflow.add_conditional_edges(
        "recover",
        should_continue_after_recovery,
        {
            "continue": "execute",
            "error": "finalize",
        },
    )
    workflow.add_edge("finalize", END)

    return workflow.compile()


async def run_agent(
    request: str,
    model_caller: ModelCaller | None = None,
    planner_caller: ModelCaller | None = None,
    tool_registry: ToolRegistry | None = None,
    provider: ProviderName | None = None,
    api_key: str | None = None,
    planning_context: PlanningContext | None = None,
    tool_context: ToolContext | None = None,
    max_recovery_rounds: int | None = None,
    progress_callback: Callable[[str, str, float], None] | None = None,
) -> AgentState:
    """Run the agent loop for one request.

    Args:
        request: Natural-language request.
        model_caller: Execution model caller. Created from settings when omitted.
        planner_caller: Planning/reflection model caller. Created from settings
            together with model_caller when both are omitted.
        tool_registry: Tools available to tasks.
        provider: LLM provider used when callers are created from settings.
        api_key: API key for the provider.
        planning_context: History, tool list and constraints for the planner.
        tool_context: Passed to every tool call.
        max_recovery_rounds: Reflect-and-recover rounds after failures. If None,
            uses the settings default.
        progress_callback: Optional callback function(step_name, description, elapsed_seconds)
            for progress updates with timing.

    Returns:
        Final workflow state.
    """
    settings = get_settings()
    if model_caller is None:
        model_caller, default_planner = create_model_callers(provider, api_key)
        planner_caller = planner_caller or default_planner

    graph = create_agent_graph(
        model_caller,
        planner_caller=planner_caller,
        tool_registry=tool_registry,
        tool_context=tool_context,
    )

    initial_state: AgentState = {
        "request": request,
        "planning_context": planning_context or PlanningContext(),
        "plan": None,
        "active_plan": None,
        "execution": None,
        "results": {},
        "execution_history": [],
        "failures": [],
        "recovery_tasks": [],
        "replaced_tasks": {},
        "recovery_round": 0,
        "max_recovery_rounds": (
            settings.max_recovery_rounds if max_recovery_rounds is None else max_recovery_rounds
        ),
        "learnings": [],
        "step_timings": [],
        "current_step": "start",
        "current_step_start": None,
        "current_step_description": "Initializing...",
        "errors": [],
    }

    start_time = time.time()

    if progress_callback is None:
        return await graph.ainvoke(initial_state)

    # Stream node-by-node updates with timing
    final_state = dict(initial_state)
    async for event in graph.astream(initial_state, stream_mode="updates"):
        for node_name, node_output in event.items():
            elapsed = time.time() - start_time
            if node_name in STEP_DESCRIPTIONS:
                desc = (
                    node_output.get("current_step_description")
                    if isinstance(node_output, dict)
                    else None
                ) or STEP_DESCRIPTIONS[node_name]
                progress_callback(node_name, desc, elapsed)
            if isinstance(node_output, dict):
                final_state.update(node_output)

    return final_state
