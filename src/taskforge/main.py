"""CLI entry point for TaskForge."""

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import Annotated, Any, Literal

from dotenv import load_dotenv

# Load environment variables from .env.local (including LangSmith config)
# Path: main.py -> taskforge/ -> src/ -> project root
load_dotenv(Path(__file__).parent.parent.parent / ".env.local")

import typer  # noqa: E402
from rich.console import Console  # noqa: E402
from rich.panel import Panel  # noqa: E402
from rich.table import Table  # noqa: E402

from taskforge.agent.planner import AgentPlanner  # noqa: E402
from taskforge.config import get_settings  # noqa: E402
from taskforge.graph.nodes import STEP_DESCRIPTIONS  # noqa: E402
from taskforge.graph.workflow import create_model_callers, run_agent  # noqa: E402
from taskforge.models.task import PlanningContext, TaskPlan, TaskStatus  # noqa: E402
from taskforge.rlm.models import ProcessingStrategy  # noqa: E402
from taskforge.tools.registry import ToolContext  # noqa: E402
from taskforge.tools.rlm_tools import RLMTools, create_default_registry  # noqa: E402

Provider = Literal["openai", "anthropic", "google"]

RESULT_PREVIEW_CHARS = 80

app = typer.Typer(
    name="taskforge",
    help="TaskForge - plan, run and recover multi-step tasks with LLMs",
    add_completion=False,
)
console = Console()


def format_time(seconds: float) -> str:
    """Format seconds into human-readable time."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.0f}s"


def preview(value: Any, limit: int = RESULT_PREVIEW_CHARS) -> str:
    """One-line preview of a task result."""
    if value is None:
        return ""
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    text = " ".join(text.split())
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def configure_logging(verbose: bool) -> None:
    level = "DEBUG" if verbose else get_settings().log_level
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def plan_table(plan: TaskPlan) -> Table:
    table = Table(title=f"Plan ({plan.strategy.value}, {plan.total_tasks} tasks)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Tool", style="magenta")
    table.add_column("Depends on", style="dim")
    for task in plan.tasks:
        table.add_row(
            task.id,
            task.description,
            task.tool or "-",
            ", ".join(task.dependencies) or "-",
        )
    return table


@app.command()
def run(
    request: Annotated[str, typer.Argument(help="What you want done")],
    provider: Annotated[
        Provider | None,
        typer.Option("--provider", "-p", help="LLM provider (model auto-selected)"),
    ] = None,
    workspace: Annotated[
        Path | None,
        typer.Option("--workspace", "-w", help="Root directory tools resolve paths against"),
    ] = None,
    max_recovery_rounds: Annotated[
        int | None,
        typer.Option("--recovery-rounds", "-r", help="Reflect-and-recover rounds after failures"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show detailed progress")
    ] = False,
) -> None:
    """Plan the request, run the tasks and recover from failures."""
    configure_logging(verbose)
    console.print(
        Panel.fit(
            "[bold blue]TaskForge[/bold blue] - Running your request",
            border_style="blue",
        )
    )

    if verbose:
        console.print(f"[dim]Request:[/dim] {request}")
        console.print(f"[dim]Provider:[/dim] {provider or get_settings().provider} (model auto-selected)")
        console.print(f"[dim]Workspace:[/dim] {workspace or Path.cwd()}")
        console.print()

    last_elapsed: float = 0.0
    start_time = time.time()

    def progress_callback(step_name: str, _description: str, elapsed: float) -> None:
        nonlocal last_elapsed

        step_time = elapsed - last_elapsed
        last_elapsed = elapsed

        label = step_name.capitalize() if step_name in STEP_DESCRIPTIONS else step_name
        console.print(f"  [green]OK[/green] {label:<25} [dim][{format_time(step_time)}][/dim]")

    console.print()
    try:
        result = asyncio.run(
            run_agent(
                request,
                provider=provider,
                tool_context=ToolContext(workspace_root=str(workspace or Path.cwd())),
                max_recovery_rounds=max_recovery_rounds,
                progress_callback=progress_callback,
            )
        )
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    total_time = time.time() - start_time
    console.print(f"\n[bold]Total time:[/bold] {format_time(total_time)}")

    if result.get("errors"):
        console.print("[red]Errors occurred:[/red]")
        for error in result["errors"]:
            console.print(f"  - {error}")
        raise typer.Exit(1)

    history = result.get("execution_history", [])
    table = Table(title="Tasks")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Status")
    table.add_column("Result / error")
    status_colors = {
        TaskStatus.COMPLETED: "green",
        TaskStatus.FAILED: "red",
        TaskStatus.SKIPPED: "yellow",
    }
    for task in history:
        color = status_colors.get(task.status, "white")
        detail = preview(task.result) if task.status == TaskStatus.COMPLETED else task.error or ""
        table.add_row(task.id, f"[{color}]{task.status.value}[/{color}]", detail)
    console.print(table)

    plan = result.get("plan")
    if plan is not None:
        color = "green" if plan.status.value == "completed" else "red"
        console.print(
            f"\n[bold]Plan:[/bold] [{color}]{plan.status.value}[/{color}] "
            f"({plan.completed_tasks}/{plan.total_tasks} tasks)"
        )

    if result.get("learnings"):
        console.print("\n[bold]Learnings:[/bold]")
        for learning in result["learnings"]:
            console.print(f"  - {learning}")

    if plan is None or plan.status.value != "completed":
        raise typer.Exit(1)


@app.command()
def plan(
    request: Annotated[str, typer.Argument(help="What you want done")],
    provider: Annotated[
        Provider | None,
        typer.Option("--provider", "-p", help="LLM provider (model auto-selected)"),
    ] = None,
    max_tasks: Annotated[
        int | None,
        typer.Option("--max-tasks", help="Upper bound on the number of planned tasks"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show detailed progress")
    ] = False,
) -> None:
    """Break a request into tasks without running them."""
    configure_logging(verbose)

    try:
        model_caller, planner_caller = create_model_callers(provider)
        registry = create_default_registry(model_caller, get_settings().rlm_config)
        context = PlanningContext(available_tools=registry.names())
        if max_tasks is not None:
            context.constraints.max_total_tasks = max_tasks
        task_plan = asyncio.run(AgentPlanner(planner_caller).plan(request, context))
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(plan_table(task_plan))


@app.command()
def process(
    task: Annotated[str, typer.Argument(help="What to do with the files")],
    path: Annotated[
        Path | None,
        typer.Option("--path", help="Codebase directory to process"),
    ] = None,
    files: Annotated[
        list[Path] | None,
        typer.Option("--file", "-f", help="File to process (repeatable)"),
    ] = None,
    strategy: Annotated[
        ProcessingStrategy,
        typer.Option("--strategy", "-s", help="Recursive processing strategy"),
    ] = ProcessingStrategy.MAP_REDUCE,
    extensions: Annotated[
        list[str] | None,
        typer.Option("--ext", "-e", help="File extension to include with --path (repeatable)"),
    ] = None,
    provider: Annotated[
        Provider | None,
        typer.Option("--provider", "-p", help="LLM provider (model auto-selected)"),
    ] = None,
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Show detailed progress")
    ] = False,
) -> None:
    """Process a codebase or a set of files recursively."""
    configure_logging(verbose)

    if path is None and not files:
        console.print("[red]Error:[/red] Provide --path or at least one --file")
        raise typer.Exit(1)

    for file in files or []:
        if not file.exists():
            console.print(f"[red]Error:[/red] File not found: {file}")
            raise typer.Exit(1)

    start_time = time.time()
    try:
        model_caller, _ = create_model_callers(provider)
        tools = RLMTools(model_caller, get_settings().rlm_config)
        if path is not None:
            outcome = asyncio.run(
                tools.recursive_process(
                    task,
                    strategy=strategy.value,
                    context_type="codebase",
                    codebase_path=str(path),
                    extensions=extensions,
                )
            )
        else:
            outcome = asyncio.run(
                tools.recursive_process(
                    task,
                    strategy=strategy.value,
                    context_type="files",
                    file_paths=[str(f) for f in files or []],
                )
            )
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    total_time = time.time() - start_time
    calls = outcome.get("trajectory", {}).get("total_calls", 0)
    console.print(f"[dim]{calls} model calls in {format_time(total_time)}[/dim]")

    if not outcome.get("success"):
        console.print(f"[red]Error ({outcome.get('error_type', 'invalid_input')}):[/red] {outcome['error']}")
        raise typer.Exit(1)

    result = outcome["result"]
    text = result if isinstance(result, str) else json.dumps(result, indent=2, default=str)
    console.print(Panel(text, title=f"Result ({strategy.value})", border_style="blue"))


@app.command()
def version() -> None:
    """Show version information."""
    from taskforge import __version__

    console.print(f"TaskForge v{__version__}")


if __name__ == "__main__":
    app()
