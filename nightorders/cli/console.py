"""
Terminal rendering for the Night Orders CLI.

Uses Rich tables and panels; every renderer takes the Console to print to
so callers (and tests) control where output goes.
"""

import logging
from typing import Any, Dict, Iterable, List, Sequence

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..missions.mission_types import Mission, MissionStatistics, StepStatus
from ..notifications.notifier import (
    EVENT_AUTONOMOUS_PAUSED,
    EVENT_ESCALATION,
    EVENT_REFLEXION_SUMMARY,
    NotificationEvent,
)
from ..steps.step_types import ExecutionResult, StepExecutionRecord

STATUS_STYLES = {
    StepStatus.PENDING.value: "dim",
    StepStatus.IN_PROGRESS.value: "yellow",
    StepStatus.COMPLETED.value: "green",
    StepStatus.FAILED.value: "red",
    StepStatus.SKIPPED.value: "magenta",
}


def get_console() -> Console:
    return Console(highlight=False)


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through Rich; INFO with --verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _styled_status(status: str) -> str:
    style = STATUS_STYLES.get(status, "")
    return f"[{style}]{status}[/{style}]" if style else status


def render_plan(
    console: Console,
    mission: Mission,
    order: Sequence[int],
    blocked_ids: Iterable[int] = (),
) -> None:
    """Steps table plus the order they would run in."""
    blocked = set(blocked_ids)
    console.print(Panel(
        "\n".join(f"- {escape(o)}" for o in mission.objectives) or "(no objectives)",
        title=f"[bold]{escape(mission.title)}[/bold]",
        box=box.ROUNDED,
    ))

    table = Table(title="Steps", box=box.SIMPLE_HEAVY)
    table.add_column("ID", justify="right")
    table.add_column("Role")
    table.add_column("Depends on")
    table.add_column("Description")
    for step in mission.ordered_steps():
        deps = ", ".join(str(d) for d in step.dependencies) or "-"
        description = escape(step.description)
        if step.step_id not in order:
            description += " [red](never runs)[/red]"
        table.add_row(str(step.step_id), escape(step.assigned_role), deps, description)
    console.print(table)

    console.print(
        "Planned order: " + (" -> ".join(str(i) for i in order) if order else "(nothing runnable)")
    )
    unreachable = blocked | {s.step_id for s in mission.steps if s.step_id not in order}
    if unreachable:
        console.print(f"[red]Unreachable steps: {', '.join(str(i) for i in sorted(unreachable))}[/red]")


def render_step_result(console: Console, result: ExecutionResult) -> None:
    """One line per execution attempt."""
    step = result.step
    if step is None:
        console.print(f"[dim]{escape(result.message)}[/dim]")
        return

    progress = result.context.mission_progress if result.context else 0
    mark = "[green]OK[/green]" if result.success else "[red]FAIL[/red]"
    line = (
        f"{mark} step {step.step_id} ({escape(step.assigned_role)}) "
        f"{escape(step.description)} -> {_styled_status(step.status.value)}"
        f" [dim](context at {progress}%)[/dim]"
    )
    console.print(line)
    if result.error:
        console.print(f"    [red]{escape(result.error)}[/red]")
    for deviation in result.deviations:
        console.print(
            f"    [yellow]deviation[/yellow] {deviation.severity.value}: {escape(deviation.actual_behavior)}"
        )


def render_event(console: Console, event: NotificationEvent) -> None:
    """Print the notification events an operator cares about."""
    data: Dict[str, Any] = event.data
    if event.event_type == EVENT_ESCALATION:
        console.print(
            f"[bold red]ESCALATION[/bold red] step {data.get('step_id')}: "
            f"{escape(str(data.get('problem')))}"
        )
    elif event.event_type == EVENT_AUTONOMOUS_PAUSED:
        console.print(
            f"[bold yellow]PAUSED[/bold yellow] on step {data.get('step_id')}: "
            f"{escape(str(data.get('error')))}"
        )
    elif event.event_type == EVENT_REFLEXION_SUMMARY:
        done = data.get("just_completed", {})
        where = data.get("where_we_are", {})
        nxt = data.get("whats_next", [])
        upcoming = ", ".join(str(s["step_id"]) for s in nxt) or "none"
        console.print(
            f"[green]OK[/green] step {done.get('step_id')} {escape(str(done.get('description', '')))} "
            f"[dim]({where.get('progress')}% - next: {upcoming})[/dim]"
        )


def render_statistics(console: Console, mission: Mission, stats: MissionStatistics) -> None:
    table = Table(title=f"Mission {mission.status.value}", box=box.SIMPLE, show_header=False)
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Steps", str(stats.total_steps))
    table.add_row("Completed", str(stats.completed_steps))
    table.add_row("Failed", str(stats.failed_steps))
    table.add_row("Skipped", str(stats.skipped_steps))
    table.add_row("Retries", str(stats.retry_count))
    table.add_row("Needs review", str(stats.escalation_count))
    table.add_row("Success rate", f"{stats.success_rate * 100:.1f}%")
    table.add_row("Duration", f"{stats.total_duration:.2f}s")
    console.print(table)


def render_missions(console: Console, missions: List[Dict[str, Any]]) -> None:
    if not missions:
        console.print("[dim]No missions recorded[/dim]")
        return
    table = Table(title="Missions", box=box.SIMPLE_HEAVY)
    table.add_column("ID")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Steps", justify="right")
    table.add_column("Created")
    for m in missions:
        table.add_row(
            m["id"][:8],
            escape(m["title"]),
            _styled_status(m["status"]),
            str(m["steps"]),
            m["created_at"][:19],
        )
    console.print(table)


def render_executions(console: Console, mission_id: str, records: List[StepExecutionRecord]) -> None:
    if not records:
        console.print(f"[dim]No executions recorded for {escape(mission_id)}[/dim]")
        return
    table = Table(title=f"Executions of {mission_id[:8]}", box=box.SIMPLE_HEAVY)
    table.add_column("Step", justify="right")
    table.add_column("Role")
    table.add_column("Status")
    table.add_column("Retry", justify="right")
    table.add_column("Time (ms)", justify="right")
    table.add_column("Result")
    for r in records:
        table.add_row(
            str(r.step_id),
            escape(r.agent_role),
            _styled_status(r.status),
            str(r.retry_count),
            f"{r.execution_time_ms:.0f}",
            escape(r.result or r.deviation_description or ""),
        )
    console.print(table)
