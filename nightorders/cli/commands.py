"""
Night Orders - CLI entry point.

    nightorders plan mission.yaml
    nightorders run mission.yaml --executor mypkg.agents:registry --logbook-dir logs
    nightorders run mission.yaml --dry-run --autonomous --interval 200
    nightorders history logs
"""

import importlib
import sys
from typing import Any, Dict, Optional

import click
from rich.markup import escape

from .. import __version__
from ..config import load_config
from ..errors import NightOrdersError, ParseError
from ..execution.autonomous_loop import AutonomousLoop
from ..missions.mission_orchestrator import MissionOrchestrator
from ..missions.mission_store import JsonLogbook, MemoryLogbook
from ..missions.mission_types import AgentRole, Mission, MissionStatus, ParsedOrder
from ..missions.order_file import load_order_file
from ..missions.scheduler import blocked_steps, planned_order
from ..notifications.notifier import WILDCARD, EventBus
from ..steps.step_executor import build_dry_run_registry
from .console import (
    configure_logging,
    get_console,
    render_event,
    render_executions,
    render_missions,
    render_plan,
    render_statistics,
    render_step_result,
)


def load_executor(path: str) -> Any:
    """
    Resolve ``package.module:attribute`` to an executor callable.

    Raises:
        click.BadParameter: If the module or attribute cannot be found
    """
    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise click.BadParameter(f"expected 'module:attribute', got '{path}'", param_hint="--executor")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import '{module_name}': {e}", param_hint="--executor")

    target: Any = module
    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError:
            raise click.BadParameter(f"'{module_name}' has no attribute '{attr}'", param_hint="--executor")
    if not callable(target):
        raise click.BadParameter(f"'{path}' is not callable", param_hint="--executor")
    return target


def _read_order(mission_file: str) -> ParsedOrder:
    try:
        return load_order_file(mission_file)
    except ParseError as e:
        raise click.ClickException(str(e))


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show engine logs")
def cli(verbose: bool):
    """
    Night Orders - mission orchestration for bounded-context AI agents.

    Breaks a mission into dependency-ordered steps and hands every step a
    fresh snapshot of the whole mission.
    """
    configure_logging(verbose)


@cli.command()
@click.argument("mission_file", type=click.Path(exists=True, dir_okay=False))
def plan(mission_file: str):
    """Show the steps of MISSION_FILE and the order they would run in."""
    order = _read_order(mission_file)
    mission = Mission(title=order.title, objectives=order.objectives, steps=order.steps)
    render_plan(
        get_console(),
        mission,
        planned_order(mission),
        [s.step_id for s in blocked_steps(mission)],
    )


@cli.command()
@click.argument("mission_file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--executor",
    "executor_path",
    type=str,
    help="Executor callable as 'package.module:attribute'",
)
@click.option(
    "--dry-run",
    is_flag=True,
    help="Report success for every step without executing anything",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    help="Orchestration YAML config",
)
@click.option(
    "--logbook-dir",
    type=click.Path(file_okay=False),
    help="Persist missions and executions under this directory",
)
@click.option(
    "--autonomous",
    is_flag=True,
    help="Run on the autonomous timer loop instead of step by step",
)
@click.option(
    "--interval",
    type=click.IntRange(min=1),
    help="Autonomous tick interval in milliseconds",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=1),
    help="Override the retry bound per step",
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Give up waiting on the autonomous loop after this many seconds",
)
def run(
    mission_file: str,
    executor_path: Optional[str],
    dry_run: bool,
    config_path: Optional[str],
    logbook_dir: Optional[str],
    autonomous: bool,
    interval: Optional[int],
    max_retries: Optional[int],
    timeout: Optional[float],
):
    """Execute MISSION_FILE and report progress."""
    if bool(executor_path) == dry_run:
        raise click.UsageError("Provide exactly one of --executor or --dry-run")

    order = _read_order(mission_file)

    if dry_run:
        roles = {r.value for r in AgentRole} | {s.assigned_role for s in order.steps}
        executor = build_dry_run_registry(sorted(roles))
    else:
        executor = load_executor(executor_path)

    overrides: Dict[str, Any] = {}
    if interval is not None:
        overrides["autonomous_interval_ms"] = interval
    if max_retries is not None:
        overrides["max_retries"] = max_retries
    try:
        config = load_config(config_path)
        if overrides:
            config = config.with_overrides(**overrides)
    except ValueError as e:
        raise click.ClickException(f"Invalid configuration: {e}")

    console = get_console()
    bus = EventBus()
    bus.subscribe(WILDCARD, lambda event: render_event(console, event))

    logbook = JsonLogbook(logbook_dir) if logbook_dir else MemoryLogbook()
    orchestrator = MissionOrchestrator(executor, logbook=logbook, notifier=bus, config=config)

    try:
        mission = orchestrator.issue_orders(order.title, order.objectives, order.steps)
    except ValueError as e:
        raise click.ClickException(str(e))

    console.print(f"[bold]Mission[/bold] {escape(mission.title)} [dim]({mission.id})[/dim]")

    loop: Optional[AutonomousLoop] = None
    try:
        if autonomous:
            loop = AutonomousLoop(orchestrator, notifier=bus)
            loop.start()
            if not loop.wait(timeout):
                loop.stop()
                console.print(f"[yellow]Timed out after {timeout}s; loop stopped[/yellow]")
        else:
            while True:
                result = orchestrator.execute_next_step()
                if result.idle:
                    break
                render_step_result(console, result)
    except KeyboardInterrupt:
        if loop is not None:
            loop.stop()
        console.print("[yellow]Interrupted[/yellow]")
    except NightOrdersError as e:
        raise click.ClickException(str(e))

    status = orchestrator.finalize()
    render_statistics(console, mission, orchestrator.get_statistics())
    if logbook_dir:
        console.print(f"[dim]Logbook: {logbook_dir}[/dim]")

    if status != MissionStatus.COMPLETED:
        sys.exit(1)


@cli.command()
@click.argument("logbook_dir", type=click.Path(exists=True, file_okay=False))
@click.argument("mission_id", required=False)
def history(logbook_dir: str, mission_id: Optional[str]):
    """List missions in LOGBOOK_DIR, or the executions of MISSION_ID (prefix allowed)."""
    console = get_console()
    logbook = JsonLogbook(logbook_dir)
    missions = logbook.list_missions()

    if mission_id is None:
        render_missions(console, missions)
        return

    matches = [m["id"] for m in missions if m["id"].startswith(mission_id)]
    if not matches:
        raise click.ClickException(f"No mission matching '{mission_id}' in {logbook_dir}")
    if len(matches) > 1:
        raise click.ClickException(f"'{mission_id}' is ambiguous: {', '.join(m[:8] for m in matches)}")

    render_executions(console, matches[0], logbook.read_executions(matches[0]))


def main():
    cli()


if __name__ == "__main__":
    main()
