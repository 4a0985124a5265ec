"""Progress command: run a staged progress session live in the terminal.

Useful for checking stage timings and the timeout against each other
before shipping a preset or a custom stage list.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

import typer

from bulwark.core.config import BulwarkConfig, ProgressConfig, StageConfig
from bulwark.core.errors import ConfigurationError
from bulwark.execution.progress import (
    ProgressOrchestrator,
    ProgressSnapshot,
    ProgressStatus,
    get_preset,
    resolve_stages,
)
from bulwark.execution.scheduler import AsyncioScheduler
from bulwark.state.registry import LoadingRegistry

from ..output import StatusColors, console, create_progress_bar, format_seconds

SESSION_KEY = "cli.progress"


async def run_session(
    stages: Sequence[StageConfig],
    config: ProgressConfig,
    complete_after: float | None,
) -> ProgressSnapshot:
    """Run one session on the asyncio scheduler until it ends.

    Args:
        stages: Stages to walk through.
        config: Timeout and poll interval.
        complete_after: Seconds after which to call complete(); when None the
            session runs until it times out.

    Returns:
        The terminal snapshot.
    """
    scheduler = AsyncioScheduler()
    orchestrator = ProgressOrchestrator(scheduler, LoadingRegistry(), config=config)
    done = asyncio.Event()
    final: list[ProgressSnapshot] = []

    with create_progress_bar() as bar:
        task = bar.add_task("Starting...", total=100)

        def on_snapshot(snapshot: ProgressSnapshot) -> None:
            bar.update(task, completed=snapshot.progress, description=snapshot.message)
            if snapshot.terminal:
                final.append(snapshot)
                done.set()

        orchestrator.subscribe(on_snapshot, key=SESSION_KEY)
        orchestrator.start(SESSION_KEY, stages)
        if complete_after is not None:
            scheduler.call_later(complete_after, lambda: orchestrator.complete(SESSION_KEY))

        try:
            await done.wait()
        finally:
            orchestrator.stop_all()

    return final[0]


def progress(
    preset: str | None = typer.Option(
        None,
        "--preset",
        "-p",
        help="Stage preset to run (onboarding, cv_analysis, session_refresh)",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        min=0.001,
        help="Overall timeout in seconds",
    ),
    complete_after: float | None = typer.Option(
        None,
        "--complete-after",
        min=0,
        help="Complete the session after this many seconds (default: let it time out)",
    ),
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration to read the progress settings from",
        exists=True,
        dir_okay=False,
    ),
) -> None:
    """Simulate a progress session and report its outcome.

    Exits with 1 when the session times out.
    """
    config = ProgressConfig()
    if config_file is not None:
        try:
            config = BulwarkConfig.from_yaml(config_file).progress
        except ConfigurationError as e:
            console.print(f"[red]Invalid configuration:[/red] {e}")
            raise typer.Exit(1) from None
    if timeout is not None:
        config = config.model_copy(update={"timeout": timeout})

    try:
        stages = get_preset(preset) if preset is not None else resolve_stages(config)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    final = asyncio.run(run_session(stages, config, complete_after))

    color = StatusColors.PROGRESS[final.status]
    console.print(
        f"[{color}]{final.status.value}[/{color}] after {format_seconds(final.elapsed)} "
        f"at stage '{final.stage}' ({final.progress:g}%): {final.message}"
    )
    if final.status == ProgressStatus.TIMEOUT:
        raise typer.Exit(1)
