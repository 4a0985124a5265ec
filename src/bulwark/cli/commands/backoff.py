"""Backoff command: print the delays a retry configuration produces."""

from __future__ import annotations

from pathlib import Path

import typer

from bulwark.core.config import BulwarkConfig, RetryConfig
from bulwark.core.errors import ConfigurationError
from bulwark.execution.backoff import delay_schedule

from ..output import console, create_delay_table, format_seconds


def backoff(
    config_file: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration to read the retry settings from",
        exists=True,
        dir_okay=False,
    ),
    attempts: int | None = typer.Option(
        None,
        "--attempts",
        "-n",
        min=1,
        help="Number of attempts to plan for (default: max_attempts)",
    ),
) -> None:
    """Show the retry delay schedule."""
    retry = RetryConfig()
    if config_file is not None:
        try:
            retry = BulwarkConfig.from_yaml(config_file).retry
        except ConfigurationError as e:
            console.print(f"[red]Invalid configuration:[/red] {e}")
            raise typer.Exit(1) from None

    delays = delay_schedule(retry, attempts)
    if not delays:
        console.print("[dim]A single attempt never waits.[/dim]")
        return

    console.print(create_delay_table(delays))
    if retry.jitter:
        console.print("[dim]Jitter is enabled: actual waits are uniform in [0, delay].[/dim]")
    console.print(f"Worst case wait: [bold]{format_seconds(sum(delays))}[/bold]")
