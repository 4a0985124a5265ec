"""Rich output formatting for the Bulwark CLI.

Centralizes the console, the severity color scheme and the table builders
so every command renders the same way.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from bulwark.core.errors import Severity
from bulwark.execution.progress import ProgressStatus

if TYPE_CHECKING:
    from collections.abc import Sequence

    from bulwark.core.config import BulwarkConfig, StageConfig
    from bulwark.core.errors import ClassifiedError

# Shared console instance; commands print through it so tests can capture output.
console = Console()


class StatusColors:
    """Color mappings for severities and progress outcomes."""

    SEVERITY: dict[Severity, str] = {
        Severity.CRITICAL: "bold red",
        Severity.HIGH: "red",
        Severity.MEDIUM: "yellow",
        Severity.LOW: "cyan",
    }

    PROGRESS: dict[ProgressStatus, str] = {
        ProgressStatus.IDLE: "dim",
        ProgressStatus.LOADING: "blue",
        ProgressStatus.SUCCESS: "green",
        ProgressStatus.ERROR: "red",
        ProgressStatus.TIMEOUT: "yellow",
    }


def format_seconds(seconds: float) -> str:
    """Format a duration, e.g. 0.5 -> "500ms", 4.0 -> "4s", 90 -> "1m 30s"."""
    if seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    if seconds < 60:
        return f"{seconds:g}s"
    minutes, secs = divmod(seconds, 60)
    return f"{int(minutes)}m {secs:g}s"


def create_classification_panel(error: ClassifiedError) -> Panel:
    """Panel describing one classification result."""
    color = StatusColors.SEVERITY[error.severity]
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Type", error.type.value)
    table.add_row("Severity", f"[{color}]{error.severity.value}[/{color}]")
    table.add_row("Retryable", "yes" if error.retryable else "no")
    table.add_row("Requires sign-in", "yes" if error.requires_auth else "no")
    if error.code:
        table.add_row("Code", error.code)
    table.add_row("User message", error.user_message)
    for i, action in enumerate(error.suggested_actions):
        table.add_row("Suggested" if i == 0 else "", f"• {action}")
    return Panel(table, title=f"[bold]{error.key}[/bold]", title_align="left", border_style=color)


def create_delay_table(delays: Sequence[float]) -> Table:
    """Table of the waits between attempts."""
    table = Table(title="Retry Schedule")
    table.add_column("After attempt", justify="right", style="cyan")
    table.add_column("Delay", justify="right")
    table.add_column("Total waited", justify="right", style="dim")

    total = 0.0
    for attempt, delay in enumerate(delays, start=1):
        total += delay
        table.add_row(str(attempt), format_seconds(delay), format_seconds(total))
    return table


def create_stage_table(stages: Sequence[StageConfig], timeout: float) -> Table:
    """Table of progress stages with their cumulative start times."""
    table = Table(title=f"Progress Stages (timeout {format_seconds(timeout)})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Stage", style="cyan")
    table.add_column("Starts at", justify="right")
    table.add_column("Progress", justify="right")
    table.add_column("Message")

    start = 0.0
    for i, stage in enumerate(stages):
        table.add_row(
            str(i),
            stage.name,
            format_seconds(start) if start else "0s",
            f"{stage.progress:g}%",
            stage.message,
        )
        start += stage.duration
    return table


def create_config_table(config: BulwarkConfig) -> Table:
    """Summary of a loaded configuration."""
    table = Table(title="Configuration", show_header=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    retry = config.retry
    table.add_row("Max attempts", str(retry.max_attempts))
    table.add_row(
        "Backoff",
        f"{format_seconds(retry.base_delay)} × {retry.backoff_multiplier:g}, "
        f"max {format_seconds(retry.max_delay)}" + (" (jitter)" if retry.jitter else ""),
    )
    table.add_row(
        "Retryable types",
        ", ".join(sorted(t.value for t in retry.retryable_types)) or "-",
    )
    table.add_row(
        "Circuit breaker",
        f"opens after {config.circuit_breaker.failure_threshold} failures, "
        f"resets after {format_seconds(config.circuit_breaker.reset_timeout)}",
    )
    stages = (
        f"{len(config.progress.stages)} custom stages"
        if config.progress.stages
        else f"preset '{config.progress.preset}'"
    )
    table.add_row("Progress", f"{stages}, timeout {format_seconds(config.progress.timeout)}")
    table.add_row(
        "Notifiers",
        ", ".join(f"{n.type} (≥{n.min_severity.value})" for n in config.notifications) or "-",
    )
    return table


def create_progress_bar() -> Progress:
    """Progress display for a staged progress session."""
    return Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
        transient=False,
    )
