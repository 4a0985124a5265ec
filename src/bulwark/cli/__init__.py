"""Bulwark CLI.

Built with Typer; each command lives in its own module under ``commands``
and is registered on the app here.
"""

from __future__ import annotations

from typing import Annotated

import typer

from bulwark import __version__
from bulwark.core.logging import configure_logging

from .commands import backoff, classify, progress, validate
from .output import console

app = typer.Typer(
    name="bulwark",
    help="Resilience toolkit: error classification, retries, circuit breakers and progress",
    add_completion=False,
)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_LOG_FORMATS = ("console", "json")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Bulwark v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str,
        typer.Option(
            "--log-level",
            "-L",
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="BULWARK_LOG_LEVEL",
        ),
    ] = "WARNING",
    log_format: Annotated[
        str,
        typer.Option(
            "--log-format",
            help="Log format: console or json",
            envvar="BULWARK_LOG_FORMAT",
        ),
    ] = "console",
) -> None:
    """Bulwark - resilience and progress orchestration for async operations."""
    level = log_level.upper()
    if level not in _LOG_LEVELS:
        console.print(f"[red]Invalid log level:[/red] {log_level}")
        raise typer.Exit(2)
    if log_format not in _LOG_FORMATS:
        console.print(f"[red]Invalid log format:[/red] {log_format}")
        raise typer.Exit(2)
    configure_logging(level=level, format=log_format)  # type: ignore[arg-type]


app.command()(classify)
app.command()(backoff)
app.command()(progress)
app.command()(validate)


__all__ = ["app", "main"]
