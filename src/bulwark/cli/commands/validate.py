"""Validate command for Bulwark configuration files.

Exit codes:
  0: Valid
  1: Invalid (unparsable YAML or schema errors)
"""

from __future__ import annotations

from pathlib import Path

import typer

from bulwark.core.config import BulwarkConfig
from bulwark.core.errors import ConfigurationError
from bulwark.execution.progress import resolve_stages

from ..output import console, create_config_table, create_stage_table


def validate(
    config_file: Path = typer.Argument(
        ...,
        help="Path to YAML configuration file",
        exists=True,
        readable=True,
        dir_okay=False,
    ),
) -> None:
    """Validate a configuration file and summarize it."""
    try:
        config = BulwarkConfig.from_yaml(config_file)
        stages = resolve_stages(config.progress)
    except (ConfigurationError, ValueError) as e:
        console.print(f"[red]✗ Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(f"[green]✓[/green] {config_file} is valid")
    console.print(create_config_table(config))
    console.print(create_stage_table(stages, config.progress.timeout))
