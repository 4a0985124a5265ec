"""Classify command: show how a failure message would be classified."""

from __future__ import annotations

import json

import typer

from bulwark.core.errors import ErrorClassifier, ErrorContext

from ..output import console, create_classification_panel


def classify(
    message: str = typer.Argument(..., help="Error message to classify"),
    code: str | None = typer.Option(
        None,
        "--code",
        "-c",
        help="Structured error code (HTTP status or database code)",
    ),
    component: str = typer.Option("cli", "--component", help="Component of the error context"),
    action: str = typer.Option("classify", "--action", help="Action of the error context"),
    offline: bool = typer.Option(False, "--offline", help="Classify as if the client were offline"),
    json_output: bool = typer.Option(False, "--json", "-j", help="Output the result as JSON"),
) -> None:
    """Classify an error message into type, severity and retryability."""
    classifier = ErrorClassifier(connectivity=lambda: not offline)
    raw: dict[str, str] = {"message": message}
    if code:
        raw["code"] = code

    result = classifier.classify(raw, ErrorContext(component=component, action=action))

    if json_output:
        typer.echo(json.dumps(result.to_dict(), indent=2))
        return

    console.print(create_classification_panel(result))
