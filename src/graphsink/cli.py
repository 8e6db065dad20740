# src/graphsink/cli.py
"""graphsink Command Line Interface.

Entry point for the graphsink CLI tool. Offline tooling only: commands
resolve strategies and plan queries but never talk to a database.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from graphsink import __version__
from graphsink.contracts import (
    CollectingErrorReporter,
    InvalidStateError,
    MessageHandlingError,
    SinkConfigurationError,
    SinkRecord,
)
from graphsink.core.config import GraphSinkSettings, load_settings
from graphsink.engine.processor import SinkProcessor, TopicPlan
from graphsink.strategies.resolver import StrategyAssignments, StrategyResolver

__all__ = ["app"]

app = typer.Typer(
    name="graphsink",
    help="graphsink: turn topic messages into graph writes.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"graphsink version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose/debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """graphsink: turn topic messages into graph writes."""
    from graphsink.core.logging import configure_logging

    log_level = "DEBUG" if verbose else "INFO"
    configure_logging(json_output=json_logs, level=log_level)


def _format_validation_error(
    title: str,
    message: str,
    hint: str | None = None,
    details: list[str] | None = None,
) -> None:
    """Display a formatted error with optional hint and details."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    console = Console(stderr=True)

    content = Text()
    content.append(message, style="white")

    if details:
        content.append("\n\n")
        for detail in details:
            content.append(f"  • {detail}\n", style="dim")

    if hint:
        content.append("\n")
        content.append("Hint: ", style="yellow bold")
        content.append(hint, style="yellow")

    panel = Panel(
        content,
        title=f"[red bold]{title}[/]",
        border_style="red",
        padding=(0, 1),
    )
    console.print(panel)


def _load_settings_or_exit(settings: str) -> GraphSinkSettings:
    settings_path = Path(settings).expanduser()
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        _format_validation_error(
            title="YAML Syntax Error",
            message=f"Failed to parse {settings_path.name}",
            details=[str(e.problem)] if hasattr(e, "problem") else None,
            hint="Check for unclosed brackets, incorrect indentation, or invalid characters.",
        )
        raise typer.Exit(1) from None
    except FileNotFoundError:
        _format_validation_error(
            title="File Not Found",
            message=f"Settings file does not exist: {settings}",
            hint="Check the path and ensure the file exists.",
        )
        raise typer.Exit(1) from None
    except ValidationError as e:
        details = [f"{'.'.join(str(x) for x in error['loc'])}: {error['msg']}" for error in e.errors()]
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check field names, types, and required values.",
        )
        raise typer.Exit(1) from None


def _resolve_or_exit(resolver: StrategyResolver) -> StrategyAssignments:
    try:
        return resolver.resolve()
    except SinkConfigurationError as e:
        _format_validation_error(
            title="Strategy Configuration Error",
            message=str(e),
            hint="Every declared topic needs exactly one strategy.",
        )
        raise typer.Exit(1) from None


@app.command()
def validate(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Validate configuration and show the strategy assigned to each topic."""
    config = _load_settings_or_exit(settings)
    assignments = _resolve_or_exit(StrategyResolver(config))

    typer.echo("Configuration valid.")
    for topic, handler in assignments.items():
        typer.echo(f"  {topic} -> {handler.strategy()}")


def _read_records(path: Path) -> list[SinkRecord]:
    """Read one JSON record per line; blank lines are ignored.

    Raises:
        ValueError: If a line is not a valid record
    """
    records: list[SinkRecord] = []
    with path.open(encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                data = json.loads(line)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object")
                records.append(SinkRecord.from_dict(data))
            except (KeyError, TypeError, ValueError) as e:
                raise ValueError(f"line {line_number}: {e}") from e
    return records


def _plan_to_json(plan: TopicPlan) -> dict[str, Any]:
    return {
        "topic": plan.topic,
        "groups": [
            [
                {
                    "tx_id": change.tx_id,
                    "seq": change.seq,
                    "text": change.query.text,
                    "parameters": change.query.parameters,
                }
                for change in group
            ]
            for group in plan.groups
        ],
    }


@app.command()
def plan(
    settings: str = typer.Option(
        ...,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    records: Path = typer.Option(
        ...,
        "--records",
        "-r",
        help="Path to a JSON Lines file of records (topic, partition, offset, key, value, ...).",
    ),
) -> None:
    """Plan the transaction groups a batch of records would produce."""
    config = _load_settings_or_exit(settings)
    reporter = CollectingErrorReporter()
    assignments = _resolve_or_exit(StrategyResolver(config, error_reporter=reporter))

    records_path = records.expanduser()
    if not records_path.exists():
        typer.echo(f"Error: records file not found: {records_path}", err=True)
        raise typer.Exit(1)
    try:
        batch = _read_records(records_path)
    except ValueError as e:
        typer.echo(f"Error: invalid record in {records_path.name}, {e}", err=True)
        raise typer.Exit(1) from None

    try:
        plans = SinkProcessor(assignments).plan(batch)
    except (MessageHandlingError, SinkConfigurationError, InvalidStateError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    output = {
        "topics": [_plan_to_json(p) for p in plans],
        "rejected": [
            {
                "topic": rejection.topic,
                "partition": rejection.partition,
                "offset": rejection.offset,
                "reason": rejection.error.reason,
            }
            for rejection in reporter.drain()
        ],
    }
    typer.echo(json.dumps(output, indent=2, default=str))


if __name__ == "__main__":
    app()
