# src/hookbridge/cli.py
"""Hookbridge Command Line Interface.

Entry point for the hookbridge CLI tool.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from hookbridge import __version__
from hookbridge.contracts import HookbridgeError
from hookbridge.core.config import HookbridgeSettings, load_settings
from hookbridge.core.logging import configure_logging

if TYPE_CHECKING:
    import pandas as pd

__all__ = [
    "app",
]

app = typer.Typer(
    name="hookbridge",
    help="Hookbridge: temporal versioning and bridge resolution.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"hookbridge version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
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
        help="Enable verbose/debug logging (overrides the settings file).",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs (for machine processing).",
    ),
) -> None:
    """Hookbridge: temporal versioning and bridge resolution."""
    ctx.obj = {"verbose": verbose, "json_logs": json_logs}
    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")


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

    console.print(Panel(content, title=f"[red bold]{title}[/]", border_style="red", padding=(0, 1)))


def _load_or_exit(settings: Path) -> HookbridgeSettings:
    """Load settings, turning every configuration failure into exit code 1."""
    settings_path = settings.expanduser()
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
        # ValidationError is a ValueError, so it must be caught first
        details = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            details.append(f"{loc}: {error['msg']}" if loc else error["msg"])
        _format_validation_error(
            title="Configuration Validation Failed",
            message=f"Invalid settings in {settings_path.name}",
            details=details,
            hint="Check entity, join and hook names, concepts and references.",
        )
        raise typer.Exit(1) from None
    except ValueError as e:
        _format_validation_error(title="Configuration Error", message=str(e))
        raise typer.Exit(1) from None


def _apply_logging(ctx: typer.Context, config: HookbridgeSettings) -> None:
    """Reconfigure logging from the settings file unless flags asked otherwise."""
    flags = ctx.obj or {}
    if flags.get("verbose"):
        return
    configure_logging(
        json_output=flags.get("json_logs", False) or config.logging.json_output,
        level=config.logging.level,
    )


def _read_sources(config: HookbridgeSettings) -> dict[str, pd.DataFrame]:
    """Read every entity's raw CSV.

    Every cell is read as a string; empty cells become missing values.
    """
    import pandas as pd

    frames: dict[str, pd.DataFrame] = {}
    for entity in config.entities:
        if entity.source is None:
            raise ValueError(f"entity '{entity.name}' has no source file")
        if not entity.source.exists():
            raise FileNotFoundError(f"source for entity '{entity.name}' not found: {entity.source}")
        frames[entity.name] = pd.read_csv(entity.source, dtype=str)
    return frames


@app.command()
def validate(
    settings: Path = typer.Argument(..., help="Path to settings YAML file."),
) -> None:
    """Validate configuration without reading any data."""
    config = _load_or_exit(settings)
    typer.secho(f"Configuration valid: {settings.name}", fg=typer.colors.GREEN)
    typer.echo(f"  Entities: {', '.join(e.name for e in config.entities)}")
    if config.bridges:
        typer.echo(f"  Bridges:  {', '.join(b.peripheral for b in config.bridges)}")


@app.command()
def plan(
    settings: Path = typer.Argument(..., help="Path to settings YAML file."),
    output_format: str = typer.Option(
        "text",
        "--format",
        "-f",
        help="Output format: text or yaml.",
    ),
) -> None:
    """Show the join execution order of every bridge."""
    from hookbridge.engine.orchestrator import BridgePipeline

    if output_format not in ("text", "yaml"):
        typer.secho(f"Error: unknown format '{output_format}' (expected text or yaml)", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    config = _load_or_exit(settings)
    pipeline = BridgePipeline(config)
    plan_by_peripheral = pipeline.plan()
    if output_format == "yaml":
        import yaml

        typer.echo(yaml.safe_dump(plan_by_peripheral, default_flow_style=False, sort_keys=False))
        return
    if not plan_by_peripheral:
        typer.echo("No bridges configured.")
        return
    for bridge in config.bridges:
        order = plan_by_peripheral[bridge.peripheral]
        joins = " -> ".join(order) if order else "(no joins)"
        typer.echo(f"{bridge.peripheral}: {bridge.primary} => {joins}")
        if bridge.events:
            typer.echo(f"  events: {', '.join(e.event_type for e in bridge.events)}")


@app.command()
def run(
    ctx: typer.Context,
    settings: Path = typer.Argument(..., help="Path to settings YAML file."),
    output: Path = typer.Option(
        ...,
        "--output",
        "-o",
        help="Directory to write derived relations to (created if missing).",
    ),
    check_collisions: bool = typer.Option(
        False,
        "--check-collisions",
        help="Reject any hook token produced by two distinct inputs.",
    ),
) -> None:
    """Run the full pipeline and write every derived relation as CSV."""
    from hookbridge.engine.orchestrator import BridgePipeline

    config = _load_or_exit(settings)
    _apply_logging(ctx, config)

    try:
        raw = _read_sources(config)
        result = BridgePipeline(config, check_collisions=check_collisions).run(raw)
    except (HookbridgeError, FileNotFoundError, KeyError, ValueError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None

    output.mkdir(parents=True, exist_ok=True)
    digests = result.digests()
    for label, relation in result.relations():
        relation.to_frame().to_csv(output / f"{label}.csv", index=False)
        typer.echo(f"{label}: {len(relation)} rows  {digests[label]}")
    typer.secho(f"Wrote {len(digests)} relations to {output}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
