# src/otlp_forwarder/cli.py
"""otlp-forwarder command line interface.

Replays captured log batches through the forwarding pipeline and inspects
collector configuration without deploying the Lambda.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Literal

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from otlp_forwarder import __version__
from otlp_forwarder.contracts.errors import ForwarderError
from otlp_forwarder.contracts.records import LogEntry
from otlp_forwarder.core.config import ForwarderSettings, load_settings
from otlp_forwarder.handler import decode_awslogs_event, parse_log_events

__all__ = ["app", "load_entries"]

app = typer.Typer(
    name="otlp-forwarder",
    help="Forward OTLP payloads captured in log lines to collectors.",
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"otlp-forwarder version {__version__}")
        raise typer.Exit()


def _load_dotenv(env_file: Path | None = None) -> bool:
    """Load environment variables from a .env file.

    Raises:
        typer.Exit: If an explicit env_file path doesn't exist.
    """
    from dotenv import load_dotenv

    if env_file is not None:
        if not env_file.exists():
            typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        return load_dotenv(env_file, override=False)
    return load_dotenv(override=False)


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
    no_dotenv: bool = typer.Option(
        False,
        "--no-dotenv",
        help="Skip loading .env file.",
    ),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Path to .env file (skips automatic search).",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Output structured JSON logs.",
    ),
) -> None:
    """Forward OTLP payloads captured in log lines to collectors."""
    from otlp_forwarder.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if not no_dotenv:
        _load_dotenv(env_file=env_file)
    elif env_file is not None:
        typer.secho("Warning: --env-file ignored because --no-dotenv is set.", fg=typer.colors.YELLOW, err=True)


def _entry_from_item(item: Any, position: int) -> LogEntry:
    if isinstance(item, str):
        return LogEntry(id=str(position), timestamp=0, message=item)
    if isinstance(item, dict) and isinstance(item.get("message"), str):
        timestamp = item.get("timestamp", 0)
        return LogEntry(
            id=str(item.get("id", position)),
            timestamp=timestamp if isinstance(timestamp, int) else 0,
            message=item["message"],
        )
    if isinstance(item, dict):
        # A wrapped-export record given directly
        return LogEntry(id=str(position), timestamp=0, message=json.dumps(item))
    raise typer.BadParameter(f"Entry {position} is neither a string nor an object")


def load_entries(path: Path) -> list[LogEntry]:
    """Read log entries from a file.

    Accepted layouts:
    - a Lambda event (``{"awslogs": {"data": ...}}``)
    - a decoded subscription document (``{"logEvents": [...]}``)
    - a JSON array of raw records, entry objects or wrapped-export objects
    - newline-delimited raw records
    """
    text = path.read_text(encoding="utf-8")
    try:
        document = json.loads(text)
    except json.JSONDecodeError:
        document = None

    if isinstance(document, dict) and "awslogs" in document:
        return decode_awslogs_event(document)
    if isinstance(document, dict) and "logEvents" in document:
        return parse_log_events(document)
    if isinstance(document, list):
        return [_entry_from_item(item, i) for i, item in enumerate(document)]

    lines = [line for line in text.splitlines() if line.strip()]
    return [LogEntry(id=str(i), timestamp=0, message=line) for i, line in enumerate(lines)]


def _load_settings_or_exit(settings: str | None) -> ForwarderSettings:
    settings_path = Path(settings).expanduser() if settings else None
    try:
        return load_settings(settings_path)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None


@app.command()
def forward(
    file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        readable=True,
        help="File with log records to replay.",
    ),
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        "-n",
        help="Decode and compact only; send nothing.",
    ),
    output_format: Literal["console", "json"] = typer.Option(
        "console",
        "--format",
        "-f",
        help="Output format: 'console' or 'json'.",
    ),
) -> None:
    """Replay a file of log records through the pipeline."""
    from otlp_forwarder.engine.processor import build_pipeline

    config = _load_settings_or_exit(settings)
    try:
        entries = load_entries(file)
    except ForwarderError as e:
        typer.echo(f"Error reading {file}: {e}", err=True)
        raise typer.Exit(1) from None

    pipeline = build_pipeline(config)

    if dry_run:
        units, skipped = pipeline.decode_entries(entries)
        payloads = pipeline.compact(units) if units else []
        summary: dict[str, Any] = {
            "records_received": len(entries),
            "records_skipped": len(skipped),
            "payloads": [
                {
                    "signal": p.signal.value,
                    "source": p.source,
                    "records": p.record_count,
                    "uncompressed_bytes": p.uncompressed_size,
                    "wire_bytes": len(p.merged_raw_bytes),
                }
                for p in payloads
            ],
        }
        if output_format == "json":
            typer.echo(json.dumps(summary))
        else:
            typer.echo(f"Records: {len(entries)} received, {len(skipped)} skipped")
            for p in summary["payloads"]:
                typer.echo(
                    f"  {p['signal']} from {p['source']}: {p['records']} record(s), "
                    f"{p['uncompressed_bytes']} bytes -> {p['wire_bytes']} on the wire"
                )
        return

    try:
        result = asyncio.run(pipeline.process(entries))
    except ForwarderError as e:
        if output_format == "json":
            typer.echo(json.dumps({"event": "error", "error": str(e), "error_type": type(e).__name__}), err=True)
        else:
            typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    if output_format == "json":
        outcomes = [
            {
                "payload": o.payload_index,
                "collector": o.collector,
                "success": o.success,
                "status_code": o.status_code,
                "error_kind": o.error_kind,
            }
            for o in (result.report.outcomes if result.report else ())
        ]
        typer.echo(
            json.dumps(
                {
                    "records_received": result.records_received,
                    "records_skipped": result.records_skipped,
                    "payloads": result.payloads,
                    "outcomes": outcomes,
                }
            )
        )
        return

    typer.echo(f"Records: {result.records_received} received, {result.records_skipped} skipped")
    typer.echo(f"Payloads: {result.payloads}")
    if result.report is not None:
        for o in result.report.outcomes:
            status = "ok" if o.success else f"FAILED ({o.error_kind}: {o.message})"
            typer.echo(f"  payload {o.payload_index} -> {o.collector}: {status}")


@app.command()
def collectors(
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file.",
    ),
) -> None:
    """Load and list the configured collectors."""
    from otlp_forwarder.engine.processor import build_pipeline

    config = _load_settings_or_exit(settings)
    pipeline = build_pipeline(config)

    try:
        asyncio.run(pipeline.refresh_collectors())
    except ForwarderError as e:
        typer.echo(f"Error loading collectors: {e}", err=True)
        raise typer.Exit(1) from None

    loaded = pipeline.registry.current()
    if not loaded:
        typer.echo("No collectors configured.")
        return
    for collector in loaded:
        header_names = ", ".join(sorted(collector.headers)) or "-"
        typer.echo(f"{collector.name}: {collector.endpoint} (auth: {collector.auth_mode}, headers: {header_names})")
