"""Typer-based CLI entry point."""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import typer
from rich import print
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .application.dtos import ProbeResult
from .application.services.probe_engine import MediaProbeEngine
from .config import DROPBOX_TOKEN_ENV
from .domain.models import VideoRecord
from .errors import (
    DropreelError,
    ExternalToolError,
    ListingError,
    SettingsError,
)
from .errors.handler import ErrorSeverity
from .facade import ReelSession
from .infrastructure.dropbox_client import DropboxClient
from .infrastructure.ffprobe_probe import FFprobeMediaProbeFactory
from .settings.manager import PipelineSettings, SettingsManager
from .utils.logging import configure_logging

app = typer.Typer(help="Curate playable Dropbox videos into a reel")
console = Console()

SettingsPathOption = typer.Option(None, "--settings", help="Path to settings.json")


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (ListingError, SettingsError, ExternalToolError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except DropreelError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    configure_logging(
        logging.DEBUG if verbose else logging.WARNING,
        RichHandler(console=Console(stderr=True), show_path=False),
    )


def _load_settings(settings_path: Optional[Path]) -> SettingsManager:
    manager = SettingsManager(settings_path)
    manager.load()
    return manager


def _compatibility_label(record: VideoRecord) -> str:
    if record.is_compatible is None:
        return "[yellow]unknown"
    if record.is_compatible:
        return "[green]playable"
    return f"[red]{record.compatibility_error or 'incompatible'}"


def _records_table(title: str, records: list[VideoRecord]) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    table.add_column("Name")
    table.add_column("Duration", justify="right")
    table.add_column("Dimensions")
    table.add_column("Compatibility")
    for position, record in enumerate(records, start=1):
        dims = f"{record.dimensions.width}x{record.dimensions.height}" if record.dimensions else ""
        table.add_row(
            str(position),
            record.name,
            record.duration,
            dims,
            _compatibility_label(record),
        )
    return table


@app.command()
@_handle_errors
def scan(
    folder: str = typer.Argument(..., help="Dropbox folder path or shared link"),
    token: Optional[str] = typer.Option(None, "--token", envvar=DROPBOX_TOKEN_ENV, help="Dropbox access token"),
    as_json: bool = typer.Option(False, "--json", help="Print the edit state as JSON"),
    settings_path: Optional[Path] = SettingsPathOption,
) -> None:
    """List a folder, verify every video and print the catalog."""

    if not token:
        typer.echo(f"Error: a Dropbox token is required (--token or ${DROPBOX_TOKEN_ENV})", err=True)
        raise typer.Exit(2)

    manager = _load_settings(settings_path)
    pipeline = manager.pipeline_settings()
    state = asyncio.run(_scan(folder, token, pipeline))
    manager.remember_folder(state["folderPath"])

    if as_json:
        console.print_json(json.dumps(state))
        return
    records = [VideoRecord.from_dict(item) for item in state["currentYourVideos"]]
    console.print(_records_table(state["folderPath"], records))


def _print_notice(message: str, severity: ErrorSeverity) -> None:
    if severity not in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
        console.print(f"[yellow]{message}")


async def _scan(folder: str, token: str, pipeline: PipelineSettings) -> dict[str, Any]:
    async with DropboxClient(
        token,
        base_url=pipeline.dropbox_api_base,
        timeout=pipeline.dropbox_http_timeout_sec,
    ) as client:
        session = ReelSession(
            client,
            FFprobeMediaProbeFactory(ffprobe_binary=pipeline.ffprobe_binary, ffmpeg_binary=pipeline.ffmpeg_binary),
            client,
            settings=pipeline,
        )
        session.banner.connect(_print_notice)
        try:
            result = await session.fetch(folder)
            if result.error is not None:
                raise result.error
            await session.wait_for_reconciliation()
            return session.snapshot_edit_state(result.folder_path)
        finally:
            session.dispose()


@app.command()
@_handle_errors
def probe(
    url: str = typer.Argument(..., help="Stream URL or local file to test"),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", min=1, help="Probe timeout in milliseconds"),
    settings_path: Optional[Path] = SettingsPathOption,
) -> None:
    """Run the playability probe against a single URL."""

    pipeline = _load_settings(settings_path).pipeline_settings()
    engine = MediaProbeEngine(
        FFprobeMediaProbeFactory(ffprobe_binary=pipeline.ffprobe_binary, ffmpeg_binary=pipeline.ffmpeg_binary),
        timeout_ms=timeout_ms or pipeline.probe_timeout_ms,
        timeout_retries=pipeline.probe_timeout_retries,
        min_dimension=pipeline.probe_min_dimension,
        max_dimension=pipeline.probe_max_dimension,
    )
    result: ProbeResult = asyncio.run(engine.probe_one(url, os.path.basename(url)))

    if not result.checked_with_browser:
        typer.echo(f"Error: Could not verify {url}: {result.error}", err=True)
        raise typer.Exit(1)
    if result.is_compatible:
        print(f"[green]Playable[/green] {url}")
    else:
        print(f"[red]Not playable[/red] {url}: {result.error}")
    if result.dimensions:
        print(f"  dimensions: {result.dimensions.width}x{result.dimensions.height}")
    if result.duration:
        print(f"  duration: {result.duration:.2f}s")
    if result.timed_out:
        print("[yellow]  probe timed out; assumed playable")
    if not result.is_compatible:
        raise typer.Exit(1)


@app.command("settings")
@_handle_errors
def settings_command(
    assignments: Optional[List[str]] = typer.Argument(None, help="KEY=VALUE pairs to store (values are JSON)"),
    settings_path: Optional[Path] = SettingsPathOption,
) -> None:
    """Show the settings file, or update it with KEY=VALUE pairs."""

    manager = _load_settings(settings_path)
    for assignment in assignments or []:
        key, sep, raw = assignment.partition("=")
        if not sep or not key:
            typer.echo(f"Error: expected KEY=VALUE, got {assignment!r}", err=True)
            raise typer.Exit(2)
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            value = raw
        manager.set(key.strip(), value)
        print(f"[green]Set {key.strip()}")

    table = Table(title=str(manager.path))
    table.add_column("Key")
    table.add_column("Value")
    for section, values in manager.as_dict().items():
        if isinstance(values, dict):
            for key, value in values.items():
                table.add_row(f"{section}.{key}", json.dumps(value))
        else:
            table.add_row(section, json.dumps(values))
    console.print(table)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    app()
