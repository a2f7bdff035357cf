"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any, TypeVar

import typer

from dimctl.core.decoder import decode_payload
from dimctl.core.errors import DimctlError
from dimctl.core.model import CycleReport, DecodeFailure, PressAction, TransportKind, describe_command
from dimctl.core.service import DimmerService

app = typer.Typer(help="Drive dimmable lights from a four-button wall switch")

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_T = TypeVar("_T")


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to a YAML config file"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
) -> None:
    level = log_level.upper()
    if level not in _LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(_LOG_LEVELS)}", param_hint="--log-level")
    logging.basicConfig(level=getattr(logging, level), format="%(levelname)s:%(name)s:%(message)s")
    ctx.obj = {"config": config}


def _build_service(ctx: typer.Context) -> DimmerService:
    service = DimmerService(config_path=(ctx.obj or {}).get("config"))
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    for warning in getattr(service, "runtime_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _run(service: DimmerService, operation: Callable[[], Awaitable[_T]]) -> _T:
    async def _with_close() -> _T:
        try:
            return await operation()
        finally:
            await service.aclose()

    return asyncio.run(_with_close())


def _format_report(report: CycleReport) -> str:
    head = f"{report.event.button} {report.event.action} -> {report.config.device_id}[{report.config.channel_id}]"
    if report.abandoned:
        return f"{head}: status query failed ({report.status.error}); skipped"
    state = report.status.state
    line = f"{head}: on={state.is_on} brightness={state.brightness} -> {describe_command(report.command)}"
    if report.result is not None and not report.result.ok:
        line += f" (failed: {report.result.error})"
    return line


@app.command("buttons")
def list_buttons(ctx: typer.Context) -> None:
    """List configured buttons and the light each one drives."""
    try:
        service = _build_service(ctx)
        buttons = service.list_buttons()
        if not buttons:
            typer.echo("No buttons configured")
            raise typer.Exit(code=1)

        for button, config in buttons:
            where = config.remote_address if config.transport is TransportKind.HTTP else "local"
            typer.echo(f"{button}: {config.device_id} channel {config.channel_id} via {config.transport} ({where})")
    except DimctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("decode")
def decode(payload: str = typer.Argument(..., help="Sensor payload as JSON, e.g. '{\"button\": [1, 0, 0, 0]}'")) -> None:
    """Decode a raw sensor payload into a button press."""
    decoded = decode_payload(payload)
    if isinstance(decoded, DecodeFailure):
        typer.echo(f"No event: {decoded.reason}")
        raise typer.Exit(code=1)
    typer.echo(f"{decoded.button} {decoded.action}")


@app.command("status")
def status(ctx: typer.Context, button: str = typer.Argument(..., help="Button name, e.g. up_left")) -> None:
    """Query the light bound to a button."""
    try:
        service = _build_service(ctx)
        resolved, result = _run(service, lambda: service.status(button))
        if not result.ok:
            typer.echo(f"Error: status query for {resolved} failed: {result.error}", err=True)
            raise typer.Exit(code=1)
        power = "on" if result.state.is_on else "off"
        typer.echo(f"{resolved}: {power} brightness={result.state.brightness}")
    except DimctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("press")
def press(
    ctx: typer.Context,
    button: str = typer.Argument(..., help="Button name, e.g. up_left"),
    action: PressAction = typer.Argument(PressAction.SINGLE, help="Press action"),
) -> None:
    """Simulate one press: query the light, decide, and send the command."""
    try:
        service = _build_service(ctx)
        report = _run(service, lambda: service.press(button, action))
        if report.abandoned or (report.result is not None and not report.result.ok):
            typer.echo(f"Error: {_format_report(report)}", err=True)
            raise typer.Exit(code=1)
        typer.echo(_format_report(report))
    except DimctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _read_events(path: Path) -> list[dict[str, Any]]:
    events: list[dict[str, Any]] = []
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise typer.BadParameter(f"Could not read {path}: {exc}") from exc
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            event = json.loads(line)
        except ValueError as exc:
            raise typer.BadParameter(f"Line {number} of {path} is not JSON: {exc}") from exc
        if not isinstance(event, dict):
            raise typer.BadParameter(f"Line {number} of {path} must be a JSON object")
        events.append(event)
    return events


@app.command("replay")
def replay(
    ctx: typer.Context,
    events_file: Path = typer.Argument(..., help="JSON-lines file of sensor events"),
) -> None:
    """Feed recorded sensor events through the queue, one light command at a time."""
    try:
        events = _read_events(events_file)
        service = _build_service(ctx)
        reports, queued = _run(
            service,
            lambda: service.replay(events, on_cycle=lambda report: typer.echo(_format_report(report))),
        )
        typer.echo(f"Processed {len(reports)} presses from {len(events)} events ({queued} queued)")
    except DimctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
