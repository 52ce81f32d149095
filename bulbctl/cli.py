"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

import typer

from bulbctl.core.config import Settings, load_settings
from bulbctl.core.errors import BulbctlError, ValidationError
from bulbctl.core.service import BulbService
from bulbctl.simulator import MockBulb

T = TypeVar("T")

app = typer.Typer(help="Control JSON-over-UDP smart bulbs and discover them on the LAN")

_HOST_OPTION = typer.Option(None, "--host", help="Bulb IP address (defaults to BULB_IP or config)")
_PORT_OPTION = typer.Option(None, "--port", help="Bulb UDP port (defaults to BULB_PORT or config)")
_TIMEOUT_OPTION = typer.Option(None, "--timeout", help="Per-command timeout in seconds")
_CONFIG_OPTION = typer.Option(None, "--config", help="Path to a YAML settings file")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def _load(config: Path | None, timeout: float | None) -> Settings:
    settings = load_settings(config)
    if timeout is not None:
        if timeout <= 0:
            raise ValidationError("--timeout must be positive")
        settings = replace(settings, timeout_s=timeout)
    return settings


async def _with_service(settings: Settings, action: Callable[[BulbService], Awaitable[T]]) -> T:
    async with BulbService(settings) as service:
        return await action(service)


def _run(
    action: Callable[[BulbService], Awaitable[T]],
    *,
    config: Path | None = None,
    timeout: float | None = None,
) -> T:
    try:
        settings = _load(config, timeout)
        return asyncio.run(_with_service(settings, action))
    except BulbctlError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def _parse_color_argument(value: str) -> str | dict[str, Any]:
    if "," not in value:
        return value
    parts = [part.strip() for part in value.split(",")]
    if len(parts) != 3:
        raise typer.BadParameter("RGB color must be three comma-separated values, e.g. 255,0,0")
    try:
        r, g, b = (int(part) for part in parts)
    except ValueError:
        raise typer.BadParameter("RGB values must be integers") from None
    return {"r": r, "g": g, "b": b}


@app.command("on")
def turn_on(
    host: str | None = _HOST_OPTION,
    port: int | None = _PORT_OPTION,
    timeout: float | None = _TIMEOUT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Turn the bulb on."""
    result = _run(lambda service: service.turn_on(host, port), config=config, timeout=timeout)
    typer.echo(f"Turned on bulb at {result.address}:{result.port}")


@app.command("off")
def turn_off(
    host: str | None = _HOST_OPTION,
    port: int | None = _PORT_OPTION,
    timeout: float | None = _TIMEOUT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Turn the bulb off."""
    result = _run(lambda service: service.turn_off(host, port), config=config, timeout=timeout)
    typer.echo(f"Turned off bulb at {result.address}:{result.port}")


@app.command("brightness")
def set_brightness(
    value: int = typer.Argument(..., help="Brightness level from 0 to 100"),
    host: str | None = _HOST_OPTION,
    port: int | None = _PORT_OPTION,
    timeout: float | None = _TIMEOUT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Set the bulb brightness (0-100%)."""
    result = _run(lambda service: service.set_brightness(value, host, port), config=config, timeout=timeout)
    typer.echo(f"Set brightness to {value}% on bulb at {result.address}:{result.port}")


@app.command("color")
def set_color(
    value: str = typer.Argument(..., help="Hex color (#FF0000) or RGB triple (255,0,0)"),
    host: str | None = _HOST_OPTION,
    port: int | None = _PORT_OPTION,
    timeout: float | None = _TIMEOUT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Set the bulb color from a hex code or an RGB triple."""
    color = _parse_color_argument(value)
    result = _run(lambda service: service.set_color(color, host, port), config=config, timeout=timeout)
    rgb = result.params["color"]
    typer.echo(
        f"Set color to RGB({rgb['r']}, {rgb['g']}, {rgb['b']}) on bulb at {result.address}:{result.port}"
    )


@app.command("status")
def status(
    host: str | None = _HOST_OPTION,
    port: int | None = _PORT_OPTION,
    timeout: float | None = _TIMEOUT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Print the bulb status as JSON (last known state if the bulb is unreachable)."""
    report = _run(lambda service: service.get_status(host, port), config=config, timeout=timeout)
    typer.echo(json.dumps({"bulb": report.config.key, "status": report.status.as_dict()}, indent=2))


@app.command("ping")
def ping(
    host: str | None = _HOST_OPTION,
    port: int | None = _PORT_OPTION,
    timeout: float | None = _TIMEOUT_OPTION,
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Check whether the bulb answers."""
    alive = _run(lambda service: service.ping(host, port), config=config, timeout=timeout)
    if not alive:
        typer.echo("No answer from bulb", err=True)
        raise typer.Exit(code=1)
    typer.echo("Bulb is reachable")


@app.command("discover")
def discover(
    timeout: float | None = typer.Option(None, "--timeout", help="Discovery window in seconds"),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Broadcast a discovery request and list bulbs that answer."""
    devices = _run(lambda service: service.discover(timeout), config=config)
    if not devices:
        typer.echo("No bulbs found")
        return
    for device in devices:
        details = ", ".join(
            part
            for part in (device.model, device.firmware_version and f"fw {device.firmware_version}", device.mac_address)
            if part
        )
        typer.echo(f"{device.key} {device.name or '<unnamed>'}" + (f" ({details})" if details else ""))


async def _serve_mock(port: int, name: str) -> None:
    bulb = MockBulb(name)
    await bulb.serve(port=port)
    try:
        await asyncio.Event().wait()
    finally:
        bulb.close()


@app.command("mock")
def mock(
    port: int = typer.Option(4000, "--port", help="UDP port to listen on"),
    name: str = typer.Option("Mock Smart Bulb", "--name", help="Name announced in discovery replies"),
) -> None:
    """Run a mock bulb that answers commands and discovery requests."""
    typer.echo(f"Mock bulb '{name}' listening on port {port}; press Ctrl+C to stop")
    try:
        asyncio.run(_serve_mock(port, name))
    except KeyboardInterrupt:
        typer.echo("Shutting down mock bulb")
    except OSError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
