"""Stateful proxy for one remote smart bulb."""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import Any

from bulbctl.core.correlator import CommandCorrelator
from bulbctl.core.errors import (
    BulbctlError,
    CommandTimeoutError,
    HexColorFormatError,
    ProtocolError,
    TransportError,
    ValidationError,
)
from bulbctl.core.model import Color, Command, DeviceConfig, DeviceStatus, Response
from bulbctl.transports.base import DatagramTransport
from bulbctl.transports.udp import UDPTransport

_HEX_COLOR_RE = re.compile(r"#?([0-9a-f]{2})([0-9a-f]{2})([0-9a-f]{2})", re.IGNORECASE)
LOGGER = logging.getLogger(__name__)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_range(value: Any, low: int, high: int, *, context: str) -> None:
    if not _is_int(value) or not low <= value <= high:
        raise ValidationError(f"{context} must be an integer between {low} and {high}")


def validate_brightness(brightness: Any) -> None:
    _check_range(brightness, 0, 100, context="Brightness")


def validate_color(r: Any, g: Any, b: Any) -> None:
    for channel, value in (("r", r), ("g", g), ("b", b)):
        _check_range(value, 0, 255, context=f"RGB channel '{channel}'")


def parse_hex_color(value: str) -> Color:
    match = _HEX_COLOR_RE.fullmatch(value) if isinstance(value, str) else None
    if match is None:
        raise HexColorFormatError(f"Invalid hex color format: {value!r} (expected #RRGGBB)")
    r, g, b = (int(group, 16) for group in match.groups())
    return Color(r, g, b)


class SmartBulb:
    """Typed operations and a best-known status cache for one bulb.

    Mutating operations propagate every failure. `get_status` and `ping` absorb
    timeouts, transport failures and remote errors into a degraded result.
    """

    def __init__(
        self,
        config: DeviceConfig,
        *,
        transport: DatagramTransport | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        self._config = config
        self._status = DeviceStatus()
        self._correlator = CommandCorrelator(
            transport or UDPTransport(),
            config.address,
            config.port,
            timeout_s=config.timeout_s,
            on_status=self._update_status,
            max_in_flight=max_in_flight,
        )

    @property
    def config(self) -> DeviceConfig:
        return self._config

    @property
    def last_status(self) -> DeviceStatus:
        return self._status

    @property
    def closed(self) -> bool:
        return self._correlator.closed

    @property
    def in_flight(self) -> int:
        return self._correlator.in_flight

    async def open(self) -> None:
        await self._correlator.open()

    def close(self) -> None:
        self._correlator.close()

    async def __aenter__(self) -> SmartBulb:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def _update_status(self, data: dict[str, Any], success: bool) -> None:
        updates: dict[str, Any] = {}
        if isinstance(data.get("power"), bool):
            updates["power"] = data["power"]
        if _is_int(data.get("brightness")):
            updates["brightness"] = data["brightness"]
        if _is_int(data.get("temperature")):
            updates["temperature"] = data["temperature"]
        color = data.get("color")
        if isinstance(color, dict) and all(_is_int(color.get(channel)) for channel in "rgb"):
            updates["color"] = Color(color["r"], color["g"], color["b"])
        if success:
            updates["connected"] = True
        self._status = replace(self._status, **updates)

    async def _send(self, command: str, params: dict[str, Any] | None = None) -> Response:
        return await self._correlator.send(Command(command=command, params=params))

    async def set_power(self, power: bool) -> None:
        if not isinstance(power, bool):
            raise ValidationError("Power must be true or false")
        await self._send("set_power", {"power": power})

    async def turn_on(self) -> None:
        await self.set_power(True)

    async def turn_off(self) -> None:
        await self.set_power(False)

    async def set_brightness(self, brightness: int) -> None:
        validate_brightness(brightness)
        await self._send("set_brightness", {"brightness": brightness})

    async def set_color(self, r: int, g: int, b: int) -> None:
        validate_color(r, g, b)
        await self._send("set_color", {"color": {"r": r, "g": g, "b": b}})

    async def set_color_hex(self, value: str) -> Color:
        color = parse_hex_color(value)
        await self.set_color(color.r, color.g, color.b)
        return color

    async def get_status(self) -> DeviceStatus:
        try:
            await self._send("get_status")
        except (CommandTimeoutError, TransportError, ProtocolError) as exc:
            LOGGER.info("Status query to %s failed: %s", self._config.key, exc)
            self._status = replace(self._status, connected=False)
            return self._status
        self._status = replace(self._status, connected=True)
        return self._status

    async def ping(self) -> bool:
        try:
            await self._send("ping")
        except BulbctlError as exc:
            LOGGER.debug("Ping to %s failed: %s", self._config.key, exc)
            return False
        return True
