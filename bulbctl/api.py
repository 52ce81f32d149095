"""Stable public API for building tooling on top of bulbctl.

This module is the supported integration surface for third-party callers
(tool servers, home-automation glue, scripts). Avoid importing from
private/internal modules unless intentionally depending on non-stable
internals.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from bulbctl.core.bulb import SmartBulb
from bulbctl.core.config import Settings, load_settings
from bulbctl.core.discovery import DiscoveryBroadcaster
from bulbctl.core.errors import (
    BackpressureError,
    BulbctlError,
    ClosedError,
    CommandTimeoutError,
    ConfigError,
    DeviceSelectionError,
    HexColorFormatError,
    ProtocolError,
    TransportConnectError,
    TransportError,
    TransportSendError,
    ValidationError,
)
from bulbctl.core.model import (
    BulbReport,
    Color,
    CommandResult,
    DeviceConfig,
    DeviceStatus,
    DiscoveredDevice,
)
from bulbctl.core.registry import DeviceRegistry
from bulbctl.core.service import BulbService
from bulbctl.transports.base import DatagramTransport
from bulbctl.transports.udp import UDPTransport

__all__ = [
    "BulbctlError",
    "BackpressureError",
    "ClosedError",
    "CommandTimeoutError",
    "ConfigError",
    "DeviceSelectionError",
    "HexColorFormatError",
    "ProtocolError",
    "TransportError",
    "TransportConnectError",
    "TransportSendError",
    "ValidationError",
    "BulbReport",
    "Color",
    "CommandResult",
    "DeviceConfig",
    "DeviceStatus",
    "DiscoveredDevice",
    "DatagramTransport",
    "DeviceRegistry",
    "DiscoveryBroadcaster",
    "Settings",
    "SmartBulb",
    "UDPTransport",
    "load_settings",
    "Client",
]


class Client:
    """Public async client for controlling bulbs and discovering them.

    A `Client` owns one device registry and one discovery socket. Use it as an
    async context manager so that every socket is released on exit:

        async with Client() as client:
            await client.turn_on()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        service: BulbService | None = None,
    ) -> None:
        self._service = service or BulbService(settings or load_settings())

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def settings(self) -> Settings:
        return self._service.settings

    def close(self) -> None:
        self._service.close()

    async def connect(self, address: str, port: int) -> SmartBulb:
        return await self._service.connect(address, port)

    def get_bulb(self, address: str, port: int) -> SmartBulb:
        return self._service.managed(address, port)

    async def turn_on(self, address: str | None = None, port: int | None = None) -> CommandResult:
        return await self._service.turn_on(address, port)

    async def turn_off(self, address: str | None = None, port: int | None = None) -> CommandResult:
        return await self._service.turn_off(address, port)

    async def set_brightness(
        self,
        brightness: int,
        address: str | None = None,
        port: int | None = None,
    ) -> CommandResult:
        return await self._service.set_brightness(brightness, address, port)

    async def set_color(
        self,
        color: str | Mapping[str, Any],
        address: str | None = None,
        port: int | None = None,
    ) -> CommandResult:
        return await self._service.set_color(color, address, port)

    async def get_status(self, address: str | None = None, port: int | None = None) -> BulbReport:
        return await self._service.get_status(address, port)

    async def ping(self, address: str | None = None, port: int | None = None) -> bool:
        return await self._service.ping(address, port)

    async def discover(self, timeout_s: float | None = None) -> list[DiscoveredDevice]:
        return await self._service.discover(timeout_s)

    async def all_statuses(self) -> list[BulbReport]:
        return await self._service.all_statuses()

    def disconnect(self, address: str, port: int) -> bool:
        return self._service.registry.disconnect(address, port)
