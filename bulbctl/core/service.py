"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from bulbctl.core.bulb import SmartBulb, parse_hex_color, validate_brightness, validate_color
from bulbctl.core.config import Settings
from bulbctl.core.discovery import DiscoveryBroadcaster
from bulbctl.core.errors import DeviceSelectionError, ValidationError
from bulbctl.core.model import BulbReport, Color, CommandResult, DiscoveredDevice
from bulbctl.core.registry import DeviceRegistry, TransportFactory
from bulbctl.transports.udp import UDPTransport

LOGGER = logging.getLogger(__name__)


def _coerce_color(color: str | Mapping[str, Any]) -> Color:
    if isinstance(color, str):
        return parse_hex_color(color)
    if isinstance(color, Mapping):
        missing = [channel for channel in "rgb" if channel not in color]
        if missing:
            raise ValidationError(f"RGB color is missing channel(s): {', '.join(missing)}")
        return Color(color["r"], color["g"], color["b"])
    raise ValidationError("Color must be a hex string or an RGB mapping")


class BulbService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: DeviceRegistry | None = None,
        discovery: DiscoveryBroadcaster | None = None,
        transport_factory: TransportFactory = UDPTransport,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry or DeviceRegistry(
            timeout_s=self.settings.timeout_s,
            max_in_flight=self.settings.max_in_flight,
            transport_factory=transport_factory,
        )
        self.discovery = discovery or DiscoveryBroadcaster(
            ports=self.settings.discovery_ports,
            addresses=self.settings.broadcast_addresses,
        )

    async def __aenter__(self) -> BulbService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        self.registry.close()
        self.discovery.close()

    async def bulb(self, address: str | None = None, port: int | None = None) -> SmartBulb:
        """Resolve a target bulb, falling back to the configured default device."""
        target_address = address if address is not None else self.settings.address
        if not target_address:
            raise DeviceSelectionError("No bulb address given and no default bulb configured")
        target_port = port if port is not None else self.settings.port
        return await self.registry.get_or_connect(target_address, target_port)

    def managed(self, address: str, port: int) -> SmartBulb:
        bulb = self.registry.get(address, port)
        if bulb is None:
            raise DeviceSelectionError(f"No connection to bulb at {address}:{port}")
        return bulb

    async def connect(self, address: str, port: int) -> SmartBulb:
        return await self.registry.get_or_connect(address, port)

    async def turn_on(self, address: str | None = None, port: int | None = None) -> CommandResult:
        bulb = await self.bulb(address, port)
        await bulb.turn_on()
        return self._result(bulb, "set_power", {"power": True})

    async def turn_off(self, address: str | None = None, port: int | None = None) -> CommandResult:
        bulb = await self.bulb(address, port)
        await bulb.turn_off()
        return self._result(bulb, "set_power", {"power": False})

    async def set_brightness(
        self,
        brightness: int,
        address: str | None = None,
        port: int | None = None,
    ) -> CommandResult:
        validate_brightness(brightness)
        bulb = await self.bulb(address, port)
        await bulb.set_brightness(brightness)
        return self._result(bulb, "set_brightness", {"brightness": brightness})

    async def set_color(
        self,
        color: str | Mapping[str, Any],
        address: str | None = None,
        port: int | None = None,
    ) -> CommandResult:
        # Validate before connecting so malformed input never touches the network.
        rgb = _coerce_color(color)
        validate_color(rgb.r, rgb.g, rgb.b)
        bulb = await self.bulb(address, port)
        await bulb.set_color(rgb.r, rgb.g, rgb.b)
        return self._result(bulb, "set_color", {"color": rgb.as_dict()})

    async def get_status(self, address: str | None = None, port: int | None = None) -> BulbReport:
        bulb = await self.bulb(address, port)
        status = await bulb.get_status()
        return BulbReport(config=bulb.config, status=status)

    async def ping(self, address: str | None = None, port: int | None = None) -> bool:
        bulb = await self.bulb(address, port)
        return await bulb.ping()

    async def discover(self, timeout_s: float | None = None) -> list[DiscoveredDevice]:
        devices = await self.discovery.discover(
            timeout_s if timeout_s is not None else self.settings.discovery_timeout_s
        )
        LOGGER.info("Discovery round found %d bulb(s)", len(devices))
        return devices

    async def all_statuses(self) -> list[BulbReport]:
        return await self.registry.statuses()

    @staticmethod
    def _result(bulb: SmartBulb, command: str, params: dict[str, Any]) -> CommandResult:
        return CommandResult(
            address=bulb.config.address,
            port=bulb.config.port,
            command=command,
            params=params,
        )
