"""Core data models used across protocol, correlator, service, and CLI."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Color:
    r: int
    g: int
    b: int

    def as_dict(self) -> dict[str, int]:
        return {"r": self.r, "g": self.g, "b": self.b}


@dataclass(frozen=True)
class Command:
    command: str
    params: dict[str, Any] | None = None
    id: str | None = None


@dataclass(frozen=True)
class Response:
    success: bool
    data: Any = None
    error: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class DeviceStatus:
    """Last-known state of a bulb.

    `connected` reflects freshness of the cache rather than live connectivity.
    """

    power: bool = False
    brightness: int = 0
    color: Color = field(default_factory=lambda: Color(255, 255, 255))
    temperature: int | None = None
    connected: bool = False

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "power": self.power,
            "brightness": self.brightness,
            "color": self.color.as_dict(),
            "connected": self.connected,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload


@dataclass(frozen=True)
class DeviceConfig:
    address: str
    port: int
    timeout_s: float = 5.0

    @property
    def key(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class DiscoveredDevice:
    address: str
    port: int
    name: str | None = None
    model: str | None = None
    firmware_version: str | None = None
    mac_address: str | None = None

    @property
    def key(self) -> str:
        return f"{self.address}:{self.port}"


@dataclass(frozen=True)
class CommandResult:
    address: str
    port: int
    command: str
    params: dict[str, Any]


@dataclass(frozen=True)
class BulbReport:
    config: DeviceConfig
    status: DeviceStatus
