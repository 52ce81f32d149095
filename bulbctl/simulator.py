"""Mock smart bulb that answers the JSON-over-UDP protocol.

Used by the test suite and by `bulbctl mock` for trying the CLI without
hardware.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

LOGGER = logging.getLogger(__name__)


@dataclass
class MockBulbState:
    power: bool = False
    brightness: int = 50
    color: dict[str, int] = field(default_factory=lambda: {"r": 255, "g": 255, "b": 255})
    temperature: int = 3000


def _in_range(value: Any, low: int, high: int) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and low <= value <= high


class MockBulb(asyncio.DatagramProtocol):
    def __init__(self, name: str = "Mock Smart Bulb") -> None:
        self.name = name
        self.state = MockBulbState()
        self.requests: list[dict[str, Any]] = []
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def address(self) -> tuple[str, int]:
        if self._transport is None:
            raise RuntimeError("Mock bulb is not serving")
        sockname = self._transport.get_extra_info("sockname")
        return sockname[0], sockname[1]

    def handle_request(self, request: dict[str, Any]) -> dict[str, Any]:
        self.requests.append(request)
        command = request.get("command")
        params = request.get("params") or {}
        response: dict[str, Any] = {"success": True, "id": request.get("id")}

        if command == "ping":
            response["data"] = {"pong": True}
        elif command == "discover":
            if request.get("type") == "discovery":
                return {
                    "type": "discovery_response",
                    "data": {
                        "name": self.name,
                        "model": "MockBulb v1.0",
                        "firmwareVersion": "1.0.0",
                        "macAddress": "00:11:22:33:44:55",
                    },
                }
        elif command == "set_power":
            if not isinstance(params.get("power"), bool):
                return self._failure(response, "Invalid power parameter")
            self.state.power = params["power"]
            response["data"] = {"power": self.state.power}
        elif command == "set_brightness":
            if not _in_range(params.get("brightness"), 0, 100):
                return self._failure(response, "Invalid brightness parameter (must be 0-100)")
            self.state.brightness = params["brightness"]
            response["data"] = {"brightness": self.state.brightness}
        elif command == "set_color":
            color = params.get("color")
            if not isinstance(color, dict) or not all(_in_range(color.get(c), 0, 255) for c in "rgb"):
                return self._failure(response, "Invalid color parameter (RGB values must be 0-255)")
            self.state.color = {"r": color["r"], "g": color["g"], "b": color["b"]}
            response["data"] = {"color": dict(self.state.color)}
        elif command == "get_status":
            response["data"] = {
                "power": self.state.power,
                "brightness": self.state.brightness,
                "color": dict(self.state.color),
                "temperature": self.state.temperature,
                "connected": True,
            }
        else:
            return self._failure(response, f"Unknown command: {command}")

        if response["id"] is None:
            del response["id"]
        return response

    @staticmethod
    def _failure(response: dict[str, Any], message: str) -> dict[str, Any]:
        LOGGER.warning("Command failed: %s", message)
        response["success"] = False
        response["error"] = message
        if response["id"] is None:
            del response["id"]
        return response

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self._transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        try:
            request = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("Failed to parse request from %s:%s: %s", addr[0], addr[1], exc)
            return
        if not isinstance(request, dict):
            LOGGER.warning("Ignoring non-object request from %s:%s", addr[0], addr[1])
            return

        LOGGER.info("Received command %s from %s:%s", request.get("command"), addr[0], addr[1])
        response = self.handle_request(request)
        if self._transport is not None:
            self._transport.sendto(json.dumps(response).encode("utf-8"), addr)

    def error_received(self, exc: Exception) -> None:
        LOGGER.warning("Mock bulb socket error: %s", exc)

    async def serve(self, host: str = "0.0.0.0", port: int = 4000) -> None:
        loop = asyncio.get_running_loop()
        await loop.create_datagram_endpoint(lambda: self, local_addr=(host, port))
        LOGGER.info("Mock bulb %r listening on %s:%s", self.name, *self.address)

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
