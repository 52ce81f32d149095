"""Owned registry of connected bulbs, keyed by address and port."""

from __future__ import annotations

import asyncio
import logging
import socket
from collections.abc import Callable

from bulbctl.core.bulb import SmartBulb
from bulbctl.core.errors import ClosedError, TransportConnectError, ValidationError
from bulbctl.core.model import BulbReport, DeviceConfig
from bulbctl.transports.base import DatagramTransport
from bulbctl.transports.udp import UDPTransport

LOGGER = logging.getLogger(__name__)

TransportFactory = Callable[[], DatagramTransport]


def _key(address: str, port: int) -> str:
    return f"{address}:{port}"


class DeviceRegistry:
    def __init__(
        self,
        *,
        timeout_s: float = 5.0,
        max_in_flight: int | None = None,
        transport_factory: TransportFactory = UDPTransport,
        resolve_addresses: bool = True,
    ) -> None:
        self._timeout_s = timeout_s
        self._max_in_flight = max_in_flight
        self._transport_factory = transport_factory
        self._resolve_addresses = resolve_addresses
        self._bulbs: dict[str, SmartBulb] = {}
        self._connect_locks: dict[str, asyncio.Lock] = {}
        self._closed = False

    async def _resolve(self, address: str, port: int) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.getaddrinfo(address, port, type=socket.SOCK_DGRAM)
        except OSError as exc:
            raise TransportConnectError(f"Cannot resolve bulb address {address}:{port}: {exc}") from exc

    async def get_or_connect(self, address: str, port: int) -> SmartBulb:
        """Return the managed bulb for `address:port`, opening a connection on first use.

        Only transport-level failures raise here; an unresponsive bulb is kept
        and its failures surface from individual operations.
        """
        if self._closed:
            raise ClosedError("Device registry is closed")
        key = _key(address, port)
        existing = self._bulbs.get(key)
        if existing is not None and not existing.closed:
            return existing

        if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
            raise ValidationError(f"Port must be between 1 and 65535, got {port!r}")

        # Concurrent callers for one key share a single connection attempt.
        async with self._connect_locks.setdefault(key, asyncio.Lock()):
            existing = self._bulbs.get(key)
            if existing is not None and not existing.closed:
                return existing

            if self._resolve_addresses:
                await self._resolve(address, port)

            bulb = SmartBulb(
                DeviceConfig(address=address, port=port, timeout_s=self._timeout_s),
                transport=self._transport_factory(),
                max_in_flight=self._max_in_flight,
            )
            await bulb.open()
            if self._closed:
                bulb.close()
                raise ClosedError("Device registry is closed")
            self._bulbs[key] = bulb

        if await bulb.ping():
            LOGGER.info("Connected to bulb at %s", key)
        else:
            LOGGER.warning("Bulb at %s did not answer ping, keeping connection", key)
        return bulb

    def get(self, address: str, port: int) -> SmartBulb | None:
        return self._bulbs.get(_key(address, port))

    def bulbs(self) -> list[SmartBulb]:
        return list(self._bulbs.values())

    async def statuses(self) -> list[BulbReport]:
        bulbs = self.bulbs()
        results = await asyncio.gather(
            *(bulb.get_status() for bulb in bulbs),
            return_exceptions=True,
        )
        reports: list[BulbReport] = []
        for bulb, result in zip(bulbs, results):
            if isinstance(result, BaseException):
                LOGGER.warning("Status of %s unavailable: %s", bulb.config.key, result)
                continue
            reports.append(BulbReport(config=bulb.config, status=result))
        return reports

    def disconnect(self, address: str, port: int) -> bool:
        bulb = self._bulbs.pop(_key(address, port), None)
        if bulb is None:
            return False
        bulb.close()
        LOGGER.info("Disconnected from bulb at %s", bulb.config.key)
        return True

    def close(self) -> None:
        self._closed = True
        bulbs, self._bulbs = self._bulbs, {}
        for key, bulb in bulbs.items():
            bulb.close()
            LOGGER.info("Disconnected from bulb at %s", key)
