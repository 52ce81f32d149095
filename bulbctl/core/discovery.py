"""Broadcast discovery of bulbs on the local network."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from bulbctl.core.errors import ClosedError, TransportError, ValidationError
from bulbctl.core.model import DiscoveredDevice
from bulbctl.core.protocol import MalformedMessageError, decode_discovery_reply, encode_discovery_request
from bulbctl.transports.base import DatagramTransport
from bulbctl.transports.udp import UDPTransport

DEFAULT_DISCOVERY_PORTS: tuple[int, ...] = (4000, 4001, 4002, 8000, 8080)
DEFAULT_BROADCAST_ADDRESSES: tuple[str, ...] = ("255.255.255.255", "192.168.1.255")
LOGGER = logging.getLogger(__name__)


class DiscoveryBroadcaster:
    def __init__(
        self,
        *,
        transport: DatagramTransport | None = None,
        ports: Sequence[int] = DEFAULT_DISCOVERY_PORTS,
        addresses: Sequence[str] = DEFAULT_BROADCAST_ADDRESSES,
    ) -> None:
        self._transport = transport or UDPTransport(allow_broadcast=True)
        self._ports = tuple(ports)
        self._addresses = tuple(addresses)
        self._discovered: dict[str, DiscoveredDevice] = {}
        self._round_lock = asyncio.Lock()
        self._opened = False
        self._closed = False

    @property
    def targets(self) -> tuple[tuple[str, int], ...]:
        return tuple((address, port) for address in self._addresses for port in self._ports)

    @property
    def discovered(self) -> list[DiscoveredDevice]:
        return list(self._discovered.values())

    async def open(self) -> None:
        if self._closed:
            raise ClosedError("Discovery socket is closed")
        if self._opened:
            return
        await self._transport.open(self.datagram_received)
        self._opened = True

    def datagram_received(self, payload: bytes, addr: tuple[str, int]) -> None:
        try:
            device = decode_discovery_reply(payload, addr)
        except MalformedMessageError as exc:
            LOGGER.debug("Ignoring datagram from %s:%s: %s", addr[0], addr[1], exc)
            return
        if device is None:
            return
        self._discovered[device.key] = device
        LOGGER.info("Discovered bulb %s (%s)", device.key, device.name or "unnamed")

    async def discover(self, timeout_s: float = 5.0) -> list[DiscoveredDevice]:
        """Broadcast one discovery request to every target and collect replies for `timeout_s`."""
        if timeout_s <= 0:
            raise ValidationError("Discovery timeout must be positive")
        async with self._round_lock:
            await self.open()
            self._discovered.clear()

            message = encode_discovery_request()
            for target in self.targets:
                try:
                    self._transport.sendto(message, target)
                except TransportError as exc:
                    LOGGER.warning("Failed to send discovery to %s:%s: %s", target[0], target[1], exc)

            await asyncio.sleep(timeout_s)
            return self.discovered

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport.close()
