"""UDP transport implementation using asyncio datagram endpoints."""

from __future__ import annotations

import asyncio
import logging

from bulbctl.core.errors import TransportConnectError, TransportSendError
from bulbctl.transports.base import DatagramReceiver

LOGGER = logging.getLogger(__name__)


class _ReceiverProtocol(asyncio.DatagramProtocol):
    def __init__(self, receiver: DatagramReceiver) -> None:
        self._receiver = receiver

    def datagram_received(self, data: bytes, addr: tuple[str, int]) -> None:
        self._receiver(data, (addr[0], addr[1]))

    def error_received(self, exc: Exception) -> None:
        LOGGER.warning("UDP socket error: %s", exc)


class UDPTransport:
    def __init__(
        self,
        *,
        local_addr: tuple[str, int] = ("0.0.0.0", 0),
        allow_broadcast: bool = False,
    ) -> None:
        self._local_addr = local_addr
        self._allow_broadcast = allow_broadcast
        self._transport: asyncio.DatagramTransport | None = None

    @property
    def local_address(self) -> tuple[str, int] | None:
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def open(self, receiver: DatagramReceiver) -> None:
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ReceiverProtocol(receiver),
                local_addr=self._local_addr,
                allow_broadcast=self._allow_broadcast,
            )
        except OSError as exc:
            raise TransportConnectError(
                f"Could not open UDP endpoint on {self._local_addr[0]}:{self._local_addr[1]}: {exc}"
            ) from exc
        self._transport = transport

    def sendto(self, payload: bytes, addr: tuple[str, int]) -> None:
        if self._transport is None or self._transport.is_closing():
            raise TransportSendError("UDP endpoint is not open")
        try:
            self._transport.sendto(payload, addr)
        except OSError as exc:
            raise TransportSendError(f"UDP send to {addr[0]}:{addr[1]} failed: {exc}") from exc

    def close(self) -> None:
        if self._transport is not None:
            self._transport.close()
            self._transport = None
