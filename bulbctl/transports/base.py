"""Transport interfaces."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol

DatagramReceiver = Callable[[bytes, tuple[str, int]], None]


class DatagramTransport(Protocol):
    async def open(self, receiver: DatagramReceiver) -> None:
        """Bind the endpoint and deliver every inbound datagram to `receiver`."""

    def sendto(self, payload: bytes, addr: tuple[str, int]) -> None:
        """Send one datagram; raise TransportSendError on failure."""

    def close(self) -> None:
        """Release the endpoint. Safe to call more than once."""
