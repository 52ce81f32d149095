"""Request/response correlation over a single datagram endpoint.

Every outgoing command gets a random identifier and an entry in the in-flight
table. The endpoint's receive path resolves entries by identifier, so
responses may arrive in any order. Each entry is resolved exactly once: by a
matching response, by its own timer, or by `close()`.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any

from bulbctl.core.errors import (
    BackpressureError,
    ClosedError,
    CommandTimeoutError,
    ProtocolError,
    TransportError,
)
from bulbctl.core.model import Command, Response
from bulbctl.core.protocol import MalformedMessageError, decode_response, encode_command
from bulbctl.transports.base import DatagramTransport

LOGGER = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
_ID_LENGTH = 12

StatusHook = Callable[[dict[str, Any], bool], None]


@dataclass
class _PendingRequest:
    id: str
    future: asyncio.Future[Response]
    timer: asyncio.TimerHandle


class CommandCorrelator:
    def __init__(
        self,
        transport: DatagramTransport,
        address: str,
        port: int,
        *,
        timeout_s: float = 5.0,
        on_status: StatusHook | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        self._transport = transport
        self._address = address
        self._port = port
        self._timeout_s = timeout_s
        self._on_status = on_status
        self._max_in_flight = max_in_flight
        self._pending: dict[str, _PendingRequest] = {}
        self._open_lock = asyncio.Lock()
        self._opened = False
        self._closed = False

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(self) -> None:
        if self._closed:
            raise ClosedError(f"Connection to {self._address}:{self._port} is closed")
        async with self._open_lock:
            if self._opened:
                return
            await self._transport.open(self.datagram_received)
            self._opened = True

    def _new_id(self) -> str:
        while True:
            request_id = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_LENGTH))
            if request_id not in self._pending:
                return request_id

    async def send(self, command: Command) -> Response:
        """Send `command` and wait for the response carrying the same identifier."""
        if not self._opened:
            await self.open()
        if self._closed:
            raise ClosedError(f"Connection to {self._address}:{self._port} is closed")
        if self._max_in_flight is not None and len(self._pending) >= self._max_in_flight:
            raise BackpressureError(
                f"{len(self._pending)} commands already in flight to {self._address}:{self._port}"
            )

        loop = asyncio.get_running_loop()
        request_id = self._new_id()
        payload = encode_command(replace(command, id=request_id))
        future: asyncio.Future[Response] = loop.create_future()
        timer = loop.call_later(self._timeout_s, self._expire, request_id)
        self._pending[request_id] = _PendingRequest(
            id=request_id,
            future=future,
            timer=timer,
        )

        try:
            self._transport.sendto(payload, (self._address, self._port))
        except TransportError:
            self._discard(request_id)
            raise

        LOGGER.debug("Sent %s (id=%s) to %s:%s", command.command, request_id, self._address, self._port)
        try:
            return await future
        finally:
            # No-op unless the caller was cancelled while waiting.
            self._discard(request_id)

    def _discard(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is not None:
            pending.timer.cancel()

    def _expire(self, request_id: str) -> None:
        pending = self._pending.pop(request_id, None)
        if pending is None or pending.future.done():
            return
        LOGGER.debug("Command %s to %s:%s timed out", request_id, self._address, self._port)
        pending.future.set_exception(
            CommandTimeoutError(
                f"No response from {self._address}:{self._port} within {self._timeout_s:g}s"
            )
        )

    def datagram_received(self, payload: bytes, addr: tuple[str, int]) -> None:
        try:
            response = decode_response(payload)
        except MalformedMessageError as exc:
            LOGGER.warning("Dropping datagram from %s:%s: %s", addr[0], addr[1], exc)
            return

        if isinstance(response.data, dict) and self._on_status is not None:
            try:
                self._on_status(response.data, response.success)
            except Exception:
                LOGGER.exception("Status update hook failed")

        if response.id is None:
            LOGGER.debug("Unsolicited message from %s:%s", addr[0], addr[1])
            return

        pending = self._pending.pop(response.id, None)
        if pending is None:
            LOGGER.debug("Ignoring response with unknown or resolved id %s", response.id)
            return
        pending.timer.cancel()
        if pending.future.done():
            return

        if response.success:
            pending.future.set_result(response)
        else:
            pending.future.set_exception(ProtocolError(response.error or "Unknown error"))

    def close(self) -> None:
        """Fail every in-flight command with ClosedError and release the endpoint."""
        if self._closed:
            return
        self._closed = True
        pending, self._pending = self._pending, {}
        for entry in pending.values():
            entry.timer.cancel()
            if not entry.future.done():
                entry.future.set_exception(
                    ClosedError(f"Connection to {self._address}:{self._port} closed")
                )
        self._transport.close()
