from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import pytest

from bulbctl.core.bulb import SmartBulb, parse_hex_color
from bulbctl.core.errors import (
    ClosedError,
    CommandTimeoutError,
    HexColorFormatError,
    ProtocolError,
    TransportSendError,
    ValidationError,
)
from bulbctl.core.model import Color, DeviceConfig
from bulbctl.simulator import MockBulb

CONFIG = DeviceConfig(address="192.168.1.45", port=4000, timeout_s=0.05)


class FakeTransport:
    def __init__(self, responder: Callable[[dict[str, Any]], dict[str, Any] | None] | None = None) -> None:
        self.responder = responder
        self.fail_sends = False
        self.sent: list[dict[str, Any]] = []
        self.receiver = None
        self.closed = False

    async def open(self, receiver) -> None:
        self.receiver = receiver

    def sendto(self, payload: bytes, addr: tuple[str, int]) -> None:
        if self.fail_sends:
            raise TransportSendError("network is unreachable")
        message = json.loads(payload)
        self.sent.append(message)
        if self.responder is not None:
            reply = self.responder(message)
            if reply is not None:
                data = json.dumps(reply).encode("utf-8")
                asyncio.get_running_loop().call_soon(self.receiver, data, addr)

    def close(self) -> None:
        self.closed = True


def _bulb(responder=None) -> tuple[SmartBulb, FakeTransport]:
    transport = FakeTransport(responder)
    return SmartBulb(CONFIG, transport=transport), transport


@pytest.mark.parametrize("brightness", [0, 1, 50, 99, 100])
def test_valid_brightness_sends_one_command(brightness: int) -> None:
    device = MockBulb()
    bulb, transport = _bulb(device.handle_request)

    asyncio.run(bulb.set_brightness(brightness))

    assert len(transport.sent) == 1
    assert transport.sent[0]["command"] == "set_brightness"
    assert transport.sent[0]["params"] == {"brightness": brightness}
    assert device.state.brightness == brightness
    assert bulb.last_status.brightness == brightness
    assert bulb.last_status.connected is True


@pytest.mark.parametrize("rgb", [(0, 0, 0), (255, 255, 255), (12, 34, 56), (255, 0, 128)])
def test_valid_color_sends_one_command(rgb: tuple[int, int, int]) -> None:
    device = MockBulb()
    bulb, transport = _bulb(device.handle_request)

    asyncio.run(bulb.set_color(*rgb))

    assert len(transport.sent) == 1
    assert transport.sent[0]["params"] == {"color": dict(zip("rgb", rgb))}
    assert bulb.last_status.color == Color(*rgb)


@pytest.mark.parametrize("brightness", [-1, 101, 1000, 50.5, True, "50", None])
def test_invalid_brightness_fails_without_io(brightness: Any) -> None:
    bulb, transport = _bulb(MockBulb().handle_request)

    with pytest.raises(ValidationError):
        asyncio.run(bulb.set_brightness(brightness))
    assert transport.sent == []


@pytest.mark.parametrize("rgb", [(-1, 0, 0), (0, 256, 0), (0, 0, 300), (1.5, 0, 0), (0, False, 0)])
def test_invalid_color_fails_without_io(rgb: tuple[Any, Any, Any]) -> None:
    bulb, transport = _bulb(MockBulb().handle_request)

    with pytest.raises(ValidationError):
        asyncio.run(bulb.set_color(*rgb))
    assert transport.sent == []


def test_set_power_requires_bool() -> None:
    bulb, transport = _bulb(MockBulb().handle_request)

    with pytest.raises(ValidationError):
        asyncio.run(bulb.set_power(1))  # type: ignore[arg-type]
    assert transport.sent == []


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("#FF8000", Color(255, 128, 0)),
        ("ff8000", Color(255, 128, 0)),
        ("#00aAfF", Color(0, 170, 255)),
        ("000000", Color(0, 0, 0)),
    ],
)
def test_hex_color_decodes_and_sets_color(value: str, expected: Color) -> None:
    device = MockBulb()
    bulb, transport = _bulb(device.handle_request)

    color = asyncio.run(bulb.set_color_hex(value))

    assert color == expected
    assert parse_hex_color(value) == expected
    assert transport.sent[0]["params"] == {"color": expected.as_dict()}
    assert device.state.color == expected.as_dict()


@pytest.mark.parametrize("value", ["#FFF", "GG0000", "#FF00001", "", "##FF0000", " #FF0000", "#FF 000", "#FF0000\n"])
def test_invalid_hex_color_fails_without_io(value: str) -> None:
    bulb, transport = _bulb(MockBulb().handle_request)

    with pytest.raises(HexColorFormatError):
        asyncio.run(bulb.set_color_hex(value))
    assert transport.sent == []


def test_turn_on_and_off_set_power() -> None:
    device = MockBulb()
    bulb, transport = _bulb(device.handle_request)

    async def scenario() -> None:
        await bulb.turn_on()
        assert device.state.power is True
        await bulb.turn_off()

    asyncio.run(scenario())
    assert [m["params"] for m in transport.sent] == [{"power": True}, {"power": False}]
    assert device.state.power is False
    assert bulb.last_status.power is False


def test_get_status_merges_reported_state() -> None:
    device = MockBulb()
    device.state.power = True
    device.state.color = {"r": 10, "g": 20, "b": 30}
    bulb, _ = _bulb(device.handle_request)

    status = asyncio.run(bulb.get_status())

    assert status.power is True
    assert status.brightness == 50
    assert status.color == Color(10, 20, 30)
    assert status.temperature == 3000
    assert status.connected is True


def test_get_status_partial_data_keeps_previous_fields() -> None:
    def responder(message: dict[str, Any]) -> dict[str, Any]:
        if message["command"] == "set_brightness":
            return {"success": True, "id": message["id"], "data": {"brightness": 70}}
        return {"success": True, "id": message["id"], "data": {"power": True}}

    bulb, _ = _bulb(responder)

    async def scenario():
        await bulb.set_brightness(70)
        return await bulb.get_status()

    status = asyncio.run(scenario())
    assert status.power is True
    assert status.brightness == 70


def test_get_status_unreachable_returns_cached_disconnected() -> None:
    device = MockBulb()
    device.state.brightness = 80
    bulb, transport = _bulb(device.handle_request)

    async def scenario():
        first = await bulb.get_status()
        transport.responder = None
        second = await bulb.get_status()
        return first, second

    first, second = asyncio.run(scenario())
    assert first.connected is True
    assert second.connected is False
    assert second.brightness == 80
    assert bulb.last_status.connected is False


def test_get_status_absorbs_remote_and_transport_failures() -> None:
    bulb, transport = _bulb(lambda m: {"success": False, "id": m["id"], "error": "busy"})

    async def scenario():
        remote_failure = await bulb.get_status()
        transport.fail_sends = True
        send_failure = await bulb.get_status()
        return remote_failure, send_failure

    remote_failure, send_failure = asyncio.run(scenario())
    assert remote_failure.connected is False
    assert send_failure.connected is False


def test_ping_reports_liveness_without_raising() -> None:
    bulb, transport = _bulb(MockBulb().handle_request)

    async def scenario():
        alive = await bulb.ping()
        transport.responder = None
        timed_out = await bulb.ping()
        transport.fail_sends = True
        unreachable = await bulb.ping()
        bulb.close()
        closed = await bulb.ping()
        return alive, timed_out, unreachable, closed

    assert asyncio.run(scenario()) == (True, False, False, False)


def test_ping_payload_does_not_pollute_status() -> None:
    bulb, _ = _bulb(MockBulb().handle_request)

    asyncio.run(bulb.ping())

    assert "pong" not in bulb.last_status.as_dict()
    assert bulb.last_status.connected is True


def test_mutating_operations_propagate_failures() -> None:
    bulb, transport = _bulb(lambda m: {"success": False, "id": m["id"], "error": "Invalid power parameter"})

    async def scenario() -> None:
        with pytest.raises(ProtocolError, match="Invalid power parameter"):
            await bulb.set_power(True)
        transport.responder = None
        with pytest.raises(CommandTimeoutError):
            await bulb.set_brightness(10)
        transport.fail_sends = True
        with pytest.raises(TransportSendError):
            await bulb.set_color(1, 2, 3)

    asyncio.run(scenario())


def test_failed_response_merges_data_but_does_not_mark_connected() -> None:
    bulb, _ = _bulb(
        lambda m: {"success": False, "id": m["id"], "error": "overheated", "data": {"power": False, "brightness": 5}}
    )

    with pytest.raises(ProtocolError, match="overheated"):
        asyncio.run(bulb.set_power(True))

    assert bulb.last_status.brightness == 5
    assert bulb.last_status.power is False
    assert bulb.last_status.connected is False


def test_close_fails_in_flight_commands_and_blocks_reuse() -> None:
    transport = FakeTransport()
    bulb = SmartBulb(DeviceConfig("192.168.1.45", 4000, timeout_s=5.0), transport=transport)

    async def scenario():
        tasks = [
            asyncio.create_task(bulb.set_power(True)),
            asyncio.create_task(bulb.set_brightness(40)),
        ]
        while len(transport.sent) < 2:
            await asyncio.sleep(0)

        bulb.close()
        assert bulb.in_flight == 0
        assert transport.closed is True

        results = await asyncio.gather(*tasks, return_exceptions=True)
        with pytest.raises(ClosedError):
            await bulb.set_power(False)
        with pytest.raises(ClosedError):
            await bulb.get_status()
        return results

    results = asyncio.run(scenario())
    assert [type(result) for result in results] == [ClosedError, ClosedError]
    assert bulb.closed is True


def test_async_context_manager_closes_bulb() -> None:
    transport = FakeTransport(MockBulb().handle_request)

    async def scenario() -> None:
        async with SmartBulb(CONFIG, transport=transport) as bulb:
            assert await bulb.ping() is True

    asyncio.run(scenario())
    assert transport.closed is True
