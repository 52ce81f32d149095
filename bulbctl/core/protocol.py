"""JSON-over-UDP wire codec.

One datagram carries exactly one JSON value. Outbound commands are encoded
from `Command`; inbound payloads are shape-checked with the packaged JSON
schemas before they reach the correlator or the discovery broadcaster.
"""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validators

from bulbctl.core.model import Command, DiscoveredDevice, Response

DISCOVERY_REQUEST: dict[str, str] = {"type": "discovery", "command": "discover"}
DISCOVERY_RESPONSE_TYPE = "discovery_response"


class MalformedMessageError(ValueError):
    """Raised for inbound datagrams that are not JSON or have the wrong shape."""


@lru_cache(maxsize=None)
def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("bulbctl.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def _parse_json(payload: bytes) -> Any:
    try:
        return json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedMessageError(f"Datagram is not valid JSON: {exc}") from exc


def encode_command(command: Command) -> bytes:
    message: dict[str, Any] = {"command": command.command}
    if command.params is not None:
        message["params"] = command.params
    if command.id is not None:
        message["id"] = command.id
    return json.dumps(message, separators=(",", ":")).encode("utf-8")


def encode_discovery_request() -> bytes:
    return json.dumps(DISCOVERY_REQUEST, separators=(",", ":")).encode("utf-8")


def decode_response(payload: bytes) -> Response:
    message = _parse_json(payload)
    try:
        load_schema_validator("response.schema.json").validate(message)
    except SchemaValidationError as exc:
        raise MalformedMessageError(f"Unexpected response shape: {exc.message}") from exc

    return Response(
        success=message["success"],
        data=message.get("data"),
        error=message.get("error"),
        id=message.get("id"),
    )


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return value if isinstance(value, str) else None


def decode_discovery_reply(payload: bytes, addr: tuple[str, int]) -> DiscoveredDevice | None:
    """Return the device announced by a discovery reply, or None for other traffic."""
    message = _parse_json(payload)
    if not isinstance(message, dict) or message.get("type") != DISCOVERY_RESPONSE_TYPE:
        return None
    try:
        load_schema_validator("discovery_response.schema.json").validate(message)
    except SchemaValidationError as exc:
        raise MalformedMessageError(f"Unexpected discovery reply shape: {exc.message}") from exc

    data = message.get("data") or {}
    return DiscoveredDevice(
        address=addr[0],
        port=addr[1],
        name=_optional_str(data, "name"),
        model=_optional_str(data, "model"),
        firmware_version=_optional_str(data, "firmwareVersion"),
        mac_address=_optional_str(data, "macAddress"),
    )
