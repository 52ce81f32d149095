"""Settings loading from an optional YAML file and environment overrides."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError as SchemaValidationError

from bulbctl.core.discovery import DEFAULT_BROADCAST_ADDRESSES, DEFAULT_DISCOVERY_PORTS
from bulbctl.core.errors import ConfigError
from bulbctl.core.protocol import load_schema_validator

LOGGER = logging.getLogger(__name__)

ENV_ADDRESS = "BULB_IP"
ENV_PORT = "BULB_PORT"
ENV_TIMEOUT = "BULB_TIMEOUT_S"


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Settings:
    address: str = "192.168.1.45"
    port: int = 4000
    timeout_s: float = 5.0
    max_in_flight: int | None = None
    discovery_timeout_s: float = 5.0
    discovery_ports: tuple[int, ...] = DEFAULT_DISCOVERY_PORTS
    broadcast_addresses: tuple[str, ...] = DEFAULT_BROADCAST_ADDRESSES


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "bulbctl/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")
    return loaded


def _apply_document(settings: Settings, doc: dict[str, Any], source: Path) -> Settings:
    validator = load_schema_validator("config.schema.json")
    try:
        validator.validate(doc)
    except SchemaValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    device = doc.get("device", {})
    discovery = doc.get("discovery", {})
    return replace(
        settings,
        address=device.get("address", settings.address),
        port=device.get("port", settings.port),
        timeout_s=float(device.get("timeout_s", settings.timeout_s)),
        max_in_flight=device.get("max_in_flight", settings.max_in_flight),
        discovery_timeout_s=float(discovery.get("timeout_s", settings.discovery_timeout_s)),
        discovery_ports=tuple(discovery.get("ports", settings.discovery_ports)),
        broadcast_addresses=tuple(discovery.get("broadcast_addresses", settings.broadcast_addresses)),
    )


def _apply_environment(settings: Settings) -> Settings:
    address = os.environ.get(ENV_ADDRESS)
    if address:
        settings = replace(settings, address=address)

    port_text = os.environ.get(ENV_PORT)
    if port_text:
        try:
            port = int(port_text)
        except ValueError as exc:
            raise ConfigError(f"{ENV_PORT} must be an integer, got {port_text!r}") from exc
        if not 1 <= port <= 65535:
            raise ConfigError(f"{ENV_PORT} must be between 1 and 65535, got {port}")
        settings = replace(settings, port=port)

    timeout_text = os.environ.get(ENV_TIMEOUT)
    if timeout_text:
        try:
            timeout_s = float(timeout_text)
        except ValueError as exc:
            raise ConfigError(f"{ENV_TIMEOUT} must be a number, got {timeout_text!r}") from exc
        if timeout_s <= 0:
            raise ConfigError(f"{ENV_TIMEOUT} must be positive, got {timeout_s:g}")
        settings = replace(settings, timeout_s=timeout_s)

    return settings


def load_settings(path: Path | None = None) -> Settings:
    """Build settings from defaults, then the YAML file, then environment variables.

    An explicit `path` must exist; the default XDG location is optional.
    """
    settings = Settings()
    source = path or default_config_path()
    if path is not None or source.is_file():
        LOGGER.debug("Loading settings from %s", source)
        settings = _apply_document(settings, _read_yaml(source), source)
    return _apply_environment(settings)
