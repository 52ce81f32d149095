"""Domain-specific errors for bulbctl."""


class BulbctlError(Exception):
    """Base error for bulbctl."""


class ConfigError(BulbctlError):
    """Raised when settings files or environment overrides are invalid."""


class ValidationError(BulbctlError):
    """Raised for out-of-range or malformed input, before any network I/O."""


class HexColorFormatError(ValidationError):
    """Raised when a hex color string is not `#RRGGBB`."""


class DeviceSelectionError(BulbctlError):
    """Raised when no managed bulb matches the requested address."""


class ProtocolError(BulbctlError):
    """Raised when the remote device answers with `success: false`."""

    def __init__(self, remote_message: str) -> None:
        super().__init__(remote_message)
        self.remote_message = remote_message


class CommandTimeoutError(BulbctlError):
    """Raised when no matching response arrives before the deadline."""


class BackpressureError(BulbctlError):
    """Raised when a bulb already has the maximum number of commands in flight."""


class ClosedError(BulbctlError):
    """Raised for commands issued on, or pending during, a closed connection."""


class TransportError(BulbctlError):
    """Base transport error."""


class TransportConnectError(TransportError):
    """Raised when a UDP endpoint cannot be opened or the address cannot be resolved."""


class TransportSendError(TransportError):
    """Raised when a datagram cannot be sent."""
