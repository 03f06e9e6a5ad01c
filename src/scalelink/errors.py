"""Domain-specific errors for scalelink."""


class ScaleLinkError(Exception):
    """Base error for scalelink."""


class DeviceConnectionError(ScaleLinkError, ConnectionError):
    """Raised when the transport cannot be opened (refused, unreachable, timeout)."""


class NotConnectedError(ScaleLinkError):
    """Raised when a protocol operation is attempted before connecting."""


class ProtocolError(ScaleLinkError):
    """Raised on error responses or malformed/short register reads."""


class FramingError(ScaleLinkError, ValueError):
    """Raised when a byte buffer cannot be packed into 16-bit registers."""


class UnknownDeviceError(ScaleLinkError, KeyError):
    """Raised when a station entry point is given an unconfigured device name."""


class ConfigError(ScaleLinkError, ValueError):
    """Raised when a station configuration is malformed."""
