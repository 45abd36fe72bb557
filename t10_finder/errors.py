"""Error taxonomy for port enumeration and device probing."""

from __future__ import annotations

from typing import Optional


class ProbeError(Exception):
    """Base error for t10_finder."""


class EnumerationError(ProbeError):
    """Raised when the OS serial port query itself fails."""


class OpenError(ProbeError):
    """Raised when a port cannot be opened (missing device, permissions, busy)."""


class NoDeviceError(ProbeError):
    """Raised when the port closed or the device sent no data."""

    def __init__(self, message: str = "connection closed or device sent no data") -> None:
        super().__init__(message)


class ReadTimeoutError(ProbeError, TimeoutError):
    """Raised when no line terminator arrived before the deadline."""


class SerialIoError(ProbeError):
    """
    Any other transport failure.
    Args:
        message (str): Human-readable description
        kind (str): Short failure category, e.g. "read", "write", "overflow"
    """

    def __init__(self, message: str, kind: str = "io") -> None:
        super().__init__(message)
        self.kind = kind

    def __str__(self) -> str:
        return f"[{self.kind}] {super().__str__()}"


class DecodeError(ProbeError):
    """Raised when a reply is not valid UTF-8."""

    def __init__(self, message: str, raw: Optional[bytes] = None) -> None:
        super().__init__(message)
        self.raw = raw


class ProbeCancelled(ProbeError):
    """Raised when a cancellation request interrupts a blocking read."""


class ConfigError(ProbeError):
    """Raised when the configuration file is malformed."""
