"""Serial port enumeration."""

from __future__ import annotations

import enum
import logging
import platform
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import serial
from serial.tools import list_ports as serial_list_ports

from .errors import EnumerationError

_logger = logging.getLogger(__name__)

NO_PORTS_MESSAGE = "No serial ports found."

# USB-serial device name fragments per platform.system().lower()
_PLATFORM_PATTERNS = {
    "darwin": ("/dev/cu.usb",),
    "linux": ("/dev/ttyUSB", "/dev/ttyACM"),
    "windows": ("COM",),
}


class TransportKind(enum.Enum):
    USB = "usb"
    OTHER = "other"


@dataclass(frozen=True)
class PortDescriptor:
    name: str
    kind: TransportKind = TransportKind.OTHER
    vid: Optional[str] = None
    pid: Optional[str] = None
    description: str = ""

    @property
    def is_usb(self) -> bool:
        return self.kind is TransportKind.USB

    def __str__(self) -> str:
        if self.is_usb:
            return f"{self.name} (USB VID:{self.vid} PID:{self.pid})"
        return self.name


def _describe(info) -> PortDescriptor:
    description = info.description if info.description and info.description != "n/a" else ""
    if info.vid is not None and info.pid is not None:
        return PortDescriptor(
            name=info.device,
            kind=TransportKind.USB,
            vid=f"{info.vid:04x}",
            pid=f"{info.pid:04x}",
            description=description,
        )
    return PortDescriptor(name=info.device, description=description)


def list_ports() -> List[PortDescriptor]:
    """Snapshot the serial ports currently attached, in OS order.

    An empty list means no ports, not a failure. EnumerationError is raised
    only when the OS query itself fails.
    """
    try:
        infos = serial_list_ports.comports()
    except (OSError, serial.SerialException) as exc:
        raise EnumerationError(f"failed to list ports: {exc}") from exc
    ports = [_describe(info) for info in infos]
    _logger.debug("Enumerated %d serial port(s)", len(ports))
    return ports


def describe_ports(ports: Sequence[PortDescriptor]) -> List[str]:
    """Human-readable port lines, with a fallback line when there are none."""
    if not ports:
        return [NO_PORTS_MESSAGE]
    return [str(port) for port in ports]


def default_port_patterns(system: Optional[str] = None) -> tuple[str, ...]:
    """Name fragments of USB-serial ports on this platform.

    An empty tuple (unknown platform) means every port is a candidate.
    """
    system = (system or platform.system()).lower()
    return _PLATFORM_PATTERNS.get(system, ())


def filter_ports(ports: Iterable[PortDescriptor], patterns: Iterable[str]) -> List[PortDescriptor]:
    """Keep ports whose name contains any of the patterns, preserving order."""
    patterns = tuple(patterns)
    if not patterns:
        return list(ports)
    return [p for p in ports if any(pattern in p.name for pattern in patterns)]
