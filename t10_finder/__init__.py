"""T10 finder package.

Locate a T10 on the host's serial ports and exchange line-terminated text
commands with it using pyserial.
"""

__all__ = [
    "Comm",
    "Detection",
    "DetectionState",
    "DetectionWorker",
    "DeviceFinder",
    "PortDescriptor",
    "ProbeOutcome",
    "ProbeResult",
    "TransportKind",
    "find_device",
    "is_match",
    "list_ports",
    "probe",
    "send_command",
    "watch",
]

from .comm import Comm
from .discovery import Detection, DeviceFinder, find_device, watch
from .ports import PortDescriptor, TransportKind, list_ports
from .probe import ProbeOutcome, ProbeResult, is_match, probe, send_command
from .worker import DetectionState, DetectionWorker

__version__ = "0.1.0"
