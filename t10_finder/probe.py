"""Single-port handshake with the T10."""

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass
from typing import Optional

from .comm import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT, DEFAULT_WRITE_TIMEOUT, Comm
from .errors import ProbeCancelled, ProbeError
from .lines import LineCodec

_logger = logging.getLogger(__name__)

# Observed T10 command vocabulary.
VERSION_QUERY = "m ver"
HV_VOLTAGE_QUERY = "h v"
HV_CURRENT_QUERY = "h c"
HV_BANK_QUERY = "h 3"

ERROR_MARKER = "Error"


class ProbeOutcome(enum.Enum):
    MATCHED = "matched"
    NO_MATCH = "no_match"
    FAILED = "failed"


@dataclass(frozen=True)
class ProbeResult:
    port: str
    outcome: ProbeOutcome
    reply: Optional[str] = None
    error: Optional[ProbeError] = None

    @property
    def matched(self) -> bool:
        return self.outcome is ProbeOutcome.MATCHED

    def describe(self) -> str:
        if self.outcome is ProbeOutcome.FAILED:
            return f"{self.port}: failed ({self.error})"
        return f"{self.port}: {self.outcome.value} ({self.reply})"


def is_match(reply: str) -> bool:
    """Return True when a reply looks like it came from a T10.

    The T10 answers "m ver" with a bare version string, so any reply that does
    not contain "Error" is accepted. This is weak: a firmware error message
    that never says "Error" is taken as a match. Kept as-is so detection
    behaves like the existing tooling.
    """
    return ERROR_MARKER not in reply


def send_command(
    port_name: str,
    command: str,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    baudrate: int = DEFAULT_BAUDRATE,
    write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    max_line: int = LineCodec.DEFAULT_MAX_LINE,
    cancel: Optional[threading.Event] = None,
) -> str:
    """Open port_name, send one command, return the reply and close the port.

    Raises ProbeError subclasses on any failure.
    """
    with Comm(port_name, baudrate=baudrate, timeout=timeout,
              write_timeout=write_timeout, max_line=max_line) as comm:
        return comm.query(command, cancel=cancel)


def probe(
    port_name: str,
    query: str = VERSION_QUERY,
    timeout: float = DEFAULT_TIMEOUT,
    *,
    baudrate: int = DEFAULT_BAUDRATE,
    write_timeout: float = DEFAULT_WRITE_TIMEOUT,
    max_line: int = LineCodec.DEFAULT_MAX_LINE,
    cancel: Optional[threading.Event] = None,
) -> ProbeResult:
    """
    Probe one port and classify the reply.
    Args:
        port_name: Serial port device path
        query: Command to send, "m ver" by default
        timeout: Reply deadline in seconds
        baudrate: Baud rate for communication
        write_timeout: Write timeout in seconds
        max_line: Longest reply line accepted
        cancel: Optional cancellation request; a cancelled probe raises
            ProbeCancelled instead of returning a result
    Returns:
        ProbeResult with outcome MATCHED, NO_MATCH, or FAILED (error set)
    """
    _logger.info("Attempting to communicate with %s", port_name)
    try:
        reply = send_command(
            port_name,
            query,
            timeout,
            baudrate=baudrate,
            write_timeout=write_timeout,
            max_line=max_line,
            cancel=cancel,
        )
    except ProbeCancelled:
        raise
    except ProbeError as exc:
        _logger.info("Probe of %s failed: %s", port_name, exc)
        return ProbeResult(port=port_name, outcome=ProbeOutcome.FAILED, error=exc)

    _logger.debug("Serial response from %s: %r", port_name, reply)
    outcome = ProbeOutcome.MATCHED if is_match(reply) else ProbeOutcome.NO_MATCH
    return ProbeResult(port=port_name, outcome=outcome, reply=reply)
