"""
T10 detection loop: enumerate, filter, and probe candidate ports one at a time.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, NamedTuple, Optional, Union

from .comm import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT, DEFAULT_WRITE_TIMEOUT
from .errors import EnumerationError, ProbeCancelled
from .lines import LineCodec
from .ports import default_port_patterns, filter_ports, list_ports
from .probe import VERSION_QUERY, probe

_logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 1.0

PortFilter = Union[str, Iterable[str], None]


class Detection(NamedTuple):
    port: str
    reply: str


def _patterns(candidate_filter: PortFilter) -> tuple[str, ...]:
    if candidate_filter is None:
        return default_port_patterns()
    if isinstance(candidate_filter, str):
        return (candidate_filter,)
    patterns = tuple(candidate_filter)
    return patterns or default_port_patterns()


class DeviceFinder:
    """Locate a T10 by sending a version query to each candidate port."""

    def __init__(
        self,
        candidate_filter: PortFilter = None,
        query: str = VERSION_QUERY,
        *,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        max_line: int = LineCodec.DEFAULT_MAX_LINE,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        """
        Initialize the finder with communication parameters.

        Args:
            candidate_filter: Substring(s) a port name must contain; None picks
                the platform's USB-serial patterns
            query: Command whose reply identifies the device (default: "m ver")
            baudrate: Baud rate for communication (default: 115200)
            timeout: Reply deadline per probe in seconds (default: 1.0)
            write_timeout: Write timeout in seconds (default: 1.0)
            max_line: Longest reply line accepted (default: 256)
            poll_interval: Delay between passes in watch() (default: 1.0)
        """
        self.patterns = _patterns(candidate_filter)
        self.query = query
        self.baudrate = baudrate
        self.timeout = timeout
        self.write_timeout = write_timeout
        self.max_line = max_line
        self.poll_interval = poll_interval

    def candidates(self) -> list[str]:
        """Port names worth probing, in enumeration order."""
        return [p.name for p in filter_ports(list_ports(), self.patterns)]

    def find(self, cancel: Optional[threading.Event] = None) -> Optional[Detection]:
        """
        Run one pass over the candidate ports.

        Args:
            cancel: Checked before each candidate and before each blocking read

        Returns:
            Detection for the first port whose reply matches, or None
        """
        try:
            ports = self.candidates()
        except EnumerationError as exc:
            _logger.warning("%s", exc)
            return None

        if not ports:
            _logger.info("No USB serial devices connected")
            return None

        for port in ports:
            if cancel is not None and cancel.is_set():
                _logger.info("Detection cancelled")
                return None
            try:
                result = probe(
                    port,
                    self.query,
                    self.timeout,
                    baudrate=self.baudrate,
                    write_timeout=self.write_timeout,
                    max_line=self.max_line,
                    cancel=cancel,
                )
            except ProbeCancelled:
                _logger.info("Detection cancelled while probing %s", port)
                return None
            if result.matched:
                _logger.info("T10 detected on %s: %s", port, result.reply)
                return Detection(port, result.reply)
            _logger.info("%s", result.describe())

        _logger.info("T10 not detected")
        return None

    def watch(
        self,
        cancel: Optional[threading.Event] = None,
        on_scan: Optional[Callable[[], None]] = None,
    ) -> Optional[Detection]:
        """
        Repeat find() every poll_interval seconds until found or cancelled.

        Args:
            cancel: Stops the loop between and during passes
            on_scan: Called before every pass

        Returns:
            Detection, or None once cancel is set
        """
        cancel = cancel if cancel is not None else threading.Event()
        while not cancel.is_set():
            if on_scan is not None:
                on_scan()
            found = self.find(cancel)
            if found is not None:
                return found
            cancel.wait(self.poll_interval)
        return None


def find_device(
    candidate_filter: PortFilter = None,
    query: str = VERSION_QUERY,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    baudrate: int = DEFAULT_BAUDRATE,
    cancel: Optional[threading.Event] = None,
) -> Optional[Detection]:
    """
    Public function for a single detection pass.

    Returns:
        (port, reply) of the first matching candidate, or None if none matched
    """
    finder = DeviceFinder(candidate_filter, query, baudrate=baudrate, timeout=timeout)
    return finder.find(cancel)


def watch(
    candidate_filter: PortFilter = None,
    query: str = VERSION_QUERY,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    baudrate: int = DEFAULT_BAUDRATE,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    cancel: Optional[threading.Event] = None,
) -> Optional[Detection]:
    """Poll until a T10 shows up or cancel is set."""
    finder = DeviceFinder(
        candidate_filter, query, baudrate=baudrate, timeout=timeout, poll_interval=poll_interval
    )
    return finder.watch(cancel)
