from __future__ import annotations

import errno
import logging
import threading
import time
from typing import Optional, List, Final

import serial

from .errors import (
    DecodeError,
    NoDeviceError,
    OpenError,
    ProbeCancelled,
    ReadTimeoutError,
    SerialIoError,
)
from .lines import LineCodec

_logger = logging.getLogger(__name__)

DEFAULT_BAUDRATE: Final[int] = 115200
DEFAULT_TIMEOUT: Final[float] = 1.0
DEFAULT_WRITE_TIMEOUT: Final[float] = 1.0

# A read that comes back empty this long before the deadline is end-of-stream.
_EOF_SLACK: Final[float] = 0.02

# pyserial's POSIX read() raises this instead of returning b"" when the other
# end closes.
_HANGUP_MESSAGE: Final[str] = "returned no data"


def _is_hangup(exc: BaseException) -> bool:
    """True for read errors that mean the device closed the connection."""
    if getattr(exc, "errno", None) == errno.EIO:
        return True
    return isinstance(exc, serial.SerialException) and _HANGUP_MESSAGE in str(exc)


class Comm:
    """
    Line-oriented serial link to a T10 (or anything pretending to be one).
    Owns one open serial handle; use it as a context manager so the port is
    released as soon as the exchange is over.
    Features:
        - 115200 baud, 8/N/1 framing by default
        - Writes whole CR+LF terminated commands
        - Reads one LF terminated reply under a deadline
        - Maps pyserial failures onto the t10_finder error types
    """

    _serial: serial.Serial
    _codec: LineCodec
    _rx_queue: List[bytes]

    def __init__(
        self,
        port: str,
        baudrate: int = DEFAULT_BAUDRATE,
        timeout: float = DEFAULT_TIMEOUT,
        *,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        max_line: int = LineCodec.DEFAULT_MAX_LINE,
        **serial_kwargs,
    ) -> None:
        """
        Open the serial port.
        Args:
            port (str): Serial port name
            baudrate (int): Baud rate
            timeout (float): Reply deadline in seconds
            write_timeout (float): Write timeout in seconds
            max_line (int): Longest reply line accepted, in bytes
            serial_kwargs: Additional serial.Serial arguments
        Raises:
            OpenError: If the port cannot be opened
        """
        self.port = port
        self.timeout = float(timeout)
        try:
            self._serial = serial.Serial(
                port=port,
                baudrate=baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
                write_timeout=write_timeout,
                **serial_kwargs,
            )
        except (serial.SerialException, OSError, ValueError) as exc:
            raise OpenError(f"could not open {port}: {exc}") from exc
        self._codec = LineCodec(max_line_len=max_line)
        self._rx_queue = []

    def close(self) -> None:
        """
        Close the serial port.
        """
        try:
            self._serial.close()
        except (serial.SerialException, OSError) as exc:
            _logger.debug("Closing %s failed: %s", self.port, exc)

    def __enter__(self) -> "Comm":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def write(self, command: str) -> int:
        """
        Write a command followed by CR+LF, in full.
        Args:
            command (str): Command text without terminator
        Returns:
            int: Number of bytes written
        Raises:
            SerialIoError: If the port rejects or times out the write
        """
        data = self._codec.encode(command)
        total = 0
        try:
            while total < len(data):
                written = self._serial.write(data[total:])
                if written is None:
                    written = len(data) - total
                if written <= 0:
                    raise SerialIoError(f"{self.port} accepted no bytes", kind="write")
                total += written
        except serial.SerialTimeoutException as exc:
            raise SerialIoError(f"write to {self.port} timed out: {exc}", kind="write_timeout") from exc
        except (serial.SerialException, OSError) as exc:
            raise SerialIoError(f"write to {self.port} failed: {exc}", kind="write") from exc
        return total

    def read_line(self, timeout: Optional[float] = None, cancel: Optional[threading.Event] = None) -> bytes:
        """
        Read one LF terminated line from the serial port.
        Args:
            timeout (float, optional): Deadline in seconds, defaults to the link timeout
            cancel (threading.Event, optional): Checked before every blocking read
        Returns:
            bytes: The line without its LF. If the stream ends after a partial
                line, the partial line is returned.
        Raises:
            NoDeviceError: Stream ended before any byte arrived
            ReadTimeoutError: Deadline passed without a terminator
            SerialIoError: Any other transport failure, or an over-long line
            ProbeCancelled: cancel was set
        """
        if self._rx_queue:
            return self._rx_queue.pop(0)

        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout
        # Reconfiguring the port is a tcsetattr/SetCommState call: once per line.
        # The deadline is checked between reads, so a line stalled after partial
        # data can run up to one read timeout past it.
        if timeout > 0 and self._serial.timeout != timeout:
            self._serial.timeout = timeout
        while True:
            if cancel is not None and cancel.is_set():
                raise ProbeCancelled(f"read on {self.port} cancelled")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                pending = self._codec.pending
                self._codec.reset()
                if pending:
                    raise ReadTimeoutError(
                        f"no line terminator from {self.port} within {timeout:g}s "
                        f"({len(pending)} bytes pending)"
                    )
                raise ReadTimeoutError(f"no reply from {self.port} within {timeout:g}s")

            try:
                chunk = self._serial.read(self._serial.in_waiting or 1)
            except (serial.SerialException, OSError) as exc:
                if _is_hangup(exc):
                    _logger.debug("%s hung up: %s", self.port, exc)
                    return self._end_of_stream()
                raise SerialIoError(f"read from {self.port} failed: {exc}", kind="read") from exc

            if not chunk:
                if time.monotonic() < deadline - _EOF_SLACK:
                    return self._end_of_stream()
                continue

            try:
                lines = self._codec.decode(chunk)
            except ValueError as exc:
                raise SerialIoError(f"{self.port}: {exc}", kind="overflow") from exc

            if lines:
                # Cache any extras and return one line
                self._rx_queue.extend(lines[1:])
                return lines[0]

    def query(self, command: str, timeout: Optional[float] = None, cancel: Optional[threading.Event] = None) -> str:
        """
        Send a command and return the trimmed reply line.
        A first line that repeats the command is taken as the device echo and
        skipped once; the following line must still arrive before the deadline.
        Args:
            command (str): Command text, e.g. "m ver"
            timeout (float, optional): Reply deadline in seconds
            cancel (threading.Event, optional): Cancellation request
        Returns:
            str: Decoded reply, surrounding whitespace removed
        Raises:
            ProbeError: Any of the transport, timeout or decode failures
        """
        timeout = self.timeout if timeout is None else timeout
        deadline = time.monotonic() + timeout

        _logger.debug("Sending %r to %s", command, self.port)
        self.write(command)

        raw = self.read_line(timeout, cancel)
        reply = self._decode(raw)
        if reply == command.strip():
            _logger.debug("%s echoed %r, reading next line", self.port, command)
            raw = self.read_line(max(deadline - time.monotonic(), 0.0), cancel)
            reply = self._decode(raw)

        _logger.debug("Received %d bytes from %s", len(raw), self.port)
        return reply

    def _end_of_stream(self) -> bytes:
        pending = self._codec.pending
        self._codec.reset()
        if not pending:
            raise NoDeviceError()
        return pending

    def _decode(self, raw: bytes) -> str:
        try:
            return raw.decode("utf-8").strip()
        except UnicodeDecodeError as exc:
            raise DecodeError(f"reply from {self.port} is not valid UTF-8: {exc}", raw=raw) from exc
