from __future__ import annotations

from typing import List, Final


class LineCodec:
    """
    Implements the newline-terminated text framing spoken by the T10.
    Features:
        - Appends CR+LF to outgoing commands
        - Splits incoming bytes on LF, keeping partial lines across calls
        - Bounds the size of a pending line
    Args:
        max_line_len (int): Maximum length of a single reply line in bytes
        encoding (str): Text encoding for outgoing commands
    """
    TERMINATOR: Final[bytes] = b"\r\n"
    NEWLINE: Final[int] = 0x0A
    DEFAULT_MAX_LINE: Final[int] = 256

    def __init__(self, max_line_len: int = DEFAULT_MAX_LINE, encoding: str = "utf-8"):
        """
        Initialize line framing handler.
        Args:
            max_line_len (int): Maximum line length
            encoding (str): Text encoding for outgoing commands
        """
        self.max_line_len = max_line_len
        self.encoding = encoding
        self._buf = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received since the last complete line."""
        return bytes(self._buf)

    def reset(self) -> None:
        self._buf.clear()

    def encode(self, command: str) -> bytes:
        """
        Encode a command string with the CR+LF terminator.
        Args:
            command (str): Command text without terminator
        Returns:
            bytes: Bytes to put on the wire
        """
        return command.encode(self.encoding) + LineCodec.TERMINATOR

    def decode(self, data: bytes) -> List[bytes]:
        """
        Feed incoming bytes and return every completed line.
        Args:
            data (bytes): Incoming serial data
        Returns:
            List[bytes]: Completed lines, LF stripped (a trailing CR is kept)
        Raises:
            ValueError: If a line grows past max_line_len without a terminator
        """
        out: List[bytes] = []
        for b in data:
            if b == LineCodec.NEWLINE:
                out.append(bytes(self._buf))
                self._buf.clear()
                continue

            if len(self._buf) >= self.max_line_len:
                self._buf.clear()
                raise ValueError(f"line exceeds {self.max_line_len} bytes without a terminator")
            self._buf.append(b)
        return out


def line_encode(command: str, encoding: str = "utf-8") -> bytes:
    """Encode a single command without keeping codec state."""
    return LineCodec(encoding=encoding).encode(command)


TERMINATOR = LineCodec.TERMINATOR
NEWLINE = LineCodec.NEWLINE
