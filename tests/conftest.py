from __future__ import annotations

import time
from types import SimpleNamespace
from typing import Dict, List, Optional

import pytest

import serial  # type: ignore
from serial.tools import list_ports  # type: ignore


class FakeDevice:
    """Scripted behaviour of whatever sits behind a fake port."""

    def __init__(
        self,
        reply: bytes = b"",
        *,
        echo: bool = False,
        silent: bool = False,
        open_error: Optional[str] = None,
        read_error: Optional[str] = None,
        flush_error: Optional[Exception] = None,
        chunk: Optional[int] = None,
    ) -> None:
        self.reply = reply
        self.echo = echo
        self.silent = silent
        self.open_error = open_error
        self.read_error = read_error
        self.flush_error = flush_error
        self.chunk = chunk


class FakeSerial:
    def __init__(self, bus: "FakeBus", device: FakeDevice, port: str, timeout: Optional[float] = None, **kwargs) -> None:
        self.bus = bus
        self.device = device
        self.port = port
        self._timeout = timeout
        self.timeout_sets = 0
        self.kwargs = kwargs
        self.written = bytearray()
        self.is_open = True
        self._rx = bytearray()

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @timeout.setter
    def timeout(self, value: Optional[float]) -> None:
        self.timeout_sets += 1
        self._timeout = value

    @property
    def in_waiting(self) -> int:
        return len(self._rx)

    def write(self, data: bytes) -> int:
        self.written += data
        if self.written.endswith(b"\r\n"):
            if self.device.echo:
                self._rx += bytes(self.written)
            self._rx += self.device.reply
        return len(data)

    def flush(self) -> None:
        if self.device.flush_error is not None:
            raise self.device.flush_error

    def read(self, size: int = 1) -> bytes:
        if self._rx:
            size = min(size, self.device.chunk or size)
            out = bytes(self._rx[:size])
            del self._rx[:size]
            return out
        if self.device.read_error:
            raise serial.SerialException(self.device.read_error)
        if self.device.silent:
            time.sleep(self.timeout or 0)
        return b""

    def close(self) -> None:
        self.is_open = False
        self.bus.closed.append(self.port)


class FakeBus:
    """Stands in for every serial.Serial the code under test opens."""

    def __init__(self) -> None:
        self.devices: Dict[str, FakeDevice] = {}
        self.opened: List[str] = []
        self.closed: List[str] = []
        self.handles: List[FakeSerial] = []

    def add(self, port: str, reply: bytes = b"", **behaviour) -> FakeDevice:
        device = FakeDevice(reply, **behaviour)
        self.devices[port] = device
        return device

    def __call__(self, port: str, **kwargs) -> FakeSerial:
        self.opened.append(port)
        device = self.devices.get(port)
        if device is None:
            raise serial.SerialException(f"could not open port {port}: No such file or directory")
        if device.open_error:
            raise serial.SerialException(device.open_error)
        handle = FakeSerial(self, device, port, **kwargs)
        self.handles.append(handle)
        return handle


@pytest.fixture
def fake_serial(monkeypatch: pytest.MonkeyPatch) -> FakeBus:
    bus = FakeBus()
    monkeypatch.setattr(serial, "Serial", bus)
    return bus


def port_info(device: str, vid: Optional[int] = None, pid: Optional[int] = None, description: str = "n/a"):
    return SimpleNamespace(device=device, vid=vid, pid=pid, description=description)


@pytest.fixture
def fake_ports(monkeypatch: pytest.MonkeyPatch):
    """Call with a list of port_info() entries to set what comports() returns."""

    def install(infos) -> None:
        monkeypatch.setattr(list_ports, "comports", lambda *args, **kwargs: list(infos))

    return install
