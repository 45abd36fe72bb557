from __future__ import annotations

from pathlib import Path

import pytest

from t10_finder.config import Settings, load_settings
from t10_finder.errors import ConfigError


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "t10_finder.toml"
    path.write_text(text)
    return path


def test_defaults_when_no_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings()
    assert settings == Settings()
    assert settings.baudrate == 115200
    assert settings.timeout == 1.0
    assert settings.query == "m ver"
    assert settings.poll_interval == 1.0


def test_missing_explicit_file_falls_back(tmp_path: Path) -> None:
    assert load_settings(tmp_path / "nope.toml") == Settings()


def test_values_are_read(tmp_path: Path) -> None:
    path = _write(tmp_path, """
[serial]
baudrate = 9600
timeout = 3
max_line = 128

[detect]
query = "h v"
port_filter = ["/dev/cu.usbserial", "/dev/cu.usbmodem"]
poll_interval = 2.5
""")
    settings = load_settings(path)
    assert settings.baudrate == 9600
    assert settings.timeout == 3.0
    assert isinstance(settings.timeout, float)
    assert settings.max_line == 128
    assert settings.query == "h v"
    assert settings.port_filter == ("/dev/cu.usbserial", "/dev/cu.usbmodem")
    assert settings.poll_interval == 2.5


def test_single_string_filter(tmp_path: Path) -> None:
    path = _write(tmp_path, '[detect]\nport_filter = "/dev/cu.usb"\n')
    assert load_settings(path).port_filter == ("/dev/cu.usb",)


def test_default_file_in_cwd_is_picked_up(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write(tmp_path, "[serial]\ntimeout = 0.25\n")
    monkeypatch.chdir(tmp_path)
    assert load_settings().timeout == 0.25


@pytest.mark.parametrize(
    "text",
    [
        "[serial\nbaudrate = 1",
        '[serial]\nbaudrate = "fast"',
        "[serial]\ntimeout = 0",
        "[detect]\nport_filter = 3",
        "serial = 5",
    ],
)
def test_bad_config_raises(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_settings(_write(tmp_path, text))


def test_override_ignores_none() -> None:
    settings = Settings().override(timeout=None, query="h 3")
    assert settings.timeout == 1.0
    assert settings.query == "h 3"
