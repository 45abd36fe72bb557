"""Settings loaded from an optional TOML file."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional, Union

if sys.version_info >= (3, 11):
    import tomllib as _toml
else:
    import tomli as _toml

from .comm import DEFAULT_BAUDRATE, DEFAULT_TIMEOUT, DEFAULT_WRITE_TIMEOUT
from .discovery import DEFAULT_POLL_INTERVAL
from .errors import ConfigError
from .lines import LineCodec
from .probe import VERSION_QUERY

_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "t10_finder.toml"


@dataclass(frozen=True)
class Settings:
    baudrate: int = DEFAULT_BAUDRATE
    timeout: float = DEFAULT_TIMEOUT
    write_timeout: float = DEFAULT_WRITE_TIMEOUT
    max_line: int = LineCodec.DEFAULT_MAX_LINE
    query: str = VERSION_QUERY
    port_filter: tuple[str, ...] = ()
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def override(self, **changes: Any) -> "Settings":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _load_config(config_path: Union[str, Path]) -> dict:
    """Load configuration from TOML file."""
    with open(config_path, "rb") as f:
        try:
            return _toml.load(f)
        except _toml.TOMLDecodeError as exc:
            raise ConfigError(f"failed to parse {config_path}: {exc}") from exc


def _coerce(name: str, value: Any, kind: type) -> Any:
    if kind is float and isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if kind is int and isinstance(value, int) and not isinstance(value, bool):
        return value
    if kind is str and isinstance(value, str):
        return value
    raise ConfigError(f"{name} must be {kind.__name__}, got {value!r}")


def _get_settings(config: dict) -> Settings:
    """Extract settings from a parsed config dict."""
    serial_cfg = config.get("serial", {})
    detect_cfg = config.get("detect", {})
    if not isinstance(serial_cfg, dict) or not isinstance(detect_cfg, dict):
        raise ConfigError("[serial] and [detect] must be tables")

    values: dict[str, Any] = {}
    for key, kind in (("baudrate", int), ("timeout", float), ("write_timeout", float), ("max_line", int)):
        if key in serial_cfg:
            values[key] = _coerce(f"serial.{key}", serial_cfg[key], kind)
    for key, kind in (("query", str), ("poll_interval", float)):
        if key in detect_cfg:
            values[key] = _coerce(f"detect.{key}", detect_cfg[key], kind)

    if "port_filter" in detect_cfg:
        port_filter = detect_cfg["port_filter"]
        if isinstance(port_filter, str):
            port_filter = [port_filter]
        if not isinstance(port_filter, list):
            raise ConfigError(f"detect.port_filter must be a string or list, got {port_filter!r}")
        values["port_filter"] = tuple(_coerce("detect.port_filter", p, str) for p in port_filter)

    for key in ("timeout", "write_timeout", "poll_interval"):
        if key in values and values[key] <= 0:
            raise ConfigError(f"{key} must be positive")
    for key in ("baudrate", "max_line"):
        if key in values and values[key] <= 0:
            raise ConfigError(f"{key} must be positive")
    return Settings(**values)


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Build Settings from a TOML file.

    Without an explicit path, DEFAULT_CONFIG_PATH in the working directory is
    used if present. An explicit path that does not exist logs a warning and
    falls back to defaults.
    """
    explicit = config_path is not None
    path = Path(config_path) if explicit else Path(DEFAULT_CONFIG_PATH)
    try:
        config = _load_config(path)
    except FileNotFoundError:
        if explicit:
            _logger.warning("Config file %s not found. Using default values.", path)
        return Settings()
    settings = _get_settings(config)
    _logger.debug("Loaded %s", ", ".join(f"{f.name}={getattr(settings, f.name)!r}" for f in fields(settings)))
    return settings
