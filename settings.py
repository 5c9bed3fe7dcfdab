from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional


_SETTINGS_FILE_ENV = "BROKER_SETTINGS_FILE"
_DEFAULT_SETTINGS_FILE = "settings/Settings.toml"

_BUFFER_CAPACITY_ENV = "BUFFER_CAPACITY"
_FLUSH_INTERVAL_ENV = "FLUSH_INTERVAL_SECONDS"
_WINDOW_SECONDS_ENV = "WINDOW_SECONDS"
_WINDOW_POLICY_ENV = "WINDOW_POLICY"
_INPUT_SYNTAX_ENV = "INPUT_SYNTAX"
_TIMESTAMP_PRECISION_ENV = "TIMESTAMP_PRECISION"
_POLL_INTERVAL_ENV = "POLL_INTERVAL_SECONDS"
_LOCATION_ENV = "CLUSTER_DISPLAY_NAME"
_TRANSPORT_ENV = "TRANSPORT_BACKEND"
_SERIAL_PORT_ENV = "SERIAL_PORT"
_BAUD_RATE_ENV = "SERIAL_BAUD_RATE"
_SERIAL_TIMEOUT_ENV = "SERIAL_TIMEOUT_MS"
_DEVICE_NAME_ENV = "SERIAL_DEVICE_NAME"
_REPLAY_PATH_ENV = "REPLAY_PATH"
_SINK_ENV = "SINK_BACKEND"
_INFLUX_URL_ENV = "INFLUXDB_URL"
_INFLUX_BUCKET_ENV = "INFLUXDB_BUCKET"
_INFLUX_ORG_ENV = "INFLUXDB_ORG"
_INFLUX_TOKEN_ENV = "INFLUXDB_TOKEN"
_SINK_TIMEOUT_ENV = "SINK_TIMEOUT_SECONDS"
_LOG_LEVEL_ENV = "LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    buffer_capacity: int
    flush_interval: float
    window_seconds: float
    window_policy: str
    input_syntax: str
    timestamp_precision: str
    poll_interval: float
    location: str
    transport: str
    serial_port: str
    baud_rate: int
    serial_timeout_ms: int
    device_name: Optional[str]
    replay_path: Optional[str]
    sink: str
    influxdb_url: str
    influxdb_bucket: str
    influxdb_org: str
    influxdb_token: str
    sink_timeout: float
    log_level: str


def _load_file_settings() -> Dict[str, Any]:
    """Read the optional TOML settings file mounted next to the service."""
    path = Path(_read_str_env(_SETTINGS_FILE_ENV, _DEFAULT_SETTINGS_FILE))
    if not path.is_file():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _file_value(data: Dict[str, Any], section: str, key: str, default: Any) -> Any:
    table = data.get(section)
    if not isinstance(table, dict):
        return default
    value = table.get(key)
    return default if value is None else value


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_positive_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = int(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_positive_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    candidate = _read_str_env(name, default).lower()
    return candidate if candidate in choices else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    data = _load_file_settings()
    return Settings(
        buffer_capacity=_read_positive_int(_BUFFER_CAPACITY_ENV, 1000),
        flush_interval=_read_positive_float(_FLUSH_INTERVAL_ENV, 60.0),
        window_seconds=_read_positive_float(_WINDOW_SECONDS_ENV, 60.0),
        window_policy=_read_choice(_WINDOW_POLICY_ENV, ("windowed", "passthrough"), "windowed"),
        input_syntax=_read_choice(_INPUT_SYNTAX_ENV, ("delimited", "json"), "delimited"),
        timestamp_precision=_read_choice(_TIMESTAMP_PRECISION_ENV, ("ns", "ms"), "ns"),
        poll_interval=_read_positive_float(_POLL_INTERVAL_ENV, 1.0),
        location=_read_str_env(_LOCATION_ENV, "Default"),
        transport=_read_choice(_TRANSPORT_ENV, ("serial", "replay"), "serial"),
        serial_port=_read_str_env(
            _SERIAL_PORT_ENV, str(_file_value(data, "arduino", "port", "/dev/ttyACM0"))
        ),
        baud_rate=_read_positive_int(
            _BAUD_RATE_ENV, int(_file_value(data, "arduino", "baud_rate", 9600))
        ),
        serial_timeout_ms=_read_positive_int(
            _SERIAL_TIMEOUT_ENV, int(_file_value(data, "arduino", "timeout", 1000))
        ),
        device_name=_read_optional_env(
            _DEVICE_NAME_ENV, _file_value(data, "arduino", "device_name", None)
        ),
        replay_path=_read_optional_env(_REPLAY_PATH_ENV, None),
        sink=_read_choice(_SINK_ENV, ("influxdb", "memory"), "influxdb"),
        influxdb_url=_read_str_env(
            _INFLUX_URL_ENV, str(_file_value(data, "influxdb", "url", "http://localhost:8086"))
        ),
        influxdb_bucket=_read_str_env(
            _INFLUX_BUCKET_ENV, str(_file_value(data, "influxdb", "bucket", "sensors"))
        ),
        influxdb_org=_read_str_env(
            _INFLUX_ORG_ENV, str(_file_value(data, "influxdb", "org", "default"))
        ),
        influxdb_token=_read_str_env(
            _INFLUX_TOKEN_ENV, str(_file_value(data, "influxdb", "auth_token", ""))
        ),
        sink_timeout=_read_positive_float(_SINK_TIMEOUT_ENV, 10.0),
        log_level=_read_log_level("INFO"),
    )
