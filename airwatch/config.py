from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass

from .cadence import WARMUP_S

UNKNOWN_HOST = "unknown"


class ConfigError(ValueError):
    """Missing or unparsable agent configuration."""


def _require_str(name: str) -> str:
    v = os.getenv(name)
    if v is None or v.strip() == "":
        raise ConfigError(f"Failed to load {name}: variable is not set")
    return v.strip()


def _get_optional_str(name: str) -> str | None:
    v = os.getenv(name)
    if v is None:
        return None
    vv = v.strip()
    return vv or None


def _get_float(name: str, default: float, *, allow_empty: bool = True) -> float:
    v = os.getenv(name)
    if v is None or (allow_empty and v.strip() == ""):
        return default
    try:
        value = float(v.strip())
    except ValueError as exc:
        raise ConfigError(f"Failed to parse {name}={v!r} as a number") from exc
    if not math.isfinite(value):
        raise ConfigError(f"{name} must be finite (got {v!r})")
    return value


def _get_log_level(name: str, default: str) -> int:
    raw = (os.getenv(name) or default).strip().upper()
    level = logging.getLevelName(raw)
    if not isinstance(level, int):
        raise ConfigError(f"invalid {name}={raw!r}")
    return level


@dataclass(frozen=True)
class AgentSettings:
    # Ingestion endpoint
    influx_address: str
    influx_token: str
    influx_bucket: str
    influx_organization: str
    influx_timeout_s: float

    # Point tagging / calibration
    host_tag: str
    temperature_offset_c: float

    # Timing
    warmup_s: float

    # Logging
    log_level: int
    log_format: str


def load_settings_from_env() -> AgentSettings:
    """Resolve agent settings from the process environment.

    Callers load .env files first; nothing here reads files.
    """

    timeout_s = _get_float("INFLUX_TIMEOUT_S", 5.0)
    if timeout_s <= 0:
        raise ConfigError("INFLUX_TIMEOUT_S must be > 0")

    warmup_s = _get_float("WARMUP_S", float(WARMUP_S))
    if warmup_s < 0:
        raise ConfigError("WARMUP_S must be >= 0")

    log_format = (os.getenv("LOG_FORMAT") or "text").strip().lower()
    if log_format not in {"text", "json"}:
        raise ConfigError(f"invalid LOG_FORMAT={log_format!r} (allowed: json, text)")

    return AgentSettings(
        influx_address=_require_str("INFLUX_ADDRESS"),
        influx_token=_require_str("INFLUX_TOKEN"),
        influx_bucket=_require_str("INFLUX_BUCKET"),
        influx_organization=_require_str("INFLUX_ORGANIZATION"),
        influx_timeout_s=timeout_s,
        host_tag=_get_optional_str("HOSTNAME") or UNKNOWN_HOST,
        # Present but blank fails to parse, same as any other bad number.
        temperature_offset_c=_get_float("TEMP_OFFSET", 0.0, allow_empty=False),
        warmup_s=warmup_s,
        log_level=_get_log_level("LOG_LEVEL", "INFO"),
        log_format=log_format,
    )
