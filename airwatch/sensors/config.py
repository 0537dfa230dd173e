from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

from .base import SensorDriver
from .backends import I2C_ADDR_SECONDARY, Bme680Driver, MockBme680Driver
from .settings import FilterSize, Oversampling, SensorConfigError, SensorSettings, build_sensor_settings

_VALID_BACKENDS = {"bme680", "mock"}
_KNOWN_KEYS = {
    "backend",
    "humidity_oversampling",
    "pressure_oversampling",
    "temperature_oversampling",
    "filter_size",
    "gas",
    "i2c",
    "temperature_offset_c",
}


@dataclass(frozen=True)
class SensorConfig:
    backend: str
    bus_number: int
    address: int
    settings: SensorSettings


def load_sensor_config_from_env(*, temperature_offset_c: float | None = None) -> SensorConfig:
    """Resolve sensor config from SENSOR_CONFIG_PATH (YAML) plus env overrides.

    ``temperature_offset_c`` comes from the agent settings and wins over the file.
    """

    config_path = os.getenv("SENSOR_CONFIG_PATH")

    raw: dict[str, Any]
    origin = "env defaults"
    if config_path:
        path = Path(config_path).expanduser()
        if not path.exists():
            raise SensorConfigError(f"SENSOR_CONFIG_PATH does not exist: {path}")
        try:
            loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise SensorConfigError(f"failed to parse sensor config at {path}: {exc}") from exc
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise SensorConfigError(f"sensor config at {path} must be a YAML object")
        raw = dict(loaded)
        origin = str(path)
    else:
        raw = {}

    override_backend = os.getenv("SENSOR_BACKEND")
    if override_backend:
        raw["backend"] = override_backend

    i2c = dict(_mapping_value(raw.get("i2c"), path=f"{origin}: i2c"))
    bus_env = os.getenv("I2C_BUS")
    if bus_env is not None and bus_env.strip():
        try:
            i2c["bus"] = int(bus_env.strip())
        except ValueError as exc:
            raise SensorConfigError(f"invalid I2C_BUS={bus_env!r}") from exc
    address_env = os.getenv("I2C_ADDRESS")
    if address_env is not None and address_env.strip():
        i2c["address"] = address_env
    raw["i2c"] = i2c

    if temperature_offset_c is not None:
        raw["temperature_offset_c"] = temperature_offset_c

    return parse_sensor_config(raw, origin=origin)


def parse_sensor_config(raw: Mapping[str, Any], *, origin: str) -> SensorConfig:
    unknown = sorted(str(k) for k in raw.keys() if k not in _KNOWN_KEYS)
    if unknown:
        raise SensorConfigError(f"{origin}: unknown keys: {', '.join(unknown)}")

    backend = _require_backend(raw, origin=origin)

    i2c = _mapping_value(raw.get("i2c"), path=f"{origin}: i2c")
    bus_number = _as_int(i2c.get("bus", 1), message=f"{origin}: i2c.bus must be an integer")
    if bus_number < 0:
        raise SensorConfigError(f"{origin}: i2c.bus must be >= 0")
    address = _parse_i2c_address(i2c.get("address", I2C_ADDR_SECONDARY), origin=origin)

    gas = _mapping_value(raw.get("gas"), path=f"{origin}: gas")
    enabled = gas.get("enabled", True)
    if not isinstance(enabled, bool):
        raise SensorConfigError(f"{origin}: gas.enabled must be a boolean")

    settings = build_sensor_settings(
        humidity_oversampling=Oversampling.parse(
            raw.get("humidity_oversampling", Oversampling.X2),
            path=f"{origin}: humidity_oversampling",
        ),
        pressure_oversampling=Oversampling.parse(
            raw.get("pressure_oversampling", Oversampling.X4),
            path=f"{origin}: pressure_oversampling",
        ),
        temperature_oversampling=Oversampling.parse(
            raw.get("temperature_oversampling", Oversampling.X8),
            path=f"{origin}: temperature_oversampling",
        ),
        filter_size=FilterSize.parse(raw.get("filter_size", FilterSize.SIZE_3), path=f"{origin}: filter_size"),
        heater_duration_ms=_as_int(
            gas.get("heater_duration_ms", 1500),
            message=f"{origin}: gas.heater_duration_ms must be an integer",
        ),
        heater_temperature_c=_as_int(
            gas.get("heater_temperature_c", 320),
            message=f"{origin}: gas.heater_temperature_c must be an integer",
        ),
        ambient_temperature_c=_as_int(
            gas.get("ambient_temperature_c", 25),
            message=f"{origin}: gas.ambient_temperature_c must be an integer",
        ),
        run_gas=enabled,
        temperature_offset_c=_as_float(
            raw.get("temperature_offset_c", 0.0),
            message=f"{origin}: temperature_offset_c must be numeric",
        ),
    )

    return SensorConfig(backend=backend, bus_number=bus_number, address=address, settings=settings)


def build_sensor_driver(*, config: SensorConfig, host_tag: str = "unknown") -> SensorDriver:
    if config.backend == "mock":
        return MockBme680Driver(host_tag=host_tag)
    return Bme680Driver(bus_number=config.bus_number, address=config.address)


def _require_backend(raw: Mapping[str, Any], *, origin: str) -> str:
    value = raw.get("backend", "bme680")
    if not isinstance(value, str) or not value.strip():
        raise SensorConfigError(f"{origin}: 'backend' must be a non-empty string")
    backend = value.strip()
    if backend not in _VALID_BACKENDS:
        allowed = ", ".join(sorted(_VALID_BACKENDS))
        raise SensorConfigError(f"{origin}: unsupported backend '{backend}' (allowed: {allowed})")
    return backend


def _mapping_value(value: Any, *, path: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return value
    raise SensorConfigError(f"{path} must be an object")


def _parse_i2c_address(value: Any, *, origin: str) -> int:
    type_message = f"{origin}: i2c.address must be an integer or hex string"
    if isinstance(value, bool):
        raise SensorConfigError(type_message)
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip().lower()
        try:
            if raw.startswith("0x"):
                parsed = int(raw, 16)
            else:
                parsed = int(raw, 10)
        except ValueError as exc:
            raise SensorConfigError(type_message) from exc
    else:
        raise SensorConfigError(type_message)

    if parsed < 0 or parsed > 0x7F:
        raise SensorConfigError(f"{origin}: i2c.address must be between 0x00 and 0x7f")
    return parsed


def _as_int(value: Any, *, message: str) -> int:
    if isinstance(value, bool):
        raise SensorConfigError(message)
    if isinstance(value, int):
        return value
    raise SensorConfigError(message)


def _as_float(value: Any, *, message: str) -> float:
    if isinstance(value, bool):
        raise SensorConfigError(message)
    if isinstance(value, (int, float)):
        return float(value)
    raise SensorConfigError(message)
