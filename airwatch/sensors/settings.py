from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Any

# Heater duration is encoded in one register byte with a 4x multiplier range.
MAX_HEATER_DURATION_MS = 4032
MIN_HEATER_TEMPERATURE_C = 200
MAX_HEATER_TEMPERATURE_C = 400


class SensorConfigError(ValueError):
    """Invalid sensor configuration."""


class Oversampling(enum.Enum):
    """Oversampling setting; values are the chip register codes."""

    NONE = 0
    X1 = 1
    X2 = 2
    X4 = 3
    X8 = 4
    X16 = 5

    @classmethod
    def parse(cls, value: Any, *, path: str) -> "Oversampling":
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in cls.__members__:
                return cls[key]
            key = "X" + key.lstrip("X")
            if key in cls.__members__:
                return cls[key]
        elif isinstance(value, int) and not isinstance(value, bool):
            key = "NONE" if value == 0 else f"X{value}"
            if key in cls.__members__:
                return cls[key]
        allowed = ", ".join(m.name.lower() for m in cls)
        raise SensorConfigError(f"{path} must be one of: {allowed}")


class FilterSize(enum.Enum):
    """IIR filter coefficient; values are the chip register codes."""

    SIZE_0 = 0
    SIZE_1 = 1
    SIZE_3 = 2
    SIZE_7 = 3
    SIZE_15 = 4
    SIZE_31 = 5
    SIZE_63 = 6
    SIZE_127 = 7

    @property
    def coefficient(self) -> int:
        return int(self.name.split("_", 1)[1])

    @classmethod
    def parse(cls, value: Any, *, path: str) -> "FilterSize":
        if isinstance(value, cls):
            return value
        if isinstance(value, str) and value.strip().isdigit():
            value = int(value.strip())
        if isinstance(value, int) and not isinstance(value, bool):
            key = f"SIZE_{value}"
            if key in cls.__members__:
                return cls[key]
        allowed = ", ".join(str(m.coefficient) for m in cls)
        raise SensorConfigError(f"{path} must be one of: {allowed}")


@dataclass(frozen=True)
class SensorSettings:
    humidity_oversampling: Oversampling
    pressure_oversampling: Oversampling
    temperature_oversampling: Oversampling
    filter_size: FilterSize
    heater_duration_ms: int
    heater_temperature_c: int
    ambient_temperature_c: int
    run_gas: bool
    temperature_offset_c: float


def build_sensor_settings(
    *,
    humidity_oversampling: Oversampling = Oversampling.X2,
    pressure_oversampling: Oversampling = Oversampling.X4,
    temperature_oversampling: Oversampling = Oversampling.X8,
    filter_size: FilterSize = FilterSize.SIZE_3,
    heater_duration_ms: int = 1500,
    heater_temperature_c: int = 320,
    ambient_temperature_c: int = 25,
    run_gas: bool = True,
    temperature_offset_c: float = 0.0,
) -> SensorSettings:
    """Validate and freeze sensor settings.

    Defaults are the forced-mode profile the sampler has always used:
    humidity x2, pressure x4, temperature x8, IIR size 3 and a 1.5 s gas
    heater step to 320 C.
    """

    if not 1 <= heater_duration_ms <= MAX_HEATER_DURATION_MS:
        raise SensorConfigError(f"gas heater duration must be 1..{MAX_HEATER_DURATION_MS} ms")
    if not MIN_HEATER_TEMPERATURE_C <= heater_temperature_c <= MAX_HEATER_TEMPERATURE_C:
        raise SensorConfigError(
            f"gas heater temperature must be {MIN_HEATER_TEMPERATURE_C}..{MAX_HEATER_TEMPERATURE_C} C"
        )
    if not -40 <= ambient_temperature_c <= 85:
        raise SensorConfigError("ambient temperature must be -40..85 C")
    if not math.isfinite(temperature_offset_c):
        raise SensorConfigError("temperature offset must be a finite number")

    return SensorSettings(
        humidity_oversampling=humidity_oversampling,
        pressure_oversampling=pressure_oversampling,
        temperature_oversampling=temperature_oversampling,
        filter_size=filter_size,
        heater_duration_ms=int(heater_duration_ms),
        heater_temperature_c=int(heater_temperature_c),
        ambient_temperature_c=int(ambient_temperature_c),
        run_gas=bool(run_gas),
        temperature_offset_c=float(temperature_offset_c),
    )
