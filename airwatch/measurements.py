from __future__ import annotations

from typing import TypeAlias

from .sensors.base import RawReading

Measurement: TypeAlias = dict[str, float]

METRIC_NAMES: tuple[str, ...] = (
    "temperature_c",
    "relative_humidity",
    "pressure_hpa",
    "gas_resistance_ohms",
)


def adapt_reading(raw: RawReading) -> Measurement:
    """Map one validated sensor reading to the published metric names."""

    return {
        "temperature_c": float(raw.temperature_c),
        "relative_humidity": float(raw.humidity_pct),
        "pressure_hpa": float(raw.pressure_hpa),
        "gas_resistance_ohms": float(raw.gas_resistance_ohms),
    }
