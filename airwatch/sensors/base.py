from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .settings import SensorSettings


class SensorError(RuntimeError):
    """Sensor transport or protocol failure."""


class Validity(enum.Enum):
    NEW_DATA = "new_data"
    NO_NEW_DATA = "no_new_data"


@dataclass(frozen=True)
class RawReading:
    temperature_c: float
    humidity_pct: float
    pressure_hpa: float
    gas_resistance_ohms: float
    heat_stable: bool = True


class SensorDriver(Protocol):
    """Capability the sensor session drives: configure, trigger, read."""

    def configure(self, settings: "SensorSettings") -> float: ...

    def set_forced_mode(self) -> None: ...

    def read(self) -> tuple[RawReading | None, Validity]: ...
