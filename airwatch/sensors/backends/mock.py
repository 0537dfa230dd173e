from __future__ import annotations

import hashlib
import random
from dataclasses import dataclass, field

from ..base import RawReading, SensorError, Validity
from ..settings import SensorSettings
from ..timing import profile_duration_s


def _rng_for(host_tag: str) -> random.Random:
    seed_bytes = hashlib.sha256(host_tag.encode("utf-8")).digest()[:8]
    return random.Random(int.from_bytes(seed_bytes, "big", signed=False))


@dataclass
class MockBme680Driver:
    """Hardware-free stand-in for local runs; readings drift around indoor values."""

    host_tag: str = "unknown"
    _rng: random.Random = field(init=False, repr=False)
    _settings: SensorSettings | None = field(default=None, init=False, repr=False)
    _triggered: bool = field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        self._rng = _rng_for(self.host_tag)

    def configure(self, settings: SensorSettings) -> float:
        self._settings = settings
        return profile_duration_s(settings)

    def set_forced_mode(self) -> None:
        if self._settings is None:
            raise SensorError("mock sensor triggered before configure")
        self._triggered = True

    def read(self) -> tuple[RawReading | None, Validity]:
        if not self._triggered or self._settings is None:
            return None, Validity.NO_NEW_DATA
        self._triggered = False

        rng = self._rng
        gas = rng.uniform(8_000.0, 60_000.0) if self._settings.run_gas else 0.0
        return (
            RawReading(
                temperature_c=round(21.5 + rng.uniform(-1.5, 1.5) + self._settings.temperature_offset_c, 2),
                humidity_pct=round(45.0 + rng.uniform(-5.0, 5.0), 2),
                pressure_hpa=round(1013.25 + rng.uniform(-4.0, 4.0), 2),
                gas_resistance_ohms=round(gas, 1),
                heat_stable=self._settings.run_gas,
            ),
            Validity.NEW_DATA,
        )
