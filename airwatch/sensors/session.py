from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .base import RawReading, SensorDriver, SensorError, Validity
from .settings import SensorSettings

log = logging.getLogger("airwatch.sensor")


@dataclass
class SensorSession:
    """Owns the sensor driver and its settings for the process lifetime.

    ``configure`` must run exactly once before any ``trigger_and_read``. The
    session is not shared; one forced conversion is in flight at a time.
    """

    driver: SensorDriver
    settings: SensorSettings
    _profile_s: float | None = field(default=None, init=False, repr=False)

    @property
    def configured(self) -> bool:
        return self._profile_s is not None

    @property
    def profile_s(self) -> float:
        if self._profile_s is None:
            raise SensorError("sensor session is not configured")
        return self._profile_s

    def configure(self) -> float:
        if self._profile_s is not None:
            raise SensorError("sensor session is already configured")

        profile_s = float(self.driver.configure(self.settings))
        if profile_s < 0:
            raise SensorError(f"sensor reported a negative conversion profile: {profile_s}")

        log.info(
            "sensor configured",
            extra={
                "fields": {
                    "humidity_oversampling": self.settings.humidity_oversampling.name,
                    "pressure_oversampling": self.settings.pressure_oversampling.name,
                    "temperature_oversampling": self.settings.temperature_oversampling.name,
                    "filter_size": self.settings.filter_size.coefficient,
                    "run_gas": self.settings.run_gas,
                    "temperature_offset_c": self.settings.temperature_offset_c,
                    "profile_s": profile_s,
                }
            },
        )
        self._profile_s = profile_s
        return profile_s

    def trigger_and_read(self) -> tuple[RawReading | None, Validity]:
        if self._profile_s is None:
            raise SensorError("trigger_and_read called before configure")

        self.driver.set_forced_mode()
        reading, validity = self.driver.read()
        if validity is not Validity.NEW_DATA or reading is None:
            return None, Validity.NO_NEW_DATA
        return reading, Validity.NEW_DATA
