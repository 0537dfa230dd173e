from __future__ import annotations

from .settings import Oversampling, SensorSettings

# Internal conversion cycles per oversampling register code.
_OS_TO_MEAS_CYCLES = (0, 1, 2, 4, 8, 16)

_CYCLE_US = 1963
_TPH_SWITCHING_US = 477 * 4
_GAS_MEASUREMENT_US = 477 * 5
_ROUNDING_US = 500
_WAKE_UP_MS = 1


def _cycles(setting: Oversampling) -> int:
    return _OS_TO_MEAS_CYCLES[setting.value]


def profile_duration_ms(settings: SensorSettings) -> int:
    """Forced-mode conversion time in whole milliseconds.

    Bosch BME680 datasheet formula: oversampling cycles for T/P/H, switching
    and gas measurement overhead, plus the heater duration when gas runs.
    """

    meas_cycles = (
        _cycles(settings.temperature_oversampling)
        + _cycles(settings.pressure_oversampling)
        + _cycles(settings.humidity_oversampling)
    )
    meas_us = meas_cycles * _CYCLE_US + _TPH_SWITCHING_US + _GAS_MEASUREMENT_US + _ROUNDING_US
    duration_ms = meas_us // 1000 + _WAKE_UP_MS
    if settings.run_gas:
        duration_ms += settings.heater_duration_ms
    return duration_ms


def profile_duration_s(settings: SensorSettings) -> float:
    return profile_duration_ms(settings) / 1000.0
