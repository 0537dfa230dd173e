from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol, runtime_checkable

from ..base import RawReading, SensorError, Validity
from ..settings import SensorSettings
from ..timing import profile_duration_s

I2C_ADDR_PRIMARY = 0x76
I2C_ADDR_SECONDARY = 0x77

_FORCED_MODE = 1

# The heater can overrun the computed profile; poll the mode register until the
# chip drops back to sleep.
_IDLE_POLL_S = 0.005
_IDLE_POLLS = 40


@runtime_checkable
class Bme680Chip(Protocol):
    """Subset of the Pimoroni ``bme680.BME680`` object the driver uses."""

    data: Any
    ambient_temperature: int

    def set_humidity_oversample(self, value: int) -> None: ...

    def set_pressure_oversample(self, value: int) -> None: ...

    def set_temperature_oversample(self, value: int) -> None: ...

    def set_filter(self, value: int) -> None: ...

    def set_temp_offset(self, value: float) -> None: ...

    def set_gas_status(self, value: int) -> None: ...

    def set_gas_heater_temperature(self, value: int, nb_profile: int = 0) -> None: ...

    def set_gas_heater_duration(self, value: int, nb_profile: int = 0) -> None: ...

    def select_gas_heater_profile(self, value: int) -> None: ...

    def set_power_mode(self, value: int) -> None: ...

    def get_power_mode(self) -> int: ...


def _import_bme680() -> Any:
    try:
        import bme680  # type: ignore[import-not-found]
    except ImportError as exc:
        raise RuntimeError("SENSOR_BACKEND=bme680 requires bme680 (install on Pi: pip install bme680 smbus2)") from exc
    return bme680


def open_bme680(bus_number: int, address: int) -> Bme680Chip:
    bme680 = _import_bme680()
    try:
        import smbus2  # type: ignore[import-not-found]
    except ImportError as exc:
        raise RuntimeError("SENSOR_BACKEND=bme680 requires smbus2 (install on Pi: pip install smbus2)") from exc
    return bme680.BME680(i2c_addr=address, i2c_device=smbus2.SMBus(bus_number))


def library_gas_codes() -> tuple[int, int]:
    """(enable, disable) gas status codes; the enable code differs across library releases."""

    bme680 = _import_bme680()
    return int(bme680.ENABLE_GAS_MEAS), int(bme680.DISABLE_GAS_MEAS)


def read_field_data(chip: Any) -> bool:
    """Decode the finished conversion into ``chip.data`` without starting a new one.

    ``BME680.get_sensor_data()`` writes forced mode before polling, which would
    start a second conversion right after the one we waited for. This performs
    the same field-register decode (using the library's own compensation
    routines) minus that write.

    Returns False when the new-data bit is not set.
    """

    c = _import_bme680().constants
    regs = chip._get_regs(c.FIELD0_ADDR, c.FIELD_LENGTH)
    if (regs[0] & c.NEW_DATA_MSK) == 0:
        return False

    data = chip.data
    data.status = regs[0] & c.NEW_DATA_MSK
    data.gas_index = regs[0] & c.GAS_INDEX_MSK
    data.meas_index = regs[1]

    adc_pres = (regs[2] << 12) | (regs[3] << 4) | (regs[4] >> 4)
    adc_temp = (regs[5] << 12) | (regs[6] << 4) | (regs[7] >> 4)
    adc_hum = (regs[8] << 8) | regs[9]

    high_variant = getattr(chip, "_variant", None) == c.VARIANT_HIGH
    gas_msb, gas_lsb = (regs[15], regs[16]) if high_variant else (regs[13], regs[14])
    adc_gas_res = (gas_msb << 2) | (gas_lsb >> 6)
    gas_range = gas_lsb & c.GAS_RANGE_MSK
    data.status |= gas_lsb & c.GASM_VALID_MSK
    data.status |= gas_lsb & c.HEAT_STAB_MSK
    data.heat_stable = (data.status & c.HEAT_STAB_MSK) > 0

    temperature = chip._calc_temperature(adc_temp)
    data.temperature = temperature / 100.0
    # Heater resistance for the next conversion is derived from this.
    chip.ambient_temperature = temperature

    data.pressure = chip._calc_pressure(adc_pres) / 100.0
    data.humidity = chip._calc_humidity(adc_hum) / 1000.0

    if high_variant:
        data.gas_resistance = chip._calc_gas_resistance_high(adc_gas_res, gas_range)
    else:
        data.gas_resistance = chip._calc_gas_resistance_low(adc_gas_res, gas_range)
    return True


@dataclass
class Bme680Driver:
    """Forced-mode BME680 over the Pimoroni library.

    Exactly one forced-mode write per cycle: ``set_forced_mode`` triggers and
    waits, ``read`` only decodes the result registers.
    """

    bus_number: int = 1
    address: int = I2C_ADDR_SECONDARY
    chip_factory: Callable[[int, int], Bme680Chip] = open_bme680
    gas_codes: Callable[[], tuple[int, int]] = library_gas_codes
    fetch: Callable[[Any], bool] = read_field_data
    sleep: Callable[[float], None] = time.sleep
    _chip: Bme680Chip | None = field(default=None, init=False, repr=False)
    _profile_s: float = field(default=0.0, init=False, repr=False)

    def _where(self) -> str:
        return f"bus={self.bus_number} addr=0x{self.address:02x}"

    def _get_chip(self) -> Bme680Chip:
        if self._chip is not None:
            return self._chip
        try:
            self._chip = self.chip_factory(self.bus_number, self.address)
        except (OSError, RuntimeError) as exc:
            raise SensorError(f"BME680 open failed on {self._where()}: {exc}") from exc
        return self._chip

    def configure(self, settings: SensorSettings) -> float:
        chip = self._get_chip()
        try:
            chip.set_humidity_oversample(settings.humidity_oversampling.value)
            chip.set_pressure_oversample(settings.pressure_oversampling.value)
            chip.set_temperature_oversample(settings.temperature_oversampling.value)
            chip.set_filter(settings.filter_size.value)
            chip.set_temp_offset(settings.temperature_offset_c)

            enable_gas, disable_gas = self.gas_codes()
            if settings.run_gas:
                # Heater resistance is derived from the ambient estimate.
                chip.ambient_temperature = settings.ambient_temperature_c
                chip.set_gas_heater_temperature(settings.heater_temperature_c, nb_profile=0)
                chip.set_gas_heater_duration(settings.heater_duration_ms, nb_profile=0)
                chip.select_gas_heater_profile(0)
                chip.set_gas_status(enable_gas)
            else:
                chip.set_gas_status(disable_gas)
        except (OSError, RuntimeError, ValueError) as exc:
            raise SensorError(f"BME680 rejected settings on {self._where()}: {exc}") from exc

        self._profile_s = profile_duration_s(settings)
        return self._profile_s

    def set_forced_mode(self) -> None:
        chip = self._get_chip()
        try:
            chip.set_power_mode(_FORCED_MODE)
            if self._profile_s > 0:
                self.sleep(self._profile_s)
            for _ in range(_IDLE_POLLS):
                if chip.get_power_mode() != _FORCED_MODE:
                    break
                self.sleep(_IDLE_POLL_S)
        except (OSError, RuntimeError) as exc:
            raise SensorError(f"BME680 forced mode failed on {self._where()}: {exc}") from exc

    def read(self) -> tuple[RawReading | None, Validity]:
        chip = self._get_chip()
        try:
            fresh = self.fetch(chip)
        except (OSError, RuntimeError) as exc:
            raise SensorError(f"BME680 read failed on {self._where()}: {exc}") from exc

        if not fresh:
            return None, Validity.NO_NEW_DATA

        data = chip.data
        return (
            RawReading(
                temperature_c=data.temperature,
                humidity_pct=data.humidity,
                pressure_hpa=data.pressure,
                gas_resistance_ohms=data.gas_resistance,
                heat_stable=bool(getattr(data, "heat_stable", True)),
            ),
            Validity.NEW_DATA,
        )
