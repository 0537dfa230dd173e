from __future__ import annotations

import pytest

from airwatch.sensors.backends.mock import MockBme680Driver
from airwatch.sensors.base import RawReading, SensorError, Validity
from airwatch.sensors.session import SensorSession
from airwatch.sensors.settings import SensorSettings, build_sensor_settings


class _ScriptedDriver:
    def __init__(self, *, profile_s: float = 1.5, reads: list[object] | None = None) -> None:
        self.profile_s = profile_s
        self.reads = list(reads or [])
        self.configured_with: list[SensorSettings] = []
        self.triggers = 0

    def configure(self, settings: SensorSettings) -> float:
        self.configured_with.append(settings)
        return self.profile_s

    def set_forced_mode(self) -> None:
        self.triggers += 1

    def read(self) -> tuple[RawReading | None, Validity]:
        item = self.reads.pop(0)
        if isinstance(item, Exception):
            raise item
        return item  # type: ignore[return-value]


_READING = RawReading(temperature_c=22.5, humidity_pct=45.0, pressure_hpa=1013.2, gas_resistance_ohms=12000.0)


def test_configure_applies_settings_once() -> None:
    driver = _ScriptedDriver()
    settings = build_sensor_settings()
    session = SensorSession(driver=driver, settings=settings)

    assert session.configure() == 1.5
    assert session.profile_s == 1.5
    assert driver.configured_with == [settings]

    with pytest.raises(SensorError, match="already configured"):
        session.configure()
    assert len(driver.configured_with) == 1


def test_trigger_before_configure_is_rejected() -> None:
    driver = _ScriptedDriver(reads=[(_READING, Validity.NEW_DATA)])
    session = SensorSession(driver=driver, settings=build_sensor_settings())

    with pytest.raises(SensorError):
        session.trigger_and_read()
    assert driver.triggers == 0


def test_trigger_and_read_forces_one_measurement() -> None:
    driver = _ScriptedDriver(reads=[(_READING, Validity.NEW_DATA), (None, Validity.NO_NEW_DATA)])
    session = SensorSession(driver=driver, settings=build_sensor_settings())
    session.configure()

    assert session.trigger_and_read() == (_READING, Validity.NEW_DATA)
    assert session.trigger_and_read() == (None, Validity.NO_NEW_DATA)
    assert driver.triggers == 2


def test_new_data_without_payload_is_treated_as_no_new_data() -> None:
    driver = _ScriptedDriver(reads=[(None, Validity.NEW_DATA)])
    session = SensorSession(driver=driver, settings=build_sensor_settings())
    session.configure()

    assert session.trigger_and_read() == (None, Validity.NO_NEW_DATA)


def test_read_errors_propagate_to_caller() -> None:
    driver = _ScriptedDriver(reads=[SensorError("i2c timeout")])
    session = SensorSession(driver=driver, settings=build_sensor_settings())
    session.configure()

    with pytest.raises(SensorError, match="i2c timeout"):
        session.trigger_and_read()


def test_negative_profile_fails_configuration() -> None:
    session = SensorSession(driver=_ScriptedDriver(profile_s=-1.0), settings=build_sensor_settings())
    with pytest.raises(SensorError):
        session.configure()
    assert session.configured is False


def test_mock_driver_produces_plausible_readings() -> None:
    settings = build_sensor_settings(temperature_offset_c=1.0)
    session = SensorSession(driver=MockBme680Driver(host_tag="lab-pi"), settings=settings)

    assert session.configure() == pytest.approx(1.533)
    reading, validity = session.trigger_and_read()

    assert validity is Validity.NEW_DATA
    assert reading is not None
    assert 20.0 <= reading.temperature_c <= 24.0
    assert 40.0 <= reading.humidity_pct <= 50.0
    assert 1009.0 <= reading.pressure_hpa <= 1018.0
    assert 8_000.0 <= reading.gas_resistance_ohms <= 60_000.0


def test_mock_driver_requires_trigger_for_new_data() -> None:
    driver = MockBme680Driver()
    driver.configure(build_sensor_settings())
    assert driver.read() == (None, Validity.NO_NEW_DATA)
    with pytest.raises(SensorError):
        MockBme680Driver().set_forced_mode()
