from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Sequence

import pytest

from airwatch.airwatch_agent import build_sampling_loop
from airwatch.config import load_settings_from_env
from airwatch.points import MetricPoint
from airwatch.publisher import PublishOutcome
from airwatch.sampling_loop import CycleResult, LoopPhase, SamplingLoop
from airwatch.sensors.base import RawReading, SensorError, Validity
from airwatch.sensors.config import load_sensor_config_from_env
from airwatch.sensors.session import SensorSession
from airwatch.sensors.settings import SensorSettings, build_sensor_settings

_READING = RawReading(temperature_c=22.5, humidity_pct=45.0, pressure_hpa=1013.2, gas_resistance_ohms=12000.0)


class _FakeDriver:
    def __init__(self, reads: list[object], *, profile_s: float = 1.5) -> None:
        self.reads = list(reads)
        self.profile_s = profile_s
        self.triggers = 0

    def configure(self, settings: SensorSettings) -> float:
        return self.profile_s

    def set_forced_mode(self) -> None:
        self.triggers += 1

    def read(self) -> tuple[RawReading | None, Validity]:
        item = self.reads.pop(0) if self.reads else (_READING, Validity.NEW_DATA)
        if isinstance(item, Exception):
            raise item
        return item  # type: ignore[return-value]


class _FailingConfigureDriver(_FakeDriver):
    def configure(self, settings: SensorSettings) -> float:
        raise SensorError("BME680 rejected settings on bus=1 addr=0x77: [Errno 121] Remote I/O error")


class _RecordingPublisher:
    def __init__(self, outcomes: list[Any] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls: list[tuple[list[MetricPoint], str, str]] = []

    def publish(self, points: Sequence[MetricPoint], *, org: str, bucket: str) -> PublishOutcome:
        self.calls.append((list(points), org, bucket))
        outcome = self.outcomes.pop(0) if self.outcomes else PublishOutcome.success(status_code=204)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _loop(
    driver: _FakeDriver,
    publisher: _RecordingPublisher,
    sleeps: list[float],
    *,
    host_tag: str = "unknown",
) -> SamplingLoop:
    return SamplingLoop(
        session=SensorSession(driver=driver, settings=build_sensor_settings()),
        publisher=publisher,
        host_tag=host_tag,
        org="home",
        bucket="sensors",
        warmup_s=300,
        sleep=sleeps.append,
    )


def test_run_bootstraps_warms_up_and_sleeps_interval_each_cycle() -> None:
    sleeps: list[float] = []
    loop = _loop(_FakeDriver([]), _RecordingPublisher(), sleeps)

    state = loop.run(max_cycles=3)

    assert state.phase is LoopPhase.SAMPLING
    assert state.interval_s == pytest.approx(4.5)
    assert sleeps == [300, pytest.approx(4.5), pytest.approx(4.5), pytest.approx(4.5)]
    assert state.cycles == 3
    assert state.published == 3


def test_bootstrap_failure_is_fatal_and_skips_warm_up() -> None:
    sleeps: list[float] = []
    loop = _loop(_FailingConfigureDriver([]), _RecordingPublisher(), sleeps)

    with pytest.raises(SensorError):
        loop.run(max_cycles=1)
    assert sleeps == []
    assert loop.state.phase is LoopPhase.BOOTSTRAPPING


def test_no_new_data_skips_publish() -> None:
    publisher = _RecordingPublisher()
    loop = _loop(_FakeDriver([(None, Validity.NO_NEW_DATA)]), publisher, [])
    loop.bootstrap()

    assert loop.run_cycle() is CycleResult.NO_NEW_DATA
    assert publisher.calls == []
    assert loop.state.skipped == 1
    assert loop.state.failures == 0


def test_new_data_publishes_exactly_once_with_four_points() -> None:
    publisher = _RecordingPublisher()
    loop = _loop(_FakeDriver([(_READING, Validity.NEW_DATA)]), publisher, [])
    loop.bootstrap()

    assert loop.run_cycle() is CycleResult.PUBLISHED
    assert len(publisher.calls) == 1
    points, org, bucket = publisher.calls[0]
    assert len(points) == 4
    assert (org, bucket) == ("home", "sensors")


@pytest.mark.parametrize(
    ("reads", "outcomes", "host_tag", "expected"),
    [
        ([SensorError("i2c timeout")], [], "unknown", [CycleResult.READ_FAILED, CycleResult.PUBLISHED]),
        # The bad host tag persists, so both cycles fail to build but both run.
        ([], [], "bad\nhost", [CycleResult.BUILD_FAILED, CycleResult.BUILD_FAILED]),
        (
            [],
            [PublishOutcome.failure("write failed: 503 unavailable", status_code=503)],
            "unknown",
            [CycleResult.PUBLISH_FAILED, CycleResult.PUBLISHED],
        ),
        ([RuntimeError("driver bug")], [], "unknown", [CycleResult.ERROR, CycleResult.PUBLISHED]),
    ],
)
def test_failed_cycle_does_not_stop_the_next_one(
    reads: list[object],
    outcomes: list[Any],
    host_tag: str,
    expected: list[CycleResult],
) -> None:
    sleeps: list[float] = []
    publisher = _RecordingPublisher(outcomes)
    driver = _FakeDriver(reads)
    loop = _loop(driver, publisher, sleeps, host_tag=host_tag)

    results: list[CycleResult] = []
    original = loop.run_cycle

    def _tracking_cycle() -> CycleResult:
        result = original()
        results.append(result)
        return result

    loop.run_cycle = _tracking_cycle  # type: ignore[method-assign]
    loop.run(max_cycles=2)

    assert results == expected
    assert driver.triggers == 2
    assert sleeps[1:] == [pytest.approx(4.5), pytest.approx(4.5)]
    assert loop.state.cycles == 2
    published = expected.count(CycleResult.PUBLISHED)
    assert loop.state.published == published
    assert loop.state.failures == 2 - published


def test_publisher_exception_is_contained() -> None:
    publisher = _RecordingPublisher([ValueError("unexpected"), PublishOutcome.success()])
    loop = _loop(_FakeDriver([]), publisher, [])
    loop.bootstrap()

    assert loop.run_cycle() is CycleResult.ERROR
    assert loop.run_cycle() is CycleResult.PUBLISHED


def test_end_to_end_scenario_with_default_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("INFLUX_ADDRESS", "http://influx.local:8086")
    monkeypatch.setenv("INFLUX_TOKEN", "secret-token")
    monkeypatch.setenv("INFLUX_BUCKET", "sensors")
    monkeypatch.setenv("INFLUX_ORGANIZATION", "home")
    for name in ("HOSTNAME", "TEMP_OFFSET", "WARMUP_S", "SENSOR_CONFIG_PATH", "SENSOR_BACKEND", "I2C_BUS", "I2C_ADDRESS"):
        monkeypatch.delenv(name, raising=False)

    settings = load_settings_from_env()
    assert settings.host_tag == "unknown"
    assert settings.temperature_offset_c == 0.0

    sensor_config = load_sensor_config_from_env(temperature_offset_c=settings.temperature_offset_c)
    assert sensor_config.settings.temperature_offset_c == 0.0

    posts: list[dict[str, Any]] = []

    class _Http:
        def post(self, url: str, **kwargs: Any) -> Any:
            posts.append({"url": url, **kwargs})
            return SimpleNamespace(status_code=204, text="", headers={})

    sleeps: list[float] = []
    loop = build_sampling_loop(
        settings,
        sensor_config,
        driver=_FakeDriver([(_READING, Validity.NEW_DATA)], profile_s=1.5),
        http=_Http(),  # type: ignore[arg-type]
        sleep=sleeps.append,
    )
    loop.run(max_cycles=1)

    assert sleeps == [300.0, pytest.approx(4.5)]
    assert len(posts) == 1
    assert posts[0]["url"] == "http://influx.local:8086/api/v2/write"
    assert posts[0]["params"]["org"] == "home"
    assert posts[0]["params"]["bucket"] == "sensors"
    assert posts[0]["data"].decode("utf-8").splitlines() == [
        "temperature_c,host=unknown value=22.5",
        "relative_humidity,host=unknown value=45.0",
        "pressure_hpa,host=unknown value=1013.2",
        "gas_resistance_ohms,host=unknown value=12000.0",
    ]
