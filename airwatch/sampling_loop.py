from __future__ import annotations

import enum
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Protocol, Sequence

from .cadence import SAMPLE_INTERVAL_MULTIPLIER, WARMUP_S, compute_sampling_interval
from .measurements import adapt_reading
from .points import MetricPoint, PointError, build_batch
from .publisher import PublishOutcome
from .sensors.base import SensorError, Validity
from .sensors.session import SensorSession

log = logging.getLogger("airwatch.loop")


class Publisher(Protocol):
    def publish(self, points: Sequence[MetricPoint], *, org: str, bucket: str) -> PublishOutcome: ...


class LoopPhase(enum.Enum):
    BOOTSTRAPPING = "bootstrapping"
    WARMING_UP = "warming_up"
    SAMPLING = "sampling"


class CycleResult(enum.Enum):
    PUBLISHED = "published"
    PUBLISH_FAILED = "publish_failed"
    NO_NEW_DATA = "no_new_data"
    READ_FAILED = "read_failed"
    BUILD_FAILED = "build_failed"
    ERROR = "error"


@dataclass
class LoopState:
    phase: LoopPhase = LoopPhase.BOOTSTRAPPING
    interval_s: float | None = None
    cycles: int = 0
    published: int = 0
    skipped: int = 0
    failures: int = 0
    last_result: CycleResult | None = None


@dataclass
class SamplingLoop:
    """Forced-measurement sample -> format -> publish loop.

    Startup errors (configure) propagate to the caller. Inside the sampling
    phase every failure is logged and ends only the current cycle; the next
    cycle always runs after the same interval.
    """

    session: SensorSession
    publisher: Publisher
    host_tag: str
    org: str
    bucket: str
    warmup_s: float = WARMUP_S
    sleep: Callable[[float], None] = time.sleep
    state: LoopState = field(default_factory=LoopState)

    def bootstrap(self) -> float:
        profile_s = self.session.configure()
        log.info("Profile duration set to: %.3fs", profile_s)
        interval_s = compute_sampling_interval(profile_s)
        log.info("Sampling interval set to: %.3fs (%dx profile)", interval_s, SAMPLE_INTERVAL_MULTIPLIER)
        self.state.interval_s = interval_s
        self.state.phase = LoopPhase.WARMING_UP
        return interval_s

    def warm_up(self) -> None:
        if self.warmup_s > 0:
            log.info("Waiting %.0fs for device to stabilize before reading.", self.warmup_s)
            self.sleep(self.warmup_s)
        self.state.phase = LoopPhase.SAMPLING
        log.info("Starting readings.")

    def run_cycle(self) -> CycleResult:
        try:
            result = self._cycle()
        except Exception:
            # Nothing may escape a steady-state cycle.
            log.exception("sampling cycle failed")
            result = CycleResult.ERROR
        self.state.cycles += 1
        self.state.last_result = result
        if result is CycleResult.PUBLISHED:
            self.state.published += 1
        elif result is CycleResult.NO_NEW_DATA:
            self.state.skipped += 1
        else:
            self.state.failures += 1
        return result

    def _cycle(self) -> CycleResult:
        try:
            reading, validity = self.session.trigger_and_read()
        except SensorError as exc:
            log.error("Failed to get sensor reading: %s", exc)
            return CycleResult.READ_FAILED

        if validity is not Validity.NEW_DATA or reading is None:
            log.debug("no new sensor data this cycle")
            return CycleResult.NO_NEW_DATA

        measurement = adapt_reading(reading)

        try:
            points = build_batch(measurement, self.host_tag)
        except PointError as exc:
            log.error("Failed to create data points: %s", exc)
            return CycleResult.BUILD_FAILED

        outcome = self.publisher.publish(points, org=self.org, bucket=self.bucket)
        if not outcome.ok:
            log.error(
                "Failed to write data points to influxdb: %s",
                outcome.reason,
                extra={"fields": {"status_code": outcome.status_code, "retry_after_s": outcome.retry_after_s}},
            )
            return CycleResult.PUBLISH_FAILED

        log.info(
            "wrote %d points",
            len(points),
            extra={"fields": {"host": self.host_tag, **measurement}},
        )
        return CycleResult.PUBLISHED

    def run(self, *, max_cycles: int | None = None) -> LoopState:
        """Bootstrap, warm up, then sample until killed (or ``max_cycles``)."""

        interval_s = self.bootstrap()
        self.warm_up()

        done = 0
        while max_cycles is None or done < max_cycles:
            self.run_cycle()
            done += 1
            self.sleep(interval_s)
        return self.state
