from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Callable

import requests
from dotenv import load_dotenv

from .config import AgentSettings, ConfigError, load_settings_from_env
from .observability import configure_logging
from .publisher import InfluxPublisher
from .sampling_loop import SamplingLoop
from .sensors import (
    SensorConfig,
    SensorConfigError,
    SensorDriver,
    SensorError,
    SensorSession,
    build_sensor_driver,
    load_sensor_config_from_env,
)

log = logging.getLogger("airwatch.agent")


def build_sampling_loop(
    settings: AgentSettings,
    sensor_config: SensorConfig,
    *,
    driver: SensorDriver | None = None,
    http: requests.Session | None = None,
    sleep: Callable[[float], None] | None = None,
) -> SamplingLoop:
    if driver is None:
        driver = build_sensor_driver(config=sensor_config, host_tag=settings.host_tag)

    publisher = InfluxPublisher(
        url=settings.influx_address,
        token=settings.influx_token,
        timeout_s=settings.influx_timeout_s,
        session=http if http is not None else requests.Session(),
    )

    loop = SamplingLoop(
        session=SensorSession(driver=driver, settings=sensor_config.settings),
        publisher=publisher,
        host_tag=settings.host_tag,
        org=settings.influx_organization,
        bucket=settings.influx_bucket,
        warmup_s=settings.warmup_s,
    )
    if sleep is not None:
        loop.sleep = sleep
    return loop


def main() -> None:
    # Load repo-level .env (if present), then package-local overrides.
    load_dotenv()
    load_dotenv(Path(__file__).resolve().parent / ".env")

    try:
        settings = load_settings_from_env()
    except ConfigError as exc:
        configure_logging(level=logging.INFO, log_format=os.getenv("LOG_FORMAT", "text"))
        log.error("invalid agent config: %s", exc)
        raise SystemExit(1) from exc

    configure_logging(level=settings.log_level, log_format=settings.log_format)

    try:
        sensor_config = load_sensor_config_from_env(temperature_offset_c=settings.temperature_offset_c)
    except SensorConfigError as exc:
        log.error("invalid sensor config: %s", exc)
        raise SystemExit(1) from exc

    log.info(
        "host=%s influx=%s org=%s bucket=%s sensor=%s bus=%s addr=0x%02x warmup=%.0fs",
        settings.host_tag,
        settings.influx_address,
        settings.influx_organization,
        settings.influx_bucket,
        sensor_config.backend,
        sensor_config.bus_number,
        sensor_config.address,
        settings.warmup_s,
    )

    loop = build_sampling_loop(settings, sensor_config)
    try:
        loop.run()
    except SensorError as exc:
        log.error("sensor startup failed: %s", exc)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
