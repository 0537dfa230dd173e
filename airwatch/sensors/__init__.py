from .base import RawReading, SensorDriver, SensorError, Validity
from .config import SensorConfig, build_sensor_driver, load_sensor_config_from_env, parse_sensor_config
from .session import SensorSession
from .settings import FilterSize, Oversampling, SensorConfigError, SensorSettings, build_sensor_settings

__all__ = [
    "FilterSize",
    "Oversampling",
    "RawReading",
    "SensorConfig",
    "SensorConfigError",
    "SensorDriver",
    "SensorError",
    "SensorSession",
    "SensorSettings",
    "Validity",
    "build_sensor_driver",
    "build_sensor_settings",
    "load_sensor_config_from_env",
    "parse_sensor_config",
]
