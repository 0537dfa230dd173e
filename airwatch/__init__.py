"""Environmental telemetry sampler: BME680 readings forwarded to InfluxDB."""

__version__ = "0.1.0"
