from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from .measurements import METRIC_NAMES, Measurement

HOST_TAG = "host"
VALUE_FIELD = "value"


class PointError(ValueError):
    """A metric point could not be represented in line protocol."""


def _check_text(value: object, *, what: str) -> str:
    if not isinstance(value, str):
        raise PointError(f"{what} must be a string (got {type(value).__name__})")
    if not value:
        raise PointError(f"{what} must not be empty")
    if "\n" in value or "\r" in value:
        raise PointError(f"{what} must not contain line breaks: {value!r}")
    if value.endswith("\\"):
        raise PointError(f"{what} must not end with a backslash: {value!r}")
    return value


def _escape_measurement(value: str) -> str:
    return value.replace(",", r"\,").replace(" ", r"\ ")


def _escape_key(value: str) -> str:
    return value.replace(",", r"\,").replace("=", r"\=").replace(" ", r"\ ")


@dataclass(frozen=True)
class MetricPoint:
    """One InfluxDB point: measurement name, tags and float fields (no timestamp)."""

    name: str
    tags: Mapping[str, str] = field(default_factory=dict)
    fields: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        _check_text(self.name, what="measurement name")
        for key, value in self.tags.items():
            _check_text(key, what=f"{self.name} tag key")
            _check_text(value, what=f"{self.name} tag {key!r} value")
        if not self.fields:
            raise PointError(f"{self.name} requires at least one field")
        for key, value in self.fields.items():
            _check_text(key, what=f"{self.name} field key")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise PointError(f"{self.name} field {key!r} must be numeric (got {value!r})")
            if not math.isfinite(value):
                raise PointError(f"{self.name} field {key!r} must be finite (got {value!r})")

    def to_line_protocol(self) -> str:
        head = _escape_measurement(self.name)
        # Tags sorted by key, as InfluxDB recommends for write performance.
        for key in sorted(self.tags):
            head += f",{_escape_key(key)}={_escape_key(self.tags[key])}"
        body = ",".join(f"{_escape_key(k)}={float(v)!r}" for k, v in self.fields.items())
        return f"{head} {body}"


def build_batch(measurement: Measurement, host_tag: str) -> list[MetricPoint]:
    """Build one point per metric in the fixed publish order.

    Any rejected point raises PointError; no partial batch is returned.
    """

    missing = [name for name in METRIC_NAMES if name not in measurement]
    if missing:
        raise PointError(f"measurement is missing {', '.join(missing)}")

    return [
        MetricPoint(name=name, tags={HOST_TAG: host_tag}, fields={VALUE_FIELD: measurement[name]})
        for name in METRIC_NAMES
    ]


def encode_batch(points: Iterable[MetricPoint]) -> str:
    return "\n".join(point.to_line_protocol() for point in points)
