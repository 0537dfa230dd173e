from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

import requests

from .points import MetricPoint, encode_batch

log = logging.getLogger("airwatch.publisher")


@dataclass(frozen=True)
class PublishOutcome:
    ok: bool
    reason: str | None = None
    status_code: int | None = None
    retry_after_s: float | None = None

    @classmethod
    def success(cls, *, status_code: int | None = None) -> "PublishOutcome":
        return cls(ok=True, status_code=status_code)

    @classmethod
    def failure(
        cls,
        reason: str,
        *,
        status_code: int | None = None,
        retry_after_s: float | None = None,
    ) -> "PublishOutcome":
        return cls(ok=False, reason=reason, status_code=status_code, retry_after_s=retry_after_s)


def _parse_retry_after_seconds(headers: Mapping[str, Any]) -> float | None:
    """Parse Retry-After (seconds only). Returns None if unparseable."""

    ra = headers.get("Retry-After")
    if not ra:
        return None
    try:
        return float(str(ra).strip())
    except ValueError:
        return None


@dataclass
class InfluxPublisher:
    """Writes point batches to an InfluxDB v2 ``/api/v2/write`` endpoint.

    One request per batch and no retries here: a failed write is reported
    back to the caller and the batch is dropped.
    """

    url: str
    token: str
    timeout_s: float = 5.0
    session: requests.Session = field(default_factory=requests.Session)

    @property
    def write_url(self) -> str:
        return f"{self.url.rstrip('/')}/api/v2/write"

    def publish(self, points: Sequence[MetricPoint], *, org: str, bucket: str) -> PublishOutcome:
        if not points:
            return PublishOutcome.success()

        try:
            resp = self.session.post(
                self.write_url,
                params={"org": org, "bucket": bucket, "precision": "ns"},
                headers={
                    "Authorization": f"Token {self.token}",
                    "Content-Type": "text/plain; charset=utf-8",
                    "Accept": "application/json",
                },
                data=encode_batch(points).encode("utf-8"),
                timeout=self.timeout_s,
            )
        except requests.RequestException as exc:
            return PublishOutcome.failure(f"write request failed: {type(exc).__name__}: {exc}")

        if 200 <= resp.status_code < 300:
            log.debug("wrote %d points to %s/%s", len(points), org, bucket)
            return PublishOutcome.success(status_code=resp.status_code)

        retry_after_s = None
        if resp.status_code in (429, 503):
            retry_after_s = _parse_retry_after_seconds(resp.headers)
        return PublishOutcome.failure(
            f"write failed: {resp.status_code} {resp.text[:200]}",
            status_code=resp.status_code,
            retry_after_s=retry_after_s,
        )
