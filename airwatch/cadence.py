from __future__ import annotations

# Empirical margin over the sensor-reported conversion time so the gas
# heater step and conversion always finish before the next trigger.
SAMPLE_INTERVAL_MULTIPLIER = 3

# Heater/gas element stabilization before the first trusted reading.
WARMUP_S = 5 * 60


def compute_sampling_interval(profile_s: float, *, multiplier: float = SAMPLE_INTERVAL_MULTIPLIER) -> float:
    """Seconds to sleep between forced measurements."""

    if profile_s < 0:
        raise ValueError(f"conversion profile must be >= 0 (got {profile_s})")
    if multiplier < 1:
        raise ValueError(f"interval multiplier must be >= 1 (got {multiplier})")
    return float(profile_s) * multiplier
