"""
Sample-rate utilities for velofuse.

Estimates the acquisition rate of a recorded stream so that the filter's
integration step can be matched to the data.
"""

from typing import Any, Dict, Optional, Sequence

import numpy as np

from .config import TICKS_PER_SECOND
from .models import TimedSample


def _times_seconds(samples: Sequence[TimedSample], time_unit: str) -> np.ndarray:
    return np.array([s.t for s in samples], dtype=float) / TICKS_PER_SECOND[time_unit]


def estimate_sample_rate(
    samples: Sequence[TimedSample],
    time_unit: str = "ms"
) -> Optional[float]:
    """
    Estimate the sample rate from timestamps.

    Args:
        samples: Samples in acquisition order
        time_unit: Unit of the sample timestamps ("ms" or "us")

    Returns:
        Estimated sample rate in Hz, or None if cannot determine
    """
    if len(samples) < 2:
        return None

    t = _times_seconds(samples, time_unit)
    duration = t[-1] - t[0]
    if duration <= 0:
        return None

    return (len(samples) - 1) / duration


def dt_from_samples(
    samples: Sequence[TimedSample],
    time_unit: str = "ms"
) -> Optional[float]:
    """Mean integration step (seconds) implied by the timestamps."""
    rate = estimate_sample_rate(samples, time_unit)
    return 1.0 / rate if rate else None


def validate_sample_rate(
    samples: Sequence[TimedSample],
    expected_hz: float,
    tolerance_pct: float = 10.0,
    time_unit: str = "ms"
) -> Dict[str, Any]:
    """
    Validate that sample rate matches expected rate.

    Args:
        samples: Samples in acquisition order
        expected_hz: Expected sample rate
        tolerance_pct: Acceptable deviation percentage
        time_unit: Unit of the sample timestamps

    Returns:
        Dict with validation results:
        {
            "valid": bool,
            "estimated_hz": float,
            "deviation_pct": float,
            "jitter_ms": float (std dev of sample intervals)
        }
    """
    estimated = estimate_sample_rate(samples, time_unit)
    if estimated is None:
        return {
            "valid": False,
            "estimated_hz": None,
            "deviation_pct": None,
            "jitter_ms": None,
            "error": "Need at least 2 samples spanning a positive duration"
        }

    deviation_pct = abs(estimated - expected_hz) / expected_hz * 100.0
    intervals = np.diff(_times_seconds(samples, time_unit))
    jitter_ms = float(np.std(intervals)) * 1000.0

    return {
        "valid": bool(deviation_pct <= tolerance_pct),
        "estimated_hz": round(float(estimated), 2),
        "deviation_pct": round(float(deviation_pct), 2),
        "jitter_ms": round(jitter_ms, 3)
    }
