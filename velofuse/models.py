"""
Data models for velofuse.

Plain immutable records passed between the sensor sources, the fusion
pipeline and the export layer. Timestamps are integers or floats in the
unit configured for the pipeline (milliseconds by default).
"""

import math
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Vector3:
    """Three-axis acceleration (m/s²)."""
    x: float
    y: float
    z: float

    def dot(self, other: "Vector3") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def norm(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def scale(self, k: float) -> "Vector3":
        return Vector3(self.x * k, self.y * k, self.z * k)

    def is_finite(self) -> bool:
        return math.isfinite(self.x) and math.isfinite(self.y) and math.isfinite(self.z)

    def __sub__(self, other: "Vector3") -> "Vector3":
        return Vector3(self.x - other.x, self.y - other.y, self.z - other.z)

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z


@dataclass(frozen=True)
class TimedSample:
    """Single raw accelerometer reading."""
    t: float       # timestamp (ms or us, fixed per pipeline)
    x: float       # acceleration x (m/s²)
    y: float       # acceleration y (m/s²)
    z: float       # acceleration z (m/s²)

    @property
    def vector(self) -> Vector3:
        return Vector3(self.x, self.y, self.z)


@dataclass(frozen=True)
class VelocityObservation:
    """External speed reference, e.g. GPS speed. ``v`` is None when absent."""
    t: float
    v: Optional[float]


@dataclass(frozen=True)
class FusedVelocitySample:
    """Filter estimate emitted after every predict or update."""
    t: float
    v: float


@dataclass(frozen=True)
class ResultantSample:
    """Magnitude of a raw reading, used for live display."""
    t: float
    mag: float


@dataclass(frozen=True)
class ExportRecord:
    """Raw sample joined with the associated fused velocity (NaN if none)."""
    t: float
    x: float
    y: float
    z: float
    v: float

    @property
    def resultant(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)


def resultant(sample: TimedSample) -> ResultantSample:
    """Compute the vector magnitude of a raw sample."""
    return ResultantSample(sample.t, sample.vector.norm())
