"""
Gravity separation for velofuse.

Tracks the direction of gravity from the raw accelerometer stream and
removes it to obtain the motion-only (horizontal) acceleration, which is
what gets integrated into velocity.

Without a gyroscope there is no orientation estimate, so gravity is
recovered with an exponential moving average: gravity is the slowly
varying part of the raw signal, motion is the fast part.
"""

import logging
import math
from typing import Optional, Sequence

from .config import require_unit_interval
from .errors import ConfigurationError, InvalidSampleError
from .models import Vector3

logger = logging.getLogger(__name__)


class GravityEstimator:
    """
    Recursive estimate of the gravity direction as a unit vector.

    Each raw sample is blended into the estimate per axis and the result
    is renormalized, so the estimate is a unit vector after every update.

    Usage:
        estimator = GravityEstimator(alpha=0.98)
        g = estimator.update(Vector3(ax, ay, az))

    Failure policy:
        - Non-finite input raises InvalidSampleError; the estimate is untouched.
        - A finite input that drives the smoothed norm to zero (or overflows it)
          is ignored: the previous estimate is held and returned.
    """

    def __init__(
        self,
        alpha: float = 0.98,
        initial: Optional[Sequence[float]] = None
    ):
        """
        Args:
            alpha: Smoothing factor in (0, 1).
                   Higher = slower adaptation, more robust to transient motion.
                   Lower = faster tracking of orientation changes.
            initial: Starting direction (any non-zero finite vector),
                     defaults to +Z.
        """
        require_unit_interval("alpha", alpha)
        self.alpha = alpha

        initial_vec = Vector3(*(initial if initial is not None else (0.0, 0.0, 1.0)))
        norm = initial_vec.norm()
        if not initial_vec.is_finite() or norm == 0.0 or not math.isfinite(norm):
            raise ConfigurationError(f"initial gravity must be finite and non-zero, got {initial_vec}")
        self._initial = Vector3(initial_vec.x / norm, initial_vec.y / norm, initial_vec.z / norm)
        self._estimate = self._initial

        # Diagnostics
        self.updates = 0
        self.holds = 0

    @property
    def gravity(self) -> Vector3:
        """Current unit gravity estimate."""
        return self._estimate

    def update(self, raw: Vector3) -> Vector3:
        """
        Blend a raw accelerometer reading into the gravity estimate.

        Args:
            raw: Raw acceleration including gravity (m/s²)

        Returns:
            Updated unit gravity vector
        """
        if not raw.is_finite():
            raise InvalidSampleError(f"non-finite acceleration {raw}")

        a = self.alpha
        g = self._estimate
        smoothed = Vector3(
            a * g.x + (1 - a) * raw.x,
            a * g.y + (1 - a) * raw.y,
            a * g.z + (1 - a) * raw.z,
        )

        norm = smoothed.norm()
        if norm == 0.0 or not math.isfinite(norm):
            self.holds += 1
            logger.warning("Gravity estimate degenerate (norm=%r), holding previous %s", norm, g)
            return g

        self._estimate = Vector3(smoothed.x / norm, smoothed.y / norm, smoothed.z / norm)
        self.updates += 1
        return self._estimate

    def reset(self) -> None:
        """Restore the initial direction."""
        self._estimate = self._initial
        self.updates = 0
        self.holds = 0


def project_horizontal(raw: Vector3, gravity: Vector3) -> Vector3:
    """
    Remove the gravity component from a raw reading.

    Computes the vector rejection of ``raw`` from ``gravity``: the part of
    the acceleration orthogonal to gravity. ``gravity`` must be a unit
    vector (as maintained by GravityEstimator); otherwise the result is
    not orthogonal.

    Args:
        raw: Raw acceleration (m/s²)
        gravity: Unit gravity direction

    Returns:
        Horizontal (motion-only) acceleration
    """
    if not raw.is_finite() or not gravity.is_finite():
        raise InvalidSampleError(f"non-finite projection input raw={raw} gravity={gravity}")
    dot = raw.dot(gravity)
    return raw - gravity.scale(dot)


def horizontal_magnitude(raw: Vector3, gravity: Vector3) -> float:
    """Magnitude of the horizontal acceleration (m/s²)."""
    return project_horizontal(raw, gravity).norm()
