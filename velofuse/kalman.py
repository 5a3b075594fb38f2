"""
Scalar Kalman filter for velocity fusion.

Predicts velocity by integrating acceleration and corrects it against an
independent velocity reference (GPS speed). The two calls interleave in
arrival order and need not alternate.
"""

import math
from typing import Optional, Tuple

from .config import require_non_negative, require_positive
from .errors import ConfigurationError, InvalidSampleError


def kalman_gain(p: float, r: float) -> float:
    """
    Gain K = P / (P + R).

    For P, R >= 0 the gain lies in [0, 1]. When both are zero the state is
    already certain and K = 0 keeps it.
    """
    s = p + r
    if s == 0.0:
        return 0.0
    return p / s


class ScalarKalmanFilter:
    """
    1D Kalman filter over velocity.

    State: v (estimated velocity, m/s) and P (estimation variance).

    Usage:
        kf = ScalarKalmanFilter(dt=0.016, R=1.0, Q=0.1)
        kf.predict(a)      # on every acceleration sample
        kf.update(z)       # whenever a velocity reference arrives
        v = kf.velocity
    """

    def __init__(
        self,
        dt: float = 0.016,
        R: float = 1.0,
        Q: float = 0.1,
        initial_velocity: float = 0.0,
        initial_variance: float = 1.0
    ):
        """
        Args:
            dt: Time step in seconds applied on every predict. Must be > 0.
            R: Measurement variance of the velocity reference.
               Higher = trust the reference less.
            Q: Process variance added per predict, models integration drift.
               Higher = trust the reference more, respond faster.
            initial_velocity: Starting estimate (m/s).
            initial_variance: Starting variance P.

        Raises:
            ConfigurationError: on non-positive dt or negative/non-finite R, Q, P.
        """
        require_positive("dt", dt)
        require_non_negative("R", R)
        require_non_negative("Q", Q)
        require_non_negative("initial_variance", initial_variance)
        if not math.isfinite(initial_velocity):
            raise ConfigurationError(f"initial_velocity must be finite, got {initial_velocity!r}")

        self.dt = dt
        self.r = R
        self.q = Q
        self._initial = (initial_velocity, initial_variance)

        self.v = initial_velocity   # State estimate
        self.p = initial_variance   # Error variance

        # For diagnostics
        self.k = 0.0  # Last Kalman gain

    @property
    def velocity(self) -> float:
        """Current velocity estimate (m/s)."""
        return self.v

    def predict(self, a: float) -> None:
        """
        Propagate the state by one step of forward Euler integration.

        Args:
            a: Acceleration magnitude or signed component (m/s²)
        """
        if not math.isfinite(a):
            raise InvalidSampleError(f"non-finite acceleration {a!r}")
        self.v += a * self.dt
        self.p += self.q

    def update(self, z: float) -> None:
        """
        Correct the state against a velocity observation.

        Args:
            z: Observed velocity (m/s)
        """
        if not math.isfinite(z):
            raise InvalidSampleError(f"non-finite velocity observation {z!r}")
        self.k = kalman_gain(self.p, self.r)
        self.v = self.v + self.k * (z - self.v)
        self.p = (1 - self.k) * self.p

    def reset(self, value: Optional[float] = None, error: Optional[float] = None) -> None:
        """Reset filter to a known state (defaults to the initial one)."""
        v0, p0 = self._initial
        self.v = v0 if value is None else value
        self.p = p0 if error is None else error
        self.k = 0.0

    def get_state(self) -> Tuple[float, float, float]:
        """
        Get current filter state.

        Returns:
            Tuple of (velocity, variance, last_kalman_gain)
        """
        return (self.v, self.p, self.k)
