"""Configuration for the velofuse pipeline."""

import math
import numbers
import os
from dataclasses import dataclass, field, replace
from typing import Tuple

from .errors import ConfigurationError

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_ALPHA = 0.98
DEFAULT_DT = 0.016             # seconds (~60 Hz)
DEFAULT_R = 1.0                # velocity reference variance
DEFAULT_Q = 0.1                # integration drift per step
DEFAULT_WINDOW_MS = 5000.0
DEFAULT_TIME_UNIT = "ms"

TICKS_PER_SECOND = {"ms": 1000.0, "us": 1_000_000.0}

ENV_PREFIX = "VELOFUSE_"


def _require_finite(name: str, value: float) -> None:
    if not isinstance(value, numbers.Real) or isinstance(value, bool) or not math.isfinite(value):
        raise ConfigurationError(f"{name} must be a finite number, got {value!r}")


def require_positive(name: str, value: float) -> None:
    _require_finite(name, value)
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value!r}")


def require_non_negative(name: str, value: float) -> None:
    _require_finite(name, value)
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value!r}")


def require_unit_interval(name: str, value: float) -> None:
    _require_finite(name, value)
    if not 0.0 < value < 1.0:
        raise ConfigurationError(f"{name} must be in (0, 1), got {value!r}")


@dataclass
class FusionConfig:
    """
    Tuning parameters for one fusion session.

    Attributes:
        alpha: Gravity smoothing factor. Higher = slower adaptation.
        dt: Integration step in seconds applied on every predict.
        measurement_variance: R - variance of the velocity reference.
        process_variance: Q - variance added per predict step.
        window_ms: Sliding window kept for display/export (milliseconds).
        time_unit: "ms" or "us", unit of every timestamp fed to the pipeline.
        initial_gravity: Starting gravity direction (normalized on use).
    """
    alpha: float = DEFAULT_ALPHA
    dt: float = DEFAULT_DT
    measurement_variance: float = DEFAULT_R
    process_variance: float = DEFAULT_Q
    window_ms: float = DEFAULT_WINDOW_MS
    time_unit: str = DEFAULT_TIME_UNIT
    initial_gravity: Tuple[float, float, float] = field(default=(0.0, 0.0, 1.0))

    def validate(self) -> "FusionConfig":
        require_unit_interval("alpha", self.alpha)
        require_positive("dt", self.dt)
        require_non_negative("measurement_variance", self.measurement_variance)
        require_non_negative("process_variance", self.process_variance)
        require_positive("window_ms", self.window_ms)
        if self.time_unit not in TICKS_PER_SECOND:
            raise ConfigurationError(
                f"time_unit must be one of {sorted(TICKS_PER_SECOND)}, got {self.time_unit!r}"
            )
        if len(self.initial_gravity) != 3:
            raise ConfigurationError("initial_gravity must have three components")
        for c in self.initial_gravity:
            _require_finite("initial_gravity", c)
        if not any(self.initial_gravity):
            raise ConfigurationError("initial_gravity must be non-zero")
        return self

    @property
    def ticks_per_second(self) -> float:
        return TICKS_PER_SECOND[self.time_unit]

    @property
    def window_ticks(self) -> float:
        """Sliding window length expressed in the pipeline's time unit."""
        return self.window_ms * self.ticks_per_second / 1000.0

    def with_overrides(self, **overrides) -> "FusionConfig":
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, **overrides) -> "FusionConfig":
        """
        Build a config from VELOFUSE_* environment variables.

        Explicit keyword overrides (when not None) take precedence.
        """
        def _env_float(name: str, default: float) -> float:
            raw = os.getenv(ENV_PREFIX + name, "").strip()
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError:
                raise ConfigurationError(f"{ENV_PREFIX}{name} is not a number: {raw!r}") from None

        config = cls(
            alpha=_env_float("ALPHA", DEFAULT_ALPHA),
            dt=_env_float("DT", DEFAULT_DT),
            measurement_variance=_env_float("R", DEFAULT_R),
            process_variance=_env_float("Q", DEFAULT_Q),
            window_ms=_env_float("WINDOW_MS", DEFAULT_WINDOW_MS),
            time_unit=os.getenv(ENV_PREFIX + "TIME_UNIT", DEFAULT_TIME_UNIT).strip().lower() or DEFAULT_TIME_UNIT,
        )
        return config.with_overrides(**overrides).validate()
