"""
Fusion pipeline for velofuse.

Wires raw accelerometer samples through gravity estimation, horizontal
projection and the scalar Kalman filter, and merges external velocity
references into the same filter.

Events from the two sources are applied strictly in arrival order, since
predict and update do not commute. Producers may push from any thread;
the fusion step itself runs on whichever thread calls ``drain``.

Usage:
    pipeline = FusionPipeline(FusionConfig())
    pipeline.subscribe(lambda s: print(s.t, s.v))

    # Direct, single-threaded:
    pipeline.on_sample(TimedSample(t, ax, ay, az))
    pipeline.on_observation(VelocityObservation(t, gps_speed))

    # Or queued from sensor callbacks, applied later:
    pipeline.push_sample(sample)
    pipeline.push_observation(obs)
    pipeline.drain()

    records = pipeline.export_records()
"""

import logging
import math
import threading
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence, Union

import numpy as np

from .buffer import SlidingWindowBuffer
from .config import FusionConfig
from .errors import InvalidSampleError
from .gravity import GravityEstimator, project_horizontal
from .kalman import ScalarKalmanFilter
from .models import (
    ExportRecord,
    FusedVelocitySample,
    ResultantSample,
    TimedSample,
    VelocityObservation,
    resultant,
)

logger = logging.getLogger(__name__)

Event = Union[TimedSample, VelocityObservation]
Listener = Callable[[FusedVelocitySample], None]


class EventQueue:
    """Thread-safe FIFO that serializes both event sources in arrival order."""

    def __init__(self):
        self.lock = threading.Lock()
        self._events: Deque[Event] = deque()

    def __len__(self) -> int:
        with self.lock:
            return len(self._events)

    def put(self, event: Event) -> None:
        with self.lock:
            self._events.append(event)

    def take_all(self) -> List[Event]:
        """Remove and return every queued event, oldest first."""
        with self.lock:
            events = list(self._events)
            self._events.clear()
        return events

    def clear(self) -> None:
        with self.lock:
            self._events.clear()


def merge_by_timestamp(
    samples: Sequence[TimedSample],
    fused: Sequence[FusedVelocitySample]
) -> List[ExportRecord]:
    """
    Associate each raw sample with a fused velocity for export.

    Each sample takes the first fused sample whose timestamp is >= its own.
    This can pick a velocity stamped after the acceleration sample.
    Samples with no such fused sample get NaN.

    Args:
        samples: Raw samples in buffer order
        fused: Fused velocity stream, normally non-decreasing in t

    Returns:
        One ExportRecord per raw sample, same order
    """
    if not samples:
        return []

    ts = np.array([s.t for s in samples], dtype=float)
    fused_t = np.array([f.t for f in fused], dtype=float)
    fused_v = np.array([f.v for f in fused], dtype=float)

    if fused_t.size == 0:
        velocities = np.full(ts.shape, np.nan)
    elif np.all(np.diff(fused_t) >= 0):
        idx = np.searchsorted(fused_t, ts, side="left")
        found = idx < fused_t.size
        velocities = np.full(ts.shape, np.nan)
        velocities[found] = fused_v[idx[found]]
    else:
        # Out-of-order stream: first match in stream order, one sample at a time
        velocities = np.full(ts.shape, np.nan)
        for i, t in enumerate(ts):
            match = fused_t >= t
            if match.any():
                velocities[i] = fused_v[match.argmax()]

    return [
        ExportRecord(s.t, s.x, s.y, s.z, float(v))
        for s, v in zip(samples, velocities)
    ]


def _check_timestamp(event: Event) -> None:
    if not isinstance(event.t, (int, float)) or not math.isfinite(event.t):
        raise InvalidSampleError(f"non-finite timestamp {event.t!r}")


class FusionPipeline:
    """
    One fusion session: owns its gravity estimator, filter and buffers.

    Every accepted acceleration sample runs predict, and every present
    velocity reference runs update. Each of these emits a
    FusedVelocitySample to the listeners and to the fused history.
    Invalid events are logged, counted in ``rejected`` and skipped.
    """

    def __init__(
        self,
        config: Optional[FusionConfig] = None,
        listeners: Optional[Sequence[Listener]] = None
    ):
        self.config = (config or FusionConfig()).validate()

        self.gravity = GravityEstimator(
            alpha=self.config.alpha,
            initial=self.config.initial_gravity
        )
        self.kalman = ScalarKalmanFilter(
            dt=self.config.dt,
            R=self.config.measurement_variance,
            Q=self.config.process_variance
        )

        horizon = self.config.window_ticks
        self.samples: SlidingWindowBuffer[TimedSample] = SlidingWindowBuffer(horizon)
        self.fused: SlidingWindowBuffer[FusedVelocitySample] = SlidingWindowBuffer(horizon)

        self._queue = EventQueue()
        self._listeners: List[Listener] = list(listeners or [])

        self.accepting = True
        self.rejected = 0
        self._last_event_t: Optional[float] = None
        self._last_emit_t: Optional[float] = None

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> None:
        """Register a callable receiving every emitted fused sample."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Event application
    # ------------------------------------------------------------------

    def on_sample(self, sample: TimedSample) -> Optional[FusedVelocitySample]:
        """
        Apply one raw acceleration sample.

        gravity update -> horizontal projection -> predict(|a_h|)

        Returns:
            The emitted fused sample, or None if the sample was rejected
        """
        if not self.accepting:
            logger.debug("Pipeline stopped, ignoring sample at t=%s", sample.t)
            return None

        raw = sample.vector
        try:
            _check_timestamp(sample)
            g = self.gravity.update(raw)
            a_h = project_horizontal(raw, g).norm()
            self.kalman.predict(a_h)
        except InvalidSampleError as e:
            self._reject(sample, e)
            return None

        self.samples.push(sample)
        return self._emit(sample.t)

    def on_observation(self, obs: VelocityObservation) -> Optional[FusedVelocitySample]:
        """
        Apply one external velocity reference.

        Returns:
            The emitted fused sample, or None if the observation was absent
            or rejected
        """
        if not self.accepting:
            logger.debug("Pipeline stopped, ignoring observation at t=%s", obs.t)
            return None

        try:
            _check_timestamp(obs)
            if obs.v is None:
                logger.debug("No velocity reference at t=%s, skipping update", obs.t)
                return None
            self.kalman.update(obs.v)
        except InvalidSampleError as e:
            self._reject(obs, e)
            return None

        return self._emit(obs.t)

    def apply(self, event: Event) -> Optional[FusedVelocitySample]:
        """Dispatch an event to on_sample or on_observation."""
        if isinstance(event, TimedSample):
            return self.on_sample(event)
        if isinstance(event, VelocityObservation):
            return self.on_observation(event)
        raise TypeError(f"unsupported event type {type(event).__name__}")

    def _reject(self, event: Event, error: Exception) -> None:
        self.rejected += 1
        logger.warning("Rejected %s at t=%s: %s", type(event).__name__, event.t, error)

    def _emit(self, t: float) -> FusedVelocitySample:
        # Keep the fused stream non-decreasing even for late-stamped events
        if self._last_emit_t is not None and t < self._last_emit_t:
            t = self._last_emit_t
        self._last_emit_t = t
        self._last_event_t = t

        out = FusedVelocitySample(t, self.kalman.velocity)
        self.fused.push(out)
        for listener in self._listeners:
            listener(out)
        return out

    # ------------------------------------------------------------------
    # Queued (multi-producer) interface
    # ------------------------------------------------------------------

    def push_sample(self, sample: TimedSample) -> None:
        """Queue a raw sample. Safe to call from any thread."""
        self._push(sample)

    def push_observation(self, obs: VelocityObservation) -> None:
        """Queue a velocity reference. Safe to call from any thread."""
        self._push(obs)

    def _push(self, event: Event) -> None:
        if not isinstance(event, (TimedSample, VelocityObservation)):
            raise TypeError(f"unsupported event type {type(event).__name__}")
        if not self.accepting:
            logger.debug("Pipeline stopped, dropping queued %s", type(event).__name__)
            return
        self._queue.put(event)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def drain(self) -> List[FusedVelocitySample]:
        """
        Apply every queued event in arrival order.

        Returns:
            Fused samples emitted while draining
        """
        emitted = []
        for event in self._queue.take_all():
            out = self.apply(event)
            if out is not None:
                emitted.append(out)
        return emitted

    # ------------------------------------------------------------------
    # Display / export
    # ------------------------------------------------------------------

    @property
    def velocity(self) -> float:
        return self.kalman.velocity

    def tick(self, now: Optional[float] = None) -> Optional[ResultantSample]:
        """
        Batch tick: evict samples outside the window and report the newest.

        Args:
            now: Current time in the pipeline's unit. Defaults to the
                 timestamp of the last applied event.

        Returns:
            Resultant of the newest buffered raw sample, or None if empty
        """
        if now is None:
            now = self._last_event_t
        if now is not None:
            self.samples.prune(now)
            self.fused.prune(now)
        latest = self.samples.latest()
        return resultant(latest) if latest is not None else None

    def export_records(self) -> List[ExportRecord]:
        """Buffered raw samples joined with the fused velocity stream."""
        return merge_by_timestamp(self.samples.snapshot(), self.fused.snapshot())

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Stop accepting events and discard all buffered state."""
        self.accepting = False
        self._queue.clear()
        self.samples.clear()
        self.fused.clear()

    def reset(self) -> None:
        """Discard all state and start a fresh session with the same config."""
        self.stop()
        self.gravity.reset()
        self.kalman.reset()
        self.rejected = 0
        self._last_event_t = None
        self._last_emit_t = None
        self.accepting = True
