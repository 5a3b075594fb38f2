"""
velofuse - Velocity Sensor Fusion

Fuses high-rate accelerometer samples with sparse velocity references
(GPS speed) into one smoothed speed estimate:
- GravityEstimator: Tracks the gravity direction from raw acceleration
- project_horizontal: Removes gravity to get motion-only acceleration
- ScalarKalmanFilter: Integrates acceleration (predict), corrects with references (update)
- FusionPipeline: Orders events, runs the chain, buffers and merges for export

Usage:
    from velofuse import FusionConfig, FusionPipeline, TimedSample, VelocityObservation, write_csv

    pipeline = FusionPipeline(FusionConfig(dt=0.02))

    # In sensor callbacks:
    pipeline.on_sample(TimedSample(t_ms, ax, ay, az))
    pipeline.on_observation(VelocityObservation(t_ms, gps_speed))

    # On the display timer:
    latest = pipeline.tick()

    # On export:
    write_csv(pipeline.export_records(), "session.csv")
"""

__version__ = "0.1.0"

from .models import (
    Vector3,
    TimedSample,
    VelocityObservation,
    FusedVelocitySample,
    ResultantSample,
    ExportRecord,
    resultant,
)
from .errors import FusionError, ConfigurationError, InvalidSampleError
from .config import FusionConfig
from .gravity import GravityEstimator, project_horizontal, horizontal_magnitude
from .kalman import ScalarKalmanFilter, kalman_gain
from .buffer import SlidingWindowBuffer
from .pipeline import EventQueue, FusionPipeline, merge_by_timestamp
from .export import format_csv, write_csv, records_to_dataframe, iso_timestamp, to_fixed
from .timing import estimate_sample_rate, validate_sample_rate, dt_from_samples

__all__ = [
    # Data model
    'Vector3',
    'TimedSample',
    'VelocityObservation',
    'FusedVelocitySample',
    'ResultantSample',
    'ExportRecord',
    'resultant',

    # Errors / config
    'FusionError',
    'ConfigurationError',
    'InvalidSampleError',
    'FusionConfig',

    # Estimation
    'GravityEstimator',
    'project_horizontal',
    'horizontal_magnitude',
    'ScalarKalmanFilter',
    'kalman_gain',

    # Pipeline
    'SlidingWindowBuffer',
    'EventQueue',
    'FusionPipeline',
    'merge_by_timestamp',

    # Export / timing
    'format_csv',
    'write_csv',
    'records_to_dataframe',
    'iso_timestamp',
    'to_fixed',
    'estimate_sample_rate',
    'validate_sample_rate',
    'dt_from_samples',
]
