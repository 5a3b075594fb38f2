"""
Replay a recorded session through the fusion pipeline.

Reads an accelerometer CSV and an optional velocity-reference CSV,
interleaves them by timestamp, runs the fusion pipeline and writes the
session export CSV (timestamp,x,y,z,resultant,velocity).

Usage:
    python -m velofuse.replay --accel accel.csv --out fused.csv
    python -m velofuse.replay --accel accel.csv --velocity gps.csv --out fused.csv --dt auto

Input columns (alternative names accepted, see *_NAMES below):
    accel:    t, x, y, z        (t in ms unless --time-unit us)
    velocity: t, v              (empty v = no reference at that time)
"""

import argparse
import logging
import math
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import FusionConfig
from .errors import ConfigurationError
from .export import records_to_dataframe, write_csv
from .models import TimedSample, VelocityObservation
from .pipeline import Event, FusionPipeline
from .timing import dt_from_samples, validate_sample_rate

# =============================================================================
# Column Name Mappings
# =============================================================================

TIME_NAMES = ['t', 'timestamp', 'time', 'time_ms', 't_ms', 'time_us']
ACCEL_X_NAMES = ['x', 'ax', 'acc_x', 'accel_x']
ACCEL_Y_NAMES = ['y', 'ay', 'acc_y', 'accel_y']
ACCEL_Z_NAMES = ['z', 'az', 'acc_z', 'accel_z']
VELOCITY_NAMES = ['v', 'speed', 'velocity', 'gps_speed']


class InputFileError(Exception):
    """Raised when a recording cannot be read or lacks required columns."""


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def find_column(df: pd.DataFrame, possible_names: Sequence[str]) -> Optional[str]:
    """Find a column by checking multiple possible names."""
    for name in possible_names:
        if name in df.columns:
            return name
    return None


def _read_csv(path: Path) -> pd.DataFrame:
    try:
        return pd.read_csv(path)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise InputFileError(f"cannot read {path}: {e}") from e


def _require_columns(df: pd.DataFrame, path: Path, **groups: Sequence[str]) -> dict:
    cols = {key: find_column(df, names) for key, names in groups.items()}
    missing = [key for key, col in cols.items() if col is None]
    if missing:
        raise InputFileError(
            f"{path.name}: missing column(s) {missing}; available: {list(df.columns)}"
        )
    return cols


def load_accel_csv(path: Path) -> List[TimedSample]:
    """Load raw accelerometer samples; rows with missing values are kept as NaN."""
    df = _read_csv(path)
    cols = _require_columns(
        df, path, t=TIME_NAMES, x=ACCEL_X_NAMES, y=ACCEL_Y_NAMES, z=ACCEL_Z_NAMES
    )
    try:
        t = df[cols['t']].to_numpy(dtype=float)
        xyz = df[[cols['x'], cols['y'], cols['z']]].to_numpy(dtype=float)
    except ValueError as e:
        raise InputFileError(f"{path.name}: non-numeric value: {e}") from e
    return [TimedSample(float(ti), *map(float, row)) for ti, row in zip(t, xyz)]


def load_velocity_csv(path: Path) -> List[VelocityObservation]:
    """Load velocity references; an empty value means no reference."""
    df = _read_csv(path)
    cols = _require_columns(df, path, t=TIME_NAMES, v=VELOCITY_NAMES)
    try:
        t = df[cols['t']].to_numpy(dtype=float)
        v = df[cols['v']].to_numpy(dtype=float)
    except ValueError as e:
        raise InputFileError(f"{path.name}: non-numeric value: {e}") from e
    return [
        VelocityObservation(float(ti), None if np.isnan(vi) else float(vi))
        for ti, vi in zip(t, v)
    ]


def interleave(
    samples: Sequence[TimedSample],
    observations: Sequence[VelocityObservation]
) -> List[Event]:
    """
    Order both recordings into a single arrival sequence.

    Stable by timestamp; on equal timestamps acceleration comes first.
    Events with a non-finite timestamp go last, in input order, so the
    pipeline can reject them without disturbing the others.
    """
    def key(t: float, kind: int, i: int) -> Tuple[int, float, int, int]:
        if math.isfinite(t):
            return (0, t, kind, i)
        return (1, 0.0, kind, i)

    keyed: List[Tuple[Tuple[int, float, int, int], Event]] = []
    keyed.extend((key(s.t, 0, i), s) for i, s in enumerate(samples))
    keyed.extend((key(o.t, 1, i), o) for i, o in enumerate(observations))
    keyed.sort(key=lambda k: k[0])
    return [k[1] for k in keyed]


def replay(
    samples: Sequence[TimedSample],
    observations: Sequence[VelocityObservation],
    config: FusionConfig
) -> FusionPipeline:
    """Run a full recording through a fresh pipeline and return it."""
    pipeline = FusionPipeline(config)
    for event in interleave(samples, observations):
        pipeline.apply(event)
    return pipeline


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="velofuse.replay",
        description="Fuse a recorded accelerometer/velocity session and export CSV"
    )
    parser.add_argument('--accel', required=True, type=Path, help="Accelerometer CSV (t,x,y,z)")
    parser.add_argument('--velocity', type=Path, default=None, help="Velocity reference CSV (t,v)")
    parser.add_argument('--out', required=True, type=Path, help="Output export CSV")
    parser.add_argument('--dt', default=None,
                        help="Integration step in seconds, or 'auto' to derive from timestamps")
    parser.add_argument('--alpha', type=float, default=None, help="Gravity smoothing factor")
    parser.add_argument('--R', dest='measurement_variance', type=float, default=None,
                        help="Velocity reference variance")
    parser.add_argument('--Q', dest='process_variance', type=float, default=None,
                        help="Process variance per step")
    parser.add_argument('--time-unit', dest='time_unit', choices=['ms', 'us'], default=None)
    parser.add_argument('--expected-hz', dest='expected_hz', type=float, default=None,
                        help="Warn if the accelerometer rate deviates from this")
    parser.add_argument('-v', '--verbose', action='store_true')
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        samples = load_accel_csv(args.accel)
        observations = load_velocity_csv(args.velocity) if args.velocity else []
    except InputFileError as e:
        print(f"[Replay] {e}")
        return 2

    print(f"[Replay] Loaded {len(samples)} accel samples, {len(observations)} velocity references")

    try:
        config = FusionConfig.from_env(
            alpha=args.alpha,
            measurement_variance=args.measurement_variance,
            process_variance=args.process_variance,
            time_unit=args.time_unit,
        )
        if args.dt is not None:
            if args.dt == 'auto':
                dt = dt_from_samples(samples, config.time_unit)
                if dt is None:
                    raise ConfigurationError("cannot derive dt: need 2+ samples spanning time")
                print(f"[Replay] Derived dt = {dt:.6f} s")
            else:
                try:
                    dt = float(args.dt)
                except ValueError:
                    raise ConfigurationError(f"--dt must be a number or 'auto', got {args.dt!r}") from None
            config = config.with_overrides(dt=dt).validate()
    except ConfigurationError as e:
        print(f"[Replay] Invalid configuration: {e}")
        return 2

    if args.expected_hz:
        check = validate_sample_rate(samples, args.expected_hz, time_unit=config.time_unit)
        if not check["valid"]:
            logging.warning("Sample rate check failed: %s", check)

    pipeline = replay(samples, observations, config)
    records = pipeline.export_records()
    out = write_csv(records, args.out, time_unit=config.time_unit)

    df = records_to_dataframe(records, config.time_unit)
    if pipeline.rejected:
        print(f"[Replay] Rejected {pipeline.rejected} invalid events")
    if len(df):
        print(f"[Replay] Final velocity: {pipeline.velocity:.3f} m/s, "
              f"mean {df['velocity'].mean():.3f} m/s, peak {df['velocity'].max():.3f} m/s")
    print(f"[Replay] Wrote {len(records)} rows to {out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
