"""
Export formatting for fused sessions.

Produces the session CSV: ISO-8601 UTC timestamps and values rounded to
3 decimals. Rounding is half away from zero on the exact binary value,
the same as JavaScript ``Number.prototype.toFixed``, so files stay
byte-compatible with exports produced by browser clients.
"""

import math
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Context, Decimal
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd

from .config import TICKS_PER_SECOND
from .models import ExportRecord

CSV_COLUMNS = ["timestamp", "x", "y", "z", "resultant", "velocity"]
ROUND_DIGITS = 3

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Enough precision for any double below 1e21 with 3 decimals
_WIDE = Context(prec=400)

# toFixed falls back to exponent notation from here on
_EXPONENT_THRESHOLD = 1e21


def to_fixed(value: float, digits: int = ROUND_DIGITS) -> str:
    """Format a float with a fixed number of decimals (JS toFixed semantics)."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        value = 0.0  # no "-0.000"
    if abs(value) >= _EXPONENT_THRESHOLD:
        return ("-" if value < 0 else "") + repr(abs(value))
    quantum = Decimal(1).scaleb(-digits)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP, context=_WIDE))


def iso_timestamp(t: float, time_unit: str = "ms") -> str:
    """
    Convert a pipeline timestamp to ISO-8601 UTC with millisecond precision.

    Sub-millisecond parts are truncated toward zero.
    """
    ms = int(t * 1000.0 / TICKS_PER_SECOND[time_unit])
    dt = _EPOCH + timedelta(milliseconds=ms)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def format_row(record: ExportRecord, time_unit: str = "ms") -> str:
    return ",".join([
        iso_timestamp(record.t, time_unit),
        to_fixed(record.x),
        to_fixed(record.y),
        to_fixed(record.z),
        to_fixed(record.resultant),
        to_fixed(record.v),
    ])


def format_csv(records: Iterable[ExportRecord], time_unit: str = "ms") -> str:
    """Render records as CSV text (header included, no trailing newline)."""
    header = ",".join(CSV_COLUMNS)
    rows = [format_row(r, time_unit) for r in records]
    return header + "\n" + "\n".join(rows)


def write_csv(
    records: Iterable[ExportRecord],
    path: Union[str, Path],
    time_unit: str = "ms"
) -> Path:
    """Write the session CSV to ``path`` and return it."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(format_csv(records, time_unit))
    return path


def records_to_dataframe(records: List[ExportRecord], time_unit: str = "ms") -> pd.DataFrame:
    """
    Numeric view of the export for analysis.

    Columns match the CSV; ``timestamp`` is a tz-aware pandas datetime and
    the other columns are unrounded floats.
    """
    df = pd.DataFrame(
        {
            "t": [r.t for r in records],
            "x": [r.x for r in records],
            "y": [r.y for r in records],
            "z": [r.z for r in records],
            "resultant": [r.resultant for r in records],
            "velocity": [r.v for r in records],
        },
        dtype=float,
    )
    df.insert(0, "timestamp", pd.to_datetime(df.pop("t"), unit=time_unit, utc=True))
    return df
