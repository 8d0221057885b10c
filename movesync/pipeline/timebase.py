from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from ..config.constants import (
    TIME_SCAN_ROWS,
    TIME_SCALE_EXPONENTS,
    TIME_DT_MIN_S,
    TIME_DT_MAX_S,
    TIME_RATE_MIN_HZ,
    TIME_RATE_MAX_HZ,
    TIME_FALLBACK_DT_S,
)

logger = logging.getLogger(__name__)

__all__ = [
    "TimeBaseInfo",
    "detect_time_scale",
    "normalize_time_values",
    "normalize_time_column",
]


@dataclass
class TimeBaseInfo:
    """Outcome of rewriting a timestamp column to zero-based seconds.

    t0: Rebased origin (0.0), or None when the column was left untouched.
    max_t: Largest rebased value in seconds.
    raw_origin: First finite raw timestamp (None if there was none).
    raw_span: Largest rebased value in raw units.
    scale: Multiplier from raw units to seconds.
    """
    t0: Optional[float]
    max_t: float
    raw_origin: Optional[float]
    raw_span: float
    scale: float

    @property
    def applied(self) -> bool:
        return self.t0 is not None


def _scan(values: np.ndarray):
    """Median positive delta (first rows only), first/last finite value, finite count."""
    finite = np.isfinite(values)
    valid_count = int(finite.sum())
    if valid_count < 2:
        return None
    idx = np.flatnonzero(finite)
    vals = values[idx]
    d = np.diff(vals)
    # a delta counts only when its later row falls in the scan window
    d = d[(idx[1:] <= TIME_SCAN_ROWS) & (d > 0)]
    if d.size == 0:
        return None
    d = np.sort(d)
    median_dt = float(d[d.size // 2])
    return median_dt, float(vals[0]), float(vals[-1]), valid_count


def detect_time_scale(values) -> float:
    """Power-of-ten factor mapping raw timestamps to seconds.

    Candidates run from 1e-9 up to 1e3; the first one whose median step lands in
    [0.5 ms, 2 s] and whose implied rate lands in [1, 500] Hz wins. When none
    fits, the scale forces the median step to 10 ms. Unusable input gives 1.0.
    """
    v = pd.to_numeric(pd.Series(values, dtype=object), errors="coerce").to_numpy(dtype=float)
    stats = _scan(v)
    if stats is None:
        return 1.0
    median_dt, first, last, valid_count = stats
    raw_span = last - first
    if raw_span <= 0:
        return 1.0
    for exp in TIME_SCALE_EXPONENTS:
        scale = 10.0 ** (-exp)
        dt_s = median_dt * scale
        if dt_s < TIME_DT_MIN_S or dt_s > TIME_DT_MAX_S:
            continue
        dur_s = raw_span * scale
        if dur_s <= 0:
            continue
        rate = valid_count / dur_s
        if TIME_RATE_MIN_HZ <= rate <= TIME_RATE_MAX_HZ:
            return scale
    logger.debug("no power-of-ten time scale fits (median dt %.6g); assuming 100 Hz", median_dt)
    return TIME_FALLBACK_DT_S / median_dt


def normalize_time_values(values) -> tuple[np.ndarray, TimeBaseInfo]:
    """Return (seconds, info); non-finite entries stay non-finite."""
    v = pd.to_numeric(pd.Series(values, dtype=object), errors="coerce").to_numpy(dtype=float)
    stats = _scan(v)
    if stats is None or stats[2] - stats[1] <= 0:
        return v, TimeBaseInfo(t0=None, max_t=0.0, raw_origin=None, raw_span=0.0, scale=1.0)
    scale = detect_time_scale(v)
    origin = stats[1]
    rebased = v - origin
    out = rebased * scale
    finite = np.isfinite(out)
    info = TimeBaseInfo(
        t0=0.0,
        max_t=float(max(0.0, out[finite].max())),
        raw_origin=origin,
        raw_span=float(max(0.0, rebased[finite].max())),
        scale=float(scale),
    )
    return out, info


def normalize_time_column(frame: pd.DataFrame, col: str) -> TimeBaseInfo:
    """Rewrite frame[col] in place to zero-based seconds."""
    if frame.empty or col not in frame.columns:
        return TimeBaseInfo(t0=None, max_t=0.0, raw_origin=None, raw_span=0.0, scale=1.0)
    seconds, info = normalize_time_values(frame[col].to_numpy())
    if info.applied:
        frame[col] = seconds
        logger.debug("time column %r rescaled by %g (span %.3f s)", col, info.scale, info.max_t)
    return info
