from __future__ import annotations
import csv
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from ..config.constants import TIME_CANDS, AXIS_CANDIDATES, TIME_SCAN_ROWS
from ..math.filters import estimate_sample_rate_hz
from .errors import InputDataError
from .timebase import TimeBaseInfo, normalize_time_column

logger = logging.getLogger(__name__)

__all__ = [
    "parse_csv",
    "sanitize_cols",
    "find_time_column",
    "find_axis_columns",
    "has_axis_data",
    "extract_axis_data",
    "ImuStream",
    "load_imu_stream",
]


def sanitize_cols(cols):
    sc = []
    for c in cols:
        s = str(c).strip()
        s = re.sub(r"[^0-9A-Za-z]+", "_", s)
        s = re.sub(r"_+", "_", s)
        sc.append(s.strip("_").lower())
    return sc


def parse_csv(text: str) -> pd.DataFrame:
    """Parse comma-separated IMU text into a frame.

    Lines and cells are whitespace-trimmed and blank lines dropped. Quotes get
    no special treatment. Raises InputDataError when there is no header row.
    """
    lines = [ln.strip() for ln in str(text or "").splitlines()]
    lines = [ln for ln in lines if ln]
    if not lines:
        raise InputDataError("Empty CSV payload")
    payload = "\n".join(lines)
    try:
        df = pd.read_csv(
            io.StringIO(payload),
            sep=r"\s*,\s*",
            engine="python",
            quoting=csv.QUOTE_NONE,
            index_col=False,
            on_bad_lines="skip",
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise InputDataError(f"Unparseable CSV: {exc}") from exc
    df.columns = [str(c).strip() for c in df.columns]
    return df


def find_time_column(headers) -> Optional[str]:
    """First header matching a known time name (case-insensitive); else the first column."""
    headers = list(headers)
    if not headers:
        return None
    lower = [str(h).strip().lower() for h in headers]
    for c in TIME_CANDS:
        if c in lower:
            return headers[lower.index(c)]
    return headers[0]


def find_axis_columns(headers, sensor: str) -> dict[str, Optional[str]]:
    """Map x/y/z to the header chosen for a sensor ('acc', 'gyro', 'mag')."""
    headers = list(headers)
    norm = sanitize_cols(headers)
    table = AXIS_CANDIDATES[sensor]
    out: dict[str, Optional[str]] = {}
    for axis in ("x", "y", "z"):
        out[axis] = None
        for c in table[axis]:
            if c in norm:
                out[axis] = headers[norm.index(c)]
                break
    return out


def has_axis_data(headers, sensor: str) -> bool:
    return all(v is not None for v in find_axis_columns(headers, sensor).values())


def extract_axis_data(frame: pd.DataFrame, sensor: str) -> np.ndarray:
    """(N,3) float array for a sensor; blanks and text read as 0."""
    keys = find_axis_columns(frame.columns, sensor)
    missing = [a for a, k in keys.items() if k is None]
    if missing:
        raise InputDataError(f"Missing {sensor} axes: {', '.join(missing)}")
    cols = [
        pd.to_numeric(frame[keys[a]], errors="coerce").fillna(0.0).to_numpy(dtype=float)
        for a in ("x", "y", "z")
    ]
    return np.stack(cols, axis=1)


@dataclass
class ImuStream:
    """One parsed IMU recording with its time column rewritten to seconds."""
    frame: pd.DataFrame
    time_col: Optional[str]
    timebase: TimeBaseInfo
    sample_rate_hz: float

    @property
    def headers(self) -> list[str]:
        return [str(c) for c in self.frame.columns]

    def __len__(self) -> int:
        return int(len(self.frame))

    def times(self) -> np.ndarray:
        if self.time_col is None:
            return np.arange(len(self.frame), dtype=float) / self.sample_rate_hz
        return pd.to_numeric(self.frame[self.time_col], errors="coerce").to_numpy(dtype=float)

    def copy(self) -> "ImuStream":
        return ImuStream(
            frame=self.frame.copy(deep=True),
            time_col=self.time_col,
            timebase=self.timebase,
            sample_rate_hz=self.sample_rate_hz,
        )


def load_imu_stream(csv_text: str) -> ImuStream:
    df = parse_csv(csv_text)
    if df.empty:
        raise InputDataError("No IMU data to process")
    time_col = find_time_column(df.columns)
    info = normalize_time_column(df, time_col) if time_col is not None else TimeBaseInfo(
        t0=None, max_t=0.0, raw_origin=None, raw_span=0.0, scale=1.0
    )
    t = pd.to_numeric(df[time_col], errors="coerce").to_numpy(dtype=float) if time_col else np.empty(0)
    fs = estimate_sample_rate_hz(t[:TIME_SCAN_ROWS])
    logger.debug("loaded IMU stream: %d rows, time=%r, fs=%.2f Hz", len(df), time_col, fs)
    return ImuStream(frame=df, time_col=time_col, timebase=info, sample_rate_hz=fs)
