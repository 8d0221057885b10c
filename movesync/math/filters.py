from __future__ import annotations
import numpy as np
from scipy.signal import lfilter

from ..config.constants import (
    DEFAULT_SAMPLE_RATE_HZ,
    DISPLAY_SMOOTH_WINDOW,
    DISPLAY_LOWPASS_HZ,
    DISPLAY_HIGHPASS_HZ,
    MAGNITUDE_EWMA_ALPHA,
    MAX_PLOT_POINTS,
)

__all__ = [
    "moving_average",
    "low_pass",
    "high_pass",
    "ewma",
    "estimate_sample_rate_hz",
    "magnitude",
    "downsample_xy",
    "filter_acceleration_axis",
    "acceleration_plot_series",
]


def _rc_dt(sample_rate_hz: float, cutoff_hz: float) -> tuple[float, float]:
    rc = 1.0 / (2.0 * np.pi * float(cutoff_hz))
    dt = 1.0 / float(sample_rate_hz)
    return rc, dt


def moving_average(x: np.ndarray, window: int = 5) -> np.ndarray:
    """Centered moving average; windows shrink at the edges instead of wrapping."""
    x = np.asarray(x, dtype=float)
    if x.size == 0:
        return x.copy()
    half = max(0, int(window) // 2)
    k = np.ones(2 * half + 1, dtype=float)
    sums = np.convolve(x, k, mode="same")
    counts = np.convolve(np.ones_like(x), k, mode="same")
    return sums / np.maximum(counts, 1.0)


def low_pass(x: np.ndarray, sample_rate_hz: float = 100.0, cutoff_hz: float = 10.0) -> np.ndarray:
    """Single-pole IIR low-pass, alpha = dt / (RC + dt); starts at the first input."""
    x = np.asarray(x, dtype=float)
    if x.size == 0:
        return x.copy()
    rc, dt = _rc_dt(sample_rate_hz, cutoff_hz)
    alpha = dt / (rc + dt)
    return ewma(x, alpha)


def high_pass(x: np.ndarray, sample_rate_hz: float = 100.0, cutoff_hz: float = 0.5) -> np.ndarray:
    """Single-pole IIR high-pass, alpha = RC / (RC + dt); first output is 0.

    x can be (T,) or (T,D); columns are filtered independently.
    """
    x = np.asarray(x, dtype=float)
    if x.shape[0] == 0:
        return x.copy()
    rc, dt = _rc_dt(sample_rate_hz, cutoff_hz)
    alpha = rc / (rc + dt)
    # y[i] = alpha * (y[i-1] + x[i] - x[i-1]), seeded so y[0] == 0
    zi = (-alpha * x[:1])
    y, _ = lfilter([alpha, -alpha], [1.0, -alpha], x, axis=0, zi=zi)
    return y


def ewma(x: np.ndarray, alpha: float = 0.3) -> np.ndarray:
    """Exponential smoothing; the first output equals the first input."""
    x = np.asarray(x, dtype=float)
    if x.shape[0] == 0:
        return x.copy()
    a = float(alpha)
    zi = ((1.0 - a) * x[:1])
    y, _ = lfilter([a], [1.0, -(1.0 - a)], x, axis=0, zi=zi)
    return y


def estimate_sample_rate_hz(t: np.ndarray) -> float:
    t = np.asarray(t, dtype=float)
    if t.size < 3:
        return DEFAULT_SAMPLE_RATE_HZ
    dt = np.diff(t)
    dt = dt[np.isfinite(dt) & (dt > 0)]
    if dt.size == 0:
        return DEFAULT_SAMPLE_RATE_HZ
    return float(1.0 / np.median(dt))


def magnitude(x: np.ndarray, y: np.ndarray, z: np.ndarray) -> np.ndarray:
    x, y, z = (np.asarray(v, dtype=float) for v in (x, y, z))
    n = min(x.size, y.size, z.size)
    return np.sqrt(x[:n] ** 2 + y[:n] ** 2 + z[:n] ** 2)


def downsample_xy(t: np.ndarray, values: np.ndarray, max_points: int = MAX_PLOT_POINTS):
    """Stride-sample (no averaging) a paired series down to at most ~max_points.

    Returns (t, values) truncated to the shorter input; untouched under the cap.
    """
    t = np.asarray(t, dtype=float)
    values = np.asarray(values, dtype=float)
    n = min(t.shape[0], values.shape[0])
    if n <= max_points:
        return t[:n], values[:n]
    step = int(np.ceil(n / max(1, int(max_points))))
    return t[:n:step], values[:n:step]


def filter_acceleration_axis(axis: np.ndarray, t: np.ndarray, remove_gravity: bool = True) -> np.ndarray:
    """Display pipeline for one accelerometer axis.

    Smooth, low-pass at 10 Hz, then (optionally) high-pass at 0.5 Hz to drop
    the gravity/DC component. Not used for fusion.
    """
    fs = estimate_sample_rate_hz(t)
    ma = moving_average(axis, DISPLAY_SMOOTH_WINDOW)
    lp = low_pass(ma, fs, DISPLAY_LOWPASS_HZ)
    return high_pass(lp, fs, DISPLAY_HIGHPASS_HZ) if remove_gravity else lp


def acceleration_plot_series(
    x: np.ndarray,
    y: np.ndarray,
    z: np.ndarray,
    t: np.ndarray,
    remove_gravity: bool = True,
    max_points: int = MAX_PLOT_POINTS,
) -> dict[str, tuple[np.ndarray, np.ndarray]]:
    """Filtered, downsampled accelerometer series keyed by x/y/z/magnitude."""
    fx = filter_acceleration_axis(x, t, remove_gravity)
    fy = filter_acceleration_axis(y, t, remove_gravity)
    fz = filter_acceleration_axis(z, t, remove_gravity)
    mag = ewma(magnitude(fx, fy, fz), MAGNITUDE_EWMA_ALPHA)
    return {
        "x": downsample_xy(t, fx, max_points),
        "y": downsample_xy(t, fy, max_points),
        "z": downsample_xy(t, fz, max_points),
        "magnitude": downsample_xy(t, mag, max_points),
    }
