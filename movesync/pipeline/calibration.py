from __future__ import annotations
import numpy as np
from dataclasses import dataclass

from ..config.constants import ACC_HIGHPASS_HZ, GYRO_DEG_THRESHOLD
from ..math.filters import high_pass

__all__ = [
    "remove_gravity_bias",
    "calibrate_magnetometer",
    "calibrate_accelerometer",
    "gyro_is_degrees",
    "CalibrationResult",
    "calibrate_all",
]


@dataclass
class CalibrationResult:
    """Container for the sensor series fed into the attitude filter.

    acc: (N,3) high-passed accelerometer scaled so its mean magnitude is 1.
    gyro: (N,3) angular rate in rad/s.
    mag: (N,3) magnetometer with the per-axis median removed.
    acc_scale: Factor applied to the high-passed accelerometer.
    mag_bias: Per-axis hard-iron estimate that was subtracted.
    gyro_was_degrees: Whether the gyro input was converted from deg/s.
    """
    acc: np.ndarray
    gyro: np.ndarray
    mag: np.ndarray
    acc_scale: float
    mag_bias: np.ndarray
    gyro_was_degrees: bool


def remove_gravity_bias(acc: np.ndarray, fs_hz: float, fc_hz: float = ACC_HIGHPASS_HZ) -> np.ndarray:
    """Per-axis high-pass that keeps sustained accelerations out of the 1 g estimate."""
    return high_pass(np.asarray(acc, dtype=float), fs_hz, fc_hz)


def calibrate_magnetometer(mag: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Hard-iron removal: subtract the per-axis median. Returns (calibrated, bias)."""
    m = np.asarray(mag, dtype=float)
    if m.shape[0] == 0:
        return m.copy(), np.zeros(3, dtype=float)
    bias = np.median(m, axis=0)
    return m - bias, bias


def calibrate_accelerometer(acc: np.ndarray) -> tuple[np.ndarray, float]:
    """Scale samples so the mean magnitude is 1. Returns (calibrated, scale).

    Assumes the recording is mostly near-static; a stream with sustained motion
    biases the estimate.
    """
    a = np.asarray(acc, dtype=float)
    if a.shape[0] == 0:
        return a.copy(), 1.0
    mean_mag = float(np.mean(np.linalg.norm(a, axis=1)))
    scale = 1.0 / mean_mag if mean_mag > 0 else 1.0
    return a * scale, scale


def gyro_is_degrees(gyro: np.ndarray) -> bool:
    g = np.asarray(gyro, dtype=float)
    if g.shape[0] == 0:
        return False
    return bool(np.sum(np.abs(g[0])) > GYRO_DEG_THRESHOLD)


def calibrate_all(acc: np.ndarray, gyro: np.ndarray, mag: np.ndarray, fs_hz: float) -> CalibrationResult:
    acc_hp = remove_gravity_bias(acc, fs_hz)
    acc_cal, acc_scale = calibrate_accelerometer(acc_hp)
    mag_cal, mag_bias = calibrate_magnetometer(mag)
    g = np.asarray(gyro, dtype=float)
    deg = gyro_is_degrees(g)
    if deg:
        g = np.deg2rad(g)
    return CalibrationResult(
        acc=acc_cal,
        gyro=g,
        mag=mag_cal,
        acc_scale=float(acc_scale),
        mag_bias=np.asarray(mag_bias, dtype=float),
        gyro_was_degrees=deg,
    )
