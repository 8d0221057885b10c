from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from ..config.constants import (
    ALGORITHMS,
    DEFAULT_BETA,
    DEFAULT_SAMPLE_RATE_HZ,
    FILTER_INITS,
    INIT_WINDOW_S,
)
from ..math.kinematics import (
    IDENTITY_QUAT,
    normalize_quat,
    quats_to_R_batch,
    quats_to_euler_batch,
    quat_from_acc_mag,
    nearest_index,
)
from .calibration import calibrate_all
from .errors import InputDataError, DependencyUnavailableError
from .io_utils import ImuStream, has_axis_data, extract_axis_data

logger = logging.getLogger(__name__)

__all__ = [
    "OrientationSample",
    "FusionResult",
    "create_filter",
    "initial_quaternion",
    "process_imu_fusion",
    "process_stream",
]


@dataclass
class OrientationSample:
    quat: np.ndarray        # (4,) w,x,y,z
    euler: np.ndarray       # (3,) roll, pitch, yaw [rad]
    rot: np.ndarray         # (3,3)

    @property
    def roll(self) -> float:
        return float(self.euler[0])

    @property
    def pitch(self) -> float:
        return float(self.euler[1])

    @property
    def yaw(self) -> float:
        return float(self.euler[2])


@dataclass
class FusionResult:
    """Orientation time series for one IMU.

    times: (N,) seconds, ascending.
    quats: (N,4) unit quaternions (w,x,y,z), sensor-to-world, stored as produced.
    euler: (N,3) roll/pitch/yaw in radians.
    rot: (N,3,3) rotation matrices.
    """
    times: np.ndarray
    quats: np.ndarray
    euler: np.ndarray
    rot: np.ndarray
    algorithm: str
    sample_rate_hz: float

    def __len__(self) -> int:
        return int(self.quats.shape[0])

    def orientation_at(self, i: int) -> OrientationSample:
        return OrientationSample(
            quat=self.quats[i].copy(),
            euler=self.euler[i].copy(),
            rot=self.rot[i].copy(),
        )

    def nearest(self, t: float) -> Optional[OrientationSample]:
        """Orientation of the sample closest to time t (None when empty)."""
        i = nearest_index(self.times, float(t))
        if i < 0:
            return None
        return self.orientation_at(i)


def _load_filters():
    try:
        from ahrs.filters import Madgwick, Mahony
    except ImportError as exc:
        raise DependencyUnavailableError(
            "AHRS filter library not available. Install with `pip install ahrs`."
        ) from exc
    return Madgwick, Mahony


def create_filter(algorithm: str, fs_hz: float, beta: float = DEFAULT_BETA):
    algo = str(algorithm or "").strip().lower()
    if algo not in ALGORITHMS:
        raise InputDataError(f"Unknown algorithm: {algorithm}")
    Madgwick, Mahony = _load_filters()
    if algo == "mahony":
        return Mahony(frequency=fs_hz)
    # complementary runs through Madgwick with the same gain
    return Madgwick(frequency=fs_hz, gain=beta)


def initial_quaternion(acc_raw: np.ndarray, mag_raw: np.ndarray, fs_hz: float, mode: str = "first_sample") -> np.ndarray:
    """Starting filter state.

    'first_sample' levels the sensor on the median gravity and magnetic
    readings of the first INIT_WINDOW_S seconds; 'identity' starts at (1,0,0,0).
    """
    if mode == "identity" or acc_raw.shape[0] == 0:
        return IDENTITY_QUAT.copy()
    win = max(1, int(round(INIT_WINDOW_S * fs_hz)))
    a0 = np.median(acc_raw[:win], axis=0)
    m0 = np.median(mag_raw[:win], axis=0)
    return quat_from_acc_mag(a0, m0)


def process_imu_fusion(
    frame: pd.DataFrame,
    time_seconds: Optional[np.ndarray] = None,
    sample_rate_hz: Optional[float] = None,
    algorithm: str = "madgwick",
    beta: float = DEFAULT_BETA,
    init: str = "first_sample",
) -> FusionResult:
    """Run the attitude filter over one 9-DOF recording.

    frame: rows of the CSV; columns are matched against the acc/gyro/mag alias
      table regardless of case or separators.
    time_seconds: normalized time per row; a uniform grid is used when absent.
    sample_rate_hz: sets the constant filter step dt = 1/fs.
    """
    n = int(len(frame))
    if n == 0:
        raise InputDataError("No IMU data to process")
    missing = [s for s in ("acc", "gyro", "mag") if not has_axis_data(frame.columns, s)]
    if missing:
        raise InputDataError(
            "9-DOF data required (acc + gyro + mag); missing: " + ", ".join(missing)
        )
    algo = str(algorithm or "").strip().lower()
    if algo not in ALGORITHMS:
        raise InputDataError(f"Unknown algorithm: {algorithm}")
    if init not in FILTER_INITS:
        raise InputDataError(f"Unknown filter init: {init}")

    fs = float(sample_rate_hz) if sample_rate_hz else DEFAULT_SAMPLE_RATE_HZ
    if not np.isfinite(fs) or fs <= 0:
        fs = DEFAULT_SAMPLE_RATE_HZ
    dt = 1.0 / fs

    acc = extract_axis_data(frame, "acc")
    gyro = extract_axis_data(frame, "gyro")
    mag = extract_axis_data(frame, "mag")
    cal = calibrate_all(acc, gyro, mag, fs)
    if cal.gyro_was_degrees:
        logger.debug("gyro looks like deg/s; converted to rad/s")

    filt = create_filter(algo, fs, beta)
    q = initial_quaternion(acc, mag, fs, init)
    Q = np.empty((n, 4), dtype=float)
    for i in range(n):
        # ahrs may update q in place
        q = np.asarray(
            filt.updateMARG(q.copy(), gyr=cal.gyro[i], acc=cal.acc[i], mag=cal.mag[i], dt=dt),
            dtype=float,
        )
        Q[i] = q
    Q = normalize_quat(Q)

    if time_seconds is None or len(time_seconds) < n:
        t = np.arange(n, dtype=float) * dt
    else:
        t = np.asarray(time_seconds, dtype=float)[:n]

    logger.debug("fusion (%s) done: %d samples at %.2f Hz", algo, n, fs)
    return FusionResult(
        times=t,
        quats=Q,
        euler=quats_to_euler_batch(Q),
        rot=quats_to_R_batch(Q),
        algorithm=algo,
        sample_rate_hz=fs,
    )


def process_stream(
    stream: ImuStream,
    algorithm: str = "madgwick",
    beta: float = DEFAULT_BETA,
    init: str = "first_sample",
) -> FusionResult:
    return process_imu_fusion(
        stream.frame,
        time_seconds=stream.times(),
        sample_rate_hz=stream.sample_rate_hz,
        algorithm=algorithm,
        beta=beta,
        init=init,
    )
