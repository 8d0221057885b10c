from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

import numpy as np

from ..config.constants import JOINT_ROLES
from ..math.kinematics import relative_angle_deg
from .errors import InputDataError
from .fusion import FusionResult

logger = logging.getLogger(__name__)

__all__ = [
    "JointStats",
    "AngleSeries",
    "stats_of",
    "compute_angle_series",
    "assign_joint_roles",
    "validate_selection",
    "compute_arm_angles",
]


@dataclass
class JointStats:
    mean: float
    min: float
    max: float
    range: float

    def as_dict(self) -> dict:
        return {"mean": self.mean, "min": self.min, "max": self.max, "range": self.range}


def stats_of(values) -> JointStats:
    v = np.asarray(values, dtype=float)
    if v.size == 0:
        nan = float("nan")
        return JointStats(nan, nan, nan, nan)
    lo, hi = float(np.min(v)), float(np.max(v))
    return JointStats(mean=float(np.mean(v)), min=lo, max=hi, range=hi - lo)


@dataclass
class AngleSeries:
    """Joint angles over the shared prefix of three orientation streams.

    times: (N,) seconds from the shoulder stream.
    elbow: (N,) shoulder->elbow relative angle [deg].
    wrist: (N,) elbow->wrist relative angle [deg].
    shoulder: (N,3) shoulder roll/pitch/yaw [deg].
    """
    times: np.ndarray
    elbow: np.ndarray
    wrist: np.ndarray
    shoulder: np.ndarray

    def __len__(self) -> int:
        return int(self.times.shape[0])

    def shoulder_at(self, i: int) -> Optional[dict]:
        row = self.shoulder[i]
        if not np.all(np.isfinite(row)):
            return None
        return {"roll": float(row[0]), "pitch": float(row[1]), "yaw": float(row[2])}

    def statistics(self) -> Dict[str, JointStats]:
        return {"elbow": stats_of(self.elbow), "wrist": stats_of(self.wrist)}


def compute_angle_series(shoulder: FusionResult, elbow: FusionResult, wrist: FusionResult) -> AngleSeries:
    """Truncate to the shortest stream; no resampling across IMUs."""
    if shoulder is None or elbow is None or wrist is None:
        raise InputDataError("All three IMUs (shoulder, elbow, wrist) must be set")
    n = min(len(shoulder), len(elbow), len(wrist), len(shoulder.times))
    qs, qe, qw = shoulder.quats[:n], elbow.quats[:n], wrist.quats[:n]
    return AngleSeries(
        times=np.asarray(shoulder.times[:n], dtype=float).copy(),
        elbow=relative_angle_deg(qs, qe).reshape(n),
        wrist=relative_angle_deg(qe, qw).reshape(n),
        shoulder=np.degrees(shoulder.euler[:n]).reshape(n, 3),
    )


def assign_joint_roles(imus: Sequence, current: Optional[Mapping[str, Optional[int]]] = None) -> Dict[str, Optional[int]]:
    """Fill unset roles from each IMU's skeleton node ('left_shoulder', 'right_elbow', ...).

    Roles already chosen in ``current`` are kept.
    """
    roles: Dict[str, Optional[int]] = {r: None for r in JOINT_ROLES}
    if current:
        roles.update({k: v for k, v in current.items() if k in roles})
    for idx, imu in enumerate(imus):
        node = str(getattr(imu, "skeleton_node", None) or "").lower()
        if not node:
            continue
        for role in JOINT_ROLES:
            if role in node and roles[role] is None:
                roles[role] = idx
    return roles


def validate_selection(selection: Mapping[str, Optional[int]]) -> Optional[str]:
    """User-facing warning for an incomplete or duplicated joint selection, else None."""
    picked = [selection.get(r) for r in JOINT_ROLES]
    if any(p is None for p in picked):
        return "Select three IMUs (shoulder, elbow, wrist)."
    if len(set(picked)) != len(picked):
        return "Each joint must use a different IMU (no duplicates)."
    return None


def compute_arm_angles(
    results: Mapping[int, Optional[FusionResult]],
    selection: Mapping[str, Optional[int]],
    imu_count: Optional[int] = None,
) -> tuple[AngleSeries, Dict[str, JointStats]]:
    """Elbow and wrist angles for a shoulder/elbow/wrist IMU selection.

    results: fusion results keyed by IMU slot (None marks a failed run).
    selection: role -> slot index.
    """
    if imu_count is not None and imu_count < len(JOINT_ROLES):
        raise InputDataError("Arm angle analysis needs at least three IMUs in the session.")
    msg = validate_selection(selection)
    if msg is not None:
        raise InputDataError(msg)
    picked = {}
    for role in JOINT_ROLES:
        idx = int(selection[role])
        data = results.get(idx)
        if data is None:
            raise InputDataError(
                f"{role.capitalize()} IMU (index {idx}) has no fusion data - "
                "check its CSV has ax/ay/az, gx/gy/gz and mx/my/mz columns."
            )
        picked[role] = data
    series = compute_angle_series(picked["shoulder"], picked["elbow"], picked["wrist"])
    stats = series.statistics()
    logger.info(
        "arm angles over %d samples: elbow mean %.1f deg, wrist mean %.1f deg",
        len(series), stats["elbow"].mean, stats["wrist"].mean,
    )
    return series, stats
