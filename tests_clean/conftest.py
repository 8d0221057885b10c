from __future__ import annotations
import matplotlib
import numpy as np
import pytest
from scipy.spatial.transform import Rotation as R

matplotlib.use("Agg")

M_WORLD = np.array([0.2, 0.0, -0.4])
G_WORLD = np.array([0.0, 0.0, 1.0])


def make_imu_csv(
    R_ws=None,
    n: int = 200,
    fs: float = 100.0,
    gyro=(0.0, 0.0, 0.0),
    time_scale: float = 1e3,
    t0: float = 1_700_000_000_000.0,
    header: str = "time,ax,ay,az,gx,gy,gz,mx,my,mz",
    mag_world=M_WORLD,
) -> str:
    """Static 9-DOF recording of a sensor held at orientation R_ws (sensor->world).

    Timestamps are in ms by default (time_scale=1e3). mag_world is the Earth field
    in world coordinates.
    """
    R_ws = np.eye(3) if R_ws is None else np.asarray(R_ws, dtype=float)
    acc = R_ws.T @ G_WORLD
    mag = R_ws.T @ np.asarray(mag_world, dtype=float)
    lines = [header]
    for i in range(n):
        t = t0 + i * time_scale / fs
        row = [t, *acc, *gyro, *mag]
        lines.append(",".join(f"{v:.17g}" for v in row))
    return "\n".join(lines) + "\n"


def arm_rotations():
    """Shoulder level, elbow 40 deg about x, wrist 30 deg further about its own y."""
    Rs = np.eye(3)
    Re = R.from_euler("x", 40, degrees=True).as_matrix()
    Rw = Re @ R.from_euler("y", 30, degrees=True).as_matrix()
    return Rs, Re, Rw


@pytest.fixture
def imu_csv():
    return make_imu_csv


@pytest.fixture
def arm_csvs():
    Rs, Re, Rw = arm_rotations()
    return [make_imu_csv(Rs), make_imu_csv(Re), make_imu_csv(Rw)]


@pytest.fixture
def arm_rotation_mats():
    return arm_rotations()
