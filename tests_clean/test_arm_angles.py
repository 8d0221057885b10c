from __future__ import annotations
import math
import numpy as np
import pytest
from movesync.pipeline.arm_angles import (
    AngleSeries,
    stats_of,
    compute_angle_series,
    assign_joint_roles,
    validate_selection,
    compute_arm_angles,
)
from movesync.pipeline.errors import InputDataError
from movesync.pipeline.fusion import process_stream
from movesync.pipeline.io_utils import load_imu_stream
from movesync.pipeline.session import ImuDescriptor


def _fuse(csv_text):
    return process_stream(load_imu_stream(csv_text))


def test_static_arm_recovers_known_angles(arm_csvs):
    s, e, w = (_fuse(c) for c in arm_csvs)
    series, stats = compute_arm_angles({0: s, 1: e, 2: w}, {"shoulder": 0, "elbow": 1, "wrist": 2})
    assert len(series) == 200
    assert abs(stats["elbow"].mean - 40.0) < 1.0
    assert abs(stats["wrist"].mean - 30.0) < 1.0
    assert stats["elbow"].range < 0.1
    assert stats["wrist"].range < 0.1
    sh = series.shoulder_at(0)
    assert sh is not None and abs(sh["roll"]) < 1e-3


def test_truncates_to_shortest(imu_csv, arm_csvs, arm_rotation_mats):
    Rs, Re, Rw = arm_rotation_mats
    s = _fuse(imu_csv(Rs, n=120))
    e = _fuse(arm_csvs[1])
    w = _fuse(imu_csv(Rw, n=80))
    series = compute_angle_series(s, e, w)
    assert len(series) == 80
    assert series.elbow.shape == (80,) and series.shoulder.shape == (80, 3)


def test_empty_series_gives_nan_stats():
    st = stats_of([])
    assert all(math.isnan(v) for v in st.as_dict().values())
    series = AngleSeries(np.empty(0), np.empty(0), np.empty(0), np.empty((0, 3)))
    assert math.isnan(series.statistics()["elbow"].mean)


def test_stats_of_values():
    st = stats_of([10.0, 20.0, 30.0])
    assert st.as_dict() == {"mean": 20.0, "min": 10.0, "max": 30.0, "range": 20.0}


def test_validate_selection_messages():
    assert validate_selection({"shoulder": 0, "elbow": None, "wrist": 2}).startswith("Select three IMUs")
    assert "different IMU" in validate_selection({"shoulder": 0, "elbow": 0, "wrist": 2})
    assert validate_selection({"shoulder": 0, "elbow": 1, "wrist": 2}) is None


def test_duplicate_selection_rejected(arm_csvs):
    s = _fuse(arm_csvs[0])
    with pytest.raises(InputDataError, match="different IMU"):
        compute_arm_angles({0: s, 1: s}, {"shoulder": 0, "elbow": 0, "wrist": 1})


def test_missing_fusion_named_per_joint(arm_csvs):
    s = _fuse(arm_csvs[0])
    with pytest.raises(InputDataError, match="Elbow IMU \\(index 1\\)"):
        compute_arm_angles({0: s, 1: None, 2: s}, {"shoulder": 0, "elbow": 1, "wrist": 2})


def test_fewer_than_three_imus_rejected(arm_csvs):
    s = _fuse(arm_csvs[0])
    with pytest.raises(InputDataError, match="three IMUs"):
        compute_arm_angles({0: s, 1: s}, {"shoulder": 0, "elbow": 1, "wrist": 2}, imu_count=2)


def test_assign_joint_roles_from_skeleton_nodes():
    imus = [
        ImuDescriptor("a", "", skeleton_node="left_wrist"),
        ImuDescriptor("b", "", skeleton_node="Left_Shoulder"),
        ImuDescriptor("c", "", skeleton_node=None),
        ImuDescriptor("d", "", skeleton_node="left_elbow"),
    ]
    assert assign_joint_roles(imus) == {"shoulder": 1, "elbow": 3, "wrist": 0}
    # explicit choices are kept
    assert assign_joint_roles(imus, {"wrist": 2})["wrist"] == 2


def test_joint_angles_independent_of_field_heading(imu_csv, arm_rotation_mats):
    field = (0.25, -0.3, -0.4)
    s, e, w = (_fuse(imu_csv(R, mag_world=field)) for R in arm_rotation_mats)
    _, stats = compute_arm_angles({0: s, 1: e, 2: w}, {"shoulder": 0, "elbow": 1, "wrist": 2})
    assert abs(stats["elbow"].mean - 40.0) < 1.0
    assert abs(stats["wrist"].mean - 30.0) < 1.0
