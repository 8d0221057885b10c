from __future__ import annotations
import numpy as np
import pytest
from movesync.pipeline.arm_angles import compute_arm_angles
from movesync.pipeline.events import EventBus
from movesync.pipeline.fusion import process_stream
from movesync.pipeline.io_utils import load_imu_stream
from movesync.pipeline.time_sync import ImuCursor, TimeSyncModel
from movesync.plots.charts import (
    TimeSeriesChart,
    plot_acceleration,
    plot_angle_series,
    orientation_axes,
)


def _sync(max_x=2.0):
    bus = EventBus()
    cursor = ImuCursor(bus, full_max_x=max_x)
    return cursor, TimeSyncModel(bus, cursor)


def test_overlay_positions_follow_model():
    cursor, sync = _sync()
    chart = TimeSeriesChart(sync.getters(), title="acc")
    assert chart.overlay_positions() == {"cursor": 0.0, "marker": None, "t1": None, "t2": None}
    cursor.set_x(0.5)
    sync.mark_imu()
    sync.mark_t1()
    cursor.set_x(1.5)
    sync.mark_t2()
    assert chart.overlay_positions() == {"cursor": 1.5, "marker": 0.5, "t1": 0.5, "t2": 1.5}


def test_series_downsampled_to_cap():
    _, sync = _sync()
    chart = TimeSeriesChart(sync.getters())
    t = np.linspace(0, 2, 12001)
    chart.add_series("y", t, np.sin(t), max_points=5000)
    _, ts, ys = chart.series[0]
    assert len(ts) == len(ys) <= 5000
    assert ts[0] == 0.0


def test_acceleration_chart_saved(tmp_path, imu_csv):
    stream = load_imu_stream(imu_csv(n=100))
    cursor, sync = _sync(stream.timebase.max_t)
    cursor.set_x(0.3)
    chart = plot_acceleration(stream, sync.getters())
    assert [s[0] for s in chart.series] == ["x", "y", "z", "magnitude"]
    out = chart.save(tmp_path / "acc.png")
    assert out.exists() and out.stat().st_size > 0


def test_angle_plot_written(tmp_path, arm_csvs):
    results = {i: process_stream(load_imu_stream(c)) for i, c in enumerate(arm_csvs)}
    series, _ = compute_arm_angles(results, {"shoulder": 0, "elbow": 1, "wrist": 2})
    path = tmp_path / "angles.png"
    plot_angle_series(series, path)
    assert path.exists()


def test_orientation_axes_are_rotation_columns(arm_csvs):
    res = process_stream(load_imu_stream(arm_csvs[1]))
    sample = res.orientation_at(0)
    tips = orientation_axes(sample, length=2.0)
    np.testing.assert_allclose(tips, 2.0 * sample.rot.T)
    # elbow sensor x axis stays on world x under a rotation about x
    np.testing.assert_allclose(tips[0], [2.0, 0.0, 0.0], atol=1e-3)
    assert np.linalg.norm(tips[1]) == pytest.approx(2.0)
