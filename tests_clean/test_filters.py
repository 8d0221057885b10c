from __future__ import annotations
import numpy as np
from movesync.math.filters import (
    moving_average,
    low_pass,
    high_pass,
    ewma,
    estimate_sample_rate_hz,
    magnitude,
    downsample_xy,
    filter_acceleration_axis,
    acceleration_plot_series,
)


def _high_pass_ref(x, fs, fc):
    rc = 1.0 / (2 * np.pi * fc)
    dt = 1.0 / fs
    a = rc / (rc + dt)
    y = np.zeros_like(x)
    for i in range(1, len(x)):
        y[i] = a * (y[i - 1] + x[i] - x[i - 1])
    return y


def _low_pass_ref(x, fs, fc):
    rc = 1.0 / (2 * np.pi * fc)
    dt = 1.0 / fs
    a = dt / (rc + dt)
    y = np.empty_like(x)
    y[0] = x[0]
    for i in range(1, len(x)):
        y[i] = a * x[i] + (1 - a) * y[i - 1]
    return y


def test_high_pass_matches_recurrence():
    rng = np.random.default_rng(1)
    x = 3.0 + rng.normal(size=300)
    y = high_pass(x, 100.0, 0.5)
    assert y[0] == 0.0
    np.testing.assert_allclose(y, _high_pass_ref(x, 100.0, 0.5), atol=1e-10)


def test_high_pass_columns_independent():
    rng = np.random.default_rng(2)
    X = rng.normal(size=(120, 3))
    Y = high_pass(X, 50.0, 0.5)
    for j in range(3):
        np.testing.assert_allclose(Y[:, j], _high_pass_ref(X[:, j], 50.0, 0.5), atol=1e-10)


def test_high_pass_removes_offset():
    fs = 100.0
    t = np.arange(0, 10, 1 / fs)
    x = 2.0 + 0.1 * np.sin(2 * np.pi * 1.0 * t)
    y = high_pass(x, fs, 0.5)
    assert abs(np.mean(y[300:])) < 0.05


def test_low_pass_and_ewma():
    rng = np.random.default_rng(3)
    x = rng.normal(size=200)
    np.testing.assert_allclose(low_pass(x, 100.0, 10.0), _low_pass_ref(x, 100.0, 10.0), atol=1e-10)
    np.testing.assert_allclose(low_pass(np.full(50, 4.0), 100.0, 10.0), 4.0)
    e = ewma(np.array([1.0, 3.0, 3.0]), 0.5)
    np.testing.assert_allclose(e, [1.0, 2.0, 2.5])


def test_moving_average_shrinks_at_edges():
    out = moving_average(np.array([1.0, 2.0, 3.0, 4.0, 5.0]), 3)
    np.testing.assert_allclose(out, [1.5, 2.0, 3.0, 4.0, 4.5])
    assert moving_average(np.array([]), 5).size == 0


def test_estimate_sample_rate_hz():
    assert estimate_sample_rate_hz(np.array([0.0, 0.01])) == 100.0
    t = np.arange(0, 2, 0.02)
    assert abs(estimate_sample_rate_hz(t) - 50.0) < 1e-6


def test_magnitude_truncates():
    m = magnitude([3.0, 0.0, 1.0], [4.0, 0.0], [0.0, 2.0, 9.0])
    np.testing.assert_allclose(m, [5.0, 2.0])


def test_downsample_noop_under_cap():
    t = np.linspace(0, 1, 100)
    v = np.sin(t)
    ts, vs = downsample_xy(t, v, max_points=100)
    np.testing.assert_array_equal(ts, t)
    np.testing.assert_array_equal(vs, v)
    ts, vs = downsample_xy(t, v[:60], max_points=5000)
    assert ts.shape == (60,) and vs.shape == (60,)


def test_downsample_strides():
    t = np.arange(10, dtype=float)
    ts, vs = downsample_xy(t, t * 2, max_points=4)
    np.testing.assert_array_equal(ts, [0, 3, 6, 9])
    np.testing.assert_array_equal(vs, [0, 6, 12, 18])


def test_filter_acceleration_axis_drops_gravity():
    t = np.arange(0, 5, 0.01)
    axis = np.full(t.size, 9.81)
    np.testing.assert_allclose(filter_acceleration_axis(axis, t, remove_gravity=True), 0.0, atol=1e-9)
    np.testing.assert_allclose(filter_acceleration_axis(axis, t, remove_gravity=False), 9.81)


def test_acceleration_plot_series_shapes():
    t = np.arange(0, 100, 0.01)
    x = np.sin(t)
    out = acceleration_plot_series(x, x, x, t, max_points=1000)
    assert set(out) == {"x", "y", "z", "magnitude"}
    ts, vs = out["magnitude"]
    assert ts.size <= 1000 and ts.size == vs.size
