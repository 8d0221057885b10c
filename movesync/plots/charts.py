from __future__ import annotations
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt

from ..config.settings import settings
from ..math.filters import acceleration_plot_series, downsample_xy
from ..pipeline.arm_angles import AngleSeries
from ..pipeline.fusion import OrientationSample
from ..pipeline.io_utils import ImuStream, extract_axis_data
from ..pipeline.time_sync import OverlayGetters

__all__ = [
    "TimeSeriesChart",
    "plot_acceleration",
    "plot_angle_series",
    "orientation_axes",
    "plot_orientation",
]


class TimeSeriesChart:
    """Line chart over IMU time with cursor, marker and T1/T2 overlays read from getters."""

    def __init__(self, getters: OverlayGetters, title: str = "", y_label: str = "") -> None:
        self.getters = getters
        self.title = title
        self.y_label = y_label
        self.series: List[Tuple[str, np.ndarray, np.ndarray]] = []

    def add_series(self, label: str, t, y, max_points: Optional[int] = None) -> None:
        ts, ys = downsample_xy(t, y, max_points or settings.max_plot_points)
        self.series.append((label, ts, ys))

    def overlay_positions(self) -> Dict[str, Optional[float]]:
        g = self.getters
        return {
            "cursor": g.get_cursor_x(),
            "marker": g.get_marker_x(),
            "t1": g.get_t1_x(),
            "t2": g.get_t2_x(),
        }

    def render(self, ax=None):
        if ax is None:
            fig, ax = plt.subplots(figsize=(10, 3.5))
        else:
            fig = ax.figure
        for label, t, y in self.series:
            ax.plot(t, y, lw=1.0, label=label)
        styles = {
            "cursor": dict(color="k", lw=1.2),
            "marker": dict(color="tab:red", ls="--", lw=1.0),
            "t1": dict(color="tab:green", ls=":", lw=1.0),
            "t2": dict(color="tab:purple", ls=":", lw=1.0),
        }
        for name, x in self.overlay_positions().items():
            if x is not None and np.isfinite(x):
                ax.axvline(float(x), label=name, **styles[name])
        lo, hi = self.getters.get_min_x(), self.getters.get_max_x()
        if hi > lo:
            ax.set_xlim(lo, hi)
        ax.set_xlabel("Time (s)")
        if self.y_label:
            ax.set_ylabel(self.y_label)
        if self.title:
            ax.set_title(self.title)
        if self.series:
            ax.legend(loc="upper right", fontsize="small")
        return fig

    def save(self, path) -> Path:
        fig = self.render()
        out = Path(path)
        fig.savefig(out, dpi=110, bbox_inches="tight")
        plt.close(fig)
        return out


def plot_acceleration(stream: ImuStream, getters: OverlayGetters, remove_gravity: bool = True) -> TimeSeriesChart:
    acc = extract_axis_data(stream.frame, "acc")
    t = stream.times()
    series = acceleration_plot_series(acc[:, 0], acc[:, 1], acc[:, 2], t, remove_gravity)
    chart = TimeSeriesChart(getters, title="Acceleration", y_label="acc")
    for name in ("x", "y", "z", "magnitude"):
        ts, ys = series[name]
        chart.series.append((name, ts, ys))
    return chart


def plot_angle_series(series: AngleSeries, path=None):
    fig, axes = plt.subplots(2, 1, figsize=(10, 5), sharex=True)
    for ax, name in zip(axes, ("elbow", "wrist")):
        t, y = downsample_xy(series.times, getattr(series, name))
        ax.plot(t, y, lw=1.5)
        ax.set_ylabel(f"{name.capitalize()} angle (deg)")
    axes[-1].set_xlabel("Time (s)")
    if path is not None:
        fig.savefig(path, dpi=110, bbox_inches="tight")
        plt.close(fig)
    return fig


def orientation_axes(sample: OrientationSample, length: float = 1.0) -> np.ndarray:
    """Sensor x/y/z axes in the world frame, rows = axis tips."""
    return (np.asarray(sample.rot, dtype=float).T * float(length)).copy()


def plot_orientation(sample: OrientationSample, ax=None):
    if ax is None:
        fig = plt.figure(figsize=(4, 4))
        ax = fig.add_subplot(projection="3d")
    tips = orientation_axes(sample)
    for tip, color in zip(tips, ("tab:red", "tab:green", "tab:blue")):
        ax.quiver(0, 0, 0, tip[0], tip[1], tip[2], color=color)
    ax.set_xlim(-1, 1)
    ax.set_ylim(-1, 1)
    ax.set_zlim(-1, 1)
    return ax.figure
