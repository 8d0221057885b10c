from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from .events import (
    EventBus,
    IMU_CURSOR_CHANGED,
    IMU_TIMEFRAME_MARKED,
    IMU_TIMEFRAME_APPLIED,
    IMU_TIMEFRAME_RESET,
    TIME_SYNC_CHANGED,
    TIME_SYNC_MODE_CHANGED,
)

logger = logging.getLogger(__name__)

__all__ = [
    "OverlayGetters",
    "ImuCursor",
    "TimeSyncModel",
    "VideoImuCoupling",
]


def _finite(v) -> bool:
    return v is not None and bool(np.isfinite(v))


@dataclass(frozen=True)
class OverlayGetters:
    """Read-only accessors a chart uses to draw cursor, marker and T1/T2 lines."""
    get_cursor_x: Callable[[], float]
    get_marker_x: Callable[[], Optional[float]]
    get_t1_x: Callable[[], Optional[float]]
    get_t2_x: Callable[[], Optional[float]]
    get_min_x: Callable[[], float]
    get_max_x: Callable[[], float]


class ImuCursor:
    """IMU playhead in seconds, clamped to the full stream or the applied T1/T2 range."""

    def __init__(self, bus: EventBus, full_max_x: float = 0.0) -> None:
        self.bus = bus
        self.full_max_x = float(full_max_x)
        self.min_x = 0.0
        self.max_x = float(full_max_x)
        self.x = 0.0
        self.marker: Optional[float] = None
        bus.subscribe(IMU_TIMEFRAME_APPLIED, self._on_applied)
        bus.subscribe(IMU_TIMEFRAME_RESET, self._on_reset)

    def clamp(self, x: float) -> float:
        return float(min(max(float(x), self.min_x), self.max_x))

    def set_full_range(self, max_x: float) -> None:
        self.full_max_x = max(0.0, float(max_x))
        self.min_x = 0.0
        self.max_x = self.full_max_x
        self.x = self.clamp(self.x)

    def set_x(self, x: float) -> float:
        """Move the cursor (clamped) and announce the new IMU time."""
        if not _finite(x):
            return self.x
        self.x = self.clamp(x)
        self.bus.publish(IMU_CURSOR_CHANGED, {"imu_time": self.x})
        return self.x

    def set_range(self, lo: float, hi: float) -> None:
        self.min_x = float(lo)
        self.max_x = float(hi)
        self.x = self.clamp(self.x)

    def reset_range(self) -> None:
        self.set_range(0.0, self.full_max_x)

    def set_marker(self, x: Optional[float]) -> None:
        if not _finite(x):
            self.marker = None
            return
        self.marker = float(min(max(float(x), 0.0), self.full_max_x))

    def reset(self) -> None:
        self.min_x = 0.0
        self.max_x = self.full_max_x
        self.x = 0.0
        self.marker = None

    def _on_applied(self, detail: dict) -> None:
        self.set_range(detail["start"], detail["end"])

    def _on_reset(self, detail: dict) -> None:
        self.reset_range()


class TimeSyncModel:
    """Video/IMU offset (video - imu) plus an optional T1/T2 IMU sub-range."""

    def __init__(self, bus: EventBus, cursor: ImuCursor) -> None:
        self.bus = bus
        self.cursor = cursor
        self.video_marker: Optional[float] = None
        self.offset: Optional[float] = None
        self.t1: Optional[float] = None
        self.t2: Optional[float] = None
        self.follow_video = False
        self.toggle_enabled = False

    @property
    def imu_marker(self) -> Optional[float]:
        return self.cursor.marker

    @property
    def can_follow(self) -> bool:
        return self.follow_video and _finite(self.offset)

    def state(self) -> dict:
        return {
            "video_marker": self.video_marker,
            "imu_marker": self.imu_marker,
            "offset": self.offset,
            "t1": self.t1,
            "t2": self.t2,
            "follow_video": self.follow_video,
        }

    def mark_video(self, video_time: float) -> None:
        self.video_marker = float(video_time)

    def mark_imu(self, imu_time: Optional[float] = None) -> Optional[float]:
        x = self.cursor.x if imu_time is None else imu_time
        if not _finite(x):
            return None
        self.cursor.set_marker(x)
        return self.cursor.marker

    def compute_offset(self) -> Optional[float]:
        """offset = video marker - IMU marker; a no-op returning None unless both are set."""
        if not _finite(self.video_marker) or not _finite(self.imu_marker):
            return None
        self.offset = float(self.video_marker) - float(self.imu_marker)
        self.toggle_enabled = True
        self.set_follow_video(False)
        logger.info("time sync offset %.3f s (video - imu)", self.offset)
        self.bus.publish(TIME_SYNC_CHANGED, self.state())
        return self.offset

    def set_follow_video(self, follow: bool) -> bool:
        if follow and not self.toggle_enabled:
            return False
        self.follow_video = bool(follow)
        self.bus.publish(TIME_SYNC_MODE_CHANGED, {"follow_video": self.follow_video})
        return True

    def mark_t1(self) -> float:
        self.t1 = float(self.cursor.x)
        self.bus.publish(IMU_TIMEFRAME_MARKED, {"t1": self.t1, "t2": self.t2})
        return self.t1

    def mark_t2(self) -> float:
        self.t2 = float(self.cursor.x)
        self.bus.publish(IMU_TIMEFRAME_MARKED, {"t1": self.t1, "t2": self.t2})
        return self.t2

    def can_apply_timeframe(self) -> bool:
        return _finite(self.t1) and _finite(self.t2) and self.t1 != self.t2

    def apply_timeframe(self) -> Optional[tuple[float, float]]:
        if not self.can_apply_timeframe():
            return None
        start, end = min(self.t1, self.t2), max(self.t1, self.t2)
        self.bus.publish(IMU_TIMEFRAME_APPLIED, {"start": start, "end": end, "t1": self.t1, "t2": self.t2})
        return start, end

    def reset_bounds(self) -> None:
        self.t1 = None
        self.t2 = None
        self.bus.publish(IMU_TIMEFRAME_RESET)

    def clear(self) -> None:
        self.video_marker = None
        self.offset = None
        self.t1 = None
        self.t2 = None
        self.cursor.set_marker(None)
        self.bus.publish(IMU_TIMEFRAME_RESET)
        self.toggle_enabled = False
        self.set_follow_video(False)
        self.bus.publish(TIME_SYNC_CHANGED, self.state())

    def video_to_imu(self, video_time: float) -> float:
        off = self.offset if _finite(self.offset) else 0.0
        return float(video_time) - off

    def imu_to_video(self, imu_time: float) -> float:
        off = self.offset if _finite(self.offset) else 0.0
        return float(imu_time) + off

    def getters(self) -> OverlayGetters:
        c = self.cursor
        return OverlayGetters(
            get_cursor_x=lambda: c.x,
            get_marker_x=lambda: c.marker,
            get_t1_x=lambda: self.t1,
            get_t2_x=lambda: self.t2,
            get_min_x=lambda: c.min_x,
            get_max_x=lambda: c.max_x,
        )


class VideoImuCoupling:
    """Keeps the video playhead and the IMU cursor in step.

    Video time always drives the orientation display; it drives the IMU cursor
    only in follow mode. A cursor move made while following seeks the video.
    Guard flags stop the two directions from feeding each other.
    """

    def __init__(
        self,
        bus: EventBus,
        sync: TimeSyncModel,
        cursor: ImuCursor,
        get_video_time: Callable[[], float],
        seek_video: Callable[[float], None],
        show_orientation: Optional[Callable[[float], None]] = None,
    ) -> None:
        self.sync = sync
        self.cursor = cursor
        self.get_video_time = get_video_time
        self.seek_video = seek_video
        self.show_orientation = show_orientation
        self._suppress_imu_to_video = False
        self._suppress_video_to_imu = False
        self._unsubscribe = [
            bus.subscribe(IMU_CURSOR_CHANGED, self._on_cursor_changed),
            bus.subscribe(TIME_SYNC_MODE_CHANGED, self._snap),
            bus.subscribe(TIME_SYNC_CHANGED, self._snap),
        ]

    def close(self) -> None:
        for unsub in self._unsubscribe:
            unsub()
        self._unsubscribe = []

    def on_video_time(self) -> None:
        """Call on video time updates and seeks."""
        if self._suppress_video_to_imu:
            return
        video_t = float(self.get_video_time() or 0.0)
        if self.show_orientation is not None:
            self.show_orientation(self.sync.video_to_imu(video_t))
        if not self.sync.can_follow:
            return
        self._suppress_imu_to_video = True
        try:
            self.cursor.set_x(self.sync.video_to_imu(video_t))
        finally:
            self._suppress_imu_to_video = False

    def _on_cursor_changed(self, detail: dict) -> None:
        if not self.sync.can_follow or self._suppress_imu_to_video:
            return
        imu_t = detail.get("imu_time")
        if not _finite(imu_t):
            return
        self._suppress_video_to_imu = True
        try:
            self.seek_video(max(0.0, self.sync.imu_to_video(imu_t)))
        finally:
            self._suppress_video_to_imu = False

    def _snap(self, detail: dict) -> None:
        if self.sync.can_follow:
            self.on_video_time()
