from __future__ import annotations
import logging
from typing import Dict, Mapping, Optional

from ..config.settings import Settings, settings as default_settings
from .arm_angles import AngleSeries, JointStats, assign_joint_roles, compute_arm_angles
from .errors import InputDataError
from .events import EventBus, ACTIVE_SESSION_CHANGED, IMU_REPLACED, FUSION_READY
from .fusion import FusionResult, OrientationSample
from .fusion_cache import FusionCache, FusionOrchestrator, nearest_orientation
from .io_utils import ImuStream, load_imu_stream
from .readouts import ReadoutCache, build_readout_cache
from .session import Session, SessionStore
from .time_sync import ImuCursor, TimeSyncModel
from .timestamps import seek_time

logger = logging.getLogger(__name__)

__all__ = ["ViewerContext"]


class ViewerContext:
    """Runtime state for one open viewer: sessions, cursor, time sync and fusion cache.

    Switching the active session resets cursor bounds and time sync and
    invalidates every cached fusion result in one step.
    """

    def __init__(self, cfg: Optional[Settings] = None) -> None:
        cfg = cfg or default_settings
        self.settings = cfg
        self.bus = EventBus()
        self.store = SessionStore(self.bus)
        self.cursor = ImuCursor(self.bus)
        self.sync = TimeSyncModel(self.bus, self.cursor)
        self.cache = FusionCache()
        self.orchestrator = FusionOrchestrator(
            self.cache,
            algorithm=cfg.fusion_algorithm,
            beta=cfg.fusion_beta,
            init=cfg.fusion_init,
            precompute=cfg.precompute_enabled,
            on_ready=lambda i: self.bus.publish(FUSION_READY, {"index": i}),
        )
        self.selected_index: Optional[int] = None
        self.stream: Optional[ImuStream] = None
        self.readouts: Optional[ReadoutCache] = None
        self.bus.subscribe(ACTIVE_SESSION_CHANGED, self._on_active_session_changed)
        self.bus.subscribe(IMU_REPLACED, self._on_imu_replaced)

    @property
    def session(self) -> Optional[Session]:
        return self.store.get_active_session()

    def _on_active_session_changed(self, detail: dict) -> None:
        self.orchestrator.start_session()
        self.selected_index = None
        self.stream = None
        self.readouts = None
        self.cursor.set_full_range(0.0)
        self.cursor.reset()
        self.sync.clear()

    def _on_imu_replaced(self, detail: dict) -> None:
        session = self.session
        if session is None or session.id != detail.get("session_id"):
            return
        index = int(detail["index"])
        self.orchestrator.invalidate(index)
        if index == self.selected_index:
            self.stream = None
            self.readouts = None

    def _require_session(self) -> Session:
        session = self.session
        if session is None:
            raise InputDataError("No active session")
        return session

    async def select_imu(self, index: int) -> FusionResult:
        """Show one IMU: load its stream for plots/readouts, then fuse it (awaited)."""
        session = self._require_session()
        if not 0 <= index < len(session.imus):
            raise InputDataError(f"IMU index {index} out of range")
        stream = load_imu_stream(session.imus[index].csv_text)
        self.selected_index = index
        self.stream = stream
        self.readouts = build_readout_cache(stream)
        self.cursor.set_full_range(stream.timebase.max_t)
        result = await self.orchestrator.select_imu(session.imus, index)
        logger.info("IMU %d (%s) ready: %d samples", index, session.imus[index].label, len(result))
        return result

    def orientation_at_video_time(self, video_time: float) -> Optional[OrientationSample]:
        """Orientation of the selected IMU at a video time (offset 0 when unsynced)."""
        if self.selected_index is None or self.session is None:
            return None
        imu = self.session.imus[self.selected_index]
        result = self.cache.get(self.selected_index, imu.content_id)
        return nearest_orientation(result, self.sync.video_to_imu(video_time))

    def seek_to_timestamp(self, mark_id: str, duration: Optional[float], seek_video) -> Optional[float]:
        """Seek the video to a session time mark; None when there is no video duration."""
        session = self._require_session()
        mark = next((m for m in session.timestamps if m.id == str(mark_id)), None)
        if mark is None:
            raise InputDataError("Timestamp not found.")
        target = seek_time(mark.t, duration)
        if target is not None:
            seek_video(target)
        return target

    async def analyze_arm_angles(
        self, selection: Optional[Mapping[str, Optional[int]]] = None
    ) -> tuple[AngleSeries, Dict[str, JointStats]]:
        session = self._require_session()
        roles = assign_joint_roles(session.imus, selection)
        if len(session.imus) < 3:
            raise InputDataError("Arm angle analysis needs at least three IMUs in the session.")
        results: Dict[int, Optional[FusionResult]] = {}
        for idx in roles.values():
            if idx is None or idx in results or not 0 <= idx < len(session.imus):
                continue
            imu = session.imus[idx]
            cached = self.cache.get(idx, imu.content_id)
            if cached is None:
                try:
                    cached = await self.orchestrator.ensure(idx, imu)
                except InputDataError as exc:
                    logger.warning("fusion unavailable for IMU %d: %s", idx, exc)
                    cached = None
            results[idx] = cached
        return compute_arm_angles(results, roles, imu_count=len(session.imus))
