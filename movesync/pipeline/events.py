from __future__ import annotations
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

__all__ = [
    "EventBus",
    "ACTIVE_SESSION_CHANGED",
    "SESSIONS_CHANGED",
    "IMU_CURSOR_CHANGED",
    "IMU_TIMEFRAME_MARKED",
    "IMU_TIMEFRAME_APPLIED",
    "IMU_TIMEFRAME_RESET",
    "TIME_SYNC_CHANGED",
    "TIME_SYNC_MODE_CHANGED",
    "IMU_REPLACED",
    "FUSION_READY",
    "SESSION_TIMESTAMPS_CHANGED",
]

ACTIVE_SESSION_CHANGED = "active-session-changed"
SESSIONS_CHANGED = "sessions-changed"
IMU_CURSOR_CHANGED = "imu-cursor-changed"
IMU_TIMEFRAME_MARKED = "imu-timeframe-marked"
IMU_TIMEFRAME_APPLIED = "imu-timeframe-applied"
IMU_TIMEFRAME_RESET = "imu-timeframe-reset"
TIME_SYNC_CHANGED = "time-sync-changed"
TIME_SYNC_MODE_CHANGED = "time-sync-mode-changed"
IMU_REPLACED = "imu-replaced"
FUSION_READY = "fusion-ready"
SESSION_TIMESTAMPS_CHANGED = "session-timestamps-changed"

Handler = Callable[[Dict[str, Any]], None]


class EventBus:
    """In-process pub/sub. Handlers run synchronously, in subscription order."""

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        self._handlers[name].append(handler)

        def unsubscribe() -> None:
            try:
                self._handlers[name].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, name: str, detail: Dict[str, Any] | None = None) -> None:
        payload = dict(detail or {})
        logger.debug("event %s %s", name, payload)
        for handler in list(self._handlers.get(name, ())):
            handler(payload)
