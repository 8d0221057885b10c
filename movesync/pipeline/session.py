from __future__ import annotations
import hashlib
import math
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .events import (
    EventBus,
    ACTIVE_SESSION_CHANGED,
    SESSIONS_CHANGED,
    IMU_REPLACED,
    SESSION_TIMESTAMPS_CHANGED,
)
from .errors import InputDataError
from .timestamps import TimeMark, new_mark, sort_marks

logger = logging.getLogger(__name__)

__all__ = ["ImuDescriptor", "Session", "SessionStore", "content_id"]


def content_id(text: str) -> str:
    return hashlib.sha1(str(text or "").encode("utf-8")).hexdigest()


@dataclass
class ImuDescriptor:
    label: str
    csv_text: str
    file_name: Optional[str] = None
    skeleton_node: Optional[str] = None

    @property
    def content_id(self) -> str:
        return content_id(self.csv_text)


@dataclass
class Session:
    id: int
    name: str = ""
    imus: List[ImuDescriptor] = field(default_factory=list)
    video_path: Optional[str] = None
    timestamps: List[TimeMark] = field(default_factory=list)


class SessionStore:
    """In-memory session registry; nothing is persisted."""

    def __init__(self, bus: EventBus) -> None:
        self.bus = bus
        self._sessions: List[Session] = []
        self._active: Optional[Session] = None
        self._next_id = 1

    def get_sessions(self) -> List[Session]:
        return list(self._sessions)

    def set_sessions(self, sessions: List[Session]) -> None:
        self._sessions = list(sessions or [])
        if self._active is not None and not any(s.id == self._active.id for s in self._sessions):
            self._active = None
        max_id = max((s.id for s in self._sessions), default=0)
        self._next_id = max(self._next_id, max_id + 1)
        self.bus.publish(SESSIONS_CHANGED)
        self.bus.publish(ACTIVE_SESSION_CHANGED, {"session": self._active})

    def next_session_id(self) -> int:
        sid = self._next_id
        self._next_id += 1
        return sid

    def add_session(
        self,
        imus: List[ImuDescriptor],
        name: str = "",
        video_path: Optional[str] = None,
    ) -> Session:
        session = Session(id=self.next_session_id(), name=name, imus=list(imus), video_path=video_path)
        self._sessions.append(session)
        self.bus.publish(SESSIONS_CHANGED)
        return session

    def get_active_session(self) -> Optional[Session]:
        return self._active

    def set_active_session(self, session: Optional[Session]) -> None:
        self._active = session
        self.bus.publish(ACTIVE_SESSION_CHANGED, {"session": session})

    def set_active_session_by_id(self, sid) -> Optional[Session]:
        found = next((s for s in self._sessions if str(s.id) == str(sid)), None)
        self.set_active_session(found)
        return found

    def delete_session(self, sid) -> None:
        self._sessions = [s for s in self._sessions if str(s.id) != str(sid)]
        self.bus.publish(SESSIONS_CHANGED)
        if self._active is not None and str(self._active.id) == str(sid):
            self.set_active_session(None)

    def replace_imu(self, sid, index: int, imu: ImuDescriptor) -> None:
        """Load a different CSV into one IMU slot of a session."""
        session = self._require(sid)
        if index == len(session.imus):
            session.imus.append(imu)
        else:
            session.imus[index] = imu
        logger.info("session %s: IMU slot %d replaced (%s)", sid, index, imu.file_name or imu.label)
        self.bus.publish(IMU_REPLACED, {"session_id": session.id, "index": index})

    def _require(self, sid) -> Session:
        session = next((s for s in self._sessions if str(s.id) == str(sid)), None)
        if session is None:
            raise KeyError(f"Unknown session: {sid}")
        return session

    def _timestamps_changed(self, session: Session) -> None:
        self.bus.publish(SESSION_TIMESTAMPS_CHANGED, {"session_id": session.id})

    def get_timestamps(self, sid) -> List[TimeMark]:
        return sort_marks(self._require(sid).timestamps)

    def add_timestamp(self, sid, t: float, label: str = "", notes: str = "") -> TimeMark:
        """Mark the current video time in a session."""
        session = self._require(sid)
        if t is None or not math.isfinite(float(t)):
            raise InputDataError("Load a video first.")
        mark = new_mark(t, label, notes)
        session.timestamps.append(mark)
        self._timestamps_changed(session)
        return mark

    def update_timestamp(
        self,
        sid,
        mark_id: str,
        label: Optional[str] = None,
        notes: Optional[str] = None,
        t: Optional[float] = None,
    ) -> TimeMark:
        session = self._require(sid)
        mark = next((m for m in session.timestamps if m.id == str(mark_id)), None)
        if mark is None:
            raise InputDataError("That timestamp no longer exists.")
        if label is not None:
            mark.label = label.strip()
        if notes is not None:
            mark.notes = notes.strip()
        if t is not None:
            if not math.isfinite(float(t)):
                raise InputDataError("Load a video first.")
            mark.t = float(t)
        mark.touch()
        self._timestamps_changed(session)
        return mark

    def delete_timestamp(self, sid, mark_id: str) -> None:
        session = self._require(sid)
        session.timestamps = [m for m in session.timestamps if m.id != str(mark_id)]
        self._timestamps_changed(session)
