from __future__ import annotations
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional

__all__ = [
    "TimeMark",
    "new_mark",
    "sort_marks",
    "seek_time",
    "format_seconds",
    "label_hue",
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TimeMark:
    """Named point on the video timeline of a session."""
    id: str
    t: float
    label: str = ""
    notes: str = ""
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    def touch(self) -> None:
        self.updated_at = _now_iso()


def new_mark(t: float, label: str = "", notes: str = "") -> TimeMark:
    return TimeMark(
        id=f"ts_{uuid.uuid4().hex[:12]}",
        t=float(t),
        label=str(label or "").strip(),
        notes=str(notes or "").strip(),
    )


def sort_marks(marks: Iterable[TimeMark]) -> List[TimeMark]:
    """Ascending by time; marks without a finite time go last.

    Ties fall back to newest first, then id.
    """
    items = list(marks)
    # stable sorts, least significant key first
    items.sort(key=lambda m: m.id)
    items.sort(key=lambda m: m.created_at, reverse=True)
    items.sort(key=lambda m: (0, m.t) if math.isfinite(m.t) else (1, 0.0))
    return items


def seek_time(t: float, duration: Optional[float]) -> Optional[float]:
    """Video time to seek to for a mark, clamped to [0, duration].

    None when no video duration is known.
    """
    if duration is None or not math.isfinite(duration) or duration <= 0:
        return None
    v = float(t)
    if not math.isfinite(v):
        return 0.0
    return min(float(duration), max(0.0, v))


def format_seconds(t: Optional[float]) -> str:
    if t is None or not math.isfinite(t):
        return "-"
    return f"{t:.3f} s"


def label_hue(label: str) -> int:
    """Deterministic colour hue in [0, 360) for a mark label."""
    s = str(label or "").strip().lower()
    h = 0
    for ch in s:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    return h % 360
