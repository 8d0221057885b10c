from __future__ import annotations
import math
import pytest
from movesync.config.settings import Settings
from movesync.pipeline.context import ViewerContext
from movesync.pipeline.errors import InputDataError
from movesync.pipeline.events import EventBus, SESSION_TIMESTAMPS_CHANGED
from movesync.pipeline.session import SessionStore
from movesync.pipeline.timestamps import (
    TimeMark,
    sort_marks,
    seek_time,
    format_seconds,
    label_hue,
)


def _store():
    bus = EventBus()
    events = []
    bus.subscribe(SESSION_TIMESTAMPS_CHANGED, events.append)
    store = SessionStore(bus)
    return store, store.add_session([], name="s"), events


def test_add_edit_delete_publish_changes():
    store, s, events = _store()
    a = store.add_timestamp(s.id, 4.2, label="  reach ", notes="left arm")
    b = store.add_timestamp(s.id, 1.0, label="start")
    assert a.label == "reach" and a.id != b.id
    assert [m.label for m in store.get_timestamps(s.id)] == ["start", "reach"]

    store.update_timestamp(s.id, a.id, label="reach high", t=0.5)
    assert [m.label for m in store.get_timestamps(s.id)] == ["reach high", "start"]
    assert a.notes == "left arm"

    store.delete_timestamp(s.id, b.id)
    assert [m.id for m in store.get_timestamps(s.id)] == [a.id]
    assert events == [{"session_id": s.id}] * 4


def test_add_without_video_time_rejected():
    store, s, events = _store()
    with pytest.raises(InputDataError, match="video"):
        store.add_timestamp(s.id, float("nan"))
    assert events == [] and s.timestamps == []


def test_update_unknown_mark_rejected():
    store, s, _ = _store()
    with pytest.raises(InputDataError, match="no longer exists"):
        store.update_timestamp(s.id, "ts_missing", label="x")
    with pytest.raises(KeyError):
        store.add_timestamp(999, 1.0)


def test_sort_puts_untimed_last_and_newest_first_on_ties():
    marks = [
        TimeMark(id="a", t=2.0, created_at="2026-01-01T00:00:00+00:00"),
        TimeMark(id="b", t=math.nan, created_at="2026-01-03T00:00:00+00:00"),
        TimeMark(id="c", t=2.0, created_at="2026-01-02T00:00:00+00:00"),
        TimeMark(id="d", t=0.5, created_at="2026-01-01T00:00:00+00:00"),
    ]
    assert [m.id for m in sort_marks(marks)] == ["d", "c", "a", "b"]


def test_seek_time_clamps_to_video():
    assert seek_time(3.0, 10.0) == 3.0
    assert seek_time(12.0, 10.0) == 10.0
    assert seek_time(-1.0, 10.0) == 0.0
    assert seek_time(3.0, None) is None
    assert seek_time(3.0, 0.0) is None


def test_format_and_hue():
    assert format_seconds(1.23456) == "1.235 s"
    assert format_seconds(None) == "-"
    assert label_hue("Reach") == label_hue(" reach ")
    assert 0 <= label_hue("anything") < 360
    assert label_hue("") == 0


def test_context_seeks_video_to_mark():
    ctx = ViewerContext(Settings())
    s = ctx.store.add_session([], name="s")
    ctx.store.set_active_session(s)
    mark = ctx.store.add_timestamp(s.id, 7.5, label="lift")
    seeks = []
    assert ctx.seek_to_timestamp(mark.id, 5.0, seeks.append) == 5.0
    assert seeks == [5.0]
    assert ctx.seek_to_timestamp(mark.id, None, seeks.append) is None
    assert seeks == [5.0]
    with pytest.raises(InputDataError):
        ctx.seek_to_timestamp("nope", 5.0, seeks.append)
