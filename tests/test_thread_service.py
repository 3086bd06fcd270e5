"""
tests/test_thread_service.py — Thread Store Tests
==================================================
Covers creation, resolution, position updates, activity ordering and
the paginated listing with previews and resolved-filtering.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import update
from sqlalchemy.orm import Session

from colloquy.database.models import Thread
from colloquy.engine.results import Position
from colloquy.errors import ErrorCode, InvalidRequestError, NotFoundError
from colloquy.services import message_service, thread_service


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
BASE = datetime(2020, 5, 1, 9, 0, tzinfo=UTC)


def _set_activity(engine, thread_id: int, ts: datetime) -> None:
    with Session(engine) as s:
        s.execute(update(Thread).where(Thread.id == thread_id).values(last_activity_at=ts))
        s.commit()


def _threads_with_activity(engine, zone_id: int, count: int) -> list[int]:
    """Create *count* threads; thread i gets activity BASE + i minutes."""
    ids = []
    for i in range(count):
        tid = thread_service.create_thread(engine, zone_id)
        _set_activity(engine, tid, BASE + timedelta(minutes=i))
        ids.append(tid)
    return ids


# ---------------------------------------------------------------------------
# Create / get
# ---------------------------------------------------------------------------
class TestCreate:
    def test_initial_state(self, db_engine, zone_id):
        tid = thread_service.create_thread(
            db_engine, zone_id, {"x": 10, "y": 20.5, "anchor": "p3"}, {"color": "red"}
        )
        thread = thread_service.get_thread(db_engine, tid)
        assert thread.zone_id == zone_id
        assert thread.resolved is False
        assert thread.resolved_by is None and thread.resolved_at is None
        assert thread.created_at == thread.last_activity_at
        assert thread.position == Position(x=10.0, y=20.5, anchor="p3")
        assert thread.metadata == {"color": "red"}

    def test_unknown_zone(self, db_engine):
        with pytest.raises(NotFoundError) as exc:
            thread_service.create_thread(db_engine, 12345)
        assert exc.value.code == ErrorCode.E_ZONE_NOT_FOUND

    def test_invalid_position(self, db_engine, zone_id):
        with pytest.raises(InvalidRequestError) as exc:
            thread_service.create_thread(db_engine, zone_id, {"x": "left"})
        assert exc.value.code == ErrorCode.E_INVALID_POSITION

    def test_get_missing(self, db_engine):
        assert thread_service.get_thread(db_engine, 999) is None


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------
class TestResolution:
    def test_resolve_then_unresolve(self, db_engine, thread_id):
        thread_service.resolve_thread(db_engine, thread_id, "alice")
        t = thread_service.get_thread(db_engine, thread_id)
        assert t.resolved is True
        assert t.resolved_by == "alice"
        assert t.resolved_at is not None

        thread_service.unresolve_thread(db_engine, thread_id)
        t = thread_service.get_thread(db_engine, thread_id)
        assert t.resolved is False
        assert t.resolved_by is None
        assert t.resolved_at is None

    def test_re_resolve_restamps(self, db_engine, thread_id):
        thread_service.resolve_thread(db_engine, thread_id, "alice")
        thread_service.resolve_thread(db_engine, thread_id, "bob")
        assert thread_service.get_thread(db_engine, thread_id).resolved_by == "bob"

    def test_resolve_missing(self, db_engine):
        with pytest.raises(NotFoundError):
            thread_service.resolve_thread(db_engine, 777, "alice")
        with pytest.raises(NotFoundError):
            thread_service.unresolve_thread(db_engine, 777)


# ---------------------------------------------------------------------------
# Position / activity
# ---------------------------------------------------------------------------
class TestPositionAndActivity:
    def test_update_and_clear_position(self, db_engine, thread_id):
        thread_service.update_thread_position(db_engine, thread_id, Position(1, 2))
        assert thread_service.get_thread(db_engine, thread_id).position == Position(1.0, 2.0)

        thread_service.update_thread_position(db_engine, thread_id, None)
        assert thread_service.get_thread(db_engine, thread_id).position is None

    def test_touch_activity(self, db_engine, thread_id):
        _set_activity(db_engine, thread_id, BASE)
        thread_service.touch_thread_activity(db_engine, thread_id)
        assert thread_service.get_thread(db_engine, thread_id).last_activity_at > BASE

    def test_new_comment_bumps_activity(self, db_engine, thread_id):
        _set_activity(db_engine, thread_id, BASE)
        message_service.add_comment(db_engine, thread_id, "alice", "hi")
        assert thread_service.get_thread(db_engine, thread_id).last_activity_at > BASE

    def test_touch_missing(self, db_engine):
        with pytest.raises(NotFoundError):
            thread_service.touch_thread_activity(db_engine, 404)


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------
class TestListThreads:
    def test_most_recent_activity_first(self, db_engine, zone_id):
        ids = _threads_with_activity(db_engine, zone_id, 3)
        page = thread_service.list_threads(db_engine, zone_id)
        assert [t.thread.id for t in page.threads] == list(reversed(ids))
        assert page.has_more is False
        assert page.next_cursor is None

    def test_pages_are_exhaustive(self, db_engine, zone_id):
        ids = _threads_with_activity(db_engine, zone_id, 5)

        first = thread_service.list_threads(db_engine, zone_id, limit=2)
        assert first.has_more is True
        second = thread_service.list_threads(db_engine, zone_id, limit=2, cursor=first.next_cursor)
        assert second.has_more is True
        third = thread_service.list_threads(db_engine, zone_id, limit=2, cursor=second.next_cursor)
        assert third.has_more is False
        assert third.next_cursor is None

        seen = [t.thread.id for p in (first, second, third) for t in p.threads]
        assert seen == list(reversed(ids))

    def test_equal_timestamps_not_skipped(self, db_engine, zone_id):
        ids = [thread_service.create_thread(db_engine, zone_id) for _ in range(4)]
        for tid in ids:
            _set_activity(db_engine, tid, BASE)

        first = thread_service.list_threads(db_engine, zone_id, limit=2)
        second = thread_service.list_threads(db_engine, zone_id, limit=2, cursor=first.next_cursor)
        seen = [t.thread.id for t in first.threads + second.threads]
        assert sorted(seen) == sorted(ids)
        assert len(set(seen)) == 4

    def test_exclude_resolved(self, db_engine, zone_id):
        ids = _threads_with_activity(db_engine, zone_id, 3)
        thread_service.resolve_thread(db_engine, ids[1], "alice")
        _set_activity(db_engine, ids[1], BASE + timedelta(minutes=1))

        page = thread_service.list_threads(db_engine, zone_id, include_resolved=False)
        assert [t.thread.id for t in page.threads] == [ids[2], ids[0]]

        page = thread_service.list_threads(db_engine, zone_id)
        assert len(page.threads) == 3

    def test_resolved_filter_applies_before_has_more(self, db_engine, zone_id):
        """limit + 1 window holds 2 resolved rows → short page, has_more false."""
        ids = _threads_with_activity(db_engine, zone_id, 4)
        for tid in ids[2:]:
            thread_service.resolve_thread(db_engine, tid, "alice")
            _set_activity(db_engine, tid, BASE + timedelta(minutes=ids.index(tid)))

        page = thread_service.list_threads(db_engine, zone_id, limit=3, include_resolved=False)
        assert [t.thread.id for t in page.threads] == [ids[1], ids[0]]
        assert page.has_more is False

    def test_preview_and_count(self, db_engine, zone_id, thread_id):
        first = message_service.add_comment(db_engine, thread_id, "alice", "opening").message_id
        message_service.add_comment(db_engine, thread_id, "bob", "reply")
        gone = message_service.add_comment(db_engine, thread_id, "carol", "oops").message_id
        message_service.soft_delete_message(db_engine, gone)

        (entry,) = thread_service.list_threads(db_engine, zone_id).threads
        assert entry.message_count == 2
        assert entry.first_message.id == first
        assert entry.first_message.body == "opening"
        assert entry.first_message.author_id == "alice"

    def test_preview_skips_deleted_first_message(self, db_engine, zone_id, thread_id):
        first = message_service.add_comment(db_engine, thread_id, "alice", "one").message_id
        message_service.add_comment(db_engine, thread_id, "bob", "two")
        message_service.soft_delete_message(db_engine, first)

        (entry,) = thread_service.list_threads(db_engine, zone_id).threads
        assert entry.first_message.body == "two"

    def test_empty_thread_has_no_preview(self, db_engine, zone_id, thread_id):
        (entry,) = thread_service.list_threads(db_engine, zone_id).threads
        assert entry.first_message is None
        assert entry.message_count == 0

    def test_unknown_zone_is_empty(self, db_engine):
        page = thread_service.list_threads(db_engine, 5_000)
        assert page.threads == [] and page.has_more is False

    def test_bad_cursor(self, db_engine, zone_id):
        with pytest.raises(InvalidRequestError):
            thread_service.list_threads(db_engine, zone_id, cursor="garbage")
