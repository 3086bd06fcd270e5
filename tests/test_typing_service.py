"""
tests/test_typing_service.py — Typing Presence Tests
=====================================================
Time is passed explicitly via ``now=`` so expiry is deterministic.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from colloquy.database.models import TypingIndicator
from colloquy.errors import NotFoundError
from colloquy.services import thread_service, typing_service

T0 = datetime(2026, 6, 1, 12, 0, 0, tzinfo=UTC)


def _row_count(engine) -> int:
    with Session(engine) as s:
        return s.scalar(select(func.count()).select_from(TypingIndicator))


class TestSetTyping:
    def test_start_returns_expiry(self, db_engine, thread_id):
        expires = typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        assert expires == T0 + timedelta(seconds=5)

    def test_custom_ttl(self, db_engine, thread_id):
        expires = typing_service.set_typing(
            db_engine, thread_id, "alice", True, ttl_seconds=2.5, now=T0
        )
        assert expires == T0 + timedelta(seconds=2.5)

    def test_upsert_refreshes_single_row(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        later = T0 + timedelta(seconds=3)
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=later)

        assert _row_count(db_engine) == 1
        (user,) = typing_service.get_typing_users(db_engine, thread_id, now=later)
        assert user.updated_at == later

    def test_stop_removes_row(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        assert typing_service.set_typing(db_engine, thread_id, "alice", False, now=T0) is None
        assert _row_count(db_engine) == 0

    def test_redundant_stop_is_noop(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", False)
        assert _row_count(db_engine) == 0

    def test_missing_thread(self, db_engine):
        with pytest.raises(NotFoundError):
            typing_service.set_typing(db_engine, 4040, "alice", True)


class TestGetTypingUsers:
    def test_logical_expiry_before_sweep(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)

        at_expiry = T0 + timedelta(seconds=5)
        past_expiry = T0 + timedelta(seconds=6)
        assert [u.user_id for u in typing_service.get_typing_users(
            db_engine, thread_id, now=at_expiry)] == ["alice"]
        assert typing_service.get_typing_users(db_engine, thread_id, now=past_expiry) == []
        # Row still physically present until a sweep runs
        assert _row_count(db_engine) == 1

    def test_exclude_caller(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        typing_service.set_typing(db_engine, thread_id, "bob", True, now=T0 + timedelta(seconds=1))

        users = typing_service.get_typing_users(
            db_engine, thread_id, exclude_user_id="alice", now=T0 + timedelta(seconds=2)
        )
        assert [u.user_id for u in users] == ["bob"]

    def test_scoped_to_thread(self, db_engine, zone_id, thread_id):
        other = thread_service.create_thread(db_engine, zone_id)
        typing_service.set_typing(db_engine, other, "alice", True, now=T0)
        assert typing_service.get_typing_users(db_engine, thread_id, now=T0) == []


class TestClearUserTyping:
    def test_clears_across_threads(self, db_engine, zone_id, thread_id):
        other = thread_service.create_thread(db_engine, zone_id)
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        typing_service.set_typing(db_engine, other, "alice", True, now=T0)
        typing_service.set_typing(db_engine, other, "bob", True, now=T0)

        assert typing_service.clear_user_typing(db_engine, "alice") == 2
        assert _row_count(db_engine) == 1
        assert typing_service.clear_user_typing(db_engine, "alice") == 0


class TestSweepExpired:
    def test_removes_only_expired(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        typing_service.set_typing(
            db_engine, thread_id, "bob", True, now=T0 + timedelta(seconds=10)
        )

        removed = typing_service.sweep_expired(db_engine, now=T0 + timedelta(seconds=6))
        assert removed == 1
        assert _row_count(db_engine) == 1

    def test_idempotent(self, db_engine, thread_id):
        typing_service.set_typing(db_engine, thread_id, "alice", True, now=T0)
        sweep_at = T0 + timedelta(seconds=6)
        assert typing_service.sweep_expired(db_engine, now=sweep_at) == 1
        assert typing_service.sweep_expired(db_engine, now=sweep_at) == 0

    def test_batched(self, db_engine, zone_id):
        threads = [thread_service.create_thread(db_engine, zone_id) for _ in range(5)]
        for tid in threads:
            typing_service.set_typing(db_engine, tid, "alice", True, now=T0)

        removed = typing_service.sweep_expired(
            db_engine, now=T0 + timedelta(minutes=1), batch_size=2
        )
        assert removed == 5
        assert _row_count(db_engine) == 0
