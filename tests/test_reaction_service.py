"""
tests/test_reaction_service.py — Reaction Index Tests
======================================================
Covers idempotent add, remove, toggle-as-its-own-inverse, grouped
summaries (order + includes_me) and thread activity bumps.
"""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from colloquy.database.models import Reaction, Thread
from colloquy.errors import ErrorCode, InvalidStateError, NotFoundError
from colloquy.services import message_service, reaction_service, thread_service


class TestAdd:
    def test_returns_id_then_none(self, db_engine, message_id):
        first = reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        again = reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        assert isinstance(first, int)
        assert again is None
        with Session(db_engine) as s:
            assert s.scalar(select(func.count()).select_from(Reaction)) == 1

    def test_missing_message(self, db_engine):
        with pytest.raises(NotFoundError) as exc:
            reaction_service.add_reaction(db_engine, 404, "bob", "👍")
        assert exc.value.code == ErrorCode.E_MESSAGE_NOT_FOUND

    def test_deleted_message(self, db_engine, message_id):
        message_service.soft_delete_message(db_engine, message_id)
        with pytest.raises(InvalidStateError) as exc:
            reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        assert exc.value.code == ErrorCode.E_MESSAGE_DELETED

    def test_bumps_thread_activity(self, db_engine, thread_id, message_id):
        old = datetime(2020, 1, 1, tzinfo=UTC)
        with Session(db_engine) as s:
            s.execute(update(Thread).where(Thread.id == thread_id).values(last_activity_at=old))
            s.commit()
        reaction_service.add_reaction(db_engine, message_id, "bob", "🎉")
        assert thread_service.get_thread(db_engine, thread_id).last_activity_at > old


class TestRemove:
    def test_remove_existing(self, db_engine, message_id):
        reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        assert reaction_service.remove_reaction(db_engine, message_id, "bob", "👍") is True
        assert reaction_service.get_reactions(db_engine, message_id) == []

    def test_remove_absent(self, db_engine, message_id):
        assert reaction_service.remove_reaction(db_engine, message_id, "bob", "👍") is False


class TestToggle:
    def test_toggle_twice_is_inverse(self, db_engine, message_id):
        on = reaction_service.toggle_reaction(db_engine, message_id, "bob", "❤️")
        off = reaction_service.toggle_reaction(db_engine, message_id, "bob", "❤️")
        assert on.added is True and on.reaction_id is not None
        assert off.added is False and off.reaction_id is None
        assert reaction_service.get_reactions(db_engine, message_id) == []

    def test_toggle_on_deleted_message(self, db_engine, message_id):
        message_service.soft_delete_message(db_engine, message_id)
        with pytest.raises(InvalidStateError):
            reaction_service.toggle_reaction(db_engine, message_id, "bob", "❤️")

    def test_toggle_missing_message(self, db_engine):
        with pytest.raises(NotFoundError):
            reaction_service.toggle_reaction(db_engine, 77, "bob", "❤️")

    def test_toggle_on_bumps_thread_activity(self, db_engine, thread_id, message_id):
        old = datetime(2020, 1, 1, tzinfo=UTC)
        with Session(db_engine) as s:
            s.execute(update(Thread).where(Thread.id == thread_id).values(last_activity_at=old))
            s.commit()
        assert reaction_service.toggle_reaction(db_engine, message_id, "bob", "🎉").added is True
        assert thread_service.get_thread(db_engine, thread_id).last_activity_at > old


class TestSummaries:
    def test_grouped_in_first_seen_order(self, db_engine, message_id):
        for user, emoji in [
            ("bob", "👍"), ("carol", "🎉"), ("dave", "👍"), ("erin", "🎉"), ("bob", "🎉"),
        ]:
            reaction_service.add_reaction(db_engine, message_id, user, emoji)

        summary = reaction_service.get_reactions(db_engine, message_id, current_user_id="dave")
        assert [s.emoji for s in summary] == ["👍", "🎉"]
        thumbs, party = summary
        assert thumbs.count == 2 and thumbs.users == ["bob", "dave"]
        assert thumbs.includes_me is True
        assert party.count == 3 and party.users == ["carol", "erin", "bob"]
        assert party.includes_me is False

    def test_includes_me_false_without_viewer(self, db_engine, message_id):
        reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        (summary,) = reaction_service.get_reactions(db_engine, message_id)
        assert summary.includes_me is False

    def test_users_for_emoji(self, db_engine, message_id):
        reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        reaction_service.add_reaction(db_engine, message_id, "carol", "👍")
        reaction_service.add_reaction(db_engine, message_id, "dave", "🎉")
        assert reaction_service.get_reaction_users(db_engine, message_id, "👍") == ["bob", "carol"]
        assert reaction_service.get_reaction_users(db_engine, message_id, "🚀") == []

    def test_summaries_scoped_per_message(self, db_engine, thread_id, message_id):
        other = message_service.add_comment(db_engine, thread_id, "bob", "second").message_id
        reaction_service.add_reaction(db_engine, message_id, "bob", "👍")
        reaction_service.add_reaction(db_engine, other, "carol", "👀")

        page = message_service.list_messages(db_engine, thread_id)
        by_id = {m.message.id: m.reactions for m in page.messages}
        assert [r.emoji for r in by_id[message_id]] == ["👍"]
        assert [r.emoji for r in by_id[other]] == ["👀"]
