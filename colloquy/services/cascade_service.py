"""
colloquy.services.cascade_service — Subtree Deletion
====================================================

Removes a zone or a thread together with everything it owns:

    zone → threads → messages → reactions
                   → typing indicators

Each public call runs in **one** transaction, so callers never observe a
half-deleted hierarchy.  Every step is a ``DELETE … WHERE <parent>`` so
re-running after a partial failure (or against an already-deleted
parent) is a harmless no-op that reports zero counts.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from colloquy.database.engine import get_session
from colloquy.database.models import Message, Reaction, Thread, TypingIndicator, Zone
from colloquy.engine.results import CascadeResult

logger = logging.getLogger(__name__)

# Rows are gone from the DB; nothing loaded in the session needs syncing
_NO_SYNC = {"synchronize_session": False}


def _delete_thread_subtree(session: Session, thread_id: int) -> CascadeResult:
    """Delete one thread's reactions, messages, typing rows and the thread itself."""
    message_ids = select(Message.id).where(Message.thread_id == thread_id)

    reactions = session.execute(
        delete(Reaction).where(Reaction.message_id.in_(message_ids)),
        execution_options=_NO_SYNC,
    ).rowcount
    messages = session.execute(
        delete(Message).where(Message.thread_id == thread_id),
        execution_options=_NO_SYNC,
    ).rowcount
    typing = session.execute(
        delete(TypingIndicator).where(TypingIndicator.thread_id == thread_id),
        execution_options=_NO_SYNC,
    ).rowcount
    threads = session.execute(
        delete(Thread).where(Thread.id == thread_id),
        execution_options=_NO_SYNC,
    ).rowcount

    return CascadeResult(
        deleted_threads=threads,
        deleted_messages=messages,
        deleted_reactions=reactions,
        deleted_typing_indicators=typing,
    )


def delete_thread(engine: Engine, thread_id: int) -> CascadeResult:
    """Delete a thread and its subtree.  The owning zone is untouched."""
    with get_session(engine) as session:
        result = _delete_thread_subtree(session, thread_id)

    if result.deleted_threads:
        logger.info(
            "Thread %d deleted — %d messages, %d reactions, %d typing rows",
            thread_id, result.deleted_messages, result.deleted_reactions,
            result.deleted_typing_indicators,
        )
    return result


def delete_zone(engine: Engine, zone_id: int) -> CascadeResult:
    """Delete a zone, all of its threads and everything below them."""
    total = CascadeResult()
    with get_session(engine) as session:
        thread_ids = session.scalars(
            select(Thread.id).where(Thread.zone_id == zone_id)
        ).all()

        for thread_id in thread_ids:
            total.merge(_delete_thread_subtree(session, thread_id))

        zones = session.execute(
            delete(Zone).where(Zone.id == zone_id),
            execution_options=_NO_SYNC,
        ).rowcount

    if zones:
        logger.info(
            "Zone %d deleted — %d threads, %d messages, %d reactions",
            zone_id, total.deleted_threads, total.deleted_messages,
            total.deleted_reactions,
        )
    return total
