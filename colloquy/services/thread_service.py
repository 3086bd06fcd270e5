"""
colloquy.services.thread_service — Thread Store
===============================================

Threads group messages inside a zone.  They carry resolution state, an
optional spatial :class:`~colloquy.engine.results.Position` and an
activity timestamp that message and reaction writes bump.

Listings are ordered by ``(last_activity_at, id)`` descending, so the
most recently active conversation comes first.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import Engine, func, select
from sqlalchemy.orm import Session

from colloquy.constants import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from colloquy.database.engine import get_session
from colloquy.database.models import Message, Thread, Zone, utcnow
from colloquy.engine import pagination
from colloquy.engine.results import (
    CascadeResult,
    MessagePreview,
    Position,
    ThreadPage,
    ThreadRecord,
    ThreadWithPreview,
)
from colloquy.errors import thread_not_found, zone_not_found
from colloquy.services import cascade_service

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# In-session helpers (shared with the message / reaction / typing services)
# ---------------------------------------------------------------------------
def require_thread(session: Session, thread_id: int) -> Thread:
    """Load a thread or raise :class:`~colloquy.errors.NotFoundError`."""
    thread = session.get(Thread, thread_id)
    if thread is None:
        raise thread_not_found(thread_id)
    return thread


def bump_activity(session: Session, thread_id: int, now: datetime | None = None) -> None:
    """Set ``last_activity_at`` in the caller's transaction.

    A thread that vanished mid-flight is ignored; the caller's own write
    will fail on its foreign key if that matters.
    """
    thread = session.get(Thread, thread_id)
    if thread is not None:
        thread.last_activity_at = now or utcnow()


def _preview(session: Session, thread_id: int) -> MessagePreview | None:
    first = session.scalar(
        select(Message)
        .where(Message.thread_id == thread_id, Message.is_deleted.is_(False))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .limit(1)
    )
    if first is None:
        return None
    return MessagePreview(
        id=first.id,
        body=first.body,
        author_id=first.author_id,
        created_at=pagination.normalize_dt(first.created_at),
    )


def _live_message_counts(session: Session, thread_ids: list[int]) -> dict[int, int]:
    if not thread_ids:
        return {}
    rows = session.execute(
        select(Message.thread_id, func.count(Message.id))
        .where(Message.thread_id.in_(thread_ids), Message.is_deleted.is_(False))
        .group_by(Message.thread_id)
    ).all()
    return {thread_id: count for thread_id, count in rows}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def create_thread(
    engine: Engine,
    zone_id: int,
    position: Position | dict | None = None,
    metadata: object = None,
) -> int:
    """Open a new thread in *zone_id* and return its id."""
    pos = Position.coerce(position)
    with get_session(engine) as session:
        if session.get(Zone, zone_id) is None:
            raise zone_not_found(zone_id)

        now = utcnow()
        thread = Thread(
            zone_id=zone_id,
            resolved=False,
            created_at=now,
            last_activity_at=now,
            position=pos.to_dict() if pos else None,
            metadata_=metadata,
        )
        session.add(thread)
        session.flush()
        logger.info("Thread created → id=%d zone=%d", thread.id, zone_id)
        return thread.id


def get_thread(engine: Engine, thread_id: int) -> ThreadRecord | None:
    with get_session(engine) as session:
        row = session.get(Thread, thread_id)
        return ThreadRecord.from_row(row) if row else None


def list_threads(
    engine: Engine,
    zone_id: int,
    limit: int | None = None,
    include_resolved: bool = True,
    cursor: str | None = None,
    *,
    default_limit: int = DEFAULT_PAGE_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> ThreadPage:
    """Page through a zone's threads, most recently active first.

    The resolved filter runs on the ``limit + 1`` window *before*
    ``has_more`` is computed, so a page may hold fewer than *limit*
    threads while more exist further down.  An unknown zone yields an
    empty page.
    """
    limit = pagination.clamp_limit(limit, default_limit, max_limit)
    order = pagination.ORDER_DESC

    stmt = select(Thread).where(Thread.zone_id == zone_id)
    if cursor:
        stmt = stmt.where(
            pagination.past_cursor(Thread.last_activity_at, Thread.id, cursor, order)
        )
    stmt = stmt.order_by(
        *pagination.order_by(Thread.last_activity_at, Thread.id, order)
    ).limit(limit + 1)

    with get_session(engine) as session:
        window = session.scalars(stmt).all()
        if not include_resolved:
            window = [t for t in window if not t.resolved]

        has_more = len(window) > limit
        page = window[:limit]

        counts = _live_message_counts(session, [t.id for t in page])
        threads = [
            ThreadWithPreview(
                thread=ThreadRecord.from_row(t),
                first_message=_preview(session, t.id),
                message_count=counts.get(t.id, 0),
            )
            for t in page
        ]

    next_cursor = None
    if has_more and page:
        last = page[-1]
        next_cursor = pagination.encode_cursor(last.last_activity_at, last.id)

    return ThreadPage(threads=threads, next_cursor=next_cursor, has_more=has_more)


def resolve_thread(engine: Engine, thread_id: int, user_id: str) -> None:
    """Mark a thread resolved.  Re-resolving restamps ``resolved_by``/``resolved_at``."""
    with get_session(engine) as session:
        thread = require_thread(session, thread_id)
        thread.resolved = True
        thread.resolved_by = user_id
        thread.resolved_at = utcnow()
    logger.info("Thread %d resolved by %s", thread_id, user_id)


def unresolve_thread(engine: Engine, thread_id: int) -> None:
    with get_session(engine) as session:
        thread = require_thread(session, thread_id)
        thread.resolved = False
        thread.resolved_by = None
        thread.resolved_at = None
    logger.info("Thread %d reopened", thread_id)


def update_thread_position(
    engine: Engine, thread_id: int, position: Position | dict | None
) -> None:
    """Overwrite the thread's position; ``None`` clears it."""
    pos = Position.coerce(position)
    with get_session(engine) as session:
        thread = require_thread(session, thread_id)
        thread.position = pos.to_dict() if pos else None


def touch_thread_activity(engine: Engine, thread_id: int) -> None:
    """Bump ``last_activity_at`` to now (write paths only)."""
    with get_session(engine) as session:
        thread = require_thread(session, thread_id)
        thread.last_activity_at = utcnow()


def delete_thread(engine: Engine, thread_id: int) -> CascadeResult:
    """Delete a thread with its messages, reactions and typing indicators."""
    return cascade_service.delete_thread(engine, thread_id)
