"""
colloquy.services.typing_service — Typing Presence Registry
===========================================================

Per-``(thread_id, user_id)`` presence with a time-to-live.

    Idle ──set_typing(True)──► Typing ──set_typing(False) / post / TTL──► Idle

A row is *logically* expired as soon as ``expires_at`` has passed:
:func:`get_typing_users` filters on ``expires_at >= now`` at read time,
so correctness never depends on when :func:`sweep_expired` physically
removes the row.

**Sweeps are batched** like any bulk delete: rows are removed in chunks
of ``SWEEP_BATCH_SIZE`` so a backlog never holds a long lock.  Sweeping
is idempotent and safe to run concurrently with itself.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from colloquy.constants import SWEEP_BATCH_SIZE, TYPING_TTL_SECONDS
from colloquy.database.engine import get_session
from colloquy.database.models import TypingIndicator, utcnow
from colloquy.engine.pagination import normalize_dt
from colloquy.engine.results import TypingUser
from colloquy.errors import ConflictError, ErrorCode
from colloquy.services.thread_service import require_thread

logger = logging.getLogger(__name__)


def _find(session: Session, thread_id: int, user_id: str) -> TypingIndicator | None:
    return session.scalar(
        select(TypingIndicator).where(
            TypingIndicator.thread_id == thread_id,
            TypingIndicator.user_id == user_id,
        )
    )


def set_typing(
    engine: Engine,
    thread_id: int,
    user_id: str,
    is_typing: bool,
    *,
    ttl_seconds: float = TYPING_TTL_SECONDS,
    now: datetime | None = None,
) -> datetime | None:
    """Mark *user_id* as typing (or not) in *thread_id*.

    Returns the new ``expires_at`` when typing, ``None`` when stopping.
    Stopping without a live row is a no-op.  Scheduling the follow-up
    sweep is the caller's concern (see :class:`~colloquy.services.sweeper.TypingSweeper`).
    """
    now = normalize_dt(now) if now else utcnow()
    with get_session(engine) as session:
        require_thread(session, thread_id)
        existing = _find(session, thread_id, user_id)

        if not is_typing:
            if existing is not None:
                session.delete(existing)
            return None

        expires_at = now + timedelta(seconds=ttl_seconds)
        if existing is not None:
            existing.updated_at = now
            existing.expires_at = expires_at
            return expires_at

        row = TypingIndicator(
            thread_id=thread_id, user_id=user_id, updated_at=now, expires_at=expires_at
        )
        try:
            with session.begin_nested():
                session.add(row)
                session.flush()
        except IntegrityError:
            winner = _find(session, thread_id, user_id)
            if winner is None:
                raise ConflictError(
                    ErrorCode.E_CONFLICT,
                    f"Typing indicator for {user_id} in thread {thread_id} changed concurrently",
                ) from None
            logger.warning(
                "Typing upsert race for %s in thread %d; refreshing existing row",
                user_id, thread_id,
            )
            winner.updated_at = now
            winner.expires_at = expires_at

    logger.debug("Typing: %s in thread %d until %s", user_id, thread_id, expires_at.isoformat())
    return expires_at


def get_typing_users(
    engine: Engine,
    thread_id: int,
    exclude_user_id: str | None = None,
    *,
    now: datetime | None = None,
) -> list[TypingUser]:
    """Users whose indicator has not yet expired, earliest update first."""
    now = normalize_dt(now) if now else utcnow()
    stmt = select(TypingIndicator.user_id, TypingIndicator.updated_at).where(
        TypingIndicator.thread_id == thread_id,
        TypingIndicator.expires_at >= now,
    )
    if exclude_user_id is not None:
        stmt = stmt.where(TypingIndicator.user_id != exclude_user_id)
    stmt = stmt.order_by(TypingIndicator.updated_at.asc(), TypingIndicator.id.asc())

    with get_session(engine) as session:
        return [
            TypingUser(user_id=user_id, updated_at=normalize_dt(updated_at))
            for user_id, updated_at in session.execute(stmt).all()
        ]


def clear_user_typing(engine: Engine, user_id: str) -> int:
    """Remove every indicator for *user_id* across all threads (disconnect cleanup).

    ``user_id`` is not indexed on its own, so this scans the table.
    """
    with get_session(engine) as session:
        removed = session.execute(
            delete(TypingIndicator).where(TypingIndicator.user_id == user_id),
            execution_options={"synchronize_session": False},
        ).rowcount

    if removed:
        logger.debug("Cleared %d typing indicators for %s", removed, user_id)
    return removed


def sweep_expired(
    engine: Engine,
    now: datetime | None = None,
    *,
    batch_size: int = SWEEP_BATCH_SIZE,
) -> int:
    """Delete every indicator with ``expires_at < now``.  Returns the count."""
    now = normalize_dt(now) if now else utcnow()
    total = 0

    while True:
        with get_session(engine) as session:
            ids = session.scalars(
                select(TypingIndicator.id)
                .where(TypingIndicator.expires_at < now)
                .limit(batch_size)
            ).all()
            if not ids:
                break

            total += session.execute(
                delete(TypingIndicator).where(TypingIndicator.id.in_(ids)),
                execution_options={"synchronize_session": False},
            ).rowcount

        if len(ids) < batch_size:
            break

    if total:
        logger.info("Typing sweep removed %d expired indicators", total)
    return total
