"""
colloquy.services.reaction_service — Reaction Index
===================================================

Emoji reactions on messages.  Each ``(message_id, emoji, user_id)``
triple exists at most once (``uq_reactions_message_emoji_user``), which
makes ``add`` idempotent and ``toggle`` its own inverse.

Summaries group by emoji in order of each emoji's first reaction; the
``users`` list inside a group keeps reaction creation order.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from colloquy.database.engine import get_session
from colloquy.database.models import Message, Reaction, utcnow
from colloquy.engine.results import ReactionSummary, ToggleResult
from colloquy.errors import ErrorCode, InvalidStateError, message_not_found
from colloquy.services.thread_service import bump_activity

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _require_live_message(session: Session, message_id: int) -> Message:
    message = session.get(Message, message_id)
    if message is None:
        raise message_not_found(message_id)
    if message.is_deleted:
        raise InvalidStateError(
            ErrorCode.E_MESSAGE_DELETED, f"Cannot react to deleted message {message_id}"
        )
    return message


def _find(session: Session, message_id: int, user_id: str, emoji: str) -> Reaction | None:
    return session.scalar(
        select(Reaction).where(
            Reaction.message_id == message_id,
            Reaction.emoji == emoji,
            Reaction.user_id == user_id,
        )
    )


def _insert(session: Session, message: Message, user_id: str, emoji: str) -> int | None:
    """Insert the triple under a SAVEPOINT.  Returns ``None`` if a concurrent
    writer inserted it first."""
    now = utcnow()
    reaction = Reaction(message_id=message.id, user_id=user_id, emoji=emoji, created_at=now)
    try:
        with session.begin_nested():
            session.add(reaction)
            session.flush()
    except IntegrityError:
        logger.warning(
            "Reaction %r on message %d by %s already inserted concurrently",
            emoji, message.id, user_id,
        )
        return None

    bump_activity(session, message.thread_id, now)
    return reaction.id


def summarize_in_session(
    session: Session,
    message_ids: list[int],
    current_user_id: str | None = None,
) -> dict[int, list[ReactionSummary]]:
    """Grouped reaction summaries for several messages in one query.

    Messages without reactions map to an empty list.
    """
    summaries: dict[int, list[ReactionSummary]] = {mid: [] for mid in message_ids}
    if not message_ids:
        return summaries

    rows = session.execute(
        select(Reaction.message_id, Reaction.emoji, Reaction.user_id)
        .where(Reaction.message_id.in_(message_ids))
        .order_by(Reaction.created_at.asc(), Reaction.id.asc())
    ).all()

    # message_id -> emoji -> [user_id]; dicts keep first-seen order
    grouped: dict[int, dict[str, list[str]]] = {}
    for message_id, emoji, user_id in rows:
        grouped.setdefault(message_id, {}).setdefault(emoji, []).append(user_id)

    for message_id, by_emoji in grouped.items():
        summaries[message_id] = [
            ReactionSummary(
                emoji=emoji,
                count=len(users),
                users=users,
                includes_me=current_user_id is not None and current_user_id in users,
            )
            for emoji, users in by_emoji.items()
        ]
    return summaries


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def add_reaction(engine: Engine, message_id: int, user_id: str, emoji: str) -> int | None:
    """Add a reaction.  Returns the new id, or ``None`` if it already existed."""
    with get_session(engine) as session:
        message = _require_live_message(session, message_id)
        if _find(session, message_id, user_id, emoji) is not None:
            return None
        reaction_id = _insert(session, message, user_id, emoji)

    if reaction_id is not None:
        logger.debug("Reaction %r added to message %d by %s", emoji, message_id, user_id)
    return reaction_id


def remove_reaction(engine: Engine, message_id: int, user_id: str, emoji: str) -> bool:
    """Remove a reaction.  Returns ``True`` if a row was deleted."""
    with get_session(engine) as session:
        removed = session.execute(
            delete(Reaction).where(
                Reaction.message_id == message_id,
                Reaction.emoji == emoji,
                Reaction.user_id == user_id,
            ),
            execution_options={"synchronize_session": False},
        ).rowcount
    return removed > 0


def toggle_reaction(engine: Engine, message_id: int, user_id: str, emoji: str) -> ToggleResult:
    """Remove the reaction if present, otherwise add it.

    A toggle that loses an insert race to an identical concurrent toggle
    reports the reaction as added, which is the resulting state.
    """
    with get_session(engine) as session:
        message = _require_live_message(session, message_id)

        existing = _find(session, message_id, user_id, emoji)
        if existing is not None:
            session.delete(existing)
            logger.debug("Reaction %r toggled off message %d by %s", emoji, message_id, user_id)
            return ToggleResult(added=False)

        reaction_id = _insert(session, message, user_id, emoji)
        if reaction_id is None:
            winner = _find(session, message_id, user_id, emoji)
            reaction_id = winner.id if winner else None

    logger.debug("Reaction %r toggled on message %d by %s", emoji, message_id, user_id)
    return ToggleResult(added=True, reaction_id=reaction_id)


def get_reactions(
    engine: Engine, message_id: int, current_user_id: str | None = None
) -> list[ReactionSummary]:
    with get_session(engine) as session:
        return summarize_in_session(session, [message_id], current_user_id)[message_id]


def get_reaction_users(engine: Engine, message_id: int, emoji: str) -> list[str]:
    """User ids that reacted with *emoji*, oldest first."""
    with get_session(engine) as session:
        return list(
            session.scalars(
                select(Reaction.user_id)
                .where(Reaction.message_id == message_id, Reaction.emoji == emoji)
                .order_by(Reaction.created_at.asc(), Reaction.id.asc())
            ).all()
        )
