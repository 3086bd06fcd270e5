"""
colloquy.services.message_service — Message Store
=================================================

Individual comments within a thread.

Lifecycle::

    add_comment ──► live ──edit──► live (is_edited)
                      │
                      ├─soft_delete──► deleted (body masked, reactions kept)
                      └─permanently_delete──► gone (reactions purged)

Every body write re-runs the extractor, so stored mentions/links always
match the stored body.  Creating, editing and reacting bump the owning
thread's ``last_activity_at`` in the same transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session

from colloquy.constants import DEFAULT_PAGE_LIMIT, DELETED_PLACEHOLDER, MAX_PAGE_LIMIT
from colloquy.database.engine import get_session
from colloquy.database.models import Message, Reaction, TypingIndicator, utcnow
from colloquy.engine import pagination
from colloquy.engine.extractor import extract_links, extract_mentions
from colloquy.engine.results import (
    AddCommentResult,
    Attachment,
    EditResult,
    MessagePage,
    MessageRecord,
    MessageWithReactions,
)
from colloquy.errors import (
    ErrorCode,
    InvalidStateError,
    PermissionDeniedError,
    message_not_found,
)
from colloquy.services.reaction_service import summarize_in_session
from colloquy.services.thread_service import bump_activity, require_thread

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _require_message(session: Session, message_id: int) -> Message:
    message = session.get(Message, message_id)
    if message is None:
        raise message_not_found(message_id)
    return message


def _check_author(message: Message, author_id: str | None, action: str) -> None:
    if author_id is not None and message.author_id != author_id:
        raise PermissionDeniedError(
            ErrorCode.E_NOT_AUTHOR, f"You can only {action} your own messages"
        )


def _reject_deleted(message: Message, action: str) -> None:
    if message.is_deleted:
        raise InvalidStateError(
            ErrorCode.E_MESSAGE_DELETED, f"Cannot {action} a deleted message"
        )


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------
def add_comment(
    engine: Engine,
    thread_id: int,
    author_id: str,
    body: str,
    attachments: Iterable[Attachment | dict] | None = None,
) -> AddCommentResult:
    """Post a message to *thread_id*.

    Also clears the author's typing indicator on the thread: posting
    implies they stopped typing.
    """
    items = [Attachment.coerce(a) for a in attachments or []]
    mentions = extract_mentions(body)
    links = extract_links(body)

    with get_session(engine) as session:
        require_thread(session, thread_id)

        now = utcnow()
        message = Message(
            thread_id=thread_id,
            author_id=author_id,
            body=body,
            mentions=[m.to_dict() for m in mentions],
            links=[lk.to_dict() for lk in links],
            attachments=[a.to_dict() for a in items],
            is_edited=False,
            is_deleted=False,
            created_at=now,
        )
        session.add(message)
        session.flush()

        bump_activity(session, thread_id, now)
        session.execute(
            delete(TypingIndicator).where(
                TypingIndicator.thread_id == thread_id,
                TypingIndicator.user_id == author_id,
            ),
            execution_options={"synchronize_session": False},
        )
        message_id = message.id

    logger.debug(
        "Message %d added to thread %d by %s (%d mentions)",
        message_id, thread_id, author_id, len(mentions),
    )
    return AddCommentResult(message_id=message_id, mentions=mentions, links=links)


def get_message(
    engine: Engine, message_id: int, current_user_id: str | None = None
) -> MessageWithReactions | None:
    """Fetch one message with its grouped reactions, or ``None``."""
    with get_session(engine) as session:
        row = session.get(Message, message_id)
        if row is None:
            return None
        reactions = summarize_in_session(session, [row.id], current_user_id)[row.id]
        return MessageWithReactions(message=MessageRecord.from_row(row), reactions=reactions)


def list_messages(
    engine: Engine,
    thread_id: int,
    limit: int | None = None,
    cursor: str | None = None,
    order: str = pagination.ORDER_ASC,
    current_user_id: str | None = None,
    include_deleted: bool = False,
    *,
    default_limit: int = DEFAULT_PAGE_LIMIT,
    max_limit: int = MAX_PAGE_LIMIT,
) -> MessagePage:
    """Page through a thread's messages by ``(created_at, id)``.

    Soft-deleted messages are dropped from the ``limit + 1`` window
    before ``has_more`` is computed unless *include_deleted* is set.
    """
    order = pagination.validate_order(order)
    limit = pagination.clamp_limit(limit, default_limit, max_limit)

    stmt = select(Message).where(Message.thread_id == thread_id)
    if cursor:
        stmt = stmt.where(
            pagination.past_cursor(Message.created_at, Message.id, cursor, order)
        )
    stmt = stmt.order_by(*pagination.order_by(Message.created_at, Message.id, order)).limit(
        limit + 1
    )

    with get_session(engine) as session:
        window = session.scalars(stmt).all()
        if not include_deleted:
            window = [m for m in window if not m.is_deleted]

        has_more = len(window) > limit
        page = window[:limit]

        reactions = summarize_in_session(session, [m.id for m in page], current_user_id)
        messages = [
            MessageWithReactions(message=MessageRecord.from_row(m), reactions=reactions[m.id])
            for m in page
        ]

    next_cursor = None
    if has_more and page:
        last = page[-1]
        next_cursor = pagination.encode_cursor(last.created_at, last.id)

    return MessagePage(messages=messages, next_cursor=next_cursor, has_more=has_more)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------
def edit_message(
    engine: Engine, message_id: int, body: str, author_id: str | None = None
) -> EditResult:
    """Replace a message body and re-extract mentions/links.

    Raises NotFound, then InvalidState (deleted), then PermissionDenied
    (when *author_id* is given and is not the author), in that order.
    """
    mentions = extract_mentions(body)
    links = extract_links(body)

    with get_session(engine) as session:
        message = _require_message(session, message_id)
        _reject_deleted(message, "edit")
        _check_author(message, author_id, "edit")

        now = utcnow()
        message.body = body
        message.mentions = [m.to_dict() for m in mentions]
        message.links = [lk.to_dict() for lk in links]
        message.is_edited = True
        message.edited_at = now
        bump_activity(session, message.thread_id, now)

    return EditResult(mentions=mentions, links=links)


def soft_delete_message(
    engine: Engine,
    message_id: int,
    author_id: str | None = None,
    *,
    placeholder: str = DELETED_PLACEHOLDER,
) -> None:
    """Mask a message's content and mark it deleted.

    Reactions stay attached.  Deleting an already-deleted message is a
    no-op once the ownership check passes.
    """
    with get_session(engine) as session:
        message = _require_message(session, message_id)
        _check_author(message, author_id, "delete")
        if message.is_deleted:
            return

        message.is_deleted = True
        message.body = placeholder
        message.mentions = []
        message.links = []
        message.attachments = []

    logger.info("Message %d soft-deleted", message_id)


def permanently_delete_message(engine: Engine, message_id: int) -> None:
    """Remove a message and all of its reactions.  No ownership check."""
    with get_session(engine) as session:
        _require_message(session, message_id)
        reactions = session.execute(
            delete(Reaction).where(Reaction.message_id == message_id),
            execution_options={"synchronize_session": False},
        ).rowcount
        session.execute(
            delete(Message).where(Message.id == message_id),
            execution_options={"synchronize_session": False},
        )

    logger.info("Message %d permanently deleted (%d reactions)", message_id, reactions)


def resolve_message(engine: Engine, message_id: int, user_id: str) -> None:
    with get_session(engine) as session:
        message = _require_message(session, message_id)
        _reject_deleted(message, "resolve")
        message.resolved = True
        message.resolved_by = user_id
        message.resolved_at = utcnow()


def unresolve_message(engine: Engine, message_id: int) -> None:
    """Clear message resolution.  ``resolved`` goes back to unset (``None``)."""
    with get_session(engine) as session:
        message = _require_message(session, message_id)
        _reject_deleted(message, "unresolve")
        message.resolved = None
        message.resolved_by = None
        message.resolved_at = None
