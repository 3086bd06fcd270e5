"""
colloquy.database.models — SQLAlchemy 2.0 Data Models
=====================================================

Tables:
- zones              — One container per external entity (``entity_id`` unique)
- threads            — Conversations within a zone; resolution + activity ordering
- messages           — Comments within a thread; mentions/links derived from body
- reactions          — (user, emoji) annotations on a message, unique per triple
- typing_indicators  — Ephemeral per-(thread, user) presence with an expiry

Ownership is strictly hierarchical: zone → thread → {message, typing
indicator} → reaction.  Foreign keys carry ``ON DELETE CASCADE`` as a
database-level safety net; the cascade coordinator deletes explicitly so
it can report counts.

Timestamps are written by the services (never ``server_default``) so
ordering keys are set in the same transaction that writes the row.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON everywhere else (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    """Timezone-aware "now" used for every persisted timestamp."""
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Colloquy ORM models."""


# ---------------------------------------------------------------------------
# Zones: one row per external entity
# ---------------------------------------------------------------------------
class Zone(Base):
    """Top-level container bound to one external entity.

    ``entity_id`` is whatever the host application uses to identify the
    commentable thing (document id, slug, UUID …).  Created lazily on first
    reference and never auto-deleted.
    """
    __tablename__ = "zones"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity_id: Mapped[str] = mapped_column(String(255), nullable=False)
    metadata_: Mapped[object | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        UniqueConstraint("entity_id", name="uq_zones_entity_id"),
    )

    def __repr__(self) -> str:
        return f"<Zone id={self.id} entity={self.entity_id!r}>"


# ---------------------------------------------------------------------------
# Threads: conversations within a zone
# ---------------------------------------------------------------------------
class Thread(Base):
    __tablename__ = "threads"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    zone_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("zones.id", ondelete="CASCADE"), nullable=False
    )
    resolved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved_by: Mapped[str | None] = mapped_column(String(255), default=None)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    last_activity_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    # {"x": float, "y": float, "anchor": str | None}
    position: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    metadata_: Mapped[object | None] = mapped_column("metadata", JSONType, nullable=True)

    __table_args__ = (
        Index("ix_threads_zone_last_activity", "zone_id", "last_activity_at"),
        Index("ix_threads_zone_resolved", "zone_id", "resolved"),
    )

    def __repr__(self) -> str:
        return f"<Thread id={self.id} zone={self.zone_id} resolved={self.resolved}>"


# ---------------------------------------------------------------------------
# Messages: individual comments
# ---------------------------------------------------------------------------
class Message(Base):
    """One comment within a thread.

    ``mentions`` and ``links`` are always re-derived from ``body`` on
    create and edit; they are stored only so reads need not rescan.
    """
    __tablename__ = "messages"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    author_id: Mapped[str] = mapped_column(String(255), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False, default="")
    mentions: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    links: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    attachments: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    is_edited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    resolved: Mapped[bool | None] = mapped_column(Boolean, default=None)
    resolved_by: Mapped[str | None] = mapped_column(String(255), default=None)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    edited_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        Index("ix_messages_thread_created", "thread_id", "created_at"),
        Index("ix_messages_author", "author_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Message id={self.id} thread={self.thread_id} "
            f"author={self.author_id!r} deleted={self.is_deleted}>"
        )


# ---------------------------------------------------------------------------
# Reactions: (user, emoji) pairs on a message
# ---------------------------------------------------------------------------
class Reaction(Base):
    __tablename__ = "reactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    message_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    emoji: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    __table_args__ = (
        # Also serves (message_id, emoji) lookups via its leading columns
        UniqueConstraint(
            "message_id", "emoji", "user_id",
            name="uq_reactions_message_emoji_user",
        ),
    )

    def __repr__(self) -> str:
        return f"<Reaction id={self.id} message={self.message_id} {self.emoji!r} by={self.user_id!r}>"


# ---------------------------------------------------------------------------
# TypingIndicator: ephemeral presence
# ---------------------------------------------------------------------------
class TypingIndicator(Base):
    """Per-(thread, user) typing marker.

    A row is logically absent once ``expires_at`` has passed, whether or
    not a sweep has physically removed it yet.
    """
    __tablename__ = "typing_indicators"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    thread_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("threads.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("thread_id", "user_id", name="uq_typing_thread_user"),
        Index("ix_typing_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<TypingIndicator thread={self.thread_id} user={self.user_id!r}>"
