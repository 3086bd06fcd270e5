"""
colloquy.engine.results — Typed Records Returned by the Services
================================================================

Services never hand live ORM rows to callers.  Each read converts rows
into these plain dataclasses inside the session, so callers can use them
on any thread after the transaction has closed.

Timestamps are always timezone-aware UTC.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from numbers import Real

from colloquy.constants import ATTACHMENT_TYPES
from colloquy.database.models import Message, Thread, Zone
from colloquy.engine.extractor import Link, Mention
from colloquy.engine.pagination import normalize_dt
from colloquy.errors import ErrorCode, InvalidRequestError


def _aware(value: datetime | None) -> datetime | None:
    return normalize_dt(value) if value is not None else None


# ---------------------------------------------------------------------------
# Value objects accepted as input
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class Position:
    """Spatial anchor for positioned comments."""

    x: float
    y: float
    anchor: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def coerce(cls, raw: Position | dict | None) -> Position | None:
        """Accept a :class:`Position`, a ``{"x", "y", "anchor"}`` dict or ``None``."""
        if raw is None or isinstance(raw, Position):
            return raw
        try:
            x, y = raw["x"], raw["y"]
        except (KeyError, TypeError):
            raise InvalidRequestError(
                ErrorCode.E_INVALID_POSITION, "position requires numeric 'x' and 'y'"
            ) from None
        anchor = raw.get("anchor")
        if (
            not isinstance(x, Real) or isinstance(x, bool)
            or not isinstance(y, Real) or isinstance(y, bool)
            or (anchor is not None and not isinstance(anchor, str))
        ):
            raise InvalidRequestError(
                ErrorCode.E_INVALID_POSITION, f"Invalid position: {raw!r}"
            )
        return cls(x=float(x), y=float(y), anchor=anchor)


@dataclass(frozen=True, slots=True)
class Attachment:
    """Attachment metadata: a URL, a file reference or an image."""

    type: str
    url: str
    name: str | None = None
    mime_type: str | None = None
    size: int | None = None

    def __post_init__(self) -> None:
        if self.type not in ATTACHMENT_TYPES:
            raise InvalidRequestError(
                ErrorCode.E_INVALID_ATTACHMENT,
                f"attachment type must be one of {sorted(ATTACHMENT_TYPES)}, got {self.type!r}",
            )
        if not isinstance(self.url, str) or not self.url:
            raise InvalidRequestError(ErrorCode.E_INVALID_ATTACHMENT, "attachment url is required")
        if self.size is not None and (
            not isinstance(self.size, int) or isinstance(self.size, bool) or self.size < 0
        ):
            raise InvalidRequestError(
                ErrorCode.E_INVALID_ATTACHMENT, "attachment size must be a non-negative integer"
            )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def coerce(cls, raw: Attachment | dict) -> Attachment:
        """Accept an :class:`Attachment` or a dict (``mimeType`` or ``mime_type``)."""
        if isinstance(raw, Attachment):
            return raw
        if not isinstance(raw, dict) or "type" not in raw or "url" not in raw:
            raise InvalidRequestError(
                ErrorCode.E_INVALID_ATTACHMENT, "attachment requires 'type' and 'url'"
            )
        return cls(
            type=raw["type"],
            url=raw["url"],
            name=raw.get("name"),
            mime_type=raw.get("mime_type", raw.get("mimeType")),
            size=raw.get("size"),
        )


# ---------------------------------------------------------------------------
# Entity records
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ZoneRecord:
    id: int
    entity_id: str
    metadata: object
    created_at: datetime

    @classmethod
    def from_row(cls, row: Zone) -> ZoneRecord:
        return cls(
            id=row.id,
            entity_id=row.entity_id,
            metadata=row.metadata_,
            created_at=normalize_dt(row.created_at),
        )


@dataclass(frozen=True, slots=True)
class ThreadRecord:
    id: int
    zone_id: int
    resolved: bool
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime
    last_activity_at: datetime
    position: Position | None
    metadata: object

    @classmethod
    def from_row(cls, row: Thread) -> ThreadRecord:
        return cls(
            id=row.id,
            zone_id=row.zone_id,
            resolved=row.resolved,
            resolved_by=row.resolved_by,
            resolved_at=_aware(row.resolved_at),
            created_at=normalize_dt(row.created_at),
            last_activity_at=normalize_dt(row.last_activity_at),
            position=Position.coerce(row.position),
            metadata=row.metadata_,
        )


@dataclass(frozen=True, slots=True)
class MessageRecord:
    id: int
    thread_id: int
    author_id: str
    body: str
    mentions: list[Mention]
    links: list[Link]
    attachments: list[Attachment]
    is_edited: bool
    is_deleted: bool
    resolved: bool | None
    resolved_by: str | None
    resolved_at: datetime | None
    created_at: datetime
    edited_at: datetime | None

    @classmethod
    def from_row(cls, row: Message) -> MessageRecord:
        return cls(
            id=row.id,
            thread_id=row.thread_id,
            author_id=row.author_id,
            body=row.body,
            mentions=[Mention.from_dict(m) for m in row.mentions or []],
            links=[Link.from_dict(lk) for lk in row.links or []],
            attachments=[Attachment.coerce(a) for a in row.attachments or []],
            is_edited=row.is_edited,
            is_deleted=row.is_deleted,
            resolved=row.resolved,
            resolved_by=row.resolved_by,
            resolved_at=_aware(row.resolved_at),
            created_at=normalize_dt(row.created_at),
            edited_at=_aware(row.edited_at),
        )


# ---------------------------------------------------------------------------
# Listing / aggregate results
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MessagePreview:
    id: int
    body: str
    author_id: str
    created_at: datetime


@dataclass(frozen=True, slots=True)
class ThreadWithPreview:
    thread: ThreadRecord
    first_message: MessagePreview | None
    message_count: int


@dataclass(frozen=True, slots=True)
class ThreadPage:
    threads: list[ThreadWithPreview]
    next_cursor: str | None
    has_more: bool


@dataclass(frozen=True, slots=True)
class ReactionSummary:
    emoji: str
    count: int
    users: list[str]
    includes_me: bool


@dataclass(frozen=True, slots=True)
class MessageWithReactions:
    message: MessageRecord
    reactions: list[ReactionSummary]


@dataclass(frozen=True, slots=True)
class MessagePage:
    messages: list[MessageWithReactions]
    next_cursor: str | None
    has_more: bool


@dataclass(frozen=True, slots=True)
class AddCommentResult:
    message_id: int
    mentions: list[Mention]
    links: list[Link]


@dataclass(frozen=True, slots=True)
class EditResult:
    mentions: list[Mention]
    links: list[Link]


@dataclass(frozen=True, slots=True)
class ToggleResult:
    added: bool
    reaction_id: int | None = None


@dataclass(frozen=True, slots=True)
class TypingUser:
    user_id: str
    updated_at: datetime


@dataclass
class CascadeResult:
    """Counts reported by zone and thread deletion."""

    deleted_threads: int = 0
    deleted_messages: int = 0
    deleted_reactions: int = 0
    deleted_typing_indicators: int = 0

    def merge(self, other: CascadeResult) -> None:
        self.deleted_threads += other.deleted_threads
        self.deleted_messages += other.deleted_messages
        self.deleted_reactions += other.deleted_reactions
        self.deleted_typing_indicators += other.deleted_typing_indicators

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


# Used by client.py callback payloads
@dataclass(frozen=True, slots=True)
class NewMessageEvent:
    message_id: int
    thread_id: int
    author_id: str
    body: str
    mentions: list[Mention] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class MentionEvent:
    message_id: int
    mentioned_user_id: str
    author_id: str
    body: str
