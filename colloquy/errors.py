"""
colloquy.errors — Error Taxonomy
================================

Every failure the core surfaces is a :class:`CommentsError` subclass
carrying a stable :class:`ErrorCode`.  Callers map codes to whatever
transport they expose (HTTP status, RPC fault, UI toast).

- :class:`NotFoundError` — referenced zone/thread/message does not exist.
- :class:`InvalidStateError` — operation disallowed by the entity's state.
- :class:`PermissionDeniedError` — supplied author does not own the message.
- :class:`ConflictError` — a unique-key race that could not be resolved.
- :class:`InvalidRequestError` — malformed input (cursor, attachment, …).
"""

from __future__ import annotations

import enum


class ErrorCode(enum.StrEnum):
    """Stable error codes.  Format: E_CATEGORY_NAME."""

    # Not found
    E_ZONE_NOT_FOUND = "E_ZONE_NOT_FOUND"
    E_THREAD_NOT_FOUND = "E_THREAD_NOT_FOUND"
    E_MESSAGE_NOT_FOUND = "E_MESSAGE_NOT_FOUND"

    # Invalid state
    E_MESSAGE_DELETED = "E_MESSAGE_DELETED"

    # Permission
    E_NOT_AUTHOR = "E_NOT_AUTHOR"
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"

    # Conflict
    E_CONFLICT = "E_CONFLICT"

    # Invalid request
    E_INVALID_CURSOR = "E_INVALID_CURSOR"
    E_INVALID_ATTACHMENT = "E_INVALID_ATTACHMENT"
    E_INVALID_POSITION = "E_INVALID_POSITION"
    E_INVALID_ORDER = "E_INVALID_ORDER"


class CommentsError(Exception):
    """Base exception for all core errors.

    Attributes:
        code: The error code enum value
        message: Human-readable error message
    """

    def __init__(self, code: ErrorCode, message: str):
        self.code = code
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} code={self.code} message={self.message!r}>"


class NotFoundError(CommentsError):
    """Referenced entity does not exist."""

    def __init__(self, code: ErrorCode, message: str = "Not found"):
        super().__init__(code, message)


class InvalidStateError(CommentsError):
    """Operation is not allowed in the entity's current state."""

    def __init__(
        self, code: ErrorCode = ErrorCode.E_MESSAGE_DELETED, message: str = "Invalid state"
    ):
        super().__init__(code, message)


class PermissionDeniedError(CommentsError):
    """Ownership or identity check failed."""

    def __init__(
        self, code: ErrorCode = ErrorCode.E_NOT_AUTHOR, message: str = "Permission denied"
    ):
        super().__init__(code, message)


class ConflictError(CommentsError):
    """Concurrent writers collided on a unique key."""

    def __init__(self, code: ErrorCode = ErrorCode.E_CONFLICT, message: str = "Conflict"):
        super().__init__(code, message)


class InvalidRequestError(CommentsError):
    """Malformed argument supplied by the caller."""

    def __init__(self, code: ErrorCode, message: str = "Invalid request"):
        super().__init__(code, message)


# ---------------------------------------------------------------------------
# Shorthand constructors used by the services
# ---------------------------------------------------------------------------
def zone_not_found(zone_id: int) -> NotFoundError:
    return NotFoundError(ErrorCode.E_ZONE_NOT_FOUND, f"Zone {zone_id} not found")


def thread_not_found(thread_id: int) -> NotFoundError:
    return NotFoundError(ErrorCode.E_THREAD_NOT_FOUND, f"Thread {thread_id} not found")


def message_not_found(message_id: int) -> NotFoundError:
    return NotFoundError(ErrorCode.E_MESSAGE_NOT_FOUND, f"Message {message_id} not found")
