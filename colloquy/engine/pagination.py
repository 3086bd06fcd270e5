"""
colloquy.engine.pagination — Keyset Cursor Contract
===================================================

Shared by thread listings (ordered by ``last_activity_at``) and message
listings (ordered by ``created_at``).

A listing fetches ``limit + 1`` rows strictly past the cursor.  When the
(filtered) window holds more than ``limit`` rows, ``has_more`` is true and
the next cursor points at the last *returned* row, not the extra row.

Cursor payload: ``{"ts": "<iso8601>", "id": <int>}``, base64url without
padding.  The row id breaks ties between equal timestamps so rows written
in the same instant are never skipped or repeated across pages.
"""

from __future__ import annotations

import base64
import binascii
import json
from datetime import UTC, datetime

from sqlalchemy import ColumnElement, and_, or_
from sqlalchemy.orm import InstrumentedAttribute

from colloquy.errors import ErrorCode, InvalidRequestError

ORDER_ASC = "asc"
ORDER_DESC = "desc"


def normalize_dt(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def encode_cursor(ts: datetime, row_id: int) -> str:
    """Encode the ordering key of the last returned row."""
    payload = {"ts": normalize_dt(ts).isoformat(), "id": row_id}
    json_bytes = json.dumps(payload).encode("utf-8")
    return base64.urlsafe_b64encode(json_bytes).decode("ascii").rstrip("=")


def decode_cursor(cursor: str) -> tuple[datetime, int]:
    """Decode a cursor produced by :func:`encode_cursor`.

    Raises:
        InvalidRequestError: If the cursor is malformed or unparseable.
    """
    try:
        padding = 4 - len(cursor) % 4
        if padding != 4:
            cursor += "=" * padding

        json_bytes = base64.urlsafe_b64decode(cursor)
        payload = json.loads(json_bytes.decode("utf-8"))

        ts = normalize_dt(datetime.fromisoformat(payload["ts"]))
        row_id = int(payload["id"])
        return ts, row_id
    except (binascii.Error, UnicodeDecodeError, ValueError, KeyError, TypeError):
        raise InvalidRequestError(ErrorCode.E_INVALID_CURSOR, "Invalid cursor") from None


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    """Apply the default and clamp to ``[1, maximum]``."""
    if limit is None:
        return default
    return max(1, min(int(limit), maximum))


def validate_order(order: str) -> str:
    if order not in (ORDER_ASC, ORDER_DESC):
        raise InvalidRequestError(
            ErrorCode.E_INVALID_ORDER, f"order must be 'asc' or 'desc', got {order!r}"
        )
    return order


def past_cursor(
    ts_col: InstrumentedAttribute,
    id_col: InstrumentedAttribute,
    cursor: str,
    order: str,
) -> ColumnElement[bool]:
    """WHERE clause selecting rows strictly after *cursor* in *order*."""
    ts, row_id = decode_cursor(cursor)
    if order == ORDER_ASC:
        return or_(ts_col > ts, and_(ts_col == ts, id_col > row_id))
    return or_(ts_col < ts, and_(ts_col == ts, id_col < row_id))


def order_by(
    ts_col: InstrumentedAttribute,
    id_col: InstrumentedAttribute,
    order: str,
) -> tuple:
    if order == ORDER_ASC:
        return ts_col.asc(), id_col.asc()
    return ts_col.desc(), id_col.desc()
