"""
colloquy.services.zone_service — Zone Registry
==============================================

Maps an external entity id to a lazily-created zone.  Exactly one zone
ever exists per ``entity_id``: concurrent first calls race on the
``uq_zones_entity_id`` unique key and the loser re-reads the winner's id
instead of failing.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine, select
from sqlalchemy.exc import IntegrityError

from colloquy.constants import ZONE_LIST_LIMIT
from colloquy.database.engine import get_session
from colloquy.database.models import Zone, utcnow
from colloquy.engine.results import CascadeResult, ZoneRecord
from colloquy.errors import ConflictError, ErrorCode, zone_not_found
from colloquy.services import cascade_service

logger = logging.getLogger(__name__)


def get_or_create_zone(engine: Engine, entity_id: str, metadata: object = None) -> int:
    """Return the id of the zone for *entity_id*, creating it on first use.

    *metadata* is only stored when this call creates the zone.
    """
    with get_session(engine) as session:
        existing = session.scalar(select(Zone.id).where(Zone.entity_id == entity_id))
        if existing is not None:
            return existing

        zone = Zone(entity_id=entity_id, metadata_=metadata, created_at=utcnow())
        try:
            with session.begin_nested():   # SAVEPOINT
                session.add(zone)
                session.flush()
        except IntegrityError:
            # Another writer inserted the same entity_id first.
            # The SAVEPOINT was rolled back; the outer txn is still alive.
            winner = session.scalar(select(Zone.id).where(Zone.entity_id == entity_id))
            if winner is None:
                raise ConflictError(
                    ErrorCode.E_CONFLICT,
                    f"Zone for entity {entity_id!r} could not be created or read",
                ) from None
            logger.warning(
                "Zone create race for entity %r resolved to existing zone %d",
                entity_id, winner,
            )
            return winner

        logger.info("Zone created → id=%d entity=%r", zone.id, entity_id)
        return zone.id


def get_zone(engine: Engine, entity_id: str) -> ZoneRecord | None:
    """Look up a zone by entity id without creating it."""
    with get_session(engine) as session:
        row = session.scalar(select(Zone).where(Zone.entity_id == entity_id))
        return ZoneRecord.from_row(row) if row else None


def get_zone_by_id(engine: Engine, zone_id: int) -> ZoneRecord | None:
    with get_session(engine) as session:
        row = session.get(Zone, zone_id)
        return ZoneRecord.from_row(row) if row else None


def list_zones(engine: Engine, limit: int = ZONE_LIST_LIMIT) -> list[ZoneRecord]:
    """List zones in creation order."""
    with get_session(engine) as session:
        rows = session.scalars(
            select(Zone).order_by(Zone.created_at, Zone.id).limit(max(1, limit))
        ).all()
        return [ZoneRecord.from_row(r) for r in rows]


def update_zone_metadata(engine: Engine, zone_id: int, metadata: object) -> None:
    """Overwrite (never merge) a zone's metadata."""
    with get_session(engine) as session:
        zone = session.get(Zone, zone_id)
        if zone is None:
            raise zone_not_found(zone_id)
        zone.metadata_ = metadata


def delete_zone(engine: Engine, zone_id: int) -> CascadeResult:
    """Delete a zone and its whole subtree.  See :mod:`cascade_service`."""
    return cascade_service.delete_zone(engine, zone_id)
