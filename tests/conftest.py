"""
tests/conftest.py — Shared Test Fixtures
=========================================
In-memory SQLite with every Colloquy table, plus small factories for the
zone → thread → message hierarchy most tests start from.
"""

from __future__ import annotations

import pytest
from sqlalchemy import Engine, create_engine
from sqlalchemy.pool import StaticPool

from colloquy.database.models import Base
from colloquy.services import message_service, thread_service, zone_service


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Colloquy tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def zone_id(db_engine: Engine) -> int:
    return zone_service.get_or_create_zone(db_engine, "doc_1")


@pytest.fixture
def thread_id(db_engine: Engine, zone_id: int) -> int:
    return thread_service.create_thread(db_engine, zone_id)


@pytest.fixture
def message_id(db_engine: Engine, thread_id: int) -> int:
    return message_service.add_comment(db_engine, thread_id, "alice", "First!").message_id

