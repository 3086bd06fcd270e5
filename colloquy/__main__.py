"""
colloquy.__main__ — Entry point for ``python -m colloquy``
==========================================================

Runs the typing-indicator sweep worker.  Hosts that embed
:class:`~colloquy.client.Comments` in their own event loop can start a
:class:`~colloquy.services.sweeper.TypingSweeper` themselves instead.

Wiring:
1. Load .env (DATABASE_URL).
2. Load config.yaml (sweep cadence); fall back to defaults if absent.
3. Create the SQLAlchemy engine and ensure tables exist.
4. Sweep once immediately, then every ``sweep_interval_seconds``.

Run with::

    python -m colloquy
"""

from __future__ import annotations

import asyncio
import logging
import sys

from dotenv import load_dotenv

from colloquy.config import ColloquyConfig, load_config
from colloquy.database.engine import create_db_engine, init_db
from colloquy.services.sweeper import TypingSweeper

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("colloquy")


async def _run(sweeper: TypingSweeper) -> None:
    await sweeper.run_once()
    sweeper.start()
    try:
        await asyncio.Event().wait()
    finally:
        sweeper.stop()


def main() -> None:
    """Bootstrap and run the sweep worker."""

    # 1. Environment variables.
    load_dotenv()

    # 2. Soft configuration.
    try:
        cfg = load_config()
    except FileNotFoundError:
        logger.warning("config.yaml not found — using built-in defaults")
        cfg = ColloquyConfig()

    # 3. Database.
    try:
        engine = create_db_engine()
    except RuntimeError as exc:
        logger.critical("%s", exc)
        sys.exit(1)
    init_db(engine)

    # 4. Sweep loop (blocks until Ctrl+C or SIGTERM).
    sweeper = TypingSweeper(engine, interval=cfg.sweep_interval_seconds)
    logger.info("Starting Colloquy sweep worker…")
    try:
        asyncio.run(_run(sweeper))
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
