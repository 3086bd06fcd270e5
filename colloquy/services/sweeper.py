"""
colloquy.services.sweeper — Background Typing Sweep
===================================================

Physically removes expired typing indicators.

Two triggers share one :class:`TypingSweeper`:

- a periodic loop every ``interval`` seconds (``start`` / ``stop``);
- a one-shot timer armed after ``set_typing(True)`` at ``TTL + buffer``.
  Only one timer is ever pending: re-arming replaces it, and since a
  sweep removes *everything* already expired, the later deadline covers
  every earlier request.

Readers never depend on either trigger; expiry is enforced at read time.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

from sqlalchemy import Engine

from colloquy.constants import SWEEP_INTERVAL_SECONDS
from colloquy.database.engine import run_db
from colloquy.services import typing_service

logger = logging.getLogger(__name__)


class TypingSweeper:
    """Runs :func:`~colloquy.services.typing_service.sweep_expired` in the background."""

    def __init__(self, engine: Engine, interval: float = SWEEP_INTERVAL_SECONDS) -> None:
        self.engine = engine
        self.interval = interval
        self._loop_task: asyncio.Task | None = None
        self._armed_task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._loop_task is not None

    @property
    def armed(self) -> bool:
        return self._armed_task is not None and not self._armed_task.done()

    async def run_once(self, now: datetime | None = None) -> int:
        """Sweep now on a worker thread.  Returns the number of rows removed."""
        return await run_db(typing_service.sweep_expired, self.engine, now)

    def start(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start the periodic sweep loop (no-op if already running)."""
        if self._loop_task is not None:
            return
        loop = loop or asyncio.get_running_loop()

        async def _sweep_loop() -> None:
            while True:
                await asyncio.sleep(self.interval)
                try:
                    await self.run_once()
                except Exception:
                    logger.exception("Periodic typing sweep failed")

        self._loop_task = loop.create_task(_sweep_loop(), name="typing-sweep")
        logger.info("Typing sweeper started (every %.1fs)", self.interval)

    def arm(self, delay: float) -> None:
        """Schedule a one-shot sweep *delay* seconds from now, replacing any pending one."""
        if self.armed:
            self._armed_task.cancel()

        async def _one_shot() -> None:
            await asyncio.sleep(delay)
            # Past the timer; a re-arm from here on must not cancel this sweep
            self._armed_task = None
            try:
                await self.run_once()
            except Exception:
                logger.exception("Scheduled typing sweep failed")

        self._armed_task = asyncio.get_running_loop().create_task(
            _one_shot(), name="typing-sweep-armed"
        )

    def stop(self) -> None:
        """Cancel the periodic loop and any pending one-shot sweep."""
        if self._loop_task:
            self._loop_task.cancel()
            self._loop_task = None
            logger.info("Typing sweeper stopped")
        if self._armed_task:
            self._armed_task.cancel()
            self._armed_task = None
