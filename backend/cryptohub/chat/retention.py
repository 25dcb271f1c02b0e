"""Background retention sweep for chat history."""

from __future__ import annotations

import asyncio
import logging

from ..market.cache import ResponseCache
from .service import ChatService

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """Trims every room's history on a fixed interval.

    When given a response cache, each tick also drops its expired entries.
    A failed sweep is logged and the next one still runs on schedule.
    """

    def __init__(
        self,
        service: ChatService,
        interval: float = 3600.0,
        cache: ResponseCache | None = None,
    ) -> None:
        self._service = service
        self._cache = cache
        self._interval = interval
        self._task: asyncio.Task | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._run_loop(), name="chat-retention")
        logger.info("Retention sweeper started: %.0fs interval", self._interval)

    async def stop(self) -> None:
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Retention sweeper stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int | None:
        """Run one sweep. Returns rows removed, or None if the sweep failed."""
        if self._cache is not None:
            expired = self._cache.sweep()
            if expired:
                logger.debug("Dropped %d expired cache entries", expired)
        try:
            return await self._service.sweep_retention()
        except Exception as e:
            logger.error("Error cleaning up old messages: %s", e)
            return None

    async def _run_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self.sweep_once()
