"""Background re-evaluation of live watches.

Writes issued through a :class:`~civic_stage.store.sql.SqlDocumentStore`
notify its own watches immediately. Writes made by another process against
the same database are only seen when the watches are re-evaluated, which this
poller does on a fixed interval.
"""

from __future__ import annotations

import asyncio
import logging

from sqlalchemy.exc import SQLAlchemyError

from civic_stage.store.base import BaseDocumentStore, StoreError

logger = logging.getLogger(__name__)


class ChangePoller:
    """Periodically schedules a refresh of every watch registered with a store."""

    def __init__(self, store: BaseDocumentStore, interval: float = 2.0) -> None:
        self.store = store
        self.interval = max(0.1, float(interval))
        self.refresh_count = 0
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the polling loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the polling loop and wait for it to exit."""
        if self._task is None:
            return

        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        while not self._stopping.is_set():
            try:
                self.store.refresh_all()
                self.refresh_count += 1
            except (StoreError, SQLAlchemyError) as e:
                logger.warning("ChangePoller failed to refresh watches: %s", e)
                await self._sleep(min(self.interval * 4, 30.0))
                continue

            await self._sleep(self.interval)

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except TimeoutError:
            pass
