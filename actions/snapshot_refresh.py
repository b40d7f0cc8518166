"""
Snapshot Refresh Queue
Background regeneration of awareness snapshots after user writes
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from config import settings


logger = logging.getLogger(__name__)


GenerateFn = Callable[[int, str], Awaitable[Any]]


class SnapshotRefreshQueue:
    """
    Fire-and-forget snapshot regeneration

    Write paths call schedule() and return immediately. Every refresh runs as
    a tracked asyncio task; failures never reach the caller but are logged
    and counted so they show up in operational stats.
    """

    def __init__(self, generate: Optional[GenerateFn] = None):
        self._generate = generate
        self._tasks: Set[asyncio.Task] = set()
        self._stats = {"scheduled": 0, "completed": 0, "failed": 0}

    def _resolve_generate(self) -> GenerateFn:
        if self._generate is None:
            from services.snapshot_service import snapshot_service
            self._generate = snapshot_service.generate
        return self._generate

    async def _run(self, user_id: int, time_window: str) -> None:
        try:
            await self._resolve_generate()(user_id, time_window)
            self._stats["completed"] += 1
        except Exception as e:
            self._stats["failed"] += 1
            logger.error(
                f"Background snapshot refresh failed for user {user_id} ({time_window}): {e}",
                exc_info=True
            )

    def schedule(self, user_id: int, time_window: Optional[str] = None) -> Optional[asyncio.Task]:
        """
        Queue a snapshot refresh

        Args:
            user_id: User whose snapshot should be regenerated
            time_window: Window key, defaults to SNAPSHOT_DEFAULT_WINDOW

        Returns:
            The asyncio task, or None when no event loop is running and the
            refresh was executed inline
        """
        time_window = time_window or settings.SNAPSHOT_DEFAULT_WINDOW
        self._stats["scheduled"] += 1

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; refreshing snapshot inline")
            asyncio.run(self._run(user_id, time_window))
            return None

        task = loop.create_task(self._run(user_id, time_window))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        """Wait for every queued refresh to finish (tests, shutdown)"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def get_stats(self) -> Dict[str, int]:
        return {**self._stats, "pending": self.pending}


# Singleton instance
snapshot_refresh_queue = SnapshotRefreshQueue()


def regenerate_snapshot_async(user_id: int, time_window: Optional[str] = None) -> Optional[asyncio.Task]:
    """Convenience entry point for write actions"""
    return snapshot_refresh_queue.schedule(user_id, time_window)
