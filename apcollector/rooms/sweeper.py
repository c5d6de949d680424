"""Background sweep of expired rooms.

Idle -> (timer) -> scan ``list_expired`` -> tear down each room -> Idle.

A failure on one room is logged and the sweep moves on; the room still
matches ``list_expired`` and is retried on the next tick.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .lifecycle import RoomLifecycle
from .schemas import SweepResult
from .store import RoomStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically tears down rooms whose expiry has passed."""

    def __init__(
        self,
        rooms: RoomStore,
        lifecycle: RoomLifecycle,
        interval_seconds: int = 3600,
    ) -> None:
        self._rooms = rooms
        self._lifecycle = lifecycle
        self._interval = max(1, interval_seconds)
        self._task: Optional[asyncio.Task] = None  # type: ignore[type-arg]

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start background sweep task."""
        if self.running:
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info("Expiry sweeper started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        """Cancel the sweep task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Expiry sweeper stopped")

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.sweep_once)
            except Exception as exc:
                logger.error("Error during cleanup: %s", exc)
            await asyncio.sleep(self._interval)

    def sweep_once(self) -> SweepResult:
        """Tear down every room that is expired right now."""
        expired = self._rooms.list_expired(self._lifecycle.now())
        result = SweepResult(scanned=len(expired))
        for room in expired:
            logger.info("Cleaning up expired room: %s", room.id)
            try:
                self._lifecycle.teardown_room(room.id)
                result.torn_down += 1
            except Exception as exc:
                result.failed += 1
                logger.error("Failed to clean up room %s: %s", room.id, exc)
        if expired:
            logger.info(
                "Cleaned up %d of %d expired rooms", result.torn_down, result.scanned
            )
        return result
