"""Periodic lifting of expired temporary bans.

Expiry lives in the database (``ban_records.expires_at``), so a restart loses
nothing: the first sweep after start-up lifts whatever expired meanwhile.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from channelwarden.moderation.moderation_engine import ModerationEngine
from channelwarden.util.logger import get_logger

logger = get_logger("expired_ban_sweeper")


class ExpiredBanSweeper:
    """
    Background task calling ``ModerationEngine.lift_expired_bans`` every interval.

    Args:
        engine: Engine performing the unbans.
        get_interval: Callable returning the interval in seconds (called at start).
    """

    def __init__(self, engine: ModerationEngine, get_interval: Callable[[], float]) -> None:
        self._engine = engine
        self._get_interval = get_interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep_once(self) -> int:
        """Lift every ban expired by now; return how many were lifted."""
        return await self._engine.lift_expired_bans()

    async def _run_loop(self, interval: float) -> None:
        logger.info("[BAN SWEEPER] Starting periodic sweep (interval=%.1fs)", interval)
        try:
            while True:
                try:
                    await self.sweep_once()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[BAN SWEEPER] Unexpected error during sweep: %s", exc, exc_info=True)
                await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("[BAN SWEEPER] Periodic sweep cancelled")
            raise

    def start(self) -> None:
        """Start the background sweep task if not already running."""
        if self.running:
            logger.warning("[BAN SWEEPER] Sweep task already running")
            return
        interval = self._get_interval()
        self._task = asyncio.create_task(self._run_loop(interval), name="channelwarden-ban-sweeper")

    async def shutdown(self) -> None:
        """Stop the task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("[BAN SWEEPER] Sweeper shutdown complete")
