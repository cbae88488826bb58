"""Periodic cache sweep and idle session pruning."""

import asyncio

from loguru import logger

from maya_cache.config import settings
from maya_cache.protocols import ResponseStore
from maya_cache.services.conversation_service import ConversationStateManager


class MaintenanceService:
    """Background housekeeping for the cache and the session map.

    Expired entries and idle sessions are also dropped lazily on access;
    this only bounds how long unreachable data can sit in memory.
    """

    def __init__(
        self,
        cache: ResponseStore,
        conversations: ConversationStateManager,
        interval_ms: int | None = None,
    ) -> None:
        self._cache = cache
        self._conversations = conversations
        self._interval_ms = interval_ms or settings.maintenance_interval_ms
        if self._interval_ms <= 0:
            raise ValueError("interval_ms must be positive")

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def run_once(self) -> dict[str, int]:
        """Sweep expired cache entries and prune idle sessions.

        Returns:
            Dict with ``expired_entries`` and ``idle_sessions`` counts
        """
        expired = self._cache.sweep_expired()
        idle = self._conversations.prune_idle()
        if expired or idle:
            logger.debug(f"Maintenance: {expired} expired entries, {idle} idle sessions")
        return {"expired_entries": expired, "idle_sessions": idle}

    async def run_forever(self) -> None:
        """Run ``run_once`` every interval until cancelled."""
        logger.info(f"Maintenance loop started (every {self._interval_ms} ms)")
        try:
            while True:
                await asyncio.sleep(self._interval_ms / 1000)
                try:
                    self.run_once()
                except Exception:
                    logger.exception("Maintenance run failed")
        finally:
            logger.info("Maintenance loop stopped")
