"""Restart recovery of active sessions persisted in the cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from voice_activity.time_utils import MS_PER_SECOND

from .state_store import ActiveSessionStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecoveryReport:
    restored: int
    discarded: int


class SessionRecovery:
    """Reload cached sessions into memory, dropping ones older than the staleness bound."""

    def __init__(self, store: ActiveSessionStore, stale_after_seconds: int = 86_400):
        self._store = store
        self._stale_after_ms = stale_after_seconds * MS_PER_SECOND

    async def restore(self, now: int) -> RecoveryReport:
        restored = 0
        discarded = 0
        for key in await self._store.list_cached_keys():
            session = await self._store.get(key.tenant_id, key.user_id)
            if session is None:
                continue
            if now - session.start_time > self._stale_after_ms:
                logger.info(
                    "Discarding abandoned session for %s/%s started at %s",
                    key.tenant_id,
                    key.user_id,
                    session.start_time,
                )
                await self._store.delete(key.tenant_id, key.user_id)
                discarded += 1
                continue
            restored += 1

        if restored or discarded:
            logger.info("🔄 Session recovery: %d restored, %d discarded", restored, discarded)
        return RecoveryReport(restored=restored, discarded=discarded)
