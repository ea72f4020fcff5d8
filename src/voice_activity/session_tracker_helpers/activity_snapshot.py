"""Live per-user activity snapshot: today's recorded total plus any open session."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from voice_activity.cache import ReadThroughCache
from voice_activity.data_models import ActiveSession, ActivityLevel, activity_level
from voice_activity.redis_protocol.error_types import REDIS_ERRORS
from voice_activity.redis_schema import ActivitySnapshotKey
from voice_activity.storage import TieredQueryRouter
from voice_activity.time_utils import date_to_ms, ms_to_date

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActivitySnapshot:
    user_id: str
    tenant_id: str
    today_total_ms: int
    active_resource_id: Optional[str]
    active_since: Optional[int]
    computed_at: int

    def total_at(self, now: int) -> int:
        """Recorded total plus the open session's elapsed time at ``now``."""
        if self.active_since is None:
            return self.today_total_ms
        return self.today_total_ms + max(0, now - max(self.active_since, date_to_ms(ms_to_date(now))))

    def level_at(self, now: int) -> ActivityLevel:
        return activity_level(self.total_at(now))

    def to_payload(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ActivitySnapshot":
        return cls(
            user_id=str(payload["user_id"]),
            tenant_id=str(payload["tenant_id"]),
            today_total_ms=int(payload["today_total_ms"]),
            active_resource_id=payload["active_resource_id"],
            active_since=payload["active_since"],
            computed_at=int(payload["computed_at"]),
        )


class ActivitySnapshotService:
    def __init__(self, router: TieredQueryRouter, cache: ReadThroughCache, ttl_seconds: int = 300):
        self._router = router
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    async def _compute(self, tenant_id: str, user_id: str, active: Optional[ActiveSession], now: int) -> ActivitySnapshot:
        day_start = date_to_ms(ms_to_date(now))
        total = await self._router.query_range(user_id, tenant_id, day_start, now)
        return ActivitySnapshot(
            user_id=user_id,
            tenant_id=tenant_id,
            today_total_ms=total,
            active_resource_id=active.resource_id if active else None,
            active_since=active.start_time if active else None,
            computed_at=now,
        )

    async def get(self, tenant_id: str, user_id: str, active: Optional[ActiveSession], now: int) -> ActivitySnapshot:
        snapshot = await self._cache.get_or_load(
            ActivitySnapshotKey(tenant_id, user_id).key(),
            lambda: self._compute(tenant_id, user_id, active, now),
            self.ttl_seconds,
            encode=ActivitySnapshot.to_payload,
            decode=ActivitySnapshot.from_payload,
        )
        if ms_to_date(snapshot.computed_at) != ms_to_date(now):
            snapshot = await self.refresh(tenant_id, user_id, active, now)
        return snapshot

    async def refresh(self, tenant_id: str, user_id: str, active: Optional[ActiveSession], now: int) -> ActivitySnapshot:
        """Recompute and write through after a session starts or ends."""
        snapshot = await self._compute(tenant_id, user_id, active, now)
        try:
            await self._cache.set_json(ActivitySnapshotKey(tenant_id, user_id).key(), snapshot.to_payload(), self.ttl_seconds)
        except REDIS_ERRORS as exc:  # Snapshot is advisory  # policy_guard: allow-silent-handler
            logger.warning("Failed to store activity snapshot for %s/%s: %s", tenant_id, user_id, exc)
        return snapshot
