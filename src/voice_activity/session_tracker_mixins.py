"""Mixin classes for SessionTracker functionality."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from voice_activity.data_models import ActiveSession
    from voice_activity.session_tracker_helpers import (
        ActiveSessionStore,
        ActivitySnapshot,
        ActivitySnapshotService,
        RecoveryReport,
        SessionRecovery,
        TrackerStatistics,
    )


class SessionTrackerQueryMixin:
    """Read-only views over tracker state."""

    _state: ActiveSessionStore
    _statistics: TrackerStatistics
    _snapshots: ActivitySnapshotService
    _clock: Callable[[], int]

    async def get_active_session(self, tenant_id: str, user_id: str) -> Optional[ActiveSession]:
        return await self._state.get(tenant_id, user_id)

    @property
    def active_session_count(self) -> int:
        return len(self._state)

    def get_statistics(self) -> Dict[str, Any]:
        return self._statistics.as_dict(active_sessions=len(self._state), now=self._clock())

    async def get_user_snapshot(self, tenant_id: str, user_id: str) -> ActivitySnapshot:
        """Live snapshot of today's activity, served from cache for up to its TTL."""
        active = await self._state.get(tenant_id, user_id)
        return await self._snapshots.get(tenant_id, user_id, active, self._clock())


class SessionTrackerRecoveryMixin:
    """Restart recovery."""

    _recovery: SessionRecovery
    _clock: Callable[[], int]

    async def restore_active_sessions(self) -> RecoveryReport:
        """Reload sessions that survived a restart in the cache; drop abandoned ones."""
        return await self._recovery.restore(self._clock())
