"""Dependency factory for SessionTracker."""

from dataclasses import dataclass

from voice_activity.cache import CacheTTL, ReadThroughCache
from voice_activity.config.shared import TrackerSettings
from voice_activity.storage import TieredQueryRouter

from .activity_snapshot import ActivitySnapshotService
from .recovery import SessionRecovery
from .state_store import ActiveSessionStore
from .statistics import TrackerStatistics


@dataclass
class SessionTrackerDependencies:
    """Dependencies for SessionTracker."""

    state: ActiveSessionStore
    recovery: SessionRecovery
    snapshots: ActivitySnapshotService
    statistics: TrackerStatistics


class SessionTrackerDependenciesFactory:
    """Factory for creating SessionTracker dependencies."""

    @staticmethod
    def create(
        cache: ReadThroughCache,
        router: TieredQueryRouter,
        settings: TrackerSettings,
        ttl: CacheTTL,
    ) -> SessionTrackerDependencies:
        """
        Create all dependencies for SessionTracker.

        Args:
            cache: Shared read-through cache (distributed with local fallback)
            router: Query router used to compute live snapshots
            settings: Session TTL, staleness bound and observer markers
            ttl: Cache lifetimes per value type

        Returns:
            SessionTrackerDependencies instance
        """
        state = ActiveSessionStore(cache, ttl_seconds=settings.session_ttl_seconds)
        return SessionTrackerDependencies(
            state=state,
            recovery=SessionRecovery(state, stale_after_seconds=settings.stale_after_seconds),
            snapshots=ActivitySnapshotService(router, cache, ttl_seconds=ttl.activity_snapshot),
            statistics=TrackerStatistics(),
        )
