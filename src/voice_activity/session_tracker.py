"""
Presence session tracking.

The tracker turns a stream of join/leave/move transitions into at most one
``ActiveSession`` per (tenant, user). Closing a session writes an immutable
``CompletedSession`` to the activity store, which keeps the daily, weekly and
monthly roll-ups current.
"""

import logging
from typing import Awaitable, Callable, Optional, Protocol

from voice_activity.cache import CacheTTL, ReadThroughCache
from voice_activity.config.shared import TrackerSettings, get_tracker_settings
from voice_activity.data_models import ActiveSession, CompletedSession, TransitionEvent, TransitionKind
from voice_activity.exceptions import ApplicationError, StorageError
from voice_activity.session_tracker_helpers import OrderedDispatcher, TransitionDecision, decide
from voice_activity.session_tracker_helpers.dependencies_factory import (
    SessionTrackerDependencies,
    SessionTrackerDependenciesFactory,
)
from voice_activity.session_tracker_mixins import SessionTrackerQueryMixin, SessionTrackerRecoveryMixin
from voice_activity.storage import SQLiteActivityStore, TieredQueryRouter
from voice_activity.tenant_settings import TenantSettingsCache
from voice_activity.time_utils import now_ms

logger = logging.getLogger(__name__)

ACTIVITY_LOG_ERRORS = (ApplicationError, OSError, RuntimeError, ValueError)


class ActivityLogSink(Protocol):
    def record(self, event: TransitionEvent, kind: TransitionKind, resource_id: str) -> Awaitable[None]: ...


class SessionTracker(SessionTrackerQueryMixin, SessionTrackerRecoveryMixin):
    """Per-tenant presence state machine backed by the cache and the activity store."""

    def __init__(
        self,
        *,
        activity_store: SQLiteActivityStore,
        settings_cache: TenantSettingsCache,
        cache: ReadThroughCache,
        router: TieredQueryRouter,
        settings: Optional[TrackerSettings] = None,
        ttl: Optional[CacheTTL] = None,
        activity_log: Optional[ActivityLogSink] = None,
        dependencies: Optional[SessionTrackerDependencies] = None,
        clock: Callable[[], int] = now_ms,
    ):
        self._activity_store = activity_store
        self._settings_cache = settings_cache
        self._settings = settings or get_tracker_settings()
        self._activity_log = activity_log
        self._clock = clock

        deps = dependencies or SessionTrackerDependenciesFactory.create(cache, router, self._settings, ttl or CacheTTL())
        self._state = deps.state
        self._recovery = deps.recovery
        self._snapshots = deps.snapshots
        self._statistics = deps.statistics
        self._dispatcher = OrderedDispatcher(self.on_transition)

        logger.debug("🎙️ Session tracker initialized")

    def record_transition(self, event: TransitionEvent) -> None:
        """Fire-and-forget ingestion; events for one user are applied in arrival order."""
        self._dispatcher.submit(event)

    async def drain(self) -> None:
        await self._dispatcher.drain()

    @property
    def failed_transitions(self) -> int:
        return self._dispatcher.failed_events

    async def on_transition(self, event: TransitionEvent) -> TransitionDecision:
        """Apply one transition using the exclusion policy in force right now."""
        policy = await self._settings_cache.get_exclusions(event.tenant_id)
        decision = decide(event, policy, self._settings.observer_markers)
        if decision.kind is TransitionKind.NOOP:
            return decision

        now = event.timestamp
        if decision.log_departure and event.old_resource_id is not None:
            await self._log_activity(event, TransitionKind.LEAVE, event.old_resource_id)
        if decision.close_existing:
            await self._close_session(event.tenant_id, event.user_id, now)
        if decision.start_resource_id is not None:
            await self._start_session(event, decision.start_resource_id, now)
        if decision.log_arrival and event.new_resource_id is not None:
            await self._log_activity(event, TransitionKind.JOIN, event.new_resource_id)
        return decision

    async def _start_session(self, event: TransitionEvent, resource_id: str, now: int) -> ActiveSession:
        session = await self._state.get(event.tenant_id, event.user_id)
        if session is not None:
            logger.warning(
                "Reusing stale session for %s/%s (started %s on %s)",
                event.tenant_id,
                event.user_id,
                session.start_time,
                session.resource_id,
            )
            session.start_time = now
            session.resource_id = resource_id
            session.display_name = event.display_name or session.display_name
        else:
            session = ActiveSession(
                user_id=event.user_id,
                tenant_id=event.tenant_id,
                resource_id=resource_id,
                start_time=now,
                display_name=event.display_name,
            )

        await self._state.put(session)
        self._statistics.record_join(len(self._state))
        logger.debug("Session started for %s/%s in %s", event.tenant_id, event.user_id, resource_id)
        await self._refresh_snapshot(event.tenant_id, event.user_id, session, now)
        return session

    async def _close_session(self, tenant_id: str, user_id: str, now: int) -> Optional[CompletedSession]:
        session = await self._state.get(tenant_id, user_id)
        if session is None:
            return None

        completed = CompletedSession.from_active(session, now)
        await self._activity_store.record_completed_session(completed)
        await self._state.delete(tenant_id, user_id)
        self._statistics.record_leave(completed.duration_ms)
        logger.debug(
            "Session closed for %s/%s in %s after %dms",
            tenant_id,
            user_id,
            completed.resource_id,
            completed.duration_ms,
        )
        await self._refresh_snapshot(tenant_id, user_id, None, now)
        return completed

    async def _refresh_snapshot(self, tenant_id: str, user_id: str, active: Optional[ActiveSession], now: int) -> None:
        try:
            await self._snapshots.refresh(tenant_id, user_id, active, now)
        except StorageError as exc:  # Snapshot is advisory  # policy_guard: allow-silent-handler
            logger.warning("Live snapshot refresh failed for %s/%s: %s", tenant_id, user_id, exc)

    async def _log_activity(self, event: TransitionEvent, kind: TransitionKind, resource_id: str) -> None:
        if self._activity_log is None:
            return
        try:
            await self._activity_log.record(event, kind, resource_id)
        except ACTIVITY_LOG_ERRORS as exc:  # Audit trail must not break tracking  # policy_guard: allow-silent-handler
            logger.warning("Activity log sink failed for %s/%s: %s", event.tenant_id, event.user_id, exc)


__all__ = ["ActivityLogSink", "SessionTracker"]
