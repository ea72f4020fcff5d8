"""
Voice activity service facade.

Wires the cache, activity store, session tracker and report engine together
and owns their lifecycle. Redis is optional at runtime: while it cannot be
reached the service runs on the in-process cache and reconnects with backoff.
"""

import logging
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional, Sequence

from voice_activity.cache import CacheTTL, FallbackCacheBackend, LocalCacheBackend, ReadThroughCache, RedisCacheBackend
from voice_activity.config.shared import (
    CacheSettings,
    ReportEngineSettings,
    TrackerSettings,
    get_cache_settings,
    get_report_engine_settings,
    get_store_settings,
    get_tracker_settings,
)
from voice_activity.data_models import DateRange, TransitionEvent
from voice_activity.logging_config import setup_logging
from voice_activity.member_directory import MemberDirectory
from voice_activity.memory_monitor import MemoryMonitor
from voice_activity.redis_connection_manager import RedisConnectionManager
from voice_activity.redis_protocol.error_types import REDIS_ERRORS
from voice_activity.redis_protocol.typing import RedisClient
from voice_activity.report_engine import StreamingReportEngine
from voice_activity.report_engine_helpers import ReportStream
from voice_activity.report_engine_helpers.dependencies_factory import ReportEngineDependenciesFactory
from voice_activity.retry import RetryPolicy
from voice_activity.session_tracker import ActivityLogSink, SessionTracker
from voice_activity.session_tracker_helpers import ActivitySnapshot
from voice_activity.storage import ReportCache, SQLiteActivityStore, TieredQueryRouter
from voice_activity.tenant_settings import TenantSettingsCache, TenantSettingsSource

logger = logging.getLogger(__name__)

SERVICE_NAME = "voice_activity"


class ActivityService:
    def __init__(
        self,
        *,
        settings_source: TenantSettingsSource,
        directory: MemberDirectory,
        db_path: Optional[Path | str] = None,
        redis_factory: Optional[Callable[[], Awaitable[RedisClient]]] = None,
        redis_reconnect_policy: Optional[RetryPolicy] = None,
        cache_settings: Optional[CacheSettings] = None,
        tracker_settings: Optional[TrackerSettings] = None,
        report_settings: Optional[ReportEngineSettings] = None,
        activity_log: Optional[ActivityLogSink] = None,
        configure_logging: bool = False,
    ):
        self._configure_logging = configure_logging
        cache_settings = cache_settings or get_cache_settings()
        report_settings = report_settings or get_report_engine_settings()
        self.ttl = CacheTTL.from_settings(cache_settings)

        self.redis_manager = RedisConnectionManager(redis_factory, reconnect_policy=redis_reconnect_policy)
        self.local_cache = LocalCacheBackend(maxsize=cache_settings.local_max_entries)
        self.cache_backend = FallbackCacheBackend(RedisCacheBackend(self.redis_manager.get_client), self.local_cache)
        self.cache = ReadThroughCache(self.cache_backend)

        self.store = SQLiteActivityStore(db_path if db_path is not None else get_store_settings().db_path)
        self.router = TieredQueryRouter(self.store)
        self.settings_cache = TenantSettingsCache(settings_source, self.cache, self.ttl)

        self.tracker = SessionTracker(
            activity_store=self.store,
            settings_cache=self.settings_cache,
            cache=self.cache,
            router=self.router,
            settings=tracker_settings or get_tracker_settings(),
            ttl=self.ttl,
            activity_log=activity_log,
        )

        self.memory_monitor = MemoryMonitor(SERVICE_NAME, report_settings.memory_cleanup_threshold_mb)
        self.memory_monitor.register_cleanup("local_cache", self.local_cache.expire)
        self.report_cache = ReportCache(self.store, self.cache, ttl_seconds=report_settings.report_cache_ttl_seconds)
        self.report_engine = StreamingReportEngine(
            router=self.router,
            directory=directory,
            report_cache=self.report_cache,
            settings_cache=self.settings_cache,
            settings=report_settings,
            dependencies=ReportEngineDependenciesFactory.create(
                self.router, directory, report_settings, self.memory_monitor
            ),
        )
        self._started = False

    async def start(self) -> None:
        if self._started:
            logger.warning("Activity service already started")
            return
        if self._configure_logging:
            setup_logging(SERVICE_NAME)

        try:
            await self.redis_manager.initialize()
        except REDIS_ERRORS as exc:  # Local-only cache mode  # policy_guard: allow-silent-handler
            logger.warning("⚠️ Redis unavailable (%s); using the in-process cache until it reconnects", exc)

        await self.store.initialize()
        report = await self.tracker.restore_active_sessions()
        logger.info("🎙️ Restored %d active session(s), discarded %d stale", report.restored, report.discarded)
        await self.memory_monitor.start_monitoring()
        self._started = True
        logger.info("Activity service started")

    async def shutdown(self) -> None:
        logger.info("Stopping activity service")
        await self.tracker.drain()
        await self.report_engine.shutdown()
        await self.memory_monitor.stop_monitoring()
        await self.store.close()
        await self.redis_manager.close()
        self._started = False
        logger.info("Activity service stopped")

    def record_transition(self, event: TransitionEvent) -> None:
        self.tracker.record_transition(event)

    async def get_user_activity(self, user_id: str, tenant_id: str, start: int, end: int) -> int:
        """Total completed-session milliseconds for the user in ``[start, end]``."""
        return await self.router.query_range(user_id, tenant_id, start, end)

    async def get_batch_activity(self, user_ids: Sequence[str], tenant_id: str, start: int, end: int) -> Dict[str, int]:
        return await self.router.query_batch(user_ids, tenant_id, start, end)

    def generate_report(
        self,
        tenant_id: str,
        filter_name: str,
        date_range: DateRange,
        config: Optional[ReportEngineSettings] = None,
    ) -> ReportStream:
        return self.report_engine.generate_report(tenant_id, filter_name, date_range, config)

    def cancel_report(self, operation_id: str) -> bool:
        return self.report_engine.cancel_report(operation_id)

    async def get_user_snapshot(self, user_id: str, tenant_id: str) -> ActivitySnapshot:
        return await self.tracker.get_user_snapshot(tenant_id, user_id)

    async def cleanup_expired_reports(self) -> int:
        return await self.report_cache.cleanup_expired()

    async def rebuild_rollups(self, tenant_id: str) -> int:
        """Recompute weekly and monthly rows from daily rows; cached reports of the tenant are dropped."""
        rebuilt = await self.store.rebuild_rollups(tenant_id)
        await self.report_cache.invalidate_tenant(tenant_id)
        logger.info("Rebuilt %d roll-up period(s) for tenant %s", rebuilt, tenant_id)
        return rebuilt


__all__ = ["ActivityService", "SERVICE_NAME"]
