from __future__ import annotations

"""Shared configuration dataclasses consumed across multiple modules."""


from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from . import ConfigurationError, env_bool, env_float, env_int, env_list, env_path, env_seconds, env_str

DEFAULT_OBSERVER_MARKERS = ("[관전]", "[대기]")
DEFAULT_AFK_ROLE_MARKERS = ("잠수", "AFK", "휴식")


@dataclass(frozen=True)
class RedisSettings:
    host: str
    port: int
    db: int
    password: str | None
    ssl: bool
    socket_timeout: float | None
    socket_connect_timeout: float | None
    retry_on_timeout: bool
    health_check_interval: float | None
    max_connections: int


@lru_cache(maxsize=1)
def get_redis_settings() -> RedisSettings:
    host = env_str("REDIS_HOST", or_value="localhost")
    port_value = env_int("REDIS_PORT", or_value=6379)
    db_value = env_int("REDIS_DB", or_value=0)
    password = env_str("REDIS_PASSWORD", or_value=None)
    ssl_flag = env_bool("REDIS_SSL", or_value=False)
    socket_timeout = env_float("REDIS_SOCKET_TIMEOUT", or_value=5.0)
    socket_connect_timeout = env_float("REDIS_SOCKET_CONNECT_TIMEOUT", or_value=5.0)
    retry_on_timeout_flag = env_bool("REDIS_RETRY_ON_TIMEOUT", or_value=True)
    health_check_interval = env_float("REDIS_HEALTH_CHECK_INTERVAL", or_value=30.0)
    max_connections = env_int("REDIS_MAX_CONNECTIONS", or_value=50)

    if host is None:
        raise ConfigurationError.missing_value("REDIS_HOST")
    if db_value is None or db_value < 0:
        raise ConfigurationError.invalid_value("REDIS_DB", db_value, "Database index must be non-negative")
    if max_connections is None or max_connections < 1:
        raise ConfigurationError.out_of_range("REDIS_MAX_CONNECTIONS", max_connections, 1)

    return RedisSettings(
        host=host,
        port=int(port_value or 6379),
        db=int(db_value),
        password=password,
        ssl=bool(ssl_flag),
        socket_timeout=socket_timeout,
        socket_connect_timeout=socket_connect_timeout,
        retry_on_timeout=bool(retry_on_timeout_flag),
        health_check_interval=health_check_interval,
        max_connections=int(max_connections),
    )


@dataclass(frozen=True)
class StoreSettings:
    db_path: Path


@lru_cache(maxsize=1)
def get_store_settings() -> StoreSettings:
    db_path = env_path("VOICE_ACTIVITY_DB_PATH", or_value="data/voice_activity.sqlite3")
    return StoreSettings(db_path=db_path or Path("data/voice_activity.sqlite3"))


@dataclass(frozen=True)
class CacheSettings:
    local_max_entries: int
    activity_snapshot_ttl: int
    tenant_config_ttl: int

    def __post_init__(self) -> None:
        if self.local_max_entries < 1:
            raise ConfigurationError.out_of_range("LOCAL_CACHE_MAX_ENTRIES", self.local_max_entries, 1)


@lru_cache(maxsize=1)
def get_cache_settings() -> CacheSettings:
    return CacheSettings(
        local_max_entries=int(env_int("LOCAL_CACHE_MAX_ENTRIES", or_value=10_000) or 10_000),
        activity_snapshot_ttl=int(env_seconds("CACHE_ACTIVITY_SNAPSHOT_TTL_SECONDS", or_value=300) or 300),
        tenant_config_ttl=int(env_seconds("CACHE_TENANT_CONFIG_TTL_SECONDS", or_value=600) or 600),
    )


@dataclass(frozen=True)
class TrackerSettings:
    session_ttl_seconds: int = 86_400
    stale_after_seconds: int = 86_400
    observer_markers: tuple[str, ...] = DEFAULT_OBSERVER_MARKERS

    def __post_init__(self) -> None:
        if self.session_ttl_seconds <= 0:
            raise ConfigurationError.out_of_range("VOICE_SESSION_TTL_SECONDS", self.session_ttl_seconds, 1)
        if self.stale_after_seconds <= 0:
            raise ConfigurationError.out_of_range("VOICE_SESSION_STALE_SECONDS", self.stale_after_seconds, 1)


@lru_cache(maxsize=1)
def get_tracker_settings() -> TrackerSettings:
    markers = env_list("VOICE_OBSERVER_MARKERS", or_value=DEFAULT_OBSERVER_MARKERS)
    return TrackerSettings(
        session_ttl_seconds=int(env_seconds("VOICE_SESSION_TTL_SECONDS", or_value=86_400) or 86_400),
        stale_after_seconds=int(env_seconds("VOICE_SESSION_STALE_SECONDS", or_value=86_400) or 86_400),
        observer_markers=tuple(markers or ()),
    )


@dataclass(frozen=True)
class ReportEngineSettings:
    """Tunables for one report generation; ``dataclasses.replace`` gives per-call overrides."""

    batch_size: int = 50
    max_concurrent_batches: int = 3
    max_retries: int = 3
    retry_base_delay_seconds: float = 1.0
    batch_timeout_seconds: float = 30.0
    enable_error_recovery: bool = True
    max_total_errors: int = 3
    memory_cleanup_threshold_mb: float = 200.0
    progress_interval_seconds: float = 2.0
    partial_every_batches: int = 3
    enable_partial_results: bool = True
    active_preview_limit: int = 20
    other_preview_limit: int = 10
    batch_delay_seconds: float = 0.0
    yield_every: int = 2
    report_cache_ttl_seconds: int = 21_600
    default_activity_hours: float = 4.0
    afk_role_markers: tuple[str, ...] = DEFAULT_AFK_ROLE_MARKERS
    context_ttl_seconds: int = 3_600

    def __post_init__(self) -> None:
        for name in ("batch_size", "max_concurrent_batches", "partial_every_batches", "yield_every"):
            value = getattr(self, name)
            if value < 1:
                raise ConfigurationError.out_of_range(name, value, 1)
        for name in ("max_retries", "max_total_errors"):
            value = getattr(self, name)
            if value < 0:
                raise ConfigurationError.out_of_range(name, value, 0)
        if not 7_200 <= self.report_cache_ttl_seconds <= 21_600:
            raise ConfigurationError.invalid_value(
                "report_cache_ttl_seconds", self.report_cache_ttl_seconds, "Report cache lifetime must be 2-6 hours"
            )


@lru_cache(maxsize=1)
def get_report_engine_settings() -> ReportEngineSettings:
    defaults = ReportEngineSettings()
    afk_markers = env_list("REPORT_AFK_ROLE_MARKERS", or_value=defaults.afk_role_markers)
    return ReportEngineSettings(
        batch_size=int(env_int("REPORT_BATCH_SIZE", or_value=defaults.batch_size) or defaults.batch_size),
        max_concurrent_batches=int(
            env_int("REPORT_MAX_CONCURRENCY", or_value=defaults.max_concurrent_batches) or defaults.max_concurrent_batches
        ),
        max_retries=int(env_int("REPORT_MAX_RETRIES", or_value=defaults.max_retries) or 0),
        retry_base_delay_seconds=float(
            env_float("REPORT_RETRY_BASE_DELAY_SECONDS", or_value=defaults.retry_base_delay_seconds) or 0.0
        ),
        batch_timeout_seconds=float(
            env_float("REPORT_BATCH_TIMEOUT_SECONDS", or_value=defaults.batch_timeout_seconds)
            or defaults.batch_timeout_seconds
        ),
        enable_error_recovery=bool(env_bool("REPORT_ENABLE_ERROR_RECOVERY", or_value=defaults.enable_error_recovery)),
        max_total_errors=int(env_int("REPORT_MAX_TOTAL_ERRORS", or_value=defaults.max_total_errors) or 0),
        memory_cleanup_threshold_mb=float(
            env_float("REPORT_MEMORY_THRESHOLD_MB", or_value=defaults.memory_cleanup_threshold_mb)
            or defaults.memory_cleanup_threshold_mb
        ),
        progress_interval_seconds=float(
            env_float("REPORT_PROGRESS_INTERVAL_SECONDS", or_value=defaults.progress_interval_seconds) or 0.0
        ),
        partial_every_batches=int(
            env_int("REPORT_PARTIAL_EVERY_BATCHES", or_value=defaults.partial_every_batches)
            or defaults.partial_every_batches
        ),
        enable_partial_results=bool(env_bool("REPORT_ENABLE_PARTIAL_RESULTS", or_value=defaults.enable_partial_results)),
        batch_delay_seconds=float(env_float("REPORT_BATCH_DELAY_SECONDS", or_value=defaults.batch_delay_seconds) or 0.0),
        report_cache_ttl_seconds=int(
            env_seconds("REPORT_CACHE_TTL_SECONDS", or_value=defaults.report_cache_ttl_seconds)
            or defaults.report_cache_ttl_seconds
        ),
        default_activity_hours=float(
            env_float("REPORT_DEFAULT_ACTIVITY_HOURS", or_value=defaults.default_activity_hours)
            or defaults.default_activity_hours
        ),
        afk_role_markers=tuple(afk_markers or ()),
    )


__all__ = [
    "CacheSettings",
    "DEFAULT_AFK_ROLE_MARKERS",
    "DEFAULT_OBSERVER_MARKERS",
    "RedisSettings",
    "ReportEngineSettings",
    "StoreSettings",
    "TrackerSettings",
    "get_cache_settings",
    "get_redis_settings",
    "get_report_engine_settings",
    "get_store_settings",
    "get_tracker_settings",
]
