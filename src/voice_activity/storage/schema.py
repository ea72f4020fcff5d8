"""SQLite schema for completed sessions, roll-ups and the report cache."""

COMPLETED_SESSIONS_SCHEMA = """
CREATE TABLE IF NOT EXISTS completed_sessions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    resource_id TEXT NOT NULL,
    start_time INTEGER NOT NULL,
    end_time INTEGER NOT NULL,
    duration_ms INTEGER NOT NULL CHECK (duration_ms >= 0),
    session_date TEXT NOT NULL,
    recorded_at INTEGER NOT NULL,
    UNIQUE (tenant_id, user_id, resource_id, start_time, end_time)
)
"""

DAILY_ACTIVITY_SCHEMA = """
CREATE TABLE IF NOT EXISTS daily_activity (
    tenant_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    activity_date TEXT NOT NULL,
    total_time_ms INTEGER NOT NULL DEFAULT 0,
    session_count INTEGER NOT NULL DEFAULT 0,
    first_activity_time INTEGER NOT NULL,
    last_activity_time INTEGER NOT NULL,
    resources_visited TEXT NOT NULL DEFAULT '[]',  -- JSON array of resource ids
    updated_at INTEGER NOT NULL,
    PRIMARY KEY (tenant_id, user_id, activity_date)
)
"""

WEEKLY_ACTIVITY_SCHEMA = """
CREATE TABLE IF NOT EXISTS weekly_activity (
    tenant_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    week_start TEXT NOT NULL,  -- Monday
    week_end TEXT NOT NULL,
    total_time_ms INTEGER NOT NULL,
    session_count INTEGER NOT NULL,
    active_days INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    PRIMARY KEY (tenant_id, user_id, week_start)
)
"""

MONTHLY_ACTIVITY_SCHEMA = """
CREATE TABLE IF NOT EXISTS monthly_activity (
    tenant_id TEXT NOT NULL,
    user_id TEXT NOT NULL,
    month_start TEXT NOT NULL,  -- first day of month
    month_end TEXT NOT NULL,
    total_time_ms INTEGER NOT NULL,
    session_count INTEGER NOT NULL,
    active_days INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    PRIMARY KEY (tenant_id, user_id, month_start)
)
"""

REPORT_CACHE_SCHEMA = """
CREATE TABLE IF NOT EXISTS report_cache (
    cache_key TEXT PRIMARY KEY,
    tenant_id TEXT NOT NULL,
    filter_name TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    report_data TEXT NOT NULL,  -- JSON payload
    user_count INTEGER NOT NULL,
    generation_time_ms INTEGER NOT NULL,
    created_at INTEGER NOT NULL,
    expires_at INTEGER NOT NULL
)
"""

TABLE_SCHEMAS = (
    COMPLETED_SESSIONS_SCHEMA,
    DAILY_ACTIVITY_SCHEMA,
    WEEKLY_ACTIVITY_SCHEMA,
    MONTHLY_ACTIVITY_SCHEMA,
    REPORT_CACHE_SCHEMA,
)

INDEX_DEFINITIONS = [
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_date ON completed_sessions(tenant_id, user_id, session_date)",
    "CREATE INDEX IF NOT EXISTS idx_daily_tenant_date ON daily_activity(tenant_id, activity_date)",
    "CREATE INDEX IF NOT EXISTS idx_weekly_tenant_start ON weekly_activity(tenant_id, week_start)",
    "CREATE INDEX IF NOT EXISTS idx_monthly_tenant_start ON monthly_activity(tenant_id, month_start)",
    "CREATE INDEX IF NOT EXISTS idx_report_cache_expires ON report_cache(expires_at)",
    "CREATE INDEX IF NOT EXISTS idx_report_cache_tenant ON report_cache(tenant_id)",
]

TABLE_NAMES = frozenset(
    {"completed_sessions", "daily_activity", "weekly_activity", "monthly_activity", "report_cache"}
)
