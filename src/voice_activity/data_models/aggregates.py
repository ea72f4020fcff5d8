"""Aggregate rows produced by the storage layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from voice_activity.time_utils import MS_PER_HOUR


class Granularity(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class DailyAggregate:
    user_id: str
    tenant_id: str
    date: date
    total_time_ms: int
    session_count: int
    first_activity_time: int
    last_activity_time: int
    resources_visited: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PeriodAggregate:
    """Weekly or monthly roll-up recomputed from daily rows."""

    user_id: str
    tenant_id: str
    granularity: Granularity
    period_start: date
    period_end: date
    total_time_ms: int
    session_count: int
    active_days: int


@dataclass(frozen=True)
class DailyActivityStats:
    date: date
    active_users: int
    total_time_ms: int
    total_sessions: int


class ActivityLevel(str, Enum):
    HIGH_ACTIVE = "high_active"
    ACTIVE = "active"
    LOW_ACTIVE = "low_active"
    INACTIVE = "inactive"


def activity_level(total_time_ms: int) -> ActivityLevel:
    if total_time_ms >= MS_PER_HOUR:
        return ActivityLevel.HIGH_ACTIVE
    if total_time_ms >= MS_PER_HOUR // 2:
        return ActivityLevel.ACTIVE
    if total_time_ms > 0:
        return ActivityLevel.LOW_ACTIVE
    return ActivityLevel.INACTIVE
