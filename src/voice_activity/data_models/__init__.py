"""Domain models shared by the tracker, storage layer and report engine."""

from .aggregates import ActivityLevel, DailyActivityStats, DailyAggregate, Granularity, PeriodAggregate, activity_level
from .reports import (
    ClassificationBuckets,
    ClassifiedUser,
    DateRange,
    MemberInfo,
    PartialResultEvent,
    ProgressEvent,
    ReportCacheEntry,
    ReportError,
    ReportEvent,
    ReportOutcome,
    ReportResult,
    ReportStage,
    ReportStatistics,
)
from .sessions import ActiveSession, CompletedSession, TransitionEvent, TransitionKind

__all__ = [
    "ActiveSession",
    "ActivityLevel",
    "ClassificationBuckets",
    "ClassifiedUser",
    "CompletedSession",
    "DailyActivityStats",
    "DailyAggregate",
    "DateRange",
    "Granularity",
    "MemberInfo",
    "PartialResultEvent",
    "PeriodAggregate",
    "ProgressEvent",
    "ReportCacheEntry",
    "ReportError",
    "ReportEvent",
    "ReportOutcome",
    "ReportResult",
    "ReportStage",
    "ReportStatistics",
    "TransitionEvent",
    "TransitionKind",
    "activity_level",
]
