"""Report request, progress and result models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from voice_activity.exceptions import DataError, ValidationError
from voice_activity.time_utils import ms_to_date, now_ms


class ReportStage(str, Enum):
    INITIALIZING = "initializing"
    FETCHING_MEMBERS = "fetching_members"
    PROCESSING_DATA = "processing_data"
    GENERATING_PARTIAL = "generating_partial"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportStage.COMPLETED, ReportStage.ERROR, ReportStage.CANCELLED)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of epoch-millisecond timestamps."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValidationError("Date range ends before it starts", start=self.start, end=self.end)

    @property
    def start_date(self) -> date:
        return ms_to_date(self.start)

    @property
    def end_date(self) -> date:
        return ms_to_date(self.end)


@dataclass(frozen=True)
class MemberInfo:
    user_id: str
    display_name: str = ""
    roles: tuple[str, ...] = ()


@dataclass(frozen=True)
class ClassifiedUser:
    user_id: str
    display_name: str
    total_time_ms: int

    def to_payload(self) -> Dict[str, Any]:
        return {"user_id": self.user_id, "display_name": self.display_name, "total_time_ms": self.total_time_ms}

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ClassifiedUser":
        return cls(
            user_id=str(payload["user_id"]),
            display_name=str(payload["display_name"]),
            total_time_ms=int(payload["total_time_ms"]),
        )


def _by_time_desc(user: ClassifiedUser) -> tuple[int, str]:
    return (-user.total_time_ms, user.user_id)


@dataclass
class ClassificationBuckets:
    active: List[ClassifiedUser] = field(default_factory=list)
    inactive: List[ClassifiedUser] = field(default_factory=list)
    afk: List[ClassifiedUser] = field(default_factory=list)

    def extend(self, other: "ClassificationBuckets") -> None:
        self.active.extend(other.active)
        self.inactive.extend(other.inactive)
        self.afk.extend(other.afk)

    def sorted(self) -> "ClassificationBuckets":
        return ClassificationBuckets(
            active=sorted(self.active, key=_by_time_desc),
            inactive=sorted(self.inactive, key=_by_time_desc),
            afk=sorted(self.afk, key=_by_time_desc),
        )

    def preview(self, active_limit: int, other_limit: int) -> "ClassificationBuckets":
        ordered = self.sorted()
        return ClassificationBuckets(
            active=ordered.active[:active_limit],
            inactive=ordered.inactive[:other_limit],
            afk=ordered.afk[:other_limit],
        )

    @property
    def total(self) -> int:
        return len(self.active) + len(self.inactive) + len(self.afk)

    def all_users(self) -> List[ClassifiedUser]:
        return [*self.active, *self.inactive, *self.afk]

    def to_payload(self) -> Dict[str, Any]:
        return {
            "active": [user.to_payload() for user in self.active],
            "inactive": [user.to_payload() for user in self.inactive],
            "afk": [user.to_payload() for user in self.afk],
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ClassificationBuckets":
        return cls(
            active=[ClassifiedUser.from_payload(item) for item in payload["active"]],
            inactive=[ClassifiedUser.from_payload(item) for item in payload["inactive"]],
            afk=[ClassifiedUser.from_payload(item) for item in payload["afk"]],
        )


@dataclass
class ReportStatistics:
    total_members: int = 0
    active: int = 0
    inactive: int = 0
    afk: int = 0
    average_activity_ms: float = 0.0
    processing_time_ms: int = 0
    memory_peak_mb: float = 0.0
    batches_processed: int = 0
    errors_recovered: int = 0

    def to_payload(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ReportStatistics":
        return cls(**{key: payload[key] for key in cls().__dict__ if key in payload})


@dataclass(frozen=True)
class ReportError:
    """Structured description of why an operation failed."""

    code: str
    message: str
    stage: ReportStage
    recoverable: bool
    retry_count: int = 0
    context: Dict[str, Any] = field(default_factory=dict)
    timestamp: int = field(default_factory=now_ms)


@dataclass
class ReportResult:
    operation_id: str
    tenant_id: str
    filter_name: str
    date_range: DateRange
    buckets: ClassificationBuckets
    statistics: ReportStatistics
    success: bool
    error: Optional[ReportError] = None
    from_cache: bool = False
    generated_at: int = field(default_factory=now_ms)

    def to_payload(self) -> Dict[str, Any]:
        """Cacheable form; only successful results are ever cached."""
        return {
            "tenant_id": self.tenant_id,
            "filter_name": self.filter_name,
            "start": self.date_range.start,
            "end": self.date_range.end,
            "buckets": self.buckets.to_payload(),
            "statistics": self.statistics.to_payload(),
            "generated_at": self.generated_at,
        }

    @classmethod
    def from_payload(cls, operation_id: str, payload: Dict[str, Any]) -> "ReportResult":
        try:
            return cls(
                operation_id=operation_id,
                tenant_id=str(payload["tenant_id"]),
                filter_name=str(payload["filter_name"]),
                date_range=DateRange(int(payload["start"]), int(payload["end"])),
                buckets=ClassificationBuckets.from_payload(payload["buckets"]),
                statistics=ReportStatistics.from_payload(payload["statistics"]),
                success=True,
                from_cache=True,
                generated_at=int(payload["generated_at"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise DataError("Malformed cached report payload") from exc


@dataclass(frozen=True)
class ProgressEvent:
    operation_id: str
    stage: ReportStage
    completed_batches: int
    total_batches: int
    processed_users: int
    total_users: int
    message: str = ""
    timestamp: int = field(default_factory=now_ms)

    @property
    def percentage(self) -> float:
        if self.total_batches == 0:
            return 100.0 if self.stage.is_terminal else 0.0
        return round(self.completed_batches / self.total_batches * 100, 1)


@dataclass(frozen=True)
class PartialResultEvent:
    operation_id: str
    completed_batches: int
    total_batches: int
    processed_users: int
    preview: ClassificationBuckets
    timestamp: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class ReportOutcome:
    """Terminal event of every report stream."""

    operation_id: str
    stage: ReportStage
    result: Optional[ReportResult] = None
    error: Optional[ReportError] = None

    @property
    def success(self) -> bool:
        return self.stage is ReportStage.COMPLETED


ReportEvent = Union[ProgressEvent, PartialResultEvent, ReportOutcome]


@dataclass(frozen=True)
class ReportCacheEntry:
    cache_key: str
    tenant_id: str
    filter_name: str
    start_date: date
    end_date: date
    payload: Dict[str, Any]
    generated_at: int
    expires_at: int
    user_count: int
    generation_time_ms: int
