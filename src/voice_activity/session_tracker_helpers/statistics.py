"""Counters describing tracker throughput."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from voice_activity.time_utils import now_ms


@dataclass
class TrackerStatistics:
    total_joins: int = 0
    total_leaves: int = 0
    peak_concurrent: int = 0
    completed_sessions: int = 0
    total_session_time_ms: int = 0
    started_at: int = field(default_factory=now_ms)

    def record_join(self, concurrent: int) -> None:
        self.total_joins += 1
        self.peak_concurrent = max(self.peak_concurrent, concurrent)

    def record_leave(self, duration_ms: int) -> None:
        self.total_leaves += 1
        self.completed_sessions += 1
        self.total_session_time_ms += duration_ms

    @property
    def average_session_ms(self) -> float:
        if not self.completed_sessions:
            return 0.0
        return self.total_session_time_ms / self.completed_sessions

    def as_dict(self, active_sessions: int, now: int | None = None) -> Dict[str, Any]:
        current = now if now is not None else now_ms()
        return {
            "total_joins": self.total_joins,
            "total_leaves": self.total_leaves,
            "peak_concurrent": self.peak_concurrent,
            "active_sessions": active_sessions,
            "average_session_ms": self.average_session_ms,
            "uptime_ms": max(0, current - self.started_at),
        }
