"""Per-operation state for report generation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from voice_activity.data_models import DateRange, ReportError, ReportStage


class CancellationToken:
    """Cooperative cancellation flag checked before each batch admission."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class OperationContext:
    operation_id: str
    tenant_id: str
    filter_name: str
    date_range: DateRange
    token: CancellationToken = field(default_factory=CancellationToken)
    stage: ReportStage = ReportStage.INITIALIZING
    started_at: float = field(default_factory=time.monotonic)
    finished_at: Optional[float] = None
    total_users: int = 0
    total_batches: int = 0
    completed_batches: int = 0
    processed_users: int = 0
    errors: List[ReportError] = field(default_factory=list)
    memory_peak_mb: float = 0.0
    task: Optional[asyncio.Task] = None

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def is_finished(self) -> bool:
        return self.stage.is_terminal

    def elapsed_ms(self, now: Optional[float] = None) -> int:
        end = self.finished_at if self.finished_at is not None else (now if now is not None else time.monotonic())
        return int((end - self.started_at) * 1000)

    def status(self) -> Dict[str, Any]:
        progress = 0.0
        if self.total_batches:
            progress = round(self.completed_batches / self.total_batches * 100, 1)
        elif self.stage is ReportStage.COMPLETED:
            progress = 100.0
        return {
            "operation_id": self.operation_id,
            "tenant_id": self.tenant_id,
            "filter_name": self.filter_name,
            "stage": self.stage.value,
            "progress": progress,
            "completed_batches": self.completed_batches,
            "total_batches": self.total_batches,
            "processed_users": self.processed_users,
            "total_users": self.total_users,
            "error_count": self.error_count,
            "elapsed_ms": self.elapsed_ms(),
        }
