"""Async event stream handed to report subscribers."""

from __future__ import annotations

import asyncio
from typing import List, Optional

from voice_activity.data_models import ReportEvent, ReportOutcome

_END = object()


class ReportStream:
    """
    Async iterator over one operation's events.

    The stream always finishes with exactly one ``ReportOutcome``; iteration
    stops after it.
    """

    def __init__(self, operation_id: str):
        self.operation_id = operation_id
        self._queue: asyncio.Queue = asyncio.Queue()
        self._outcome: Optional[ReportOutcome] = None
        self._closed = False

    def publish(self, event: ReportEvent) -> None:
        if self._closed:
            return
        if isinstance(event, ReportOutcome):
            self._outcome = event
            self._closed = True
            self._queue.put_nowait(event)
            self._queue.put_nowait(_END)
            return
        self._queue.put_nowait(event)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def outcome(self) -> Optional[ReportOutcome]:
        return self._outcome

    def __aiter__(self) -> "ReportStream":
        return self

    async def __anext__(self) -> ReportEvent:
        item = await self._queue.get()
        if item is _END:
            self._queue.put_nowait(_END)
            raise StopAsyncIteration
        return item

    async def collect(self) -> List[ReportEvent]:
        return [event async for event in self]

    async def wait_outcome(self) -> ReportOutcome:
        async for event in self:
            if isinstance(event, ReportOutcome):
                return event
        if self._outcome is None:
            raise RuntimeError(f"Report stream {self.operation_id} ended without an outcome")
        return self._outcome
