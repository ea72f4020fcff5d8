"""Bounded worker pool for report batches."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from .operation import CancellationToken

logger = logging.getLogger(__name__)

_ItemT = TypeVar("_ItemT")

BatchProcessor = Callable[[int, Sequence[_ItemT]], Awaitable[None]]


def partition(items: Sequence[_ItemT], batch_size: int) -> List[Sequence[_ItemT]]:
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    return [items[index : index + batch_size] for index in range(0, len(items), batch_size)]


class BatchWorkerPool(Generic[_ItemT]):
    """
    Run batches through at most ``max_concurrency`` workers.

    Batches are handed over through a bounded queue. A worker admits a batch
    only after the admission gate is open and the cancellation token is clear;
    batches pulled after cancellation or abort are skipped without running.
    """

    def __init__(
        self,
        max_concurrency: int,
        token: CancellationToken,
        *,
        gate: Optional[asyncio.Event] = None,
        batch_delay_seconds: float = 0.0,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be positive")
        self.max_concurrency = max_concurrency
        self.token = token
        self.gate = gate if gate is not None else asyncio.Event()
        if gate is None:
            self.gate.set()
        self.batch_delay_seconds = batch_delay_seconds
        self.in_flight = 0
        self.max_in_flight = 0
        self.admitted: List[int] = []
        self.skipped = 0
        self._aborted = False

    def abort(self) -> None:
        self._aborted = True

    def _stopping(self) -> bool:
        return self._aborted or self.token.cancelled

    async def run(self, batches: Sequence[Sequence[_ItemT]], process: BatchProcessor) -> None:
        queue: asyncio.Queue[Optional[Tuple[int, Sequence[_ItemT]]]] = asyncio.Queue(maxsize=self.max_concurrency)
        worker_count = min(self.max_concurrency, len(batches)) or 1

        async def produce() -> None:
            for index, batch in enumerate(batches):
                if self._stopping():
                    break
                await queue.put((index, batch))
            for _ in range(worker_count):
                await queue.put(None)

        async def work() -> None:
            while True:
                item = await queue.get()
                if item is None:
                    return
                index, batch = item
                await self.gate.wait()
                if self._stopping():
                    self.skipped += 1
                    continue
                self.in_flight += 1
                self.max_in_flight = max(self.max_in_flight, self.in_flight)
                self.admitted.append(index)
                try:
                    await process(index, batch)
                finally:
                    self.in_flight -= 1
                if self.batch_delay_seconds > 0 and not self._stopping():
                    await asyncio.sleep(self.batch_delay_seconds)

        tasks = [asyncio.create_task(produce())]
        tasks.extend(asyncio.create_task(work()) for _ in range(worker_count))
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
