"""Periodic memory check that runs between reports."""

import asyncio
import logging
from typing import Callable, Optional

from .cleanup_registry import CLEANUP_ERRORS
from .metrics_reader import PSUTIL_ERRORS

logger = logging.getLogger(__name__)

MONITOR_LOOP_ERRORS = PSUTIL_ERRORS + CLEANUP_ERRORS


class MonitoringLoop:
    """Calls ``check`` every ``check_interval_seconds`` until stopped."""

    def __init__(self, check: Callable[[], object], check_interval_seconds: float):
        self.check = check
        self.check_interval_seconds = check_interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    async def start_monitoring(self) -> None:
        if self.is_monitoring_active():
            logger.warning("Memory monitoring already running")
            return
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="memory-monitor")
        logger.info("Memory monitoring every %ss", self.check_interval_seconds)

    async def stop_monitoring(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        self._stop.set()
        await task
        logger.info("Memory monitoring stopped")

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self.check()
            except MONITOR_LOOP_ERRORS as exc:  # Next tick retries  # policy_guard: allow-silent-handler
                logger.warning("Memory check failed: %s", exc)
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.check_interval_seconds)
            except asyncio.TimeoutError:
                continue

    def is_monitoring_active(self) -> bool:
        return self._task is not None and not self._task.done()
