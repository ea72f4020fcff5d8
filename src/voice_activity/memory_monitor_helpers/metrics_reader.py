"""psutil-backed readings used for report memory backpressure."""

import asyncio
import logging

import psutil

logger = logging.getLogger(__name__)

PSUTIL_ERRORS = (psutil.Error, OSError)

_BYTES_PER_MB = 1024 * 1024


class MetricsReader:
    def __init__(self, process: psutil.Process):
        self.process = process

    def rss_mb(self) -> float:
        """Resident set size in MB, or 0.0 when the process cannot be inspected."""
        try:
            return self.process.memory_info().rss / _BYTES_PER_MB
        except PSUTIL_ERRORS as exc:  # Reading is advisory  # policy_guard: allow-silent-handler
            logger.warning("Memory reading unavailable: %s", exc)
            return 0.0

    @staticmethod
    def running_task_count() -> int:
        """Unfinished tasks on the running loop; 0 outside of one."""
        try:
            tasks = asyncio.all_tasks()
        except RuntimeError:  # No running loop  # policy_guard: allow-silent-handler
            return 0
        return sum(1 for task in tasks if not task.done())
