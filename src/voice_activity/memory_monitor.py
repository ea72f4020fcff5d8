"""
Process memory sampling with threshold-triggered cleanup.

The report engine samples after every batch; when resident memory exceeds the
threshold the registered cleanup callbacks run, followed by ``gc.collect()``.
A background loop can perform the same check periodically between reports.
"""

import logging
from typing import Any, Callable, Dict, Optional

import psutil

from .memory_monitor_helpers import MemoryMonitorFactory

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL_SECONDS = 10.0


class MemoryMonitor:
    def __init__(
        self,
        service_name: str,
        threshold_mb: float,
        *,
        check_interval_seconds: float = DEFAULT_CHECK_INTERVAL_SECONDS,
        process: Optional[psutil.Process] = None,
    ):
        self.service_name = service_name
        self.threshold_mb = threshold_mb
        self.peak_mb = 0.0
        self.last_sample_mb = 0.0
        self.cleanup_runs = 0
        (
            self._metrics_reader,
            self._cleanup_registry,
            self._loop_manager,
        ) = MemoryMonitorFactory.create_components(self.check_and_cleanup, check_interval_seconds, process)

    def register_cleanup(self, name: str, callback: Callable[[], int]) -> None:
        self._cleanup_registry.register(name, callback)

    def sample(self) -> float:
        """Current RSS in MB; also updates the peak."""
        current = self._metrics_reader.rss_mb()
        self.last_sample_mb = current
        self.peak_mb = max(self.peak_mb, current)
        return current

    def cleanup(self) -> Dict[str, int]:
        released = self._cleanup_registry.run()
        self.cleanup_runs += 1
        after = self.sample()
        logger.info(
            "🧹 MEMORY_MONITOR[%s]: cleanup released %s; now %.1fMB (threshold %.1fMB)",
            self.service_name,
            released,
            after,
            self.threshold_mb,
        )
        return released

    def check_and_cleanup(self) -> bool:
        """Sample once and clean up when over threshold; returns whether cleanup ran."""
        current = self.sample()
        if current <= self.threshold_mb:
            return False
        logger.warning(
            "MEMORY_MONITOR[%s]: %.1fMB exceeds threshold %.1fMB",
            self.service_name,
            current,
            self.threshold_mb,
        )
        self.cleanup()
        return True

    async def start_monitoring(self) -> None:
        await self._loop_manager.start_monitoring()

    async def stop_monitoring(self) -> None:
        await self._loop_manager.stop_monitoring()

    def get_status(self) -> Dict[str, Any]:
        return {
            "service_name": self.service_name,
            "current_mb": self.last_sample_mb,
            "peak_mb": self.peak_mb,
            "threshold_mb": self.threshold_mb,
            "gc_count": self._cleanup_registry.gc_count,
            "cleanup_runs": self.cleanup_runs,
            "task_count": self._metrics_reader.running_task_count(),
            "monitoring_active": self._loop_manager.is_monitoring_active(),
        }
