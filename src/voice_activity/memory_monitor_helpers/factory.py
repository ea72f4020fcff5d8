"""Factory for creating MemoryMonitor components."""

from typing import Callable, Optional

import psutil

from .cleanup_registry import CleanupRegistry
from .metrics_reader import MetricsReader
from .monitoring_loop import MonitoringLoop


class MemoryMonitorFactory:
    """Factory for creating and wiring MemoryMonitor components."""

    @staticmethod
    def create_components(
        check: Callable[[], object],
        check_interval_seconds: float,
        process: Optional[psutil.Process] = None,
    ) -> tuple[MetricsReader, CleanupRegistry, MonitoringLoop]:
        """
        Create the reader, cleanup registry and background loop.

        Args:
            check: Callable the background loop runs each interval
            check_interval_seconds: Time between background checks
            process: Process to sample (defaults to the current process)
        """
        metrics_reader = MetricsReader(process or psutil.Process())
        cleanup_registry = CleanupRegistry()
        loop_manager = MonitoringLoop(check, check_interval_seconds)
        return metrics_reader, cleanup_registry, loop_manager
