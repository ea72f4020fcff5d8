"""Helper components for memory monitoring."""

from .cleanup_registry import CleanupRegistry
from .factory import MemoryMonitorFactory
from .metrics_reader import MetricsReader
from .monitoring_loop import MonitoringLoop

__all__ = ["CleanupRegistry", "MemoryMonitorFactory", "MetricsReader", "MonitoringLoop"]
