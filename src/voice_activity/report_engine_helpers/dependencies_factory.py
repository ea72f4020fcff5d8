"""Dependency factory for StreamingReportEngine."""

from dataclasses import dataclass
from typing import Optional

from voice_activity.config.shared import ReportEngineSettings
from voice_activity.member_directory import MemberDirectory
from voice_activity.memory_monitor import MemoryMonitor
from voice_activity.storage import TieredQueryRouter

from .classification import UserClassifier


@dataclass
class ReportEngineDependencies:
    """Dependencies for StreamingReportEngine."""

    classifier: UserClassifier
    memory_monitor: MemoryMonitor


class ReportEngineDependenciesFactory:
    """Factory for creating StreamingReportEngine dependencies."""

    @staticmethod
    def create(
        router: TieredQueryRouter,
        directory: MemberDirectory,
        settings: ReportEngineSettings,
        memory_monitor: Optional[MemoryMonitor] = None,
    ) -> ReportEngineDependencies:
        """
        Create all dependencies for StreamingReportEngine.

        Args:
            router: Tiered query router used for batch totals
            directory: Member directory for listing and display names
            settings: Engine tunables; supplies the memory threshold
            memory_monitor: Shared monitor, created when not supplied

        Returns:
            ReportEngineDependencies instance
        """
        monitor = memory_monitor or MemoryMonitor("report_engine", settings.memory_cleanup_threshold_mb)
        return ReportEngineDependencies(
            classifier=UserClassifier(router, directory),
            memory_monitor=monitor,
        )
