"""Helpers composing the session tracker."""

from .activity_snapshot import ActivitySnapshot, ActivitySnapshotService
from .dependencies_factory import SessionTrackerDependencies, SessionTrackerDependenciesFactory
from .ingestion import OrderedDispatcher
from .recovery import RecoveryReport, SessionRecovery
from .state_store import ActiveSessionStore
from .statistics import TrackerStatistics
from .transitions import TransitionDecision, classify_transition, decide, is_observer

__all__ = [
    "ActiveSessionStore",
    "ActivitySnapshot",
    "ActivitySnapshotService",
    "OrderedDispatcher",
    "RecoveryReport",
    "SessionRecovery",
    "SessionTrackerDependencies",
    "SessionTrackerDependenciesFactory",
    "TrackerStatistics",
    "TransitionDecision",
    "classify_transition",
    "decide",
    "is_observer",
]
