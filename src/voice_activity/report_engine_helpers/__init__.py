"""Helpers composing the streaming report engine."""

from .batching import BatchWorkerPool, partition
from .classification import UserClassifier, classify_members, has_afk_role
from .dependencies_factory import ReportEngineDependencies, ReportEngineDependenciesFactory
from .operation import CancellationToken, OperationContext
from .partials import build_partial_event, merge_in_order, should_emit_partial
from .progress import ProgressThrottle
from .stream import ReportStream

__all__ = [
    "BatchWorkerPool",
    "CancellationToken",
    "OperationContext",
    "ProgressThrottle",
    "ReportEngineDependencies",
    "ReportEngineDependenciesFactory",
    "ReportStream",
    "UserClassifier",
    "build_partial_event",
    "classify_members",
    "has_afk_role",
    "merge_in_order",
    "partition",
    "should_emit_partial",
]
