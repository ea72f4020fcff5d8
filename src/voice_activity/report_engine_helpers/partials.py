"""Partial-result previews emitted while a report is still running."""

from __future__ import annotations

from typing import Mapping

from voice_activity.data_models import ClassificationBuckets, PartialResultEvent

from .operation import OperationContext


def merge_in_order(results: Mapping[int, ClassificationBuckets]) -> ClassificationBuckets:
    merged = ClassificationBuckets()
    for index in sorted(results):
        merged.extend(results[index])
    return merged.sorted()


def should_emit_partial(completed_batches: int, total_batches: int, every: int) -> bool:
    # The final batch is followed by the full result instead.
    return completed_batches % every == 0 and completed_batches < total_batches


def build_partial_event(
    context: OperationContext,
    results: Mapping[int, ClassificationBuckets],
    *,
    active_limit: int,
    other_limit: int,
) -> PartialResultEvent:
    return PartialResultEvent(
        operation_id=context.operation_id,
        completed_batches=context.completed_batches,
        total_batches=context.total_batches,
        processed_users=context.processed_users,
        preview=merge_in_order(results).preview(active_limit, other_limit),
    )
