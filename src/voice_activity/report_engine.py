"""
Streaming report generation.

A report classifies every member matching a role filter as active, inactive or
afk over a date range. Members are processed in fixed-size batches by a
bounded worker pool; each subscriber receives throttled progress events,
periodic partial previews, and exactly one terminal ``ReportOutcome``.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, Optional, Sequence

from voice_activity.config.shared import ReportEngineSettings, get_report_engine_settings
from voice_activity.data_models import (
    ClassificationBuckets,
    DateRange,
    MemberInfo,
    ProgressEvent,
    ReportError,
    ReportOutcome,
    ReportResult,
    ReportStage,
    ReportStatistics,
)
from voice_activity.exceptions import ApplicationError, StorageError
from voice_activity.member_directory import DIRECTORY_ERRORS, MemberDirectory
from voice_activity.redis_protocol.error_types import PARSING_ERRORS, REDIS_ERRORS
from voice_activity.report_engine_helpers import (
    BatchWorkerPool,
    OperationContext,
    ProgressThrottle,
    ReportStream,
    build_partial_event,
    merge_in_order,
    partition,
    should_emit_partial,
)
from voice_activity.report_engine_helpers.dependencies_factory import (
    ReportEngineDependencies,
    ReportEngineDependenciesFactory,
)
from voice_activity.retry import RetryContext, RetryExhaustedError, RetryPolicy, execute_with_retry
from voice_activity.storage import ReportCache, TieredQueryRouter
from voice_activity.tenant_settings import TenantSettingsCache

logger = logging.getLogger(__name__)

BATCH_RETRY_ERRORS = (StorageError, asyncio.TimeoutError, TimeoutError) + REDIS_ERRORS
REPORT_CACHE_ERRORS = (ApplicationError,) + REDIS_ERRORS + PARSING_ERRORS


class StreamingReportEngine:
    def __init__(
        self,
        *,
        router: TieredQueryRouter,
        directory: MemberDirectory,
        report_cache: ReportCache,
        settings_cache: TenantSettingsCache,
        settings: Optional[ReportEngineSettings] = None,
        dependencies: Optional[ReportEngineDependencies] = None,
        progress_clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_report_engine_settings()
        self._directory = directory
        self._report_cache = report_cache
        self._settings_cache = settings_cache
        self._progress_clock = progress_clock

        deps = dependencies or ReportEngineDependenciesFactory.create(router, directory, self._settings)
        self._classifier = deps.classifier
        self._memory = deps.memory_monitor
        self._memory.register_cleanup("report_operations", self.cleanup_stale_operations)

        self._operations: Dict[str, OperationContext] = {}

    @property
    def settings(self) -> ReportEngineSettings:
        return self._settings

    def generate_report(
        self,
        tenant_id: str,
        filter_name: str,
        date_range: DateRange,
        config: Optional[ReportEngineSettings] = None,
    ) -> ReportStream:
        """Start a report in the background and return its event stream."""
        settings = config or self._settings
        operation_id = f"report_{uuid.uuid4().hex}"
        context = OperationContext(operation_id, tenant_id, filter_name, date_range)
        stream = ReportStream(operation_id)
        self._operations[operation_id] = context
        context.task = asyncio.create_task(self._run(context, settings, stream), name=operation_id)
        logger.info("📊 Report %s requested for %s/%s", operation_id, tenant_id, filter_name)
        return stream

    def cancel_report(self, operation_id: str) -> bool:
        context = self._operations.get(operation_id)
        if context is None or context.is_finished:
            return False
        context.token.cancel()
        logger.info("Report %s cancellation requested", operation_id)
        return True

    def get_operation_status(self, operation_id: str) -> Optional[Dict[str, Any]]:
        context = self._operations.get(operation_id)
        return None if context is None else context.status()

    def get_memory_stats(self) -> Dict[str, Any]:
        status = self._memory.get_status()
        return {
            "current_mb": status["current_mb"],
            "peak_mb": status["peak_mb"],
            "threshold_mb": self._settings.memory_cleanup_threshold_mb,
            "gc_count": status["gc_count"],
            "tracked_operations": len(self._operations),
            "active_operations": sum(1 for context in self._operations.values() if not context.is_finished),
        }

    def cleanup_stale_operations(self, now: Optional[float] = None) -> int:
        """Forget finished operations older than the context TTL; returns how many."""
        current = time.monotonic() if now is None else now
        cutoff = current - self._settings.context_ttl_seconds
        stale = [
            operation_id
            for operation_id, context in list(self._operations.items())
            if context.is_finished and context.finished_at is not None and context.finished_at < cutoff
        ]
        for operation_id in stale:
            self._operations.pop(operation_id, None)
        return len(stale)

    async def shutdown(self) -> None:
        """Cancel running operations and wait for their streams to close."""
        tasks = []
        for context in self._operations.values():
            if not context.is_finished:
                context.token.cancel()
                if context.task is not None:
                    tasks.append(context.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def _run(self, context: OperationContext, settings: ReportEngineSettings, stream: ReportStream) -> None:
        throttle = ProgressThrottle(settings.progress_interval_seconds, self._progress_clock)
        results: Dict[int, ClassificationBuckets] = {}
        try:
            await self._generate(context, settings, stream, throttle, results)
        except asyncio.CancelledError:
            self._complete(context, stream, throttle, ReportStage.CANCELLED)
            raise
        except Exception as exc:  # policy_guard: allow-broad-except
            if stream.closed:
                raise
            logger.exception("Report %s failed during %s", context.operation_id, context.stage.value)
            error = ReportError(
                code="UNEXPECTED_ERROR",
                message=str(exc),
                stage=context.stage,
                recoverable=False,
                context={"exception": type(exc).__name__},
            )
            self._fail(context, stream, throttle, settings, results, error)

    async def _generate(
        self,
        context: OperationContext,
        settings: ReportEngineSettings,
        stream: ReportStream,
        throttle: ProgressThrottle,
        results: Dict[int, ClassificationBuckets],
    ) -> None:
        self._progress(context, stream, throttle, "Report started", force=True)

        cached = await self._load_cached(context)
        if cached is not None:
            self._complete(context, stream, throttle, ReportStage.COMPLETED, result=cached)
            return
        if context.token.cancelled:
            self._complete(context, stream, throttle, ReportStage.CANCELLED)
            return

        context.stage = ReportStage.FETCHING_MEMBERS
        self._progress(context, stream, throttle, "Fetching members")
        try:
            members = await self._directory.list_members(context.tenant_id, context.filter_name)
        except DIRECTORY_ERRORS as exc:
            error = ReportError(
                code="MEMBER_FETCH_FAILED",
                message=str(exc),
                stage=ReportStage.FETCHING_MEMBERS,
                recoverable=True,
            )
            self._fail(context, stream, throttle, settings, results, error)
            return

        threshold_hours = await self._settings_cache.get_activity_threshold_hours(
            context.tenant_id, context.filter_name, settings.default_activity_hours
        )

        batches = partition(members, settings.batch_size)
        context.total_users = len(members)
        context.total_batches = len(batches)
        context.stage = ReportStage.PROCESSING_DATA
        self._progress(context, stream, throttle, f"Processing {len(members)} members in {len(batches)} batches")

        gate = asyncio.Event()
        gate.set()
        pool: BatchWorkerPool[MemberInfo] = BatchWorkerPool(
            settings.max_concurrent_batches,
            context.token,
            gate=gate,
            batch_delay_seconds=settings.batch_delay_seconds,
        )
        policy = RetryPolicy.from_retries(
            settings.max_retries,
            settings.retry_base_delay_seconds,
            retry_exceptions=BATCH_RETRY_ERRORS,
        )
        abort_error: list[ReportError] = []

        async def process(index: int, batch: Sequence[MemberInfo]) -> None:
            try:
                buckets = await self._classify_with_retry(context, settings, policy, threshold_hours, index, batch)
            except RetryExhaustedError as exc:
                failure = self._record_batch_failure(context, settings, index, batch, exc)
                if failure is not None:
                    abort_error.append(failure)
                    pool.abort()
                return

            if context.token.cancelled:
                logger.debug("Discarding batch %d of cancelled report %s", index, context.operation_id)
                return

            results[index] = buckets
            context.completed_batches += 1
            context.processed_users += len(batch)
            await self._relieve_memory(context, settings, gate)
            self._progress(context, stream, throttle, f"Batch {index + 1}/{context.total_batches} done")

            if settings.enable_partial_results and should_emit_partial(
                context.completed_batches, context.total_batches, settings.partial_every_batches
            ):
                context.stage = ReportStage.GENERATING_PARTIAL
                stream.publish(
                    build_partial_event(
                        context,
                        results,
                        active_limit=settings.active_preview_limit,
                        other_limit=settings.other_preview_limit,
                    )
                )
                context.stage = ReportStage.PROCESSING_DATA

            if context.completed_batches % settings.yield_every == 0:
                await asyncio.sleep(0)

        await pool.run(batches, process)

        if context.token.cancelled:
            self._complete(context, stream, throttle, ReportStage.CANCELLED)
            return
        if abort_error:
            self._fail(context, stream, throttle, settings, results, abort_error[0])
            return

        context.stage = ReportStage.FINALIZING
        self._progress(context, stream, throttle, "Finalizing")
        result = self._build_result(context, results, success=True)
        if not context.errors:
            await self._store_cached(result, context.elapsed_ms())
        self._complete(context, stream, throttle, ReportStage.COMPLETED, result=result)

    async def _classify_with_retry(
        self,
        context: OperationContext,
        settings: ReportEngineSettings,
        policy: RetryPolicy,
        threshold_hours: float,
        index: int,
        batch: Sequence[MemberInfo],
    ) -> ClassificationBuckets:
        async def attempt(_attempt: int) -> ClassificationBuckets:
            return await asyncio.wait_for(
                self._classifier.classify_batch(
                    context.tenant_id,
                    batch,
                    context.date_range,
                    threshold_hours=threshold_hours,
                    afk_markers=settings.afk_role_markers,
                ),
                timeout=settings.batch_timeout_seconds,
            )

        def on_retry(retry: RetryContext) -> None:
            logger.warning(
                "Report %s batch %d failed (attempt %d/%d); retrying in %.2fs: %s",
                context.operation_id,
                index,
                retry.attempt,
                retry.max_attempts,
                retry.delay,
                retry.exception,
            )

        return await execute_with_retry(
            attempt,
            policy=policy,
            logger=logger,
            context=f"report {context.operation_id} batch {index}",
            on_retry=on_retry,
        )

    def _record_batch_failure(
        self,
        context: OperationContext,
        settings: ReportEngineSettings,
        index: int,
        batch: Sequence[MemberInfo],
        exc: RetryExhaustedError,
    ) -> Optional[ReportError]:
        """Record a failed batch; returns the error when the budget is exhausted."""
        within_budget = settings.enable_error_recovery and context.error_count + 1 <= settings.max_total_errors
        error = ReportError(
            code="BATCH_FAILED",
            message=str(exc.__cause__ or exc),
            stage=ReportStage.PROCESSING_DATA,
            recoverable=within_budget,
            retry_count=max(0, exc.attempts - 1),
            context={"batch_index": index, "batch_users": len(batch)},
        )
        context.errors.append(error)
        if within_budget:
            logger.warning(
                "Report %s skipping batch %d after %d attempt(s) (%d/%d errors)",
                context.operation_id,
                index,
                exc.attempts,
                context.error_count,
                settings.max_total_errors,
            )
            return None
        logger.error("Report %s aborting: batch %d failed and the error budget is spent", context.operation_id, index)
        return error

    async def _relieve_memory(
        self, context: OperationContext, settings: ReportEngineSettings, gate: asyncio.Event
    ) -> None:
        """Over the threshold, close the admission gate while cleanup runs off the event loop."""
        current = self._memory.sample()
        context.memory_peak_mb = max(context.memory_peak_mb, current)
        if current <= settings.memory_cleanup_threshold_mb or not gate.is_set():
            return
        logger.warning(
            "Report %s at %.1fMB exceeds %.1fMB; pausing admissions for cleanup",
            context.operation_id,
            current,
            settings.memory_cleanup_threshold_mb,
        )
        gate.clear()
        try:
            await asyncio.to_thread(self._memory.cleanup)
        finally:
            gate.set()

    async def _load_cached(self, context: OperationContext) -> Optional[ReportResult]:
        try:
            return await self._report_cache.get(
                context.tenant_id, context.filter_name, context.date_range, context.operation_id
            )
        except REPORT_CACHE_ERRORS as exc:  # Treat as miss  # policy_guard: allow-silent-handler
            logger.warning("Report cache lookup failed for %s: %s", context.operation_id, exc)
            return None

    async def _store_cached(self, result: ReportResult, generation_time_ms: int) -> None:
        try:
            await self._report_cache.put(result, generation_time_ms)
        except REPORT_CACHE_ERRORS as exc:  # Result is still delivered  # policy_guard: allow-silent-handler
            logger.warning("Failed to cache report %s: %s", result.operation_id, exc)

    def _build_result(
        self,
        context: OperationContext,
        results: Dict[int, ClassificationBuckets],
        *,
        success: bool,
        error: Optional[ReportError] = None,
    ) -> ReportResult:
        buckets = merge_in_order(results)
        users = buckets.all_users()
        average = sum(user.total_time_ms for user in users) / len(users) if users else 0.0
        statistics = ReportStatistics(
            total_members=context.total_users,
            active=len(buckets.active),
            inactive=len(buckets.inactive),
            afk=len(buckets.afk),
            average_activity_ms=average,
            processing_time_ms=context.elapsed_ms(),
            memory_peak_mb=context.memory_peak_mb,
            batches_processed=context.completed_batches,
            errors_recovered=sum(1 for item in context.errors if item.recoverable),
        )
        return ReportResult(
            operation_id=context.operation_id,
            tenant_id=context.tenant_id,
            filter_name=context.filter_name,
            date_range=context.date_range,
            buckets=buckets,
            statistics=statistics,
            success=success,
            error=error,
        )

    def _fail(
        self,
        context: OperationContext,
        stream: ReportStream,
        throttle: ProgressThrottle,
        settings: ReportEngineSettings,
        results: Dict[int, ClassificationBuckets],
        error: ReportError,
    ) -> None:
        partial = self._build_result(context, results, success=False, error=error)
        self._complete(context, stream, throttle, ReportStage.ERROR, result=partial, error=error)

    def _complete(
        self,
        context: OperationContext,
        stream: ReportStream,
        throttle: ProgressThrottle,
        stage: ReportStage,
        *,
        result: Optional[ReportResult] = None,
        error: Optional[ReportError] = None,
    ) -> None:
        context.stage = stage
        context.finished_at = time.monotonic()
        self._progress(context, stream, throttle, f"Report {stage.value}", force=True)
        stream.publish(ReportOutcome(context.operation_id, stage, result=result, error=error))
        logger.info("Report %s finished: %s in %dms", context.operation_id, stage.value, context.elapsed_ms())

    def _progress(
        self,
        context: OperationContext,
        stream: ReportStream,
        throttle: ProgressThrottle,
        message: str,
        *,
        force: bool = False,
    ) -> None:
        if not throttle.should_emit(force=force):
            return
        stream.publish(
            ProgressEvent(
                operation_id=context.operation_id,
                stage=context.stage,
                completed_batches=context.completed_batches,
                total_batches=context.total_batches,
                processed_users=context.processed_users,
                total_users=context.total_users,
                message=message,
            )
        )


__all__ = ["StreamingReportEngine"]
