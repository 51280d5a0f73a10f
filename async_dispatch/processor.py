"""Job processor: selects due jobs and applies retry, backoff and recurrence."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional, Set

from async_dispatch.config import DispatchConfig
from async_dispatch.models import BackoffStrategy, Job, JobStatus, utcnow
from async_dispatch.queue import JobQueue
from async_dispatch.registry import JobRegistry

DEFAULT_BACKOFF_CAP_MS = 60_000


def calculate_backoff_ms(
    strategy: BackoffStrategy,
    base_delay_ms: int,
    attempt: int,
    cap_ms: int = DEFAULT_BACKOFF_CAP_MS,
) -> int:
    """
    Calculate the retry delay for a failed attempt.

    Args:
        strategy: Backoff strategy of the job definition
        base_delay_ms: Base delay in milliseconds
        attempt: Attempt that just failed (1-indexed)
        cap_ms: Upper bound for the delay

    Returns:
        Delay in integer milliseconds
    """
    if strategy == BackoffStrategy.FIXED:
        return min(base_delay_ms, cap_ms)

    # Exponential backoff: base * 2^(attempt-1)
    delay = base_delay_ms * (2 ** (max(attempt, 1) - 1))
    return min(delay, cap_ms)


class JobProcessor:
    """
    Runs one tick at a time over the job queue.

    Jobs selected in a tick are executed sequentially in queue order and each
    handler is awaited before the next one starts.
    """

    def __init__(
        self,
        queue: JobQueue,
        registry: JobRegistry,
        config: Optional[DispatchConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.queue = queue
        self.registry = registry
        self.config = config or DispatchConfig()
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger(__name__)
        self.cancelled_series: Set[str] = set()
        self._processing = False

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def tick(self) -> int:
        """
        Process every job that is due now.

        Returns:
            Number of jobs processed, 0 when the tick was skipped
        """
        if self._processing:
            self.logger.debug("Previous tick still in progress, skipping")
            return 0

        self._processing = True
        try:
            now = self.clock()
            self.prune(now)

            ready_jobs = self.queue.select(now)
            if ready_jobs:
                self.logger.debug(f"Tick selected {len(ready_jobs)} jobs")

            processed = 0
            for job in ready_jobs:
                # Cancelled by an earlier handler in this tick
                if self.queue.get(job.id) is not job:
                    continue
                await self.process_job(job)
                processed += 1
            return processed
        finally:
            self._processing = False

    async def process_job(self, job: Job) -> None:
        """Execute a single job and apply the outcome to its state."""
        definition = self.registry.lookup(job.name)
        if definition is None:
            self.logger.error(f"No handler found for job {job.id} (name={job.name})")
            job.status = JobStatus.FAILED
            job.failure_reason = "Handler not found"
            job.completed_at = self.clock()
            if job.series_id is not None:
                self.cancelled_series.discard(job.series_id)
            return

        job.status = JobStatus.RUNNING
        job.started_at = self.clock()
        job.attempts += 1

        self.logger.info(
            f"Executing job {job.id} (name={job.name}, attempt={job.attempts}/{job.max_attempts})"
        )

        try:
            result = await definition.handler(job.handler_payload())
        except Exception as e:
            self._handle_failure(job, definition, e)
            return

        now = self.clock()
        job.status = JobStatus.COMPLETED
        job.completed_at = now
        job.result = result
        self.logger.info(f"Job {job.id} completed successfully")

        self._schedule_next_occurrence(job, now)

    def _handle_failure(self, job: Job, definition, error: Exception) -> None:
        now = self.clock()
        message = str(error) or type(error).__name__

        if job.attempts < job.max_attempts:
            delay_ms = calculate_backoff_ms(
                definition.backoff_strategy,
                definition.backoff_base_delay_ms,
                job.attempts,
                self.config.backoff_cap_ms,
            )
            job.status = JobStatus.RETRY
            job.due_at = now + timedelta(milliseconds=delay_ms)
            self.logger.warning(
                f"Job {job.id} failed: {message}; will retry (attempt {job.attempts}/"
                f"{job.max_attempts}) after {delay_ms}ms",
                exc_info=True,
            )
        else:
            job.status = JobStatus.FAILED
            job.failure_reason = message
            job.completed_at = now
            # A failed occurrence ends its series
            if job.series_id is not None:
                self.cancelled_series.discard(job.series_id)
            self.logger.error(
                f"Job {job.id} failed after {job.attempts} attempts: {message}",
                exc_info=True,
            )

    def _schedule_next_occurrence(self, job: Job, now: datetime) -> Optional[Job]:
        interval_ms = job.recurring_interval_ms
        if interval_ms is None:
            return None

        if job.series_id is not None and job.series_id in self.cancelled_series:
            self.logger.info(f"Recurring series {job.series_id} cancelled, not rescheduling")
            self.cancelled_series.discard(job.series_id)
            return None

        next_job = Job(
            name=job.name,
            payload=dict(job.payload),
            priority=job.priority,
            max_attempts=job.max_attempts,
            due_at=now + timedelta(milliseconds=interval_ms),
            created_at=now,
        )
        self.queue.insert(next_job)
        self.logger.debug(
            f"Scheduled next occurrence {next_job.id} of {job.name} at {next_job.due_at}"
        )
        return next_job

    def prune(self, now: Optional[datetime] = None) -> int:
        """Remove terminal jobs whose retention period has elapsed."""
        if now is None:
            now = self.clock()
        retention = timedelta(seconds=self.config.retention_seconds)

        expired = [
            job
            for job in self.queue
            if job.status.is_terminal
            and job.completed_at is not None
            and job.completed_at + retention <= now
        ]
        for job in expired:
            self.queue.remove(job)

        if expired:
            self.logger.debug(f"Pruned {len(expired)} finished jobs")
        return len(expired)
