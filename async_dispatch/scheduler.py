"""Scheduler facade: enqueue, inspect and cancel jobs, and drive the processor."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from async_dispatch.config import DispatchConfig
from async_dispatch.errors import JobNotFoundError, UnknownJobTypeError
from async_dispatch.models import (
    RECURRING_INTERVAL_KEY,
    RECURRING_SERIES_KEY,
    Job,
    JobStatus,
    utcnow,
)
from async_dispatch.processor import JobProcessor
from async_dispatch.queue import JobQueue
from async_dispatch.registry import JobRegistry


class Scheduler:
    """
    In-process job scheduler.

    Owns its registry, queue and processor. Construct one at process start and
    pass it to anything that needs to enqueue work.

    Example:
        ```python
        registry = JobRegistry()

        @registry.job("process_settlements", priority=10)
        async def process_settlements(payload):
            return {"processed": 0}

        scheduler = Scheduler(registry=registry)
        scheduler.schedule_recurring("process_settlements", {}, 5 * 60 * 1000)

        await scheduler.start_processor(tick_interval_ms=1000)
        ...
        await scheduler.stop_processor()
        ```
    """

    def __init__(
        self,
        registry: Optional[JobRegistry] = None,
        config: Optional[DispatchConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry if registry is not None else JobRegistry()
        self.config = config or DispatchConfig()
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger(__name__)
        self.queue = JobQueue()
        self.processor = JobProcessor(
            self.queue, self.registry, self.config, self.clock, self.logger
        )
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._tick_interval_ms = self.config.tick_interval_ms

    def create_job(
        self,
        name: str,
        payload: Optional[Dict[str, Any]] = None,
        *,
        priority: Optional[int] = None,
        max_attempts: Optional[int] = None,
        due_at: Optional[datetime] = None,
    ) -> str:
        """
        Create a job and insert it into the queue.

        Args:
            name: Registered job name
            payload: JSON-serializable data passed to the handler
            priority: Overrides the definition's default priority
            max_attempts: Overrides the definition's default max attempts
            due_at: Earliest time the job may run (defaults to now). Naive
                datetimes are taken as UTC.

        Returns:
            str: The created job ID

        Raises:
            UnknownJobTypeError: If no definition is registered for `name`
        """
        definition = self.registry.lookup(name)
        if definition is None:
            raise UnknownJobTypeError(name)

        now = self.clock()
        if due_at is not None and due_at.tzinfo is None:
            due_at = due_at.replace(tzinfo=timezone.utc)

        job = Job(
            name=name,
            payload=dict(payload or {}),
            priority=priority if priority is not None else definition.default_priority,
            max_attempts=(
                max_attempts
                if max_attempts is not None
                else definition.default_max_attempts
            ),
            due_at=due_at if due_at is not None else now,
            created_at=now,
        )
        self.queue.insert(job)

        self.logger.info(
            f"Created job {job.id} (name={name}, priority={job.priority}, due_at={job.due_at})"
        )
        return job.id

    def schedule_job(
        self,
        name: str,
        payload: Optional[Dict[str, Any]],
        at: datetime,
        *,
        priority: Optional[int] = None,
        max_attempts: Optional[int] = None,
    ) -> str:
        """Create a job that becomes eligible at `at`."""
        return self.create_job(
            name, payload, priority=priority, max_attempts=max_attempts, due_at=at
        )

    def schedule_recurring(
        self,
        name: str,
        payload: Optional[Dict[str, Any]],
        interval_ms: int,
        *,
        priority: Optional[int] = None,
        max_attempts: Optional[int] = None,
        first_run_at: Optional[datetime] = None,
    ) -> str:
        """
        Create the first occurrence of a recurring job.

        Every successful occurrence enqueues the next one `interval_ms` after
        it completes. Cancelling one occurrence with cancel_job() does not stop
        the series; use cancel_series() for that.

        Returns:
            str: ID of the first occurrence
        """
        if isinstance(interval_ms, bool) or not isinstance(interval_ms, int) or interval_ms <= 0:
            raise ValueError("interval_ms must be a positive integer")

        tagged = dict(payload or {})
        tagged[RECURRING_INTERVAL_KEY] = interval_ms
        tagged[RECURRING_SERIES_KEY] = str(uuid4())

        return self.create_job(
            name,
            tagged,
            priority=priority,
            max_attempts=max_attempts,
            due_at=first_run_at,
        )

    def get_series_id(self, job_id: str) -> Optional[str]:
        """Recurring series a job belongs to, if any."""
        job = self.queue.get(job_id)
        return job.series_id if job else None

    def cancel_series(self, series_id: str) -> int:
        """
        Stop a recurring series.

        Pending occurrences are removed and no further occurrences are
        created. An occurrence that is already running completes normally.

        Returns:
            Number of pending occurrences removed
        """
        removed = 0
        in_flight = False
        for job in self.queue:
            if job.series_id != series_id:
                continue
            if job.status == JobStatus.PENDING:
                self.queue.remove(job)
                removed += 1
            elif not job.status.is_terminal:
                in_flight = True

        # Only a running or retrying occurrence could still create the next one
        if in_flight:
            self.processor.cancelled_series.add(series_id)
        self.logger.info(f"Cancelled recurring series {series_id} ({removed} pending removed)")
        return removed

    def cancel_job(self, job_id: str) -> bool:
        """
        Cancel a job that has not been picked up yet.

        Only jobs in `pending` status can be cancelled; jobs waiting for a
        retry are deliberately excluded.
        """
        job = self.queue.get(job_id)
        if job is None or job.status != JobStatus.PENDING:
            return False

        self.queue.remove(job)
        self.logger.info(f"Cancelled job {job_id}")
        return True

    def get_job_status(self, job_id: str) -> Optional[Job]:
        """Snapshot of a job, or None once it has been pruned or never existed."""
        job = self.queue.get(job_id)
        return job.snapshot() if job else None

    def get_job(self, job_id: str) -> Job:
        """Like get_job_status(), but raise JobNotFoundError for unknown ids."""
        job = self.get_job_status(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    def get_jobs_by_status(self, status: JobStatus) -> List[Job]:
        return [job.snapshot() for job in self.queue.by_status(JobStatus(status))]

    def get_queue_stats(self) -> Dict[str, int]:
        """Point-in-time count of queued jobs per status."""
        return self.queue.counts()

    async def run_pending(self) -> int:
        """Run a single tick immediately."""
        return await self.processor.tick()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self) -> None:
        """Main processor loop."""
        self.logger.info("Job processor started")
        interval = self._tick_interval_ms / 1000.0

        while not self._stop_event.is_set():
            try:
                await self.processor.tick()
            except Exception as e:
                self.logger.error(f"Unexpected error in job processor: {e}", exc_info=True)

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass

        self.logger.info("Job processor stopped")

    async def start_processor(self, tick_interval_ms: Optional[int] = None) -> None:
        """Start the periodic tick. Starting twice is a no-op."""
        if self.is_running:
            self.logger.debug("Job processor is already running")
            return

        if tick_interval_ms is not None:
            if tick_interval_ms <= 0:
                raise ValueError("tick_interval_ms must be positive")
            self._tick_interval_ms = tick_interval_ms

        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        self.logger.info(f"Job processor task created (interval={self._tick_interval_ms}ms)")

    async def stop_processor(self) -> None:
        """
        Stop the periodic tick. Stopping when not started is a no-op.

        A tick that is already executing a handler is allowed to finish.
        """
        if self._task is None:
            return

        self._stop_event.set()
        try:
            await self._task
        finally:
            self._task = None
            self._stop_event = None
