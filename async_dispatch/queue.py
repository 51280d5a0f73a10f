"""In-memory job queue ordered by priority, then due time."""

from datetime import datetime
from typing import Dict, Iterator, List, Optional

from async_dispatch.models import Job, JobStatus

_SELECTABLE = (JobStatus.PENDING, JobStatus.RETRY)


class JobQueue:
    """
    Ordered list of job instances.

    Order is priority descending, then due_at ascending, then insertion order.
    This is not a ready-to-run order: a high priority job due far in the
    future stays ahead of a lower priority job due sooner, and select()
    filters on due time before order matters.

    Not thread-safe; mutate only from the event loop thread.
    """

    def __init__(self):
        self._jobs: List[Job] = []

    def insert(self, job: Job) -> None:
        for index, queued in enumerate(self._jobs):
            if queued.priority < job.priority or (
                queued.priority == job.priority and queued.due_at > job.due_at
            ):
                self._jobs.insert(index, job)
                return
        self._jobs.append(job)

    def select(self, now: datetime) -> List[Job]:
        """Jobs eligible to run at `now`, in queue order."""
        return [
            job for job in self._jobs if job.status in _SELECTABLE and job.due_at <= now
        ]

    def remove(self, job: Job) -> bool:
        for index, queued in enumerate(self._jobs):
            if queued is job:
                del self._jobs[index]
                return True
        return False

    def get(self, job_id: str) -> Optional[Job]:
        for job in self._jobs:
            if job.id == job_id:
                return job
        return None

    def by_status(self, status: JobStatus) -> List[Job]:
        return [job for job in self._jobs if job.status == status]

    def counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        for job in self._jobs:
            counts[job.status.value] += 1
        return counts

    def __len__(self) -> int:
        return len(self._jobs)

    def __iter__(self) -> Iterator[Job]:
        return iter(list(self._jobs))
