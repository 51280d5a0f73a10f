"""Data models for jobs."""

import copy
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

# Reserved payload keys used to perpetuate recurring jobs.
RECURRING_INTERVAL_KEY = "_recurring_interval_ms"
RECURRING_SERIES_KEY = "_recurring_series_id"

JobHandler = Callable[[Dict[str, Any]], Awaitable[Any]]


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    """Job status values."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRY = "retry"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


class BackoffStrategy(str, Enum):
    """Delay policy between a failed attempt and the next retry."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class JobDefinition(BaseModel):
    """Registered handler and default execution policy for a job name."""

    name: str = Field(min_length=1)
    handler: Callable[..., Awaitable[Any]]
    default_priority: int = 0
    default_max_attempts: int = Field(default=3, ge=1)
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    backoff_base_delay_ms: int = Field(default=1000, ge=0)

    model_config = {"frozen": True}


class Job(BaseModel):
    """A single unit of scheduled work, owned by the queue."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    payload: Dict[str, Any] = Field(default_factory=dict)
    status: JobStatus = JobStatus.PENDING
    priority: int = 0
    attempts: int = 0
    max_attempts: int = Field(default=3, ge=1)
    due_at: datetime = Field(default_factory=utcnow)
    created_at: datetime = Field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    result: Any = None

    @property
    def recurring_interval_ms(self) -> Optional[int]:
        interval = self.payload.get(RECURRING_INTERVAL_KEY)
        if isinstance(interval, int) and not isinstance(interval, bool) and interval > 0:
            return interval
        return None

    @property
    def series_id(self) -> Optional[str]:
        return self.payload.get(RECURRING_SERIES_KEY)

    def handler_payload(self) -> Dict[str, Any]:
        """Deep copy of the payload without the reserved recurrence keys."""
        return {
            key: copy.deepcopy(value)
            for key, value in self.payload.items()
            if key not in (RECURRING_INTERVAL_KEY, RECURRING_SERIES_KEY)
        }

    def snapshot(self) -> "Job":
        """Detached copy for read-only introspection."""
        return self.model_copy(deep=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert job to dictionary for JSON serialization."""
        return self.model_dump(mode="json")
