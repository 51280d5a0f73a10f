"""Per-delivery records for webhook attempts and the retry ladder."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from async_dispatch.models import utcnow

# Delay before retry N (1-indexed); later retries reuse the last step.
RETRY_DELAYS_SECONDS = (60, 300, 1800, 7200, 43200)

# The first send plus one retry per ladder step.
DEFAULT_MAX_DELIVERY_ATTEMPTS = len(RETRY_DELAYS_SECONDS) + 1

# Upper bound of deliveries re-sent by one retry sweep.
RETRY_BATCH_SIZE = 100


def retry_delay(attempt: int) -> timedelta:
    """Delay before the next try after `attempt` failed attempts."""
    index = min(max(attempt, 1), len(RETRY_DELAYS_SECONDS)) - 1
    return timedelta(seconds=RETRY_DELAYS_SECONDS[index])


class DeliveryStatus(str, Enum):
    """Delivery status values."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class WebhookDelivery(BaseModel):
    """One envelope addressed to one subscriber, across all of its attempts."""

    id: str = Field(default_factory=lambda: f"dlv_{uuid4().hex}")
    subscriber_id: str
    event_type: str
    envelope_id: str
    body: str
    status: DeliveryStatus = DeliveryStatus.PENDING
    attempt_count: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=DEFAULT_MAX_DELIVERY_ATTEMPTS, ge=1)
    next_retry_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    response_status: Optional[int] = None
    duration_ms: Optional[float] = None
    created_at: datetime = Field(default_factory=utcnow)
    delivered_at: Optional[datetime] = None

    def record_success(self, at: datetime, status_code: Optional[int], duration_ms: float) -> None:
        self.status = DeliveryStatus.SUCCESS
        self.attempt_count += 1
        self.response_status = status_code
        self.duration_ms = duration_ms
        self.delivered_at = at
        self.next_retry_at = None
        self.failure_reason = None

    def record_failure(
        self, at: datetime, reason: str, status_code: Optional[int], duration_ms: float
    ) -> None:
        """Count a failed attempt and schedule the next one, or give up."""
        self.attempt_count += 1
        self.response_status = status_code
        self.duration_ms = duration_ms
        self.failure_reason = reason
        if self.attempt_count >= self.max_attempts:
            self.status = DeliveryStatus.FAILED
            self.next_retry_at = None
        else:
            self.status = DeliveryStatus.PENDING
            self.next_retry_at = at + retry_delay(self.attempt_count)

    def abandon(self, reason: str) -> None:
        self.status = DeliveryStatus.FAILED
        self.failure_reason = reason
        self.next_retry_at = None


class DeliveryStore(ABC):
    """Storage boundary for webhook delivery records."""

    @abstractmethod
    async def save(self, delivery: WebhookDelivery) -> None:
        """Insert or update a delivery."""

    @abstractmethod
    async def get(self, delivery_id: str) -> Optional[WebhookDelivery]:
        """Fetch a delivery by id."""

    @abstractmethod
    async def find_due(self, now: datetime, limit: int = RETRY_BATCH_SIZE) -> List[WebhookDelivery]:
        """Pending deliveries whose next retry is at or before `now`, oldest first."""


class InMemoryDeliveryStore(DeliveryStore):
    """Dict-backed delivery store."""

    def __init__(self):
        self._deliveries: Dict[str, WebhookDelivery] = {}

    async def save(self, delivery: WebhookDelivery) -> None:
        self._deliveries[delivery.id] = delivery

    async def get(self, delivery_id: str) -> Optional[WebhookDelivery]:
        return self._deliveries.get(delivery_id)

    async def find_due(self, now: datetime, limit: int = RETRY_BATCH_SIZE) -> List[WebhookDelivery]:
        due = [
            d
            for d in self._deliveries.values()
            if d.status == DeliveryStatus.PENDING
            and d.next_retry_at is not None
            and d.next_retry_at <= now
        ]
        due.sort(key=lambda d: d.next_retry_at)
        return due[:limit]

    def all(self) -> List[WebhookDelivery]:
        return list(self._deliveries.values())
