"""Webhook subscribers and the directory the dispatcher reads them from."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Set

from pydantic import BaseModel, Field, SecretStr

from async_dispatch.events import WILDCARD_EVENT

DISABLE_THRESHOLD = 10


class WebhookSubscriber(BaseModel):
    """An external HTTP endpoint registered for specific event types."""

    id: str
    url: str
    secret: SecretStr
    subscribed_events: Set[str] = Field(default_factory=set)
    is_active: bool = True
    failure_count: int = Field(default=0, ge=0)
    last_triggered_at: Optional[datetime] = None
    scope_id: Optional[str] = None

    def matches(self, event_type: str, scope_id: Optional[str] = None) -> bool:
        """True if this subscriber should receive `event_type` (for `scope_id`)."""
        if not self.is_active:
            return False
        if not self.subscribes_to(event_type):
            return False
        if scope_id is not None and self.scope_id != scope_id:
            return False
        return True

    def subscribes_to(self, event_type: str) -> bool:
        return event_type in self.subscribed_events or WILDCARD_EVENT in self.subscribed_events

    def record_success(self, at: datetime) -> None:
        self.last_triggered_at = at
        self.failure_count = 0

    def record_failure(self, at: datetime, threshold: int = DISABLE_THRESHOLD) -> bool:
        """
        Count a failed delivery.

        Returns:
            True if this failure disabled the subscriber
        """
        self.last_triggered_at = at
        self.failure_count += 1
        if self.is_active and self.failure_count >= threshold:
            self.is_active = False
            return True
        return False


class SubscriberDirectory(ABC):
    """Storage boundary for webhook subscribers."""

    @abstractmethod
    async def find_by_event(self, event_type: str) -> List[WebhookSubscriber]:
        """Subscribers whose subscribed events include `event_type` or the wildcard."""

    @abstractmethod
    async def get(self, subscriber_id: str) -> Optional[WebhookSubscriber]:
        """Fetch a subscriber by id."""

    @abstractmethod
    async def save(self, subscriber: WebhookSubscriber) -> None:
        """Persist failure_count, last_triggered_at and is_active."""


class InMemorySubscriberDirectory(SubscriberDirectory):
    """Dict-backed directory, used in tests and single-process setups."""

    def __init__(self, subscribers: Optional[List[WebhookSubscriber]] = None):
        self._subscribers: Dict[str, WebhookSubscriber] = {}
        for subscriber in subscribers or []:
            self.add(subscriber)

    def add(self, subscriber: WebhookSubscriber) -> WebhookSubscriber:
        self._subscribers[subscriber.id] = subscriber
        return subscriber

    async def find_by_event(self, event_type: str) -> List[WebhookSubscriber]:
        return [s for s in self._subscribers.values() if s.subscribes_to(event_type)]

    async def get(self, subscriber_id: str) -> Optional[WebhookSubscriber]:
        return self._subscribers.get(subscriber_id)

    async def save(self, subscriber: WebhookSubscriber) -> None:
        self._subscribers[subscriber.id] = subscriber
