"""Webhook dispatcher: signed fan-out of events to subscriber endpoints."""

import asyncio
import logging
import time
import weakref
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union
from uuid import uuid4

import aiohttp
from pydantic import BaseModel, Field

from async_dispatch.config import DispatchConfig
from async_dispatch.deliveries import RETRY_BATCH_SIZE, DeliveryStore, WebhookDelivery
from async_dispatch.errors import DeliveryError
from async_dispatch.events import WebhookEvent, event_name
from async_dispatch.models import utcnow
from async_dispatch.signing import signature_headers
from async_dispatch.subscribers import SubscriberDirectory, WebhookSubscriber

USER_AGENT = "async-dispatch-webhook/1.0"

# (subscriber, delivery record or None, envelope id, serialized body)
_Attempt = Tuple[WebhookSubscriber, Optional[WebhookDelivery], str, bytes]


class WebhookEnvelope(BaseModel):
    """Wire payload sent verbatim to every matching subscriber."""

    id: str = Field(default_factory=lambda: f"whk_{uuid4().hex}")
    type: str
    created_at: str = Field(alias="createdAt")
    data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"frozen": True, "populate_by_name": True}

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class DeliveryResult(BaseModel):
    """Outcome of one POST to one subscriber."""

    subscriber_id: str
    success: bool
    status_code: Optional[int] = None
    error: Optional[str] = None
    duration_ms: float = 0.0
    disabled: bool = False
    delivery_id: Optional[str] = None


class WebhookDispatcher:
    """
    Resolves subscribers for an event and delivers a signed envelope to each.

    Deliveries for one send() run concurrently; a failure or timeout on one
    endpoint never cancels or delays another, and is never raised to the
    caller.

    With a `deliveries` store every attempt is recorded, and failed
    deliveries are re-sent by retry_pending() on the retry ladder.
    """

    def __init__(
        self,
        directory: SubscriberDirectory,
        config: Optional[DispatchConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger: Optional[logging.Logger] = None,
        deliveries: Optional[DeliveryStore] = None,
    ):
        self.directory = directory
        self.config = config or DispatchConfig()
        self.session = session
        self.clock = clock or utcnow
        self.logger = logger or logging.getLogger(__name__)
        self.deliveries = deliveries
        self.timeout = aiohttp.ClientTimeout(total=self.config.webhook_timeout_seconds)
        # Entries disappear once no delivery holds the lock.
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def build_envelope(
        self, event_type: Union[WebhookEvent, str], data: Optional[Dict[str, Any]]
    ) -> WebhookEnvelope:
        return WebhookEnvelope(
            type=event_name(event_type),
            created_at=self.clock().isoformat(),
            data=dict(data or {}),
        )

    async def resolve_subscribers(
        self, event_type: Union[WebhookEvent, str], scope_id: Optional[str] = None
    ) -> List[WebhookSubscriber]:
        """Active subscribers for `event_type`, limited to `scope_id` when given."""
        name = event_name(event_type)
        candidates = await self.directory.find_by_event(name)
        return [s for s in candidates if s.matches(name, scope_id)]

    async def send(
        self,
        event_type: Union[WebhookEvent, str],
        data: Optional[Dict[str, Any]] = None,
        scope_id: Optional[str] = None,
    ) -> List[DeliveryResult]:
        """
        Deliver an event to every matching subscriber.

        Args:
            event_type: Event type (e.g. WebhookEvent.TRANSACTION_COMPLETED)
            data: JSON-serializable event body
            scope_id: Restrict delivery to subscribers of one merchant

        Returns:
            One DeliveryResult per resolved subscriber
        """
        envelope = self.build_envelope(event_type, data)
        subscribers = await self.resolve_subscribers(envelope.type, scope_id)

        if not subscribers:
            self.logger.debug(f"No subscribers for event {envelope.type}")
            return []

        body = envelope.to_json().encode("utf-8")
        self.logger.info(
            f"Dispatching webhook {envelope.id} ({envelope.type}) to {len(subscribers)} subscribers"
        )

        attempts = []
        for subscriber in subscribers:
            delivery = None
            if self.deliveries is not None:
                delivery = WebhookDelivery(
                    subscriber_id=subscriber.id,
                    event_type=envelope.type,
                    envelope_id=envelope.id,
                    body=body.decode("utf-8"),
                    created_at=self.clock(),
                )
                await self.deliveries.save(delivery)
            attempts.append((subscriber, delivery, envelope.id, body))

        return await self._with_session(attempts)

    async def retry_pending(
        self, now: Optional[datetime] = None, limit: int = RETRY_BATCH_SIZE
    ) -> List[DeliveryResult]:
        """
        Re-send failed deliveries whose next retry is due.

        The stored envelope body is re-sent with a fresh signature.
        Deliveries whose subscriber is gone or disabled are abandoned.

        Returns:
            One DeliveryResult per attempted delivery
        """
        if self.deliveries is None:
            return []
        if now is None:
            now = self.clock()

        due = await self.deliveries.find_due(now, limit)
        if not due:
            return []

        attempts = []
        for delivery in due:
            subscriber = await self.directory.get(delivery.subscriber_id)
            if subscriber is None or not subscriber.is_active:
                delivery.abandon("Subscriber not found or inactive")
                await self.deliveries.save(delivery)
                self.logger.info(
                    f"Abandoned delivery {delivery.id}: subscriber {delivery.subscriber_id} "
                    "not found or inactive"
                )
                continue
            attempts.append(
                (subscriber, delivery, delivery.envelope_id, delivery.body.encode("utf-8"))
            )

        if not attempts:
            return []

        self.logger.info(f"Retrying {len(attempts)} webhook deliveries")
        return await self._with_session(attempts)

    async def _with_session(self, attempts: List[_Attempt]) -> List[DeliveryResult]:
        if self.session is not None:
            return await self._deliver_all(self.session, attempts)

        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            return await self._deliver_all(session, attempts)

    async def _deliver_all(
        self,
        session: aiohttp.ClientSession,
        attempts: List[_Attempt],
    ) -> List[DeliveryResult]:
        outcomes = await asyncio.gather(
            *(
                self._deliver(session, subscriber, envelope_id, body, delivery)
                for subscriber, delivery, envelope_id, body in attempts
            ),
            return_exceptions=True,
        )

        results: List[DeliveryResult] = []
        for (subscriber, delivery, _, _), outcome in zip(attempts, outcomes):
            if isinstance(outcome, BaseException):
                self.logger.error(
                    f"Webhook delivery to subscriber {subscriber.id} raised: {outcome!r}"
                )
                results.append(
                    DeliveryResult(
                        subscriber_id=subscriber.id,
                        success=False,
                        error=str(outcome),
                        delivery_id=delivery.id if delivery else None,
                    )
                )
            else:
                results.append(outcome)
        return results

    async def _deliver(
        self,
        session: aiohttp.ClientSession,
        subscriber: WebhookSubscriber,
        envelope_id: str,
        body: bytes,
        delivery: Optional[WebhookDelivery] = None,
    ) -> DeliveryResult:
        timestamp = int(self.clock().timestamp())
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        headers.update(
            signature_headers(
                body, subscriber.secret.get_secret_value(), envelope_id, timestamp
            )
        )

        started = time.monotonic()
        failure: Optional[DeliveryError] = None
        status_code: Optional[int] = None

        try:
            async with session.post(
                subscriber.url, data=body, headers=headers, timeout=self.timeout
            ) as resp:
                status_code = resp.status
                if not 200 <= resp.status < 300:
                    failure = DeliveryError(subscriber.id, f"HTTP {resp.status}", resp.status)
        except asyncio.TimeoutError:
            failure = DeliveryError(
                subscriber.id, f"Timed out after {self.config.webhook_timeout_seconds}s"
            )
        except Exception as e:
            failure = DeliveryError(subscriber.id, str(e) or type(e).__name__)

        duration_ms = (time.monotonic() - started) * 1000
        disabled = await self._record_outcome(subscriber, failure is None)

        if delivery is not None:
            now = self.clock()
            if failure is None:
                delivery.record_success(now, status_code, duration_ms)
            else:
                delivery.record_failure(now, str(failure), status_code, duration_ms)
            await self.deliveries.save(delivery)

        if failure is None:
            self.logger.info(
                f"Webhook {envelope_id} delivered to subscriber {subscriber.id} "
                f"(status={status_code}, {duration_ms:.0f}ms)"
            )
        else:
            self.logger.warning(
                f"Webhook {envelope_id} to subscriber {subscriber.id} failed: {failure}"
            )

        return DeliveryResult(
            subscriber_id=subscriber.id,
            success=failure is None,
            status_code=status_code,
            error=str(failure) if failure else None,
            duration_ms=duration_ms,
            disabled=disabled,
            delivery_id=delivery.id if delivery else None,
        )

    def _lock_for(self, subscriber_id: str) -> asyncio.Lock:
        lock = self._locks.get(subscriber_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[subscriber_id] = lock
        return lock

    async def _record_outcome(self, subscriber: WebhookSubscriber, success: bool) -> bool:
        """Update health counters; returns True if the subscriber was disabled."""
        async with self._lock_for(subscriber.id):
            current = await self.directory.get(subscriber.id) or subscriber
            now = self.clock()

            if success:
                current.record_success(now)
                disabled = False
            else:
                disabled = current.record_failure(now, self.config.webhook_disable_threshold)

            await self.directory.save(current)

        if disabled:
            self.logger.warning(
                f"Subscriber {current.id} disabled after {current.failure_count} consecutive failures"
            )
        return disabled
