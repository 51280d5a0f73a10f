"""In-process job scheduler and signed webhook dispatcher."""

from async_dispatch.config import DispatchConfig
from async_dispatch.deliveries import (
    DeliveryStatus,
    DeliveryStore,
    InMemoryDeliveryStore,
    WebhookDelivery,
)
from async_dispatch.dispatcher import DeliveryResult, WebhookDispatcher, WebhookEnvelope
from async_dispatch.errors import (
    AsyncDispatchError,
    DeliveryError,
    DuplicateJobTypeError,
    HandlerError,
    JobNotFoundError,
    SignatureInvalidError,
    UnknownJobTypeError,
)
from async_dispatch.events import WebhookEvent
from async_dispatch.models import BackoffStrategy, Job, JobDefinition, JobStatus
from async_dispatch.processor import JobProcessor, calculate_backoff_ms
from async_dispatch.queue import JobQueue
from async_dispatch.registry import JobRegistry, job_registry
from async_dispatch.scheduler import Scheduler
from async_dispatch.signing import sign, verify, verify_headers
from async_dispatch.subscribers import (
    InMemorySubscriberDirectory,
    SubscriberDirectory,
    WebhookSubscriber,
)

__version__ = "0.1.0"

__all__ = [
    "DispatchConfig",
    "DeliveryStatus",
    "DeliveryStore",
    "InMemoryDeliveryStore",
    "WebhookDelivery",
    "DeliveryResult",
    "WebhookDispatcher",
    "WebhookEnvelope",
    "AsyncDispatchError",
    "DeliveryError",
    "DuplicateJobTypeError",
    "HandlerError",
    "JobNotFoundError",
    "SignatureInvalidError",
    "UnknownJobTypeError",
    "WebhookEvent",
    "BackoffStrategy",
    "Job",
    "JobDefinition",
    "JobStatus",
    "JobProcessor",
    "calculate_backoff_ms",
    "JobQueue",
    "JobRegistry",
    "job_registry",
    "Scheduler",
    "sign",
    "verify",
    "verify_headers",
    "InMemorySubscriberDirectory",
    "SubscriberDirectory",
    "WebhookSubscriber",
]
