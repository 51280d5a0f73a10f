"""Catalog of webhook event types emitted by the platform."""

from enum import Enum
from typing import Union

# Subscribing to this receives every event type.
WILDCARD_EVENT = "*"


class WebhookEvent(str, Enum):
    """Known event types. Subscribers and send() also accept plain strings."""

    TRANSACTION_CREATED = "transaction.created"
    TRANSACTION_COMPLETED = "transaction.completed"
    TRANSACTION_FAILED = "transaction.failed"
    TRANSACTION_REFUNDED = "transaction.refunded"

    ORDER_CREATED = "order.created"
    ORDER_AUTHORIZED = "order.authorized"
    ORDER_CAPTURED = "order.captured"
    ORDER_VOIDED = "order.voided"
    ORDER_REFUNDED = "order.refunded"

    PAYOUT_CREATED = "payout.created"
    PAYOUT_COMPLETED = "payout.completed"
    PAYOUT_FAILED = "payout.failed"

    DISPUTE_CREATED = "dispute.created"
    DISPUTE_UPDATED = "dispute.updated"
    DISPUTE_RESOLVED = "dispute.resolved"

    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_CANCELLED = "subscription.cancelled"
    SUBSCRIPTION_PAYMENT_FAILED = "subscription.payment_failed"

    INVOICE_CREATED = "invoice.created"
    INVOICE_PAID = "invoice.paid"
    INVOICE_OVERDUE = "invoice.overdue"

    CUSTOMER_CREATED = "customer.created"
    CUSTOMER_UPDATED = "customer.updated"


def event_name(event_type: Union[WebhookEvent, str]) -> str:
    """Plain string form of an event type."""
    if isinstance(event_type, WebhookEvent):
        return event_type.value
    return str(event_type)
