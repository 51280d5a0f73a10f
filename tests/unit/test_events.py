"""Unit tests for the webhook event catalog."""

from async_dispatch.events import WILDCARD_EVENT, WebhookEvent, event_name


def test_event_values_are_dotted_names():
    """Test every catalog entry is resource.action."""
    prefixes = {event.value.split(".")[0] for event in WebhookEvent}

    assert prefixes == {
        "transaction",
        "order",
        "payout",
        "dispute",
        "subscription",
        "invoice",
        "customer",
    }
    assert WebhookEvent.SUBSCRIPTION_PAYMENT_FAILED.value == "subscription.payment_failed"


def test_event_name_normalizes_to_plain_string():
    name = event_name(WebhookEvent.ORDER_CAPTURED)

    assert name == "order.captured"
    assert type(name) is str
    assert event_name("custom.event") == "custom.event"


def test_wildcard_is_not_a_catalog_event():
    assert WILDCARD_EVENT not in {event.value for event in WebhookEvent}
