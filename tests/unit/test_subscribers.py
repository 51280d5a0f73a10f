"""Unit tests for webhook subscribers."""

from datetime import datetime, timezone

import pytest

from async_dispatch.subscribers import InMemorySubscriberDirectory, WebhookSubscriber

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_subscriber(**kwargs):
    defaults = {
        "id": "sub_1",
        "url": "https://merchant.example.com/hooks",
        "secret": "whsec_1",
        "subscribed_events": {"transaction.completed"},
    }
    defaults.update(kwargs)
    return WebhookSubscriber(**defaults)


def test_secret_is_masked():
    """Test secrets never appear in reprs."""
    subscriber = make_subscriber()

    assert "whsec_1" not in repr(subscriber)
    assert "whsec_1" not in str(subscriber)
    assert subscriber.secret.get_secret_value() == "whsec_1"


def test_matches_event_and_scope():
    subscriber = make_subscriber(scope_id="merchant_1")

    assert subscriber.matches("transaction.completed")
    assert subscriber.matches("transaction.completed", "merchant_1")
    assert not subscriber.matches("transaction.completed", "merchant_2")
    assert not subscriber.matches("refund.created")


def test_inactive_subscriber_never_matches():
    subscriber = make_subscriber(is_active=False)

    assert not subscriber.matches("transaction.completed")


def test_record_success_resets_failures():
    subscriber = make_subscriber(failure_count=4)

    subscriber.record_success(NOW)

    assert subscriber.failure_count == 0
    assert subscriber.last_triggered_at == NOW


def test_record_failure_disables_at_threshold():
    """Test the failure that reaches the threshold disables the subscriber."""
    subscriber = make_subscriber(failure_count=8)

    assert subscriber.record_failure(NOW, threshold=10) is False
    assert subscriber.is_active
    assert subscriber.failure_count == 9

    assert subscriber.record_failure(NOW, threshold=10) is True
    assert not subscriber.is_active
    assert subscriber.failure_count == 10
    assert subscriber.last_triggered_at == NOW

    # Already disabled: counted, but not reported as a new disable
    assert subscriber.record_failure(NOW, threshold=10) is False


@pytest.mark.asyncio
async def test_in_memory_directory():
    """Test lookup by event and id."""
    first = make_subscriber()
    second = make_subscriber(id="sub_2", subscribed_events={"refund.created"})
    directory = InMemorySubscriberDirectory([first, second])

    assert await directory.find_by_event("transaction.completed") == [first]
    assert await directory.get("sub_2") is second
    assert await directory.get("missing") is None

    first.failure_count = 3
    await directory.save(first)
    assert (await directory.get("sub_1")).failure_count == 3


@pytest.mark.asyncio
async def test_wildcard_subscription_matches_any_event():
    subscriber = make_subscriber(subscribed_events={"*"})
    directory = InMemorySubscriberDirectory([subscriber, make_subscriber(id="sub_2")])

    assert subscriber.matches("dispute.created")
    assert [s.id for s in await directory.find_by_event("dispute.created")] == ["sub_1"]
