"""
End-to-end flow: a scheduled job whose handler fans out a signed webhook.

Uses the real scheduler and dispatcher with a fake HTTP session and clock.
"""

import json

import pytest

from async_dispatch.dispatcher import WebhookDispatcher
from async_dispatch.handlers import register_platform_job
from async_dispatch.models import JobStatus
from async_dispatch.signing import SIGNATURE_HEADER, TIMESTAMP_HEADER, verify_headers
from async_dispatch.subscribers import InMemorySubscriberDirectory, WebhookSubscriber


@pytest.fixture
def directory():
    return InMemorySubscriberDirectory(
        [
            WebhookSubscriber(
                id="sub_ok",
                url="https://ok.example.com/hooks",
                secret="whsec_ok",
                subscribed_events={"settlement.completed"},
            ),
            WebhookSubscriber(
                id="sub_down",
                url="https://down.example.com/hooks",
                secret="whsec_down",
                subscribed_events={"settlement.completed"},
            ),
        ]
    )


@pytest.mark.asyncio
async def test_recurring_settlement_notifies_subscribers(
    scheduler, registry, clock, directory, fake_session
):
    """Test webhooks go out on every cycle and one bad endpoint does not fail the job."""
    session = fake_session({"https://down.example.com/hooks": 502})
    dispatcher = WebhookDispatcher(directory, session=session, clock=clock)

    async def process_settlements(payload):
        results = await dispatcher.send(
            "settlement.completed", {"batch": payload.get("batch", "daily")}
        )
        return {"delivered": sum(result.success for result in results)}

    register_platform_job(registry, "process_settlements", process_settlements)
    first_id = scheduler.schedule_recurring("process_settlements", {"batch": "b1"}, 5 * 60 * 1000)

    await scheduler.run_pending()
    first = scheduler.get_job_status(first_id)
    assert first.status == JobStatus.COMPLETED
    assert first.result == {"delivered": 1}

    clock.advance(ms=5 * 60 * 1000)
    await scheduler.run_pending()

    # The first occurrence is past retention and has been pruned
    assert scheduler.get_job_status(first_id) is None
    assert scheduler.get_queue_stats()["completed"] == 1
    assert scheduler.get_queue_stats()["pending"] == 1
    assert scheduler.get_queue_stats()["failed"] == 0

    # Two cycles, two subscribers each
    assert len(session.calls) == 4
    assert (await directory.get("sub_down")).failure_count == 2
    assert (await directory.get("sub_ok")).failure_count == 0

    (first_call, _) = session.calls_to("https://ok.example.com/hooks")
    body = first_call["data"]
    assert json.loads(body)["data"] == {"batch": "b1"}
    assert SIGNATURE_HEADER in first_call["headers"]
    assert verify_headers(
        body,
        first_call["headers"],
        "whsec_ok",
        now=int(first_call["headers"][TIMESTAMP_HEADER]),
    )
