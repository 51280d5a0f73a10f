"""Webhook retry sweep handler."""

import logging
from typing import Any, Dict

from async_dispatch.dispatcher import WebhookDispatcher
from async_dispatch.handlers import register_platform_job

logger = logging.getLogger(__name__)


def make_webhook_retry_handler(dispatcher: WebhookDispatcher):
    """Handler that re-sends failed webhook deliveries whose retry is due."""

    async def retry_webhooks(payload: Dict[str, Any]) -> Dict[str, int]:
        results = await dispatcher.retry_pending()
        delivered = sum(1 for result in results if result.success)
        if results:
            logger.info(f"Webhook retry sweep: {delivered}/{len(results)} delivered")
        return {"retried": len(results), "delivered": delivered}

    return retry_webhooks


def register_webhook_jobs(scheduler, dispatcher: WebhookDispatcher) -> None:
    """Register the retry sweep on the scheduler's registry."""
    register_platform_job(
        scheduler.registry, "retry_webhooks", make_webhook_retry_handler(dispatcher)
    )
