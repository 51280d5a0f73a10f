"""Subscription renewal and dunning handlers."""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Dict, List, Optional

from async_dispatch.errors import HandlerError
from async_dispatch.handlers import register_platform_job

logger = logging.getLogger(__name__)

MAX_DUNNING_ATTEMPTS = 4

# Days to wait before the next dunning attempt, keyed by the attempt that failed.
DUNNING_RETRY_DAYS = {1: 3, 2: 5, 3: 7}


class BillingGateway(ABC):
    """Persistence and payment boundary used by the subscription handlers."""

    @abstractmethod
    async def list_expiring_subscriptions(self, within: timedelta) -> List[str]:
        """Ids of active subscriptions whose period ends within `within`."""

    @abstractmethod
    async def get_subscription(self, subscription_id: str) -> Optional[Dict[str, Any]]:
        """Subscription record with at least `status` and `user_id`."""

    @abstractmethod
    async def charge_renewal(self, subscription_id: str) -> bool:
        """Charge the plan price and extend the period; False if funds are short."""

    @abstractmethod
    async def notify(self, user_id: str, kind: str, title: str, message: str, data: Dict[str, Any]) -> None:
        """Create a user notification."""

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str, reason: str) -> None:
        """Mark a subscription cancelled."""


def make_renewal_check_handler(scheduler, billing: BillingGateway):
    """Handler that renews expiring subscriptions and starts dunning for failures."""

    async def check_subscription_renewals(payload: Dict[str, Any]) -> Dict[str, int]:
        renewed = 0
        failed = 0

        for subscription_id in await billing.list_expiring_subscriptions(timedelta(days=1)):
            try:
                charged = await billing.charge_renewal(subscription_id)
            except Exception as e:
                logger.error(f"Renewal of subscription {subscription_id} raised: {e}", exc_info=True)
                failed += 1
                continue

            if charged:
                renewed += 1
            else:
                scheduler.create_job(
                    "subscription_dunning", {"subscription_id": subscription_id, "attempt": 1}
                )
                failed += 1

        return {"renewed": renewed, "failed": failed}

    return check_subscription_renewals


def make_dunning_handler(scheduler, billing: BillingGateway):
    """Handler that retries a failed renewal and reschedules itself until it gives up."""

    async def subscription_dunning(payload: Dict[str, Any]) -> Dict[str, Any]:
        subscription_id = payload.get("subscription_id")
        if not subscription_id:
            raise HandlerError("subscription_dunning requires subscription_id")
        attempt = int(payload.get("attempt", 1))

        subscription = await billing.get_subscription(subscription_id)
        if not subscription or subscription.get("status") != "ACTIVE":
            return {"skipped": True}

        if await billing.charge_renewal(subscription_id):
            return {"success": True, "attempt": attempt}

        user_id = subscription["user_id"]
        await billing.notify(
            user_id,
            "payment",
            "Subscription Payment Failed",
            "We couldn't process your subscription payment. Please update your payment method.",
            {"subscription_id": subscription_id, "attempt": attempt},
        )

        retrying = attempt < MAX_DUNNING_ATTEMPTS
        if retrying:
            next_attempt_at = scheduler.clock() + timedelta(days=DUNNING_RETRY_DAYS.get(attempt, 7))
            scheduler.schedule_job(
                "subscription_dunning",
                {"subscription_id": subscription_id, "attempt": attempt + 1},
                next_attempt_at,
            )
        else:
            await billing.cancel_subscription(subscription_id, "payment_failed")
            await billing.notify(
                user_id,
                "system",
                "Subscription Cancelled",
                "Your subscription has been cancelled due to payment failure.",
                {"subscription_id": subscription_id},
            )
            logger.info(f"Subscription {subscription_id} cancelled after {attempt} dunning attempts")

        return {"attempt": attempt, "retrying": retrying}

    return subscription_dunning


def register_subscription_jobs(scheduler, billing: BillingGateway) -> None:
    """Register the renewal check and dunning handlers on the scheduler's registry."""
    register_platform_job(
        scheduler.registry,
        "check_subscription_renewals",
        make_renewal_check_handler(scheduler, billing),
    )
    register_platform_job(
        scheduler.registry,
        "subscription_dunning",
        make_dunning_handler(scheduler, billing),
    )
