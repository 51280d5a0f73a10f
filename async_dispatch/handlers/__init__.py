"""Platform job policies and the recurring cadences registered at startup."""

import logging
from datetime import datetime, time, timedelta
from typing import Dict, NamedTuple, Optional, Tuple

from async_dispatch.models import BackoffStrategy, JobDefinition, JobHandler
from async_dispatch.registry import JobRegistry

logger = logging.getLogger(__name__)

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


class JobPolicy(NamedTuple):
    priority: int
    max_attempts: int
    backoff: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    backoff_delay_ms: int = 1000


PLATFORM_JOB_POLICIES: Dict[str, JobPolicy] = {
    "process_settlements": JobPolicy(10, 3, BackoffStrategy.EXPONENTIAL, 5000),
    "fraud_monitoring": JobPolicy(9, 2),
    "check_subscription_renewals": JobPolicy(8, 3),
    "subscription_dunning": JobPolicy(7, 2),
    "dispute_auto_escalation": JobPolicy(6, 3),
    "retry_webhooks": JobPolicy(5, 1),
    "generate_daily_reports": JobPolicy(3, 2),
    "cleanup_old_data": JobPolicy(1, 2),
}


class RecurringSchedule(NamedTuple):
    name: str
    interval_ms: int
    # Wall-clock UTC time of the first run; None runs immediately.
    first_run_time: Optional[time] = None


PLATFORM_SCHEDULES: Tuple[RecurringSchedule, ...] = (
    RecurringSchedule("process_settlements", 5 * MINUTE_MS),
    RecurringSchedule("retry_webhooks", MINUTE_MS),
    RecurringSchedule("check_subscription_renewals", HOUR_MS),
    RecurringSchedule("dispute_auto_escalation", 6 * HOUR_MS),
    RecurringSchedule("cleanup_old_data", DAY_MS, time(0, 0)),
    RecurringSchedule("fraud_monitoring", 30 * MINUTE_MS),
    RecurringSchedule("generate_daily_reports", DAY_MS, time(1, 0)),
)


def register_platform_job(
    registry: JobRegistry, name: str, handler: JobHandler
) -> JobDefinition:
    """Register `handler` under `name` with the platform's default policy."""
    policy = PLATFORM_JOB_POLICIES.get(name)
    if policy is None:
        raise KeyError(f"No platform policy for job {name}")

    return registry.register_or_replace(
        JobDefinition(
            name=name,
            handler=handler,
            default_priority=policy.priority,
            default_max_attempts=policy.max_attempts,
            backoff_strategy=policy.backoff,
            backoff_base_delay_ms=policy.backoff_delay_ms,
        )
    )


def next_run_at(now: datetime, at: time) -> datetime:
    """Wall-clock time `at` on the day after `now`."""
    tomorrow = (now + timedelta(days=1)).date()
    return datetime.combine(tomorrow, at, tzinfo=now.tzinfo)


def initialize_scheduled_jobs(
    scheduler, schedules: Tuple[RecurringSchedule, ...] = PLATFORM_SCHEDULES
) -> Dict[str, str]:
    """
    Start every recurring cadence on `scheduler`.

    Cadences whose job name is not registered are skipped with a warning.

    Returns:
        Mapping of job name to the id of its first occurrence
    """
    now = scheduler.clock()
    first_jobs: Dict[str, str] = {}

    for schedule in schedules:
        if schedule.name not in scheduler.registry:
            logger.warning(f"Skipping schedule for {schedule.name}: no handler registered")
            continue

        policy = PLATFORM_JOB_POLICIES.get(schedule.name)
        first_run_at = (
            next_run_at(now, schedule.first_run_time)
            if schedule.first_run_time is not None
            else None
        )
        first_jobs[schedule.name] = scheduler.schedule_recurring(
            schedule.name,
            {},
            schedule.interval_ms,
            priority=policy.priority if policy else None,
            first_run_at=first_run_at,
        )

    logger.info(f"Initialized {len(first_jobs)} scheduled jobs")
    return first_jobs
