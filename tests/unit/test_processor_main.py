"""Unit tests for the processor entrypoint."""

import asyncio
import logging

import pytest

from async_dispatch.config import DispatchConfig
from async_dispatch.handlers import PLATFORM_JOB_POLICIES, register_platform_job
from async_dispatch.processor_main import load_handlers, run_processor
from async_dispatch.registry import JobRegistry

logger = logging.getLogger(__name__)


async def noop(payload):
    return None


def test_load_handlers_imports_module():
    assert load_handlers("async_dispatch.handlers.subscriptions", logger) is True


def test_load_handlers_missing_module(caplog):
    assert load_handlers("no.such.module", logger) is False
    assert "Failed to import handlers module" in caplog.text


def test_load_handlers_not_configured():
    assert load_handlers(None, logger) is False


@pytest.mark.asyncio
async def test_run_processor_stops_on_shutdown_event():
    """Test the processor starts and stops around the shutdown event."""
    shutdown_event = asyncio.Event()
    shutdown_event.set()

    scheduler = await run_processor(
        config=DispatchConfig(), registry=JobRegistry(), shutdown_event=shutdown_event
    )

    assert not scheduler.is_running
    assert scheduler.get_queue_stats()["pending"] == 0


@pytest.mark.asyncio
async def test_run_processor_bootstraps_schedules():
    """Test platform cadences are created when bootstrapping is enabled."""
    registry = JobRegistry()
    for name in PLATFORM_JOB_POLICIES:
        register_platform_job(registry, name, noop)

    shutdown_event = asyncio.Event()
    shutdown_event.set()

    scheduler = await run_processor(
        config=DispatchConfig(bootstrap_schedules=True),
        registry=registry,
        shutdown_event=shutdown_event,
    )

    # Shutdown was requested before the first tick
    assert scheduler.get_queue_stats()["pending"] == 7
