"""Unit tests for registry module."""

import pytest

from async_dispatch.errors import DuplicateJobTypeError
from async_dispatch.models import BackoffStrategy, JobDefinition
from async_dispatch.registry import JobRegistry


@pytest.mark.asyncio
async def test_registry_job_decorator():
    """Test registering handlers with decorator."""
    registry = JobRegistry()

    @registry.job("process_settlements", priority=10, backoff_delay_ms=5000)
    async def process_settlements(payload):
        return {"processed": 2}

    definition = registry.lookup("process_settlements")
    assert definition is not None
    assert definition.default_priority == 10
    assert definition.default_max_attempts == 3
    assert definition.backoff_strategy == BackoffStrategy.EXPONENTIAL
    assert definition.backoff_base_delay_ms == 5000

    result = await definition.handler({})
    assert result == {"processed": 2}


def test_registry_decorator_returns_function():
    """Test the decorator leaves the function usable."""
    registry = JobRegistry()

    @registry.job("a")
    async def handler(payload):
        pass

    assert registry.lookup("a").handler is handler


def test_registry_get_nonexistent_definition():
    """Test looking up a name that doesn't exist."""
    registry = JobRegistry()

    assert registry.lookup("nonexistent") is None
    assert "nonexistent" not in registry


def test_registry_all_definitions():
    """Test getting all registered definitions."""
    registry = JobRegistry()

    @registry.job("handler1")
    async def handler1(payload):
        pass

    @registry.job("handler2")
    async def handler2(payload):
        pass

    all_definitions = registry.all_definitions()
    assert len(all_definitions) == 2
    assert "handler1" in all_definitions
    assert "handler2" in all_definitions
    assert sorted(registry.names()) == ["handler1", "handler2"]

    # Returned mapping is a copy
    all_definitions.clear()
    assert len(registry) == 2


def test_registry_register_or_replace_overwrites():
    """Test that registering the same name twice keeps the last one."""
    registry = JobRegistry()

    async def first(payload):
        return "first"

    async def second(payload):
        return "second"

    registry.register(JobDefinition(name="test", handler=first))
    registry.register_or_replace(JobDefinition(name="test", handler=second))

    assert registry.lookup("test").handler is second
    assert len(registry) == 1


def test_registry_register_once_rejects_duplicates():
    """Test strict registration refuses to overwrite."""
    registry = JobRegistry()

    async def first(payload):
        return "first"

    async def second(payload):
        return "second"

    registry.register_once(JobDefinition(name="test", handler=first))

    with pytest.raises(DuplicateJobTypeError):
        registry.register_once(JobDefinition(name="test", handler=second))

    assert registry.lookup("test").handler is first
