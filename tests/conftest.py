"""Pytest configuration and fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from async_dispatch.config import DispatchConfig
from async_dispatch.registry import JobRegistry
from async_dispatch.scheduler import Scheduler


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int = 0, seconds: float = 0) -> datetime:
        self.now += timedelta(milliseconds=ms, seconds=seconds)
        return self.now


class FakeResponse:
    def __init__(self, status: int):
        self.status = status


class FakePost:
    """Async context manager returned by FakeSession.post()."""

    def __init__(self, session, url):
        self.session = session
        self.url = url

    async def __aenter__(self):
        behavior = self.session.behaviors.get(self.url, 200)
        if isinstance(behavior, BaseException) or (
            isinstance(behavior, type) and issubclass(behavior, BaseException)
        ):
            raise behavior
        if callable(behavior):
            behavior = await behavior()
        return FakeResponse(behavior)

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Stand-in for aiohttp.ClientSession.

    `behaviors` maps URL to an HTTP status, an exception to raise, or an async
    callable returning a status.
    """

    def __init__(self, behaviors=None):
        self.behaviors = behaviors or {}
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append({"url": url, **kwargs})
        return FakePost(self, url)

    def calls_to(self, url):
        return [call for call in self.calls if call["url"] == url]


@pytest.fixture
def clock():
    """Fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def registry():
    """Empty job registry."""
    return JobRegistry()


@pytest.fixture
def config():
    """Default configuration."""
    return DispatchConfig()


@pytest.fixture
def scheduler(registry, config, clock):
    """Scheduler driven by the fake clock."""
    return Scheduler(registry=registry, config=config, clock=clock)


@pytest.fixture
def fake_session():
    """Factory for fake aiohttp sessions."""
    return FakeSession
