"""Configuration for the job scheduler and webhook dispatcher."""

import os
from typing import Optional


def _int_from_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"Invalid integer in {name}: {raw!r}") from e


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"Invalid number in {name}: {raw!r}") from e


def _bool_from_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class DispatchConfig:
    """Configuration object for async dispatch."""

    def __init__(
        self,
        tick_interval_ms: int = 1000,
        backoff_cap_ms: int = 60_000,
        retention_seconds: int = 60,
        webhook_timeout_seconds: float = 30.0,
        webhook_disable_threshold: int = 10,
        handlers_module: Optional[str] = None,
        bootstrap_schedules: bool = False,
        admin_auth_token: Optional[str] = None,
    ):
        if tick_interval_ms <= 0:
            raise ValueError("tick_interval_ms must be positive")
        if backoff_cap_ms < 0:
            raise ValueError("backoff_cap_ms must not be negative")
        if retention_seconds < 0:
            raise ValueError("retention_seconds must not be negative")
        if webhook_timeout_seconds <= 0:
            raise ValueError("webhook_timeout_seconds must be positive")
        if webhook_disable_threshold <= 0:
            raise ValueError("webhook_disable_threshold must be positive")

        self.tick_interval_ms = tick_interval_ms
        self.backoff_cap_ms = backoff_cap_ms
        self.retention_seconds = retention_seconds
        self.webhook_timeout_seconds = webhook_timeout_seconds
        self.webhook_disable_threshold = webhook_disable_threshold
        self.handlers_module = handlers_module
        self.bootstrap_schedules = bootstrap_schedules
        self.admin_auth_token = admin_auth_token

    @classmethod
    def from_env(cls) -> "DispatchConfig":
        """Create config from environment variables."""
        return cls(
            tick_interval_ms=_int_from_env("ASYNC_DISPATCH_TICK_INTERVAL_MS", 1000),
            backoff_cap_ms=_int_from_env("ASYNC_DISPATCH_BACKOFF_CAP_MS", 60_000),
            retention_seconds=_int_from_env("ASYNC_DISPATCH_RETENTION_SECONDS", 60),
            webhook_timeout_seconds=_float_from_env(
                "ASYNC_DISPATCH_WEBHOOK_TIMEOUT_SECONDS", 30.0
            ),
            webhook_disable_threshold=_int_from_env(
                "ASYNC_DISPATCH_WEBHOOK_DISABLE_THRESHOLD", 10
            ),
            handlers_module=os.getenv("ASYNC_DISPATCH_HANDLERS_MODULE") or None,
            bootstrap_schedules=_bool_from_env(
                "ASYNC_DISPATCH_BOOTSTRAP_SCHEDULES", False
            ),
            admin_auth_token=os.getenv("ASYNC_DISPATCH_ADMIN_AUTH_TOKEN") or None,
        )

    @property
    def tick_interval_seconds(self) -> float:
        """Tick interval as seconds, for asyncio sleeps."""
        return self.tick_interval_ms / 1000.0
