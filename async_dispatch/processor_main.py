"""CLI entrypoint and programmatic interface for the job processor."""

import argparse
import asyncio
import importlib
import logging
import os
import signal
import sys
from typing import Optional

from async_dispatch.config import DispatchConfig
from async_dispatch.handlers import initialize_scheduled_jobs
from async_dispatch.registry import JobRegistry, job_registry
from async_dispatch.scheduler import Scheduler


def setup_logging():
    """Setup logging configuration."""
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def load_handlers(handlers_module: Optional[str], logger: logging.Logger) -> bool:
    """Import the module that registers job handlers on the global registry."""
    if not handlers_module:
        logger.warning(
            "ASYNC_DISPATCH_HANDLERS_MODULE not set, no handlers will be available"
        )
        return False

    try:
        importlib.import_module(handlers_module)
    except ImportError as e:
        logger.warning(f"Failed to import handlers module {handlers_module}: {e}")
        return False

    logger.info(f"Loaded handlers from {handlers_module}")
    return True


async def run_processor(
    config: Optional[DispatchConfig] = None,
    registry: Optional[JobRegistry] = None,
    logger: Optional[logging.Logger] = None,
    shutdown_event: Optional[asyncio.Event] = None,
) -> Scheduler:
    """
    Run the job processor until `shutdown_event` is set.

    Args:
        config: DispatchConfig instance. If None, will load from environment.
        registry: JobRegistry instance. If None, will use global job_registry.
        logger: Logger instance. If None, will create default logger.
        shutdown_event: Optional asyncio.Event for graceful shutdown.

    Returns:
        The stopped Scheduler, for inspection
    """
    if config is None:
        config = DispatchConfig.from_env()

    if logger is None:
        logger = logging.getLogger(__name__)

    if registry is None:
        registry = job_registry

    if shutdown_event is None:
        shutdown_event = asyncio.Event()

    load_handlers(config.handlers_module, logger)

    scheduler = Scheduler(registry=registry, config=config, logger=logger)
    if config.bootstrap_schedules:
        initialize_scheduled_jobs(scheduler)

    await scheduler.start_processor(config.tick_interval_ms)
    try:
        await shutdown_event.wait()
    finally:
        await scheduler.stop_processor()

    return scheduler


def main():
    """Main entrypoint for the job processor."""
    setup_logging()
    logger = logging.getLogger(__name__)

    parser = argparse.ArgumentParser(description="Async Dispatch job processor")
    parser.add_argument(
        "--handlers-module",
        default=None,
        help="Module that registers job handlers (overrides ASYNC_DISPATCH_HANDLERS_MODULE)",
    )
    parser.add_argument(
        "--tick-interval-ms",
        type=int,
        default=None,
        help="Interval between processor ticks in milliseconds",
    )
    args = parser.parse_args()

    try:
        config = DispatchConfig.from_env()
    except ValueError as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    if args.handlers_module:
        config.handlers_module = args.handlers_module
    if args.tick_interval_ms is not None:
        config.tick_interval_ms = args.tick_interval_ms

    async def run():
        """Async main function."""
        shutdown_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            loop.call_soon_threadsafe(shutdown_event.set)

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

        await run_processor(config=config, logger=logger, shutdown_event=shutdown_event)

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
