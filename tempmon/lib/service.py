"""Service runner utility for event-driven services."""

import asyncio
import signal
from collections.abc import Awaitable, Callable
from contextlib import suppress

from tempmon.logging import configure, get_logger


def run_service(
    main: Callable[[], Awaitable[None]],
    *,
    name: str = "service",
) -> None:
    """Run an async service with signal handling.

    Configures logging, sets up graceful shutdown on SIGTERM/SIGINT and runs
    the async service function until it returns or a signal arrives.

    Args:
        main: Async function to run (typically named ``run``).
        name: Service name for logging.
    """
    logger = get_logger(f"{name}.service")

    configure()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    task = loop.create_task(main())
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, task.cancel)

    with suppress(KeyboardInterrupt, asyncio.CancelledError):
        loop.run_until_complete(task)
    logger.info("%s service stopped", name.capitalize())
    loop.close()
