"""Monitor service: readings in, notifications out.

Loads the sensor status store once at startup (repairing duplicate keys),
then processes every reading published on the event bus.
"""

from typing import Any

import aiosqlite

from tempmon.lib.db import close_db, init_db
from tempmon.lib.eventbus import EventSubscriber, Topic
from tempmon.lib.exceptions import InvalidReadingError
from tempmon.lib.monitor import TemperatureMonitor
from tempmon.lib.notifications import get_notifier
from tempmon.lib.reading import parse_reading
from tempmon.lib.service import run_service
from tempmon.lib.store import SensorStateStore
from tempmon.logging import get_logger

logger = get_logger("monitor.service")


async def handle_message(
    monitor: TemperatureMonitor, data: dict[str, Any]
) -> None:
    """Process one reading payload, logging instead of raising."""
    try:
        reading = parse_reading(data)
    except InvalidReadingError as e:
        logger.warning("Skipping invalid reading: %s", e)
        return

    try:
        await monitor.process(reading)
    except (aiosqlite.Error, OSError):
        logger.exception("Failed to process reading for %s", reading.sensor_id)


async def run() -> None:
    """Run the monitor service."""
    await init_db()
    monitor: TemperatureMonitor | None = None
    try:
        store = SensorStateStore()
        await store.load()
        notifier = get_notifier()
        monitor = TemperatureMonitor(store, notifier.send)

        async with EventSubscriber(topics=[Topic.READING]) as subscriber:
            logger.info("Monitor service started")
            async for _topic, data in subscriber.receive():
                await handle_message(monitor, data)
    finally:
        if monitor is not None and monitor.pending:
            logger.info(
                "Waiting for %d notifications to be sent", monitor.pending
            )
            await monitor.drain()
        await close_db()


def main() -> None:
    """Entry point for the monitor service."""
    run_service(run, name="monitor")
