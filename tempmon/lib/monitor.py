"""Reading processing: fetch, decide, persist, dispatch.

Readings for the same sensor are processed strictly one after another (a
per-sensor lock covers fetch, decide and persist); readings for different
sensors are independent. Notifications are sent in background tasks once the
new status is persisted, so a slow transport never holds up readings.
"""

import asyncio
from collections import defaultdict
from collections.abc import Awaitable, Callable

from tempmon.lib.alerts import NotificationDecider, NotificationRequest
from tempmon.lib.config import Settings, get_settings
from tempmon.lib.reading import Reading, SensorId
from tempmon.lib.store import SensorStateStore
from tempmon.logging import get_logger

logger = get_logger("lib.monitor")

type Dispatch = Callable[[NotificationRequest], Awaitable[None]]


class TemperatureMonitor:
    """Drives the notification state machine from incoming readings."""

    def __init__(
        self,
        store: SensorStateStore,
        dispatch: Dispatch,
        settings: Settings | None = None,
    ) -> None:
        self._store = store
        self._dispatch = dispatch
        self._decider = NotificationDecider(settings or get_settings())
        self._locks: defaultdict[SensorId, asyncio.Lock] = defaultdict(
            asyncio.Lock
        )
        self._sending: set[asyncio.Task[None]] = set()

    @property
    def decider(self) -> NotificationDecider:
        return self._decider

    @property
    def pending(self) -> int:
        """Number of notifications still being sent."""
        return len(self._sending)

    async def process(self, reading: Reading) -> NotificationRequest | None:
        """Process one reading and start sending its notification, if any.

        Returns:
            The notification handed to the dispatcher, if any.
        """
        async with self._locks[reading.sensor_id]:
            logger.debug(
                "Temperature event: %s is %s (range %s to %s)",
                reading.sensor_id,
                reading.value,
                self._decider.thresholds.min_temperature,
                self._decider.thresholds.max_temperature,
            )
            status, created = self._store.resolve(reading)
            notification = None
            if not created:
                decision = self._decider.decide(status, reading)
                status, notification = decision.status, decision.notification

            await self._store.put(reading.sensor_id, status)
            logger.debug(
                "Saved sensor status for %s: %s", reading.sensor_id, status
            )

        if notification is not None:
            task = asyncio.create_task(self._send(notification))
            self._sending.add(task)
            task.add_done_callback(self._sending.discard)
        return notification

    async def drain(self) -> None:
        """Wait for every notification already handed over to be sent."""
        while self._sending:
            await asyncio.gather(*self._sending, return_exceptions=True)

    async def _send(self, notification: NotificationRequest) -> None:
        """Hand a notification to the dispatcher, never raising."""
        try:
            await self._dispatch(notification)
        except Exception:
            logger.exception(
                "Failed to dispatch %s notification for %s",
                notification.kind,
                notification.sensor_id,
            )
