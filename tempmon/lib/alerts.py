"""Notification decisions for sensor range excursions.

The decider is a pure state machine over ``SensorStatus``. For every reading
it computes the next status and at most one notification:

- going out of range starts the initial-delay clock, nothing is sent yet
- staying out of range sends the initial alert once the delay has elapsed,
  then repeat alerts no more often than the repeat interval
- coming back in range sends a restore alert, debounced so that restore
  alerts are at least MIN_RESTORE_INTERVAL apart
- staying in range does nothing

All elapsed-time gates are inclusive (elapsed == threshold qualifies).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any

from tempmon.lib.config import (
    AlertKind,
    Breach,
    Settings,
    ThresholdSettings,
    Unit,
    get_settings,
)
from tempmon.lib.ranges import breach, in_range
from tempmon.lib.reading import Reading, SensorId
from tempmon.lib.status import SensorStatus
from tempmon.logging import get_logger

logger = get_logger("lib.alerts")

_ALERT_TEMPLATES: dict[tuple[AlertKind, Breach], str] = {
    (AlertKind.INITIAL, Breach.LOW): (
        "Temperature Alert: {name} is too cold at {value}{unit} "
        "(minimum: {bound}{unit})"
    ),
    (AlertKind.REPEAT, Breach.LOW): (
        "Temperature Alert: {name} is still too cold at {value}{unit} "
        "(minimum: {bound}{unit})"
    ),
    (AlertKind.INITIAL, Breach.HIGH): (
        "Temperature Alert: {name} is too hot at {value}{unit} "
        "(maximum: {bound}{unit})"
    ),
    (AlertKind.REPEAT, Breach.HIGH): (
        "Temperature Alert: {name} is still too hot at {value}{unit} "
        "(maximum: {bound}{unit})"
    ),
}

_RESTORE_TEMPLATE = (
    "Temperature Restored: {name} has returned to normal range at {value}{unit}"
)


@dataclass(frozen=True, slots=True)
class NotificationRequest:
    """A notification to hand over to the dispatcher."""

    kind: AlertKind
    sensor_id: SensorId
    message: str
    value: Decimal
    recording_time: datetime

    @property
    def is_restore(self) -> bool:
        return self.kind == AlertKind.RESTORE


@dataclass(frozen=True, slots=True)
class Decision:
    """Outcome of one reading: the next status and an optional notification."""

    status: SensorStatus
    notification: NotificationRequest | None = None


def format_alert_message(
    kind: AlertKind,
    side: Breach,
    name: str,
    value: Decimal,
    min_bound: Decimal,
    max_bound: Decimal,
) -> str:
    """Format an initial or repeat out-of-range message."""
    bound = min_bound if side == Breach.LOW else max_bound
    return _ALERT_TEMPLATES[(kind, side)].format(
        name=name, value=value, bound=bound, unit=Unit.FAHRENHEIT
    )


def format_restore_message(name: str, value: Decimal) -> str:
    """Format a back-in-range message."""
    return _RESTORE_TEMPLATE.format(
        name=name, value=value, unit=Unit.FAHRENHEIT
    )


def _minutes(delta: timedelta) -> float:
    return delta.total_seconds() / 60


class NotificationDecider:
    """Computes the next sensor status and notification for a reading.

    Configuration is captured at construction and stays fixed for every
    decision made by this instance.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self._settings = settings
        self._thresholds = settings.thresholds
        self._timing = settings.timing

    @property
    def thresholds(self) -> ThresholdSettings:
        return self._thresholds

    def sensor_name(self, reading: Reading) -> str:
        """Display name for a reading's sensor."""
        return (
            reading.name
            or self._settings.sensor_label(reading.sensor_id)
            or reading.sensor_id
        )

    def _notification(
        self, kind: AlertKind, reading: Reading, message: str
    ) -> NotificationRequest:
        return NotificationRequest(
            kind=kind,
            sensor_id=reading.sensor_id,
            message=message,
            value=reading.value,
            recording_time=reading.recording_time,
        )

    def _out_of_range_alert(
        self, kind: AlertKind, reading: Reading
    ) -> NotificationRequest:
        min_bound = self._thresholds.min_temperature
        max_bound = self._thresholds.max_temperature
        side = breach(reading.value, min_bound, max_bound) or Breach.HIGH
        message = format_alert_message(
            kind,
            side,
            self.sensor_name(reading),
            reading.value,
            min_bound,
            max_bound,
        )
        return self._notification(kind, reading, message)

    def _entered_range(
        self, status: SensorStatus, reading: Reading, updates: dict[str, Any]
    ) -> NotificationRequest | None:
        now = reading.recording_time
        updates["out_of_range_start"] = None
        updates["notified"] = False
        logger.info(
            "%s returned to normal range: %s%s",
            reading.sensor_id,
            reading.value,
            Unit.FAHRENHEIT,
        )

        if not self._timing.notify_on_restore:
            return None

        last_restore = status.last_restore_notification
        if last_restore is not None:
            since_restore = now - last_restore
            if since_restore < self._timing.min_restore_interval:
                logger.debug(
                    "Skipped restore notification for %s "
                    "(sent %.1f minutes ago)",
                    reading.sensor_id,
                    _minutes(since_restore),
                )
                return None

        updates["last_restore_notification"] = now
        message = format_restore_message(
            self.sensor_name(reading), reading.value
        )
        return self._notification(AlertKind.RESTORE, reading, message)

    def _still_out_of_range(
        self, status: SensorStatus, reading: Reading, updates: dict[str, Any]
    ) -> NotificationRequest | None:
        now = reading.recording_time
        start = status.out_of_range_start
        if start is None:
            # Out of range without an excursion start, begin one now
            start = now
            updates["out_of_range_start"] = now

        since_start = now - start
        logger.debug(
            "%s still out of range for %.1f minutes (initial delay %d, "
            "notified %s)",
            reading.sensor_id,
            _minutes(since_start),
            self._timing.initial_delay_min,
            status.notified,
        )

        if not status.notified:
            if since_start >= self._timing.initial_delay:
                updates["last_notification"] = now
                updates["notified"] = True
                return self._out_of_range_alert(AlertKind.INITIAL, reading)
            logger.debug(
                "Waiting for initial delay on %s (%.1f minutes remaining)",
                reading.sensor_id,
                _minutes(self._timing.initial_delay - since_start),
            )
            return None

        last = status.last_notification
        if last is None or now - last >= self._timing.repeat_interval:
            updates["last_notification"] = now
            return self._out_of_range_alert(AlertKind.REPEAT, reading)

        logger.debug(
            "Repeat interval not elapsed for %s (last alert %.1f minutes ago)",
            reading.sensor_id,
            _minutes(now - last),
        )
        return None

    def decide(self, status: SensorStatus, reading: Reading) -> Decision:
        """Compute the next status and optional notification for a reading."""
        is_in_range = in_range(
            reading.value,
            self._thresholds.min_temperature,
            self._thresholds.max_temperature,
        )
        was_in_range = status.in_range
        updates: dict[str, Any] = {}
        notification: NotificationRequest | None = None

        if was_in_range and not is_in_range:
            updates["out_of_range_start"] = reading.recording_time
            updates["notified"] = False
            logger.info(
                "%s went out of range: %s%s, starting %d-minute delay",
                reading.sensor_id,
                reading.value,
                Unit.FAHRENHEIT,
                self._timing.initial_delay_min,
            )
        elif not was_in_range and is_in_range:
            notification = self._entered_range(status, reading, updates)
        elif was_in_range and is_in_range:
            logger.debug("%s staying in normal range", reading.sensor_id)
        else:
            notification = self._still_out_of_range(status, reading, updates)

        updates["last_value"] = reading.value
        updates["in_range"] = is_in_range

        if notification is not None:
            logger.info(
                "Notification for %s (%s): %s",
                reading.sensor_id,
                notification.kind,
                notification.message,
            )

        return Decision(
            status=status.model_copy(update=updates),
            notification=notification,
        )
