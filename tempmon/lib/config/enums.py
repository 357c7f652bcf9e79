"""Enumerations for the temperature monitor."""

from enum import StrEnum


class NotificationBackend(StrEnum):
    GMAIL = "gmail"
    SLACK = "slack"


class Unit(StrEnum):
    """Measurement units for sensor readings."""

    FAHRENHEIT = "°F"


class AlertKind(StrEnum):
    """Kind of notification produced by the decider."""

    INITIAL = "initial"  # First alert of an excursion, after the delay
    REPEAT = "repeat"  # Subsequent alerts of the same excursion
    RESTORE = "restore"  # Back within the range


class Breach(StrEnum):
    """Side of the range an out-of-range value sits on."""

    LOW = "low"
    HIGH = "high"
