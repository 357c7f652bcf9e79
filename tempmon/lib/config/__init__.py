"""Centralized configuration for the temperature monitor.

This package provides:
- Enums for alert kinds, units and notification backends
- Pydantic settings models for configuration
- Cadence constants and their defaults
"""

from .constants import (
    DEFAULT_INITIAL_DELAY_MIN,
    DEFAULT_REPEAT_INTERVAL_MIN,
    MIN_RESTORE_INTERVAL,
)
from .enums import AlertKind, Breach, NotificationBackend, Unit
from .settings import (
    EventBusSettings,
    GmailSettings,
    NotificationSettings,
    Settings,
    SlackSettings,
    ThresholdSettings,
    TimingSettings,
    get_settings,
)
from .testing import set_settings

__all__ = [
    # Enums
    "AlertKind",
    "Breach",
    "NotificationBackend",
    "Unit",
    # Settings models
    "EventBusSettings",
    "GmailSettings",
    "NotificationSettings",
    "Settings",
    "SlackSettings",
    "ThresholdSettings",
    "TimingSettings",
    # Constants
    "DEFAULT_INITIAL_DELAY_MIN",
    "DEFAULT_REPEAT_INTERVAL_MIN",
    "MIN_RESTORE_INTERVAL",
    # Functions
    "get_settings",
    "set_settings",
]
