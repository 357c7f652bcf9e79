"""Shared constants for the configuration module.

These constants are separated to avoid circular imports between settings.py
and the alert logic.
"""

from datetime import timedelta

# Used when INITIAL_DELAY_MIN / REPEAT_INTERVAL_MIN are not set
DEFAULT_INITIAL_DELAY_MIN = 30
DEFAULT_REPEAT_INTERVAL_MIN = 60

# Restore alerts for a sensor are never sent closer together than this
MIN_RESTORE_INTERVAL = timedelta(minutes=5)
