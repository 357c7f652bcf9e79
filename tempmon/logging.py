"""Logging configuration for the temperature monitor."""

import logging
import sys

_configured = False

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"


def configure(level: int | None = None) -> None:
    """Configure logging for the application.

    When no level is given, DEBUG is used if LOG_DEBUG is enabled in the
    settings, INFO otherwise. Safe to call multiple times - only configures
    once.
    """
    global _configured
    if _configured:
        return

    if level is None:
        from tempmon.lib.config import get_settings

        level = logging.DEBUG if get_settings().log_debug else logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("tempmon")
    root.setLevel(level)
    root.addHandler(handler)

    # redis-py logs every reconnect attempt at INFO
    logging.getLogger("redis").setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the 'tempmon' namespace.

    Args:
        name: Logger name (will be prefixed with 'tempmon.')

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(f"tempmon.{name}")
