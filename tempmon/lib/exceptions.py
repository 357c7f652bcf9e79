"""Custom exceptions for the temperature monitor.

Reading processing never raises these to the caller; they surface at startup
(configuration, database) or inside the notification transports.
"""


class TempMonitorError(Exception):
    """Base exception for all application errors."""


class DatabaseError(TempMonitorError):
    """Base exception for database-related errors."""


class DatabaseNotConnectedError(DatabaseError):
    """Raised when attempting database operations without a connection."""

    def __init__(self, message: str = "Database not connected") -> None:
        super().__init__(message)


class InvalidReadingError(TempMonitorError, ValueError):
    """Raised when an inbound reading payload cannot be parsed."""
