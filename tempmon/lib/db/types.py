"""Type definitions for database operations."""

from typing import Any, TypedDict

type SQLParams = tuple[Any, ...] | dict[str, Any]
"""SQL parameter types: positional tuple or named dict for query binding."""


class StatusRow(TypedDict):
    """A row of the sensor_status table.

    sensor_id may be an int for rows written by earlier versions.
    """

    rowid: int
    sensor_id: Any
    record: str
