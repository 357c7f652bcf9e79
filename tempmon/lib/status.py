"""Persisted per-sensor status records.

Two record shapes can be found in storage:

- ``SensorStatus``: the current shape, written by this version.
- ``LegacyStatus``: the earlier shape (camelCase keys, an obsolete
  ``lastStatus`` field, epoch-millisecond timestamps with 0 meaning "never").

``parse_record`` turns a stored JSON document into one of the two, once, when
the store is loaded. ``migrate`` converts a legacy record into the current
shape using the first reading seen for that sensor after the upgrade. The
migration is lossy: excursion history is not reconstructed.
"""

import json
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from tempmon.lib.config import ThresholdSettings
from tempmon.lib.ranges import in_range


class SensorStatus(BaseModel):
    """Notification state of one sensor."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    last_value: Decimal
    in_range: bool
    out_of_range_start: datetime | None
    last_notification: datetime | None
    notified: bool
    last_restore_notification: datetime | None

    def to_json(self) -> str:
        """Serialize for storage."""
        return self.model_dump_json()


class LegacyStatus(BaseModel):
    """Status record written by earlier versions.

    Parsing is lenient: unreadable values become None instead of failing, so
    that any JSON object can be migrated.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    last_temp: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("lastTemp", "last_value")
    )
    last_notification: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("lastNotification", "last_notification"),
    )

    @field_validator("last_temp", mode="before")
    @classmethod
    def _lenient_decimal(cls, v: Any) -> Decimal | None:
        if v is None or isinstance(v, bool):
            return None
        try:
            result = Decimal(str(v))
        except (InvalidOperation, ValueError):
            return None
        return result if result.is_finite() else None

    @field_validator("last_notification", mode="before")
    @classmethod
    def _lenient_timestamp(cls, v: Any) -> datetime | None:
        if v is None or isinstance(v, bool):
            return None
        if isinstance(v, int | float):
            # Epoch milliseconds, 0 means "never notified"
            if v <= 0:
                return None
            try:
                return datetime.fromtimestamp(v / 1000, tz=UTC)
            except (OverflowError, OSError, ValueError):
                return None
        if isinstance(v, str):
            try:
                parsed = datetime.fromisoformat(v)
            except ValueError:
                return None
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
        if isinstance(v, datetime):
            return v
        return None


type StoredRecord = SensorStatus | LegacyStatus


def parse_record(raw: str | bytes | dict[str, Any]) -> StoredRecord | None:
    """Parse a stored record into its current or legacy shape.

    Returns None when the document is not a JSON object at all, in which
    case the sensor is re-created from its next reading.
    """
    data: Any = raw
    if isinstance(raw, str | bytes):
        try:
            data = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(data, dict):
        return None

    if "lastStatus" not in data:
        try:
            return SensorStatus.model_validate(data)
        except ValidationError:
            pass  # Missing or unreadable fields, treat as legacy

    try:
        return LegacyStatus.model_validate(data)
    except ValidationError:
        return None


def initialize_missing(
    value: Decimal, now: datetime, thresholds: ThresholdSettings
) -> SensorStatus:
    """Create the status of a sensor seen for the first time."""
    is_in_range = in_range(
        value, thresholds.min_temperature, thresholds.max_temperature
    )
    return SensorStatus(
        last_value=value,
        in_range=is_in_range,
        out_of_range_start=None if is_in_range else now,
        last_notification=None,
        notified=False,
        last_restore_notification=None,
    )


def migrate(
    legacy: LegacyStatus,
    value: Decimal,
    now: datetime,
    thresholds: ThresholdSettings,
) -> SensorStatus:
    """Convert a legacy record to the current shape.

    Keeps the last temperature and last notification time, recomputes the
    range classification from the current reading and starts a new
    excursion if it is out of range.
    """
    is_in_range = in_range(
        value, thresholds.min_temperature, thresholds.max_temperature
    )
    return SensorStatus(
        last_value=legacy.last_temp if legacy.last_temp is not None else value,
        in_range=is_in_range,
        out_of_range_start=None if is_in_range else now,
        last_notification=legacy.last_notification,
        notified=False,
        last_restore_notification=None,
    )
