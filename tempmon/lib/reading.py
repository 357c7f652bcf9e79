"""Inbound temperature readings and sensor identity normalization."""

from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Self

from tempmon.lib.exceptions import InvalidReadingError

# Wire format for recording times (UTC, space separator)
_DATETIME_FMT = "%Y-%m-%d %H:%M:%S"

type SensorId = str
"""Canonical sensor identity, see canonical_sensor_id()."""


def canonical_sensor_id(raw: Any) -> SensorId:
    """Normalize a sensor identity to its single canonical string form.

    The same sensor may be reported as 12, 12.0, Decimal("12") or " 12 ";
    all of these map to "12". Strings are only stripped, never parsed as
    numbers: "12.0" stays "12.0" and names a different sensor than 12.
    """
    if isinstance(raw, bool):
        return str(raw)
    if isinstance(raw, int):
        return str(raw)
    if isinstance(raw, float) and raw.is_integer():
        return str(int(raw))
    if (
        isinstance(raw, Decimal)
        and raw.is_finite()
        and raw == raw.to_integral_value()
    ):
        return str(int(raw))
    if isinstance(raw, bytes):
        raw = raw.decode(errors="replace")
    return str(raw).strip()


def to_decimal(value: Any) -> Decimal:
    """Convert a numeric payload value to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidReadingError(f"Invalid temperature value: {value!r}")
    try:
        # str() first so that 24.1 becomes Decimal("24.1"), not 24.0999...
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as e:
        raise InvalidReadingError(f"Invalid temperature value: {value!r}") from e
    if not result.is_finite():
        raise InvalidReadingError(f"Invalid temperature value: {value!r}")
    return result


def parse_recording_time(raw: Any) -> datetime:
    """Parse a recording time from the wire (formatted string or epoch ms)."""
    if isinstance(raw, datetime):
        return raw if raw.tzinfo else raw.replace(tzinfo=UTC)
    if isinstance(raw, int | float) and not isinstance(raw, bool):
        try:
            return datetime.fromtimestamp(raw / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError) as e:
            raise InvalidReadingError(f"Invalid recording time: {raw!r}") from e
    if isinstance(raw, str):
        try:
            return datetime.strptime(raw, _DATETIME_FMT).replace(tzinfo=UTC)
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError as e:
            raise InvalidReadingError(f"Invalid recording time: {raw!r}") from e
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    raise InvalidReadingError(f"Invalid recording time: {raw!r}")


def format_recording_time(dt: datetime) -> str:
    """Format a recording time for the wire."""
    return dt.astimezone(UTC).strftime(_DATETIME_FMT)


@dataclass(frozen=True, slots=True)
class Reading:
    """A single temperature reading for one sensor."""

    sensor_id: SensorId
    value: Decimal
    recording_time: datetime
    name: str | None = None

    @classmethod
    def create(
        cls,
        sensor_id: Any,
        value: Any,
        recording_time: Any,
        name: str | None = None,
    ) -> Self:
        """Build a reading, normalizing identity and value at the boundary."""
        return cls(
            sensor_id=canonical_sensor_id(sensor_id),
            value=to_decimal(value),
            recording_time=parse_recording_time(recording_time),
            name=name or None,
        )


def parse_reading(data: dict[str, Any]) -> Reading:
    """Parse a reading from event bus payload data.

    Raises:
        InvalidReadingError: If a required field is missing or malformed.
    """
    try:
        sensor_id = data["sensor_id"]
        value = data["value"]
        recording_time = data["recording_time"]
    except (KeyError, TypeError) as e:
        raise InvalidReadingError(f"Missing reading field: {e}") from e

    if sensor_id is None or canonical_sensor_id(sensor_id) == "":
        raise InvalidReadingError("Empty sensor_id")

    name = data.get("name")
    return Reading.create(
        sensor_id=sensor_id,
        value=value,
        recording_time=parse_recording_time(recording_time),
        name=str(name) if name is not None else None,
    )
