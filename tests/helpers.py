"""Builders shared by the test modules."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from tempmon.lib.config import Settings
from tempmon.lib.reading import Reading

T0 = datetime(2024, 6, 15, 12, 0, 0, tzinfo=UTC)


def make_settings(**overrides: Any) -> Settings:
    """Create settings with a [32, 40] range and default cadence."""
    values: dict[str, Any] = {
        "min_temperature": Decimal("32"),
        "max_temperature": Decimal("40"),
        "initial_delay_min": 30,
        "repeat_interval_min": 60,
        "notify_on_restore": True,
    }
    values.update(overrides)
    return Settings(**values)


def make_reading(
    value: str | int | float,
    minutes: float = 0,
    sensor_id: Any = "A",
    name: str | None = None,
) -> Reading:
    """Create a reading taken `minutes` after T0."""
    return Reading.create(
        sensor_id=sensor_id,
        value=str(value),
        recording_time=T0 + timedelta(minutes=minutes),
        name=name,
    )
