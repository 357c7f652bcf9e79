"""Durable per-sensor status store.

Records live in the sensor_status SQLite table and are cached in memory
under their canonical sensor identity. The store is loaded once at startup:
duplicate keys left by earlier versions are collapsed, and every row is
parsed into its current or legacy shape. Legacy records are migrated when
the next reading for that sensor arrives, since migration needs the current
value.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any

from tempmon.lib.config import Settings, get_settings
from tempmon.lib.db import (
    StatusRow,
    delete_status_rows,
    fetch_status_rows,
    replace_status_rows,
    upsert_status,
)
from tempmon.lib.reading import Reading, SensorId, canonical_sensor_id
from tempmon.lib.status import (
    LegacyStatus,
    SensorStatus,
    StoredRecord,
    initialize_missing,
    migrate,
    parse_record,
)
from tempmon.logging import get_logger

logger = get_logger("lib.store")


class SensorStateStore:
    """Mapping from canonical sensor identity to its status record."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._records: dict[SensorId, StoredRecord] = {}
        self._loaded = False

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, sensor_id: Any) -> bool:
        return canonical_sensor_id(sensor_id) in self._records

    async def deduplicate(self) -> int:
        """Collapse rows stored under different keys for the same sensor.

        The first-seen row (lowest rowid) of each sensor wins and is rewritten
        under the canonical key; the others are deleted.

        Returns:
            Number of rows removed.
        """
        groups: dict[SensorId, list[StatusRow]] = defaultdict(list)
        for row in await fetch_status_rows():
            groups[canonical_sensor_id(row["sensor_id"])].append(row)

        removed = 0
        for sensor_id, rows in groups.items():
            first = rows[0]
            stale = [row["rowid"] for row in rows[1:]]
            for row in rows[1:]:
                logger.info(
                    "Removing duplicate entry for sensor %s (key %r)",
                    sensor_id,
                    row["sensor_id"],
                )
            if first["sensor_id"] == sensor_id:
                await delete_status_rows(stale)
            else:
                logger.info(
                    "Rewriting sensor %s stored under key %r",
                    sensor_id,
                    first["sensor_id"],
                )
                await replace_status_rows(
                    [row["rowid"] for row in rows], sensor_id, first["record"]
                )
            removed += len(stale)
        return removed

    async def load(self) -> None:
        """Deduplicate storage and load every record into memory."""
        removed = await self.deduplicate()
        records: dict[SensorId, StoredRecord] = {}
        for row in await fetch_status_rows():
            sensor_id = canonical_sensor_id(row["sensor_id"])
            record = parse_record(row["record"])
            if record is None:
                logger.warning(
                    "Discarding malformed status record for sensor %s",
                    sensor_id,
                )
                continue
            if isinstance(record, LegacyStatus):
                logger.info(
                    "Found old state format for sensor %s, will migrate on "
                    "next reading",
                    sensor_id,
                )
            records[sensor_id] = record
        self._records = records
        self._loaded = True
        logger.info(
            "Loaded %d sensor status records (%d duplicates removed)",
            len(records),
            removed,
        )

    def get(self, sensor_id: Any) -> StoredRecord | None:
        """Get the record of a sensor, whatever form its identity comes in."""
        return self._records.get(canonical_sensor_id(sensor_id))

    async def put(self, sensor_id: Any, status: SensorStatus) -> None:
        """Persist a sensor's status under its canonical identity."""
        key = canonical_sensor_id(sensor_id)
        await upsert_status(key, status.to_json())
        self._records[key] = status

    def initialize_missing(
        self, sensor_id: Any, value: Decimal, now: datetime
    ) -> SensorStatus:
        """Create the status of a sensor with no existing record."""
        status = initialize_missing(value, now, self._settings.thresholds)
        logger.info(
            "Initialized new sensor status for %s: %s",
            canonical_sensor_id(sensor_id),
            status,
        )
        return status

    def migrate(
        self, sensor_id: Any, legacy: LegacyStatus, value: Decimal, now: datetime
    ) -> SensorStatus:
        """Convert a sensor's legacy record to the current shape."""
        status = migrate(legacy, value, now, self._settings.thresholds)
        logger.info(
            "Migrated sensor %s to new format: %s",
            canonical_sensor_id(sensor_id),
            status,
        )
        return status

    def resolve(self, reading: Reading) -> tuple[SensorStatus, bool]:
        """Get the current-shape status to decide a reading against.

        Returns:
            The status and whether it was created from this reading (in
            which case no decision should be made for it).
        """
        if not self._loaded:
            logger.warning("Status store used before load(), starting empty")
            self._loaded = True

        record = self.get(reading.sensor_id)
        if record is None:
            status = self.initialize_missing(
                reading.sensor_id, reading.value, reading.recording_time
            )
            return status, True
        if isinstance(record, LegacyStatus):
            status = self.migrate(
                reading.sensor_id,
                record,
                reading.value,
                reading.recording_time,
            )
            return status, False
        return record, False
