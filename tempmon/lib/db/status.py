"""Queries on the sensor_status table."""

from collections.abc import Sequence
from decimal import Decimal, InvalidOperation
from typing import cast

from tempmon.lib.db.connection import get_db
from tempmon.lib.db.types import StatusRow
from tempmon.lib.reading import canonical_sensor_id

_UPSERT_SQL = """INSERT INTO sensor_status (sensor_id, record, updated_at)
   VALUES (?, ?, datetime('now'))
   ON CONFLICT(sensor_id) DO UPDATE SET
       record = excluded.record,
       updated_at = excluded.updated_at"""

# Rows of the same sensor stored under another representation: the integer
# 12 or the real 12.0 when the canonical key is the text '12', or text with
# surrounding spaces
_DELETE_ALTERNATES_SQL = """DELETE FROM sensor_status
   WHERE NOT (typeof(sensor_id) = 'text' AND sensor_id = :key)
     AND (CAST(sensor_id AS TEXT) = :key
          OR (typeof(sensor_id) IN ('integer', 'real') AND sensor_id = :number)
          OR (typeof(sensor_id) = 'text' AND trim(sensor_id) = :key))"""


def _numeric_key(sensor_id: str) -> int | float | None:
    """The number a canonical key stands for, if numeric keys map to it."""
    try:
        number = Decimal(sensor_id)
    except InvalidOperation:
        return None
    if not number.is_finite():
        return None
    value: int | float = (
        int(number) if number == number.to_integral_value() else float(number)
    )
    # "12.0" is its own sensor, only the number whose canonical form is the
    # key itself can be an alternate of it
    return value if canonical_sensor_id(value) == sensor_id else None


async def fetch_status_rows() -> list[StatusRow]:
    """Fetch all status rows in insertion order."""
    async with get_db() as db:
        rows = await db.fetchall(
            "SELECT rowid, sensor_id, record FROM sensor_status ORDER BY rowid"
        )
    return cast(list[StatusRow], rows)


async def upsert_status(sensor_id: str, record: str) -> None:
    """Write a sensor's record under its canonical key.

    Alternate-form keys of the same sensor are removed in the same
    transaction, so at most one row per sensor exists after the write.
    """
    async with get_db() as db, db.transaction():
        await db.execute(
            _DELETE_ALTERNATES_SQL,
            {"key": sensor_id, "number": _numeric_key(sensor_id)},
        )
        await db.execute(_UPSERT_SQL, (sensor_id, record))


async def replace_status_rows(
    rowids: Sequence[int], sensor_id: str, record: str
) -> None:
    """Replace a group of rows with a single row under the canonical key."""
    async with get_db() as db, db.transaction():
        await db.executemany(
            "DELETE FROM sensor_status WHERE rowid = ?",
            [(rowid,) for rowid in rowids],
        )
        await db.execute(_UPSERT_SQL, (sensor_id, record))


async def delete_status_rows(rowids: Sequence[int]) -> None:
    """Delete rows by rowid."""
    if not rowids:
        return
    async with get_db() as db:
        await db.executemany(
            "DELETE FROM sensor_status WHERE rowid = ?",
            [(rowid,) for rowid in rowids],
        )
