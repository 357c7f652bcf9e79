"""SQLite access for the sensor status table.

The monitor service opens one connection at startup with init_db() and
shares it between every reading being processed; get_db() hands out that
connection, or a throwaway one when init_db() was never called.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from functools import cache
from pathlib import Path
from typing import Any, cast

import aiosqlite

from tempmon.lib.config import get_settings
from tempmon.lib.db.types import SQLParams
from tempmon.lib.exceptions import DatabaseNotConnectedError
from tempmon.logging import get_logger

_logger = get_logger("lib.db")

_SQL_DIR = Path(__file__).resolve().parent.parent / "sql"


@cache
def load_template(name: str) -> str:
    """Read a schema file from the sql/ directory (cached)."""
    path = _SQL_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"SQL template not found: {path}")
    return path.read_text()


def _dict_factory(
    cursor: aiosqlite.Cursor, row: tuple[Any, ...]
) -> dict[str, Any]:
    desc: tuple[Any, ...] = cursor.description or ()
    return {col[0]: row[idx] for idx, col in enumerate(desc)}


class Database:
    """aiosqlite connection that several tasks can write through.

    Writes are serialized by a lock: a transaction holds it from BEGIN to
    COMMIT/ROLLBACK, and a standalone write holds it until its commit. The
    task that owns the open transaction writes without re-acquiring it.
    """

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path or get_settings().db_path
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()
        self._tx_owner: asyncio.Task[Any] | None = None

    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise DatabaseNotConnectedError()
        return self._connection

    def _owns_transaction(self) -> bool:
        return (
            self._tx_owner is not None
            and self._tx_owner is asyncio.current_task()
        )

    async def connect(self) -> None:
        if self._connection is None:
            self._connection = await aiosqlite.connect(
                self._db_path,
                timeout=get_settings().db_timeout_sec,
            )
            self._connection.row_factory = _dict_factory  # type: ignore[assignment]

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Run the block as one transaction, rolled back if it raises."""
        conn = self._conn()
        async with self._write_lock:
            self._tx_owner = asyncio.current_task()
            await conn.execute("BEGIN")
            try:
                yield
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise
            finally:
                self._tx_owner = None

    async def execute(self, sql: str, params: SQLParams = ()) -> int:
        """Execute a statement, committing it unless inside transaction().

        Returns:
            Number of rows affected.
        """
        conn = self._conn()
        if self._owns_transaction():
            cursor = await conn.execute(sql, params)
            return cursor.rowcount
        async with self._write_lock:
            cursor = await conn.execute(sql, params)
            await conn.commit()
            return cursor.rowcount

    async def executemany(
        self, sql: str, params_seq: Sequence[SQLParams]
    ) -> None:
        conn = self._conn()
        if self._owns_transaction():
            await conn.executemany(sql, params_seq)
            return
        async with self._write_lock:
            await conn.executemany(sql, params_seq)
            await conn.commit()

    async def executescript(self, sql: str) -> None:
        conn = self._conn()
        async with self._write_lock:
            await conn.executescript(sql)

    async def fetchall(
        self, sql: str, params: SQLParams = ()
    ) -> list[dict[str, Any]]:
        async with self._conn().execute(sql, params) as cursor:
            rows = await cursor.fetchall()
            return cast(list[dict[str, Any]], rows)


_persistent: Database | None = None


@asynccontextmanager
async def get_db() -> AsyncIterator[Database]:
    """Yield the shared connection, or a throwaway one without init_db()."""
    if _persistent is not None:
        yield _persistent
    else:
        async with Database() as db:
            yield db


async def init_db() -> None:
    """Open the shared connection and create the schema."""
    global _persistent
    if _persistent is None:
        _persistent = Database()
        await _persistent.connect()
        _logger.info(
            "Opened persistent database connection: %s", get_settings().db_path
        )

    await _persistent.execute("PRAGMA journal_mode=WAL")
    await _persistent.executescript(
        load_template("init_sensor_status_table.sql")
    )


async def close_db() -> None:
    """Close the shared connection."""
    global _persistent
    if _persistent is not None:
        await _persistent.close()
        _logger.info("Closed persistent database connection")
        _persistent = None
