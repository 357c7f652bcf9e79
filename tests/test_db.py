"""Tests for the database connection wrapper."""

import asyncio

import pytest

import tempmon.lib.db.connection as connection
from tempmon.lib.config import set_settings
from tempmon.lib.db import Database, close_db, get_db, init_db
from tempmon.lib.exceptions import DatabaseNotConnectedError
from tests.helpers import make_settings


class TestDatabase:
    """Tests for Database."""

    @pytest.mark.asyncio
    async def test_context_manager_connects_and_closes(self, db_path):
        db = Database(str(db_path))

        async with db:
            assert await db.fetchall("SELECT 1 AS one") == [{"one": 1}]

        with pytest.raises(DatabaseNotConnectedError):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_operations_require_connection(self, db_path):
        db = Database(str(db_path))

        with pytest.raises(DatabaseNotConnectedError):
            await db.fetchall("SELECT 1")
        with pytest.raises(DatabaseNotConnectedError):
            async with db.transaction():
                pass

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, raw_rows):
        async with Database() as db:
            with pytest.raises(RuntimeError):
                async with db.transaction():
                    await db.execute(
                        "INSERT INTO sensor_status (sensor_id, record) "
                        "VALUES (?, ?)",
                        ("A", "{}"),
                    )
                    raise RuntimeError("abort")

        assert raw_rows() == []

    @pytest.mark.asyncio
    async def test_fetchall_returns_dicts(self, insert_raw_row):
        insert_raw_row("A", "{}")

        async with get_db() as db:
            rows = await db.fetchall(
                "SELECT sensor_id, record FROM sensor_status"
            )

        assert rows == [{"sensor_id": "A", "record": "{}"}]


class TestPersistentConnection:
    """Tests for init_db and close_db."""

    @pytest.mark.asyncio
    async def test_init_reuses_connection(self, tmp_path):
        set_settings(make_settings(db_path=str(tmp_path / "fresh.sqlite3")))
        await init_db()
        try:
            async with get_db() as first, get_db() as second:
                assert first is second
                rows = await first.fetchall(
                    "SELECT name FROM sqlite_master WHERE type = 'table'"
                )
            assert {"name": "sensor_status"} in rows
        finally:
            await close_db()

        assert connection._persistent is None

    @pytest.mark.asyncio
    async def test_concurrent_transactions_share_connection(self, raw_rows):
        await init_db()
        try:

            async def write(sensor_id: str) -> None:
                async with get_db() as db, db.transaction():
                    await db.execute(
                        "INSERT INTO sensor_status (sensor_id, record) "
                        "VALUES (?, ?)",
                        (sensor_id, "{}"),
                    )
                    # Yield so that other writers try to start meanwhile
                    await asyncio.sleep(0)
                    await db.execute(
                        "UPDATE sensor_status SET record = ? "
                        "WHERE sensor_id = ?",
                        (f'{{"id": "{sensor_id}"}}', sensor_id),
                    )

            await asyncio.gather(*(write(f"S{n}") for n in range(5)))
        finally:
            await close_db()

        assert sorted(raw_rows()) == [
            (f"S{n}", f'{{"id": "S{n}"}}') for n in range(5)
        ]

    @pytest.mark.asyncio
    async def test_failed_transaction_does_not_undo_another(self, raw_rows):
        await init_db()
        try:

            async def good() -> None:
                async with get_db() as db, db.transaction():
                    await db.execute(
                        "INSERT INTO sensor_status (sensor_id, record) "
                        "VALUES ('good', '{}')"
                    )
                    await asyncio.sleep(0)

            async def bad() -> None:
                async with get_db() as db, db.transaction():
                    await db.execute(
                        "INSERT INTO sensor_status (sensor_id, record) "
                        "VALUES ('bad', '{}')"
                    )
                    raise RuntimeError("abort")

            results = await asyncio.gather(good(), bad(), return_exceptions=True)
        finally:
            await close_db()

        assert results[0] is None
        assert isinstance(results[1], RuntimeError)
        assert [row[0] for row in raw_rows()] == ["good"]
