"""Shared pytest fixtures for the test suite."""

import logging
import sqlite3
from pathlib import Path
from typing import Any

import pytest

from tempmon.lib.config import set_settings
from tests.helpers import make_settings

SQL_DIR = Path(__file__).parent.parent / "tempmon" / "lib" / "sql"


@pytest.fixture(autouse=True)
def configure_caplog(caplog):
    """Ensure caplog captures logs from the tempmon namespace."""
    caplog.set_level(logging.DEBUG, logger="tempmon")


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "test.sqlite3"


@pytest.fixture(autouse=True)
def settings(db_path):
    """Use a temporary SQLite database and a known range for every test.

    The schema is created with sync sqlite3, which is simpler for setup.
    """
    conn = sqlite3.connect(str(db_path))
    conn.executescript(
        (SQL_DIR / "init_sensor_status_table.sql").read_text()
    )
    conn.close()

    test_settings = make_settings(db_path=str(db_path))
    set_settings(test_settings)
    yield test_settings
    set_settings(None)


@pytest.fixture
def insert_raw_row(db_path):
    """Insert a row into sensor_status bypassing the store.

    Lets tests reproduce state written by earlier versions (integer keys,
    legacy record shapes, duplicates).
    """

    def insert(sensor_id: Any, record: str) -> None:
        conn = sqlite3.connect(str(db_path))
        conn.execute(
            "INSERT INTO sensor_status (sensor_id, record) VALUES (?, ?)",
            (sensor_id, record),
        )
        conn.commit()
        conn.close()

    return insert


@pytest.fixture
def raw_rows(db_path):
    """Read back all rows of sensor_status as (sensor_id, record) tuples."""

    def read() -> list[tuple[Any, str]]:
        conn = sqlite3.connect(str(db_path))
        rows = conn.execute(
            "SELECT sensor_id, record FROM sensor_status ORDER BY rowid"
        ).fetchall()
        conn.close()
        return rows

    return read
