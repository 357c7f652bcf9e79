"""Async database operations for the temperature monitor.

This package provides async database operations using aiosqlite for
non-blocking access to the sensor status table.
"""

from tempmon.lib.db.connection import Database as Database
from tempmon.lib.db.connection import close_db as close_db
from tempmon.lib.db.connection import get_db as get_db
from tempmon.lib.db.connection import init_db as init_db
from tempmon.lib.db.status import delete_status_rows as delete_status_rows
from tempmon.lib.db.status import fetch_status_rows as fetch_status_rows
from tempmon.lib.db.status import replace_status_rows as replace_status_rows
from tempmon.lib.db.status import upsert_status as upsert_status
from tempmon.lib.db.types import SQLParams as SQLParams
from tempmon.lib.db.types import StatusRow as StatusRow
