# ==============================================
# Pytest Configuration and Fixtures
# ==============================================
#
# Shared fixtures for all tests.
#
# FIXTURES:
# ---------
# - make_db(ddl, rows=..., table=...) -> Path
#     Build a SQLite database file in tmp_path.
# - events_db -> Path
#     Small "events" table with NULLs in a few columns.
# - events_source -> SQLiteSource over events_db
# - diagnostics -> fresh Diagnostics
#
# ==============================================

import sqlite3

import pytest

from sql2parquet.diagnostics import Diagnostics
from sql2parquet.source.sqlite_source import SQLiteSource


EVENTS_DDL = """
CREATE TABLE events (
    id INTEGER NOT NULL,
    category TEXT,
    score REAL,
    active BOOLEAN,
    payload BLOB
)
"""

EVENTS_ROWS = [
    (1, "login", 0.5, 1, b"\x00\x01"),
    (2, "logout", None, 0, b"\x02"),
    (3, None, 2.25, 1, None),
    (4, "login", -1.0, 0, b""),
    (5, "login", 3.0, None, b"\xff"),
]


@pytest.fixture
def make_db(tmp_path):
    """Factory building a SQLite file from DDL plus rows for one table."""
    counter = {"n": 0}

    def _make(ddl, rows=(), table=None, extra_sql=()):
        counter["n"] += 1
        path = tmp_path / f"db{counter['n']}.sqlite"
        connection = sqlite3.connect(str(path))
        try:
            connection.executescript(ddl)
            if rows:
                width = len(rows[0])
                placeholders = ", ".join("?" * width)
                connection.executemany(
                    f'INSERT INTO "{table}" VALUES ({placeholders})', rows
                )
            for statement in extra_sql:
                connection.execute(statement)
            connection.commit()
        finally:
            connection.close()
        return path

    return _make


@pytest.fixture
def events_db(make_db):
    return make_db(EVENTS_DDL, EVENTS_ROWS, table="events")


@pytest.fixture
def events_source(events_db):
    source = SQLiteSource(events_db)
    yield source
    source.close()


@pytest.fixture
def diagnostics():
    return Diagnostics()
