"""
SQLite databases seeded with the test schema.

- `sqlite_static_conn`: in-memory connection handed to DAOs as a static,
  caller-owned connection
- `sqlite_file_options`: `DatabaseOptions` for a temporary database file,
  for DAOs that open pooled connections themselves
"""
import sqlite3

import pytest
from daokit import DatabaseOptions

SCHEMA = """
CREATE TABLE Test2 (
    test2ID INTEGER PRIMARY KEY AUTOINCREMENT,
    b BOOLEAN
);
CREATE TABLE Test3 (
    test3ID INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(255)
);
CREATE TABLE Test (
    testID INTEGER PRIMARY KEY AUTOINCREMENT,
    s VARCHAR(255),
    i INTEGER,
    d TIMESTAMP,
    test2 BIGINT
);
CREATE TABLE Kreuz (
    Test BIGINT,
    Test2 BIGINT
);
CREATE TABLE Kreuz3 (
    Test BIGINT,
    Test2 BIGINT,
    Test3 BIGINT
);
CREATE TABLE Animal (
    animalID INTEGER PRIMARY KEY AUTOINCREMENT,
    DType VARCHAR(20),
    name VARCHAR(255),
    size VARCHAR(1)
);
"""


def _connect(database):
    return sqlite3.connect(
        database,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        isolation_level=None,
        check_same_thread=False,
        )


@pytest.fixture
def sqlite_static_conn():
    """In-memory SQLite database with the test schema"""
    conn = _connect(':memory:')
    conn.executescript(SCHEMA)
    yield conn
    conn.close()


@pytest.fixture
def sqlite_file_path(tmp_path):
    """Database file with the test schema"""
    path = tmp_path / 'daokit.db'
    conn = _connect(str(path))
    conn.executescript(SCHEMA)
    conn.close()
    return path


@pytest.fixture
def sqlite_file_options(sqlite_file_path):
    return DatabaseOptions(drivername='sqlite', database=str(sqlite_file_path))


@pytest.fixture
def sqlite_query(sqlite_file_path):
    """Run a query on a separate connection to the database file."""
    def query(sql, *args):
        conn = _connect(str(sqlite_file_path))
        try:
            return conn.execute(sql, args).fetchall()
        finally:
            conn.close()
    return query
