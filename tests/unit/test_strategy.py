"""Unit tests for dialect strategies and database product detection.
"""
import sqlite3

import pytest
import sqlalchemy as sa
from daokit import DatabaseType
from daokit.strategy import PostgresStrategy, SQLiteStrategy, get_db_strategy
from daokit.strategy import get_strategy
from daokit.utils import get_dialect_name, get_raw_connection


class TestDatabaseType:
    """Test product name matching and per-product behaviour."""

    @pytest.mark.parametrize(('name', 'expected'), [
        ('PostgreSQL', DatabaseType.POSTGRES),
        ('Microsoft SQL Server 2019', DatabaseType.MICROSOFT),
        ('Oracle Database 19c', DatabaseType.ORACLE),
        ('MySQL', DatabaseType.MYSQL),
        ('HSQL Database Engine', DatabaseType.HSQLDB),
        ('DB2/LINUXX8664', DatabaseType.DB2),
        ('H2', DatabaseType.H2),
        ('Apache Derby', DatabaseType.DERBY),
        ('SQLite', DatabaseType.SQLITE),
        ('Informix', DatabaseType.UNKNOWN),
        (None, DatabaseType.UNKNOWN),
        ('', DatabaseType.UNKNOWN),
    ])
    def test_from_identifier(self, name, expected):
        assert DatabaseType.from_identifier(name) is expected

    def test_only_oracle_lacks_limit(self):
        assert not DatabaseType.ORACLE.supports_limit
        assert all(t.supports_limit for t in DatabaseType if t is not DatabaseType.ORACLE)

    def test_returning_products(self):
        returning = {t for t in DatabaseType if t.returns_generated_keys}
        assert returning == {DatabaseType.ORACLE, DatabaseType.POSTGRES}


class TestStrategyLookup:
    """Test strategy lookup from names, connections and engines."""

    def test_by_name_is_cached(self):
        assert get_strategy('sqlite') is get_strategy('sqlite')
        assert isinstance(get_strategy('postgresql'), PostgresStrategy)

    def test_unknown_dialect(self):
        with pytest.raises(ValueError, match='Unsupported dialect'):
            get_strategy('mssql')

    def test_from_mock_connections(self, create_simple_mock_connection):
        assert isinstance(get_db_strategy(create_simple_mock_connection('postgresql')), PostgresStrategy)
        assert isinstance(get_db_strategy(create_simple_mock_connection('sqlite')), SQLiteStrategy)
        with pytest.raises(AttributeError):
            get_dialect_name(create_simple_mock_connection('unknown'))

    def test_from_engine(self):
        engine = sa.create_engine('sqlite://')
        try:
            assert get_dialect_name(engine) == 'sqlite'
        finally:
            engine.dispose()

    def test_database_types(self):
        assert get_strategy('sqlite').database_type is DatabaseType.SQLITE
        assert get_strategy('postgresql').database_type is DatabaseType.POSTGRES


class TestSQLiteStrategy:

    def test_placeholders_unchanged(self):
        sql = 'SELECT * FROM t WHERE a=?'
        assert get_strategy('sqlite').standardize_sql(sql) == sql

    def test_is_closed(self):
        conn = sqlite3.connect(':memory:')
        strategy = get_strategy('sqlite')
        assert not strategy.is_closed(conn)
        conn.close()
        assert strategy.is_closed(conn)

    def test_enable_autocommit(self):
        conn = sqlite3.connect(':memory:')
        try:
            get_strategy('sqlite').enable_autocommit(conn)
            assert conn.isolation_level is None
        finally:
            conn.close()


class TestPostgresStrategy:

    def test_placeholders_converted(self):
        sql = 'UPDATE t SET a=? WHERE b=?'
        assert get_strategy('postgresql').standardize_sql(sql) == 'UPDATE t SET a=%s WHERE b=%s'

    def test_is_closed(self, create_simple_mock_connection):
        conn = create_simple_mock_connection('postgresql')
        strategy = get_strategy('postgresql')
        assert not strategy.is_closed(conn)
        conn.closed = True
        assert strategy.is_closed(conn)


def test_raw_connection_unwrapped():
    class Proxy:
        def __init__(self, wrapped):
            self.wrapped = wrapped

    conn = sqlite3.connect(':memory:')
    try:
        assert get_raw_connection(Proxy(conn)) is conn
        assert get_raw_connection(conn) is conn
    finally:
        conn.close()
