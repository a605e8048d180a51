"""Unit tests for reading generated keys back after an INSERT.
"""
from types import SimpleNamespace
from unittest.mock import Mock

import pytest
from daokit import DatabaseError, DatabaseType, PooledConnection, default_registry
from daokit.cursor import Statement
from daokit.strategy import get_strategy
from tests.fixtures.entities import Sample, SampleDAO


def _handle(dialect='postgresql'):
    strategy = get_strategy(dialect)
    dao = SimpleNamespace(
        table='Test',
        strategy=strategy,
        registry=default_registry(),
        database_type=strategy.database_type,
        should_close_always=lambda: True,
        )
    proxied = Mock()
    proxied.info = {}
    return PooledConnection(proxied, dao)


def _cursor(handle):
    return handle.dbapi_connection.cursor.return_value


class TestReturningStatement:
    """Test the returning-columns path used by PostgreSQL."""

    def test_sql_composition(self):
        statement = Statement(_handle(), 'INSERT INTO Test (s) VALUES (?)', 'testID')
        assert statement.sql == 'INSERT INTO Test (s) VALUES (?) RETURNING testID'
        assert statement.native_sql == 'INSERT INTO Test (s) VALUES (%s) RETURNING testID'
        assert statement.placeholders == 1

    def test_key_read_from_result_rows(self):
        handle = _handle()
        cursor = _cursor(handle)
        cursor.fetchall.return_value = [(7,)]
        cursor.rowcount = 1

        statement = Statement(handle, 'INSERT INTO Test (s) VALUES (?)', 'testID')
        statement.set_value(1, 'x')
        assert statement.execute_update() == 1
        assert statement.generated_key() == (7,)
        cursor.execute.assert_called_once_with(statement.native_sql, ('x',))
        assert handle.calls == 1

    def test_no_result_rows(self):
        handle = _handle()
        _cursor(handle).fetchall.return_value = []
        statement = Statement(handle, 'INSERT INTO Test (s) VALUES (?)', 'testID')
        statement.set_value(1, 'x')
        statement.execute_update()
        assert statement.generated_key() is None


class TestLastRowId:
    """Test the cursor.lastrowid path used without returning columns."""

    @pytest.mark.parametrize(('lastrowid', 'expected'), [
        (5, (5,)),
        (0, (0,)),
        (None, None),
    ])
    def test_lastrowid(self, lastrowid, expected):
        handle = _handle('sqlite')
        _cursor(handle).lastrowid = lastrowid
        statement = Statement(handle, 'INSERT INTO Test (s) VALUES (?)')
        statement.set_value(1, 'x')
        statement.execute_update()
        assert statement.generated_key() == expected
        _cursor(handle).fetchall.assert_not_called()


class TestInsertReturning:
    """Test DAO.insert on a product that returns generated keys."""

    def _dao(self, create_simple_mock_connection, rows):
        dao = SampleDAO(create_simple_mock_connection('postgresql'))
        assert dao.database_type is DatabaseType.POSTGRES
        handle = PooledConnection(Mock(info={}), dao)
        _cursor(handle).fetchall.return_value = rows
        dao.pool = Mock()
        dao.pool.borrow.return_value = handle
        return dao, handle

    def test_insert_assigns_returned_key(self, create_simple_mock_connection):
        dao, handle = self._dao(create_simple_mock_connection, [(42,)])
        sample = Sample(s='x', i=1)
        assert dao.insert(sample) == {'Test.testID': 42}
        assert sample.primary == 42

        sql, arguments = _cursor(handle).execute.call_args[0]
        assert sql.startswith('INSERT INTO Test (s, i, d, test2) VALUES (%s')
        assert sql.endswith(' RETURNING testID')
        assert arguments == ('x', 1, None, None)
        dao.pool.invalidate.assert_called_once_with(handle)

    def test_insert_without_returned_key(self, create_simple_mock_connection):
        dao, _ = self._dao(create_simple_mock_connection, [])
        sample = Sample(s='x', i=1)
        with pytest.raises(DatabaseError, match='No generated key'):
            dao.insert(sample)
        assert sample.primary is None
