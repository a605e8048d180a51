"""
Generic data access objects.

This module provides:
1. `DAOBase`: connection source, pool and close policy shared by all DAOs
2. `DAO`: CRUD and filtered loads for one entity table
3. `CascadeContext`: what cascade hooks receive

A DAO subclass declares its table and columns and maps entities to
parameters and rows to entities:

    class TestDAO(DAO):
        table = 'Test'
        primary_col = 'testID'
        fields = 's, i, d, test2'
        primary_type = PrimaryType.INT
        entity_class = TestClass

        def parameters(self, entity):
            return ParameterList(entity.s, entity.i, entity.d, Parameter(entity.test2, SQLType.BIGINT))

        def fill(self, row, entity, loaded):
            entity.s = row.next_string()
            ...

Every operation borrows a pooled connection, runs its statement and
releases the connection in a ``finally`` path: invalidated after a driver
error or under `ClosePolicy.ALWAYS`, returned to the pool otherwise.
"""
import logging
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from daokit.cache import StatementKey
from daokit.connection import DataSource
from daokit.entity import DBObject, PrimaryType
from daokit.exceptions import DatabaseError, DriverError, EntryNotFoundError
from daokit.exceptions import IllegalStateError, UncheckedSQLError
from daokit.options import ClosePolicy, DatabaseOptions, PoolConfig
from daokit.parameter import Parameter, ParameterList
from daokit.pool import ConnectionPool, PooledConnection
from daokit.row import RowLoader, loaded_object_or_none
from daokit.sql import insert_placeholders, qualify_columns, split_fields
from daokit.sql import update_assignments
from daokit.strategy import get_db_strategy
from daokit.types import default_registry

if TYPE_CHECKING:
    from daokit.cursor import Statement
    from daokit.strategy import DatabaseType
    from daokit.types import ParameterTypeRegistry

logger = logging.getLogger(__name__)

__all__ = ['DAOBase', 'DAO', 'CascadeContext']

DTYPE_COLUMN = 'DType'


@dataclass
class CascadeContext:
    """State handed to cascade and after hooks of one CRUD call.

    - operation: 'insert', 'update' or 'delete'
    - dao: the DAO running the operation
    - changes: keys changed so far, returned to the caller
    - extras: caller-supplied values passed through untouched
    """
    operation: str
    dao: 'DAO'
    changes: dict[str, Any] = field(default_factory=dict)
    extras: tuple[Any, ...] = ()


class DAOBase:
    """Connection handling shared by entity and cross-table DAOs.

    `source` may be a `DataSource`, `DatabaseOptions`, an options mapping,
    a URL or an `Engine` (connections are opened as needed), another DAO
    (its source is shared, the pool is not) or a caller-owned DBAPI
    connection, which is never closed by the DAO.
    """

    table: str = None
    dtype: str | None = None
    close_policy: ClosePolicy = ClosePolicy.ALWAYS
    connection_class: type[PooledConnection] = PooledConnection

    def __init__(self, source: Any, *, registry: 'ParameterTypeRegistry | None' = None,
                 close_policy: ClosePolicy | None = None,
                 pool_config: PoolConfig | None = None) -> None:
        self.data_source: DataSource | None = None
        self.static_connection: Any = None
        if isinstance(source, DAOBase):
            self.data_source = source.data_source
            self.static_connection = source.static_connection
            if registry is None:
                registry = source.registry
        elif isinstance(source, DataSource):
            self.data_source = source
        elif isinstance(source, DatabaseOptions | Mapping | sa.URL | str | Engine):
            self.data_source = DataSource(source)
        else:
            self.static_connection = source

        self.strategy = get_db_strategy(self.data_source or self.static_connection)
        if self.static_connection is not None:
            self.strategy.register_type_adapters(self.static_connection)
        self.registry = registry if registry is not None else default_registry()
        if close_policy is not None:
            self.close_policy = close_policy
        self._pool_config = pool_config or PoolConfig()
        self.pool = self.create_connection_pool()

    def __repr__(self) -> str:
        return f'<{type(self).__name__} {self.table} {self.close_policy.name}>'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    def create_connection_pool(self) -> ConnectionPool:
        return ConnectionPool(self, self.connection_class)

    def pool_config(self) -> PoolConfig:
        """Pool sizing, re-read on every borrow and return."""
        return self._pool_config

    @property
    def database_type(self) -> 'DatabaseType':
        return self.strategy.database_type

    def should_close_always(self) -> bool:
        return self.close_policy is ClosePolicy.ALWAYS

    def try_connection(self) -> None:
        """Borrow and release one connection.

        Raises
            CouldNotConnectError: if no connection can be opened
        """
        with self._borrow():
            pass

    @contextmanager
    def _borrow(self) -> Iterator[PooledConnection]:
        """Borrow a connection for one operation.

        Driver errors are wrapped into `UncheckedSQLError` and leave the
        connection invalidated.
        """
        handle = self.pool.borrow()
        failed = False
        try:
            yield handle
        except DriverError as err:
            failed = True
            raise UncheckedSQLError(err) from err
        finally:
            self._release(handle, failed)

    def _release(self, handle: PooledConnection, failed: bool) -> None:
        if failed or self.should_close_always():
            self.pool.invalidate(handle)
        else:
            self.pool.return_connection(handle)

    def close(self) -> None:
        """Close pooled connections and cached statements.

        The DAO stays usable; the next operation starts a new pool.
        """
        logger.debug(f'Closing {type(self).__name__}')
        self.pool.close()
        self.pool = self.create_connection_pool()


class DAO(DAOBase):
    """CRUD for one entity table.

    Subclasses set `table`, `primary_col`, `fields` (non-key columns,
    comma separated, in the order `parameters()` returns them),
    `entity_class` (loaded entities are matched against it, also when
    `from_row()` is overridden), `primary_type` and optionally `dtype`, the
    discriminator value stored in the ``DType`` column when several entity
    classes share a table.

    Rows are selected as the primary key followed by `fields`; the key is
    read by the engine and `from_row()` receives a `RowLoader` positioned
    at the first non-key column.
    """

    primary_col: str = None
    fields: str = None
    primary_type: PrimaryType | type = int
    entity_class: type[DBObject] = None

    def __init__(self, source: Any, **kwargs: Any) -> None:
        if not self.table or not self.primary_col or self.fields is None or self.entity_class is None:
            raise IllegalStateError(
                f'{type(self).__name__} must declare table, primary_col, fields and entity_class')
        self.primary_type = PrimaryType.resolve(self.primary_type)
        super().__init__(source, **kwargs)
        self.fields_with_id = qualify_columns(f'{self.primary_col}, {self.fields}', self.table)

    # mapping

    def parameters(self, entity: DBObject) -> ParameterList:
        """Values of the non-key columns, in `fields` order."""
        raise NotImplementedError

    def from_row(self, row: RowLoader, loaded: Sequence[DBObject] = ()) -> DBObject:
        """Create an entity from the non-key columns of a row."""
        entity = self.entity_class()
        self.fill(row, entity, loaded)
        return entity

    def fill(self, row: RowLoader, entity: DBObject, loaded: Sequence[DBObject] = ()) -> None:
        """Read the non-key columns into `entity`."""
        raise NotImplementedError

    def get_primary(self, row: Sequence[Any] | RowLoader, position: int) -> int | float | None:
        """Primary key value at the 1-based `position` of a row."""
        if isinstance(row, RowLoader):
            row = row.row
        return self.primary_type.read(row[position - 1])

    @staticmethod
    def loaded_object_or_none(position: int, row: Sequence[Any], dao: 'DAO',
                              loaded: Sequence[DBObject] = ()) -> DBObject | None:
        return loaded_object_or_none(position, row, dao, loaded)

    def _materialize(self, row: Sequence[Any], loaded: Sequence[DBObject]) -> DBObject:
        loader = RowLoader(row, loaded=loaded)
        primary = self.primary_type.read(loader.next_value())
        entity = self.from_row(loader, loaded)
        if entity.primary is None:
            entity.primary = primary
        return entity

    # hooks

    def cascade_insert(self, entity: DBObject, context: CascadeContext) -> Mapping[str, Any] | None:
        """Called before the row is inserted."""

    def after_insert(self, entity: DBObject, context: CascadeContext) -> None:
        """Called after the row is inserted and the key assigned."""

    def cascade_update(self, entity: DBObject, context: CascadeContext) -> Mapping[str, Any] | None:
        """Called before the row is updated."""

    def after_update(self, entity: DBObject, context: CascadeContext) -> None:
        """Called after the row is updated."""

    def cascade_delete(self, entity: DBObject, context: CascadeContext) -> Mapping[str, Any] | None:
        """Called before the row is deleted."""

    def after_delete(self, entity: DBObject, context: CascadeContext) -> None:
        """Called after the row is deleted and the key cleared."""

    # statement helpers

    @property
    def _primary_key_name(self) -> str:
        return f'{self.table}.{self.primary_col}'

    def _bind_dtype(self, statement: 'Statement', position: int) -> int:
        if self.dtype is None:
            return position
        return Parameter(self.dtype).bind(statement, position)

    def _bind_select(self, statement: 'Statement', params: ParameterList | None) -> None:
        position = params.bind(statement, 1) if params is not None else 1
        self._bind_dtype(statement, position)

    def _select(self, select: str, join: str | None, where: str | None,
                params: ParameterList | None, limit: Any, order: str | None,
                cache_key: 'StatementKey | str | None') -> list[tuple]:
        with self._borrow() as conn:
            statement = conn.select_statement(select, join, where, limit, order, cache_key, params)
            self._bind_select(statement, params)
            return statement.execute_query()

    # CRUD

    def insert(self, entity: DBObject, *extras: Any) -> dict[str, Any]:
        """Insert a new row and assign the generated key to `entity`.

        Returns the changed keys: this table's key plus what the cascade
        hook reported.

        Raises
            IllegalStateError: if the entity already has a primary key
        """
        if entity.primary is not None:
            raise IllegalStateError(
                f'{type(entity).__name__} already has primary key {entity.primary}, cannot insert')
        context = CascadeContext('insert', self, extras=extras)
        cascaded = dict(self.cascade_insert(entity, context) or {})
        params = self.parameters(entity)

        columns = f'{DTYPE_COLUMN}, {self.fields}' if self.dtype is not None else self.fields
        sql = f'INSERT INTO {self.table} ({columns}) VALUES ({insert_placeholders(columns)})'
        key = StatementKey('insert', self.table, tuple(split_fields(columns)))
        with self._borrow() as conn:
            returning = self.primary_col if conn.database_type.returns_generated_keys else None
            statement = conn.statement(key, lambda: conn.prepare(sql, returning))
            params.bind(statement, self._bind_dtype(statement, 1))
            statement.execute_update()
            generated = statement.generated_key()
        if generated is None:
            raise DatabaseError(f'No generated key returned for insert into {self.table}')

        entity.primary = self.primary_type.read(generated[0])
        logger.debug(f'Inserted {self._primary_key_name}={entity.primary}')
        context.changes = {self._primary_key_name: entity.primary, **cascaded}
        self.after_insert(entity, context)
        return context.changes

    def update(self, entity: DBObject, *extras: Any) -> dict[str, Any]:
        """Write the entity's non-key columns to its row.

        Raises
            IllegalStateError: if the entity has no primary key
        """
        if entity.primary is None:
            raise IllegalStateError(f'{type(entity).__name__} has no primary key, cannot update')
        context = CascadeContext('update', self, extras=extras)
        context.changes = dict(self.cascade_update(entity, context) or {})
        params = self.parameters(entity)

        columns = f'{DTYPE_COLUMN}, {self.fields}' if self.dtype is not None else self.fields
        sql = f'UPDATE {self.table} SET {update_assignments(columns)} WHERE {self.primary_col}=?'
        key = StatementKey('update', self.table, tuple(split_fields(columns)))
        with self._borrow() as conn:
            statement = conn.statement(key, lambda: conn.prepare(sql))
            position = params.bind(statement, self._bind_dtype(statement, 1))
            Parameter(entity.primary).bind(statement, position)
            statement.execute_update()

        self.after_update(entity, context)
        return context.changes

    def delete(self, entity: DBObject, *extras: Any) -> dict[str, Any]:
        """Delete the entity's row and clear its primary key.

        Raises
            IllegalStateError: if the entity has no primary key
        """
        if entity.primary is None:
            raise IllegalStateError(f'{type(entity).__name__} has no primary key, cannot delete')
        context = CascadeContext('delete', self, extras=extras)
        cascaded = dict(self.cascade_delete(entity, context) or {})

        where = f'{self.primary_col}=?'
        if self.dtype is not None:
            where += f' AND {DTYPE_COLUMN}=?'
        sql = f'DELETE FROM {self.table} WHERE {where}'
        key = StatementKey('delete', self.table, (self.primary_col,))
        with self._borrow() as conn:
            statement = conn.statement(key, lambda: conn.prepare(sql))
            self._bind_dtype(statement, Parameter(entity.primary).bind(statement, 1))
            statement.execute_update()

        entity.primary = None
        context.changes = {self._primary_key_name: None, **cascaded}
        self.after_delete(entity, context)
        return context.changes

    def upsert(self, entity: DBObject, *extras: Any) -> dict[str, Any]:
        """Insert without primary key, update otherwise."""
        if entity.primary is None:
            return self.insert(entity, *extras)
        return self.update(entity, *extras)

    def load_from_id(self, primary: Any, loaded: Sequence[DBObject] = ()) -> DBObject:
        """Load the entity with the given primary key.

        Raises
            EntryNotFoundError: if there is no such row
        """
        return self.load_one_from_col(
            None, self._primary_key_name, primary,
            cache_key=StatementKey('load_from_id', self.table, (self.primary_col,)),
            loaded=loaded)

    def load_all(self, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self.load_all_from_where(cache_key=StatementKey('load_all', self.table),
                                        loaded=loaded)

    # finders

    def load_one_from_where(self, join: str | None = None, where: str | None = None,
                            params: ParameterList | None = None,
                            cache_key: 'StatementKey | str | None' = None,
                            loaded: Sequence[DBObject] = ()) -> DBObject:
        """First entity matching the filter.

        Raises
            EntryNotFoundError: if nothing matches
        """
        result = self.load_all_from_where(join, where, params, 1, None, cache_key, loaded)
        if not result:
            raise EntryNotFoundError()
        return result[0]

    def load_all_from_where(self, join: str | None = None, where: str | None = None,
                            params: ParameterList | None = None, limit: Any = None,
                            order: str | None = None,
                            cache_key: 'StatementKey | str | None' = None,
                            loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        """All entities matching the filter; an empty list when none do.

        `where` uses ``?`` markers in the order of `params`; a marker in a
        ``col=?`` term whose value is None also matches NULL.
        """
        rows = self._select(self.fields_with_id, join, where, params, limit, order, cache_key)
        return [self._materialize(row, loaded) for row in rows]

    def load_count_from_where(self, join: str | None = None, where: str | None = None,
                              params: ParameterList | None = None,
                              cache_key: 'StatementKey | str | None' = None) -> int:
        rows = self._select('count(*)', join, where, params, None, None, cache_key)
        if not rows:
            raise DatabaseError(f'SELECT count(*) on {self.table} returned no row')
        return int(rows[0][0])

    def load_one_from_col(self, join: str | None, col: str, value: Any,
                          cache_key: 'StatementKey | str | None' = None,
                          loaded: Sequence[DBObject] = ()) -> DBObject:
        """First entity whose `col` equals `value`.

        Raises
            EntryNotFoundError: carrying the column and value
        """
        result = self.load_all_from_col(join, col, value, 1, None, cache_key, loaded)
        if not result:
            raise EntryNotFoundError(col, value.value if isinstance(value, Parameter) else value)
        return result[0]

    def load_all_from_col(self, join: str | None, col: str, value: Any, limit: Any = None,
                          order: str | None = None,
                          cache_key: 'StatementKey | str | None' = None,
                          loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self.load_all_from_where(join, f'{col}=?', ParameterList(value), limit, order,
                                        cache_key, loaded)

    def load_count_from_col(self, join: str | None, col: str, value: Any,
                            cache_key: 'StatementKey | str | None' = None) -> int:
        return self.load_count_from_where(join, f'{col}=?', ParameterList(value), cache_key)

    def load_single_values(self, field: str, join: str | None = None, where: str | None = None,
                           params: ParameterList | None = None, limit: Any = None,
                           order: str | None = None,
                           cache_key: 'StatementKey | str | None' = None) -> list[str | None]:
        """Distinct values of one column, as strings."""
        rows = self._select(f'DISTINCT {field}', join, where, params, limit, order, cache_key)
        return [None if row[0] is None else str(row[0]) for row in rows]
