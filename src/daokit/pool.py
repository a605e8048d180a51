"""
Connection pooling with per-connection statement caches.

This module provides:
1. `ConnectionPool`: borrow/return/invalidate over a SQLAlchemy `QueuePool`
2. `PooledConnection`: exclusive handle on one pooled connection, owning the
   statement cache and the SELECT composition

The pool is sized from the owning DAO's `pool_config()`, re-read on every
borrow and return. Statement caches live in the pool entry's ``info``
dictionary, so they survive returns and are closed together with the
physical connection.
"""
import dataclasses
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.pool import QueuePool

from daokit.cache import StatementCache, StatementKey
from daokit.cursor import Statement
from daokit.exceptions import CouldNotConnectError, DriverError, IllegalStateError
from daokit.exceptions import PoolTimeoutError
from daokit.sql import nullable_where
from daokit.utils import get_raw_connection

if TYPE_CHECKING:
    from daokit.dao import DAOBase
    from daokit.options import PoolConfig
    from daokit.parameter import ParameterList
    from daokit.strategy import DatabaseType

logger = logging.getLogger(__name__)

__all__ = ['ConnectionPool', 'PooledConnection']

STATEMENTS_KEY = 'daokit.statements'


class _ConnectionProxy:
    """Caller-owned connection handed to the pool.

    Closing the proxy leaves the wrapped connection open, so pool teardown
    never closes a connection the DAO did not create.
    """

    def __init__(self, wrapped: Any) -> None:
        self.wrapped = wrapped

    def close(self) -> None:
        logger.debug('Static connection released by pool, left open')

    def __getattr__(self, name: str) -> Any:
        return getattr(self.wrapped, name)


def _null_mask(params: 'ParameterList | None') -> str:
    if params is None:
        return ''
    return ''.join('N' if p.value is None else 'v' for p in params)


class PooledConnection:
    """Exclusive handle on a pooled connection.

    Wraps the pool's proxied connection for the duration of one borrow and
    builds, caches and tracks the statements executed through it.
    """

    def __init__(self, proxied: Any, dao: 'DAOBase', pool: QueuePool | None = None) -> None:
        self.proxied = proxied
        self.pool = pool
        self.dao = dao
        self.dbapi_connection = get_raw_connection(proxied)
        self.strategy = dao.strategy
        self.registry = dao.registry
        self.calls = 0
        self.time = 0
        self._transient: list[Statement] = []

    def __repr__(self) -> str:
        return f'<PooledConnection {self.dao.table} calls={self.calls}>'

    def addcall(self, elapsed: float) -> None:
        """Track execution statistics
        """
        self.time += elapsed
        self.calls += 1

    @property
    def database_type(self) -> 'DatabaseType':
        return self.dao.database_type

    @property
    def statements(self) -> StatementCache:
        """Statement cache of the underlying pool entry."""
        cache = self.proxied.info.get(STATEMENTS_KEY)
        if cache is None:
            cache = self.proxied.info[STATEMENTS_KEY] = StatementCache()
        return cache

    def prepare(self, sql: str, returning: str | None = None) -> Statement:
        return Statement(self, sql, returning)

    def statement(self, key: 'StatementKey | None',
                  build: Callable[[], Statement]) -> Statement:
        """Return the cached statement for `key`, building it when needed.

        Nothing is cached without a key or when the DAO closes connections
        after every call; such statements are closed on release.
        """
        if key is None or self.dao.should_close_always():
            statement = build()
            self._transient.append(statement)
            return statement

        cache = self.statements
        statement = cache.get(key)
        if statement is None or statement.closed:
            statement = build()
            cache[key] = statement
            logger.debug(f'Cached statement {key}')
        else:
            statement.connection = self
            statement.clear_parameters()
        return statement

    def build_select(self, select: str, join: str | None = None, where: str | None = None,
                     limit: Any = None, order: str | None = None,
                     params: 'ParameterList | None' = None) -> str:
        """Compose ``SELECT .. FROM table [JOIN] [WHERE] [ORDER BY] [LIMIT]``.

        A discriminator adds ``DType=?`` to the WHERE clause; its value is
        bound after `params`. Products without LIMIT get no limit fragment.
        """
        dtype = getattr(self.dao, 'dtype', None)
        sql = f'SELECT {select} FROM {self.dao.table}'
        if join and join.strip():
            sql += f' {join}' if 'JOIN' in join.upper() else f' JOIN {join}'
        if where and where.strip():
            where = nullable_where(where, params)
            sql += f' WHERE ({where}) AND DType=?' if dtype is not None else f' WHERE {where}'
        elif dtype is not None:
            sql += ' WHERE DType=?'
        if order and order.strip():
            sql += f' ORDER BY {order}'
        if limit is not None and str(limit).strip():
            if self.database_type.supports_limit:
                sql += f' LIMIT {limit}'
            else:
                logger.debug(f'{self.database_type.name} has no LIMIT, dropped LIMIT {limit}')
        return sql

    def select_statement(self, select: str, join: str | None = None, where: str | None = None,
                         limit: Any = None, order: str | None = None,
                         cache_key: 'StatementKey | str | None' = None,
                         params: 'ParameterList | None' = None) -> Statement:
        """Build or reuse a SELECT statement.

        A cache key must always describe the same SQL shape; the NULL
        pattern of `params` is added to the key because it changes the
        generated WHERE clause.
        """
        key = StatementKey.of(cache_key, self.dao.table)
        if key is not None and where:
            mask = _null_mask(params)
            if 'N' in mask:
                key = dataclasses.replace(key, shape=f'{key.shape}|{mask}')

        def build() -> Statement:
            return self.prepare(self.build_select(select, join, where, limit, order, params))

        return self.statement(key, build)

    def close_transient(self) -> None:
        """Close statements that were not cached."""
        for statement in self._transient:
            statement.close()
        self._transient.clear()


class ConnectionPool:
    """Pool of connections for one DAO.

    Connections come from the DAO's data source, or wrap its static
    connection. A checked-out connection that reports itself closed is
    evicted and replaced before it is handed out.
    """

    def __init__(self, dao: 'DAOBase', connection_class: type[PooledConnection] = PooledConnection) -> None:
        self.dao = dao
        self.connection_class = connection_class
        self._lock = threading.RLock()
        self._pool: QueuePool | None = None
        self._config: 'PoolConfig | None' = None

    def __repr__(self) -> str:
        return f'<ConnectionPool {self.dao.table} {self.status()}>'

    def _create(self) -> Any:
        if self.dao.static_connection is not None:
            return _ConnectionProxy(self.dao.static_connection)
        if self.dao.data_source is None:
            raise IllegalStateError('DAO has neither a data source nor a static connection')
        return self.dao.data_source.connect()

    def _validate(self, dbapi_connection: Any, connection_record: Any, connection_proxy: Any) -> None:
        if self.dao.strategy.is_closed(dbapi_connection):
            logger.debug('Evicting closed pooled connection')
            raise sa.exc.DisconnectionError('Pooled connection is closed')

    def _close_statements(self, dbapi_connection: Any, connection_record: Any) -> None:
        statements = connection_record.info.pop(STATEMENTS_KEY, None)
        if statements is not None:
            statements.close_all()

    def _build(self, config: 'PoolConfig') -> QueuePool:
        pool = QueuePool(
            self._create,
            pool_size=config.max_idle,
            max_overflow=config.max_overflow,
            timeout=config.max_wait,
            reset_on_return=None,
            )
        event.listen(pool, 'checkout', self._validate)
        event.listen(pool, 'close', self._close_statements)
        logger.debug(f'Created pool for {self.dao.table}: {config}')
        return pool

    def _prefill(self, pool: QueuePool, count: int) -> None:
        opened = [pool.connect() for _ in range(count)]
        for proxied in opened:
            proxied.close()

    def _apply_config(self) -> QueuePool:
        """Return the current pool, rebuilt when the DAO's config changed."""
        config = self.dao.pool_config()
        with self._lock:
            if self._pool is None or config != self._config:
                previous = self._pool
                self._pool = self._build(config)
                self._config = config
                if previous is not None:
                    previous.dispose()
                    logger.info(f'Pool for {self.dao.table} rebuilt with {config}')
                if config.min_idle:
                    self._prefill(self._pool, config.min_idle)
            return self._pool

    def borrow(self) -> PooledConnection:
        """Check out a connection for exclusive use.

        Raises
            PoolTimeoutError: no connection became available within max_wait
            CouldNotConnectError: a new connection could not be opened
        """
        try:
            pool = self._apply_config()
            proxied = pool.connect()
        except sa.exc.TimeoutError as err:
            raise PoolTimeoutError(
                err, f'No connection available within {self._config.max_wait}s') from err
        except (*DriverError, sa.exc.SQLAlchemyError) as err:
            raise CouldNotConnectError(err) from err
        return self.connection_class(proxied, self.dao, pool)

    def return_connection(self, handle: PooledConnection) -> None:
        """Make the connection available again, statement cache intact.

        Handles from a pool replaced in the meantime are invalidated.
        """
        handle.close_transient()
        pool = self._apply_config()
        if handle.pool is not pool:
            handle.proxied.invalidate()
            return
        handle.proxied.close()

    def invalidate(self, handle: PooledConnection) -> None:
        """Destroy the connection and its statements."""
        handle.close_transient()
        handle.proxied.invalidate()
        logger.debug(f'Invalidated connection of {self.dao.table}')
        self._apply_config()

    def status(self) -> str:
        with self._lock:
            if self._pool is None:
                return 'Pool not created'
            return self._pool.status()

    def close(self) -> None:
        """Dispose idle connections; the next borrow builds a new pool."""
        with self._lock:
            if self._pool is not None:
                self._pool.dispose()
                logger.debug(f'Closed pool for {self.dao.table}')
            self._pool = None
            self._config = None
