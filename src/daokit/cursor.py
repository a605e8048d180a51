"""
Prepared statement wrapper over a DBAPI cursor.

DBAPI has no prepared-statement object, so `Statement` keeps the SQL text,
a dedicated cursor and a positional (1-based) parameter buffer. Drivers
cache the parsed statement themselves (sqlite3 per connection, psycopg by
preparing repeated queries), which makes reusing a `Statement` cheap.
"""
import logging
import time
from collections.abc import Sequence
from functools import wraps
from typing import TYPE_CHECKING, Any, Self

from daokit.exceptions import DriverError, IllegalStateError
from daokit.sql import count_placeholders
from daokit.types import SQLType

if TYPE_CHECKING:
    from daokit.pool import PooledConnection
    from daokit.types import ParameterTypeRegistry

logger = logging.getLogger(__name__)

__all__ = ['Statement', 'dumpsql']


def dumpsql(func):
    """Decorator for logging statement SQL, arguments and timing."""
    @wraps(func)
    def wrapper(self: 'Statement', *args: Any, **kwargs: Any):
        start = time.time()
        arguments = self.arguments()
        logger.debug(f'SQL:\n{self.sql}\nargs: {arguments}')
        try:
            return func(self, arguments, *args, **kwargs)
        except Exception:
            logger.error(f'Error with query:\nSQL:\n{self.sql}\nargs: {arguments}')
            raise
        finally:
            elapsed = time.time() - start
            self.connection.addcall(elapsed)
            logger.debug(f'Query time: {elapsed:.4f}s')
    return wrapper


class Statement:
    """A reusable parameterised statement bound to one pooled connection.

    `returning` names the key column read back after an INSERT on products
    that return generated keys as a result row.
    """

    def __init__(self, connection: 'PooledConnection', sql: str,
                 returning: str | None = None) -> None:
        self.connection = connection
        self.returning = returning
        self.sql = f'{sql} RETURNING {returning}' if returning else sql
        self.native_sql = connection.strategy.standardize_sql(self.sql)
        self.placeholders = count_placeholders(self.sql)
        self._values: dict[int, Any] = {}
        self._null_types: dict[int, SQLType | int] = {}
        self._generated: list[tuple] = []
        self._cursor = connection.dbapi_connection.cursor()
        self._closed = False

    def __repr__(self) -> str:
        state = 'closed' if self._closed else 'open'
        return f'<Statement {state} {self.sql!r}>'

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None,
                 exc_tb: Any | None) -> None:
        self.close()

    @property
    def registry(self) -> 'ParameterTypeRegistry':
        """Parameter adapters of the owning DAO."""
        return self.connection.registry

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_position(self, position: int) -> None:
        if self._closed:
            raise IllegalStateError(f'Statement is closed: {self.sql}')
        if not 1 <= position <= self.placeholders:
            raise IndexError(
                f'Parameter position {position} out of range 1..{self.placeholders} for: {self.sql}')

    def set_value(self, position: int, value: Any) -> None:
        """Bind a driver-ready value at the 1-based `position`."""
        self._check_position(position)
        self._values[position] = value
        self._null_types.pop(position, None)

    def set_null(self, position: int, sql_type: SQLType | int) -> None:
        """Bind a typed NULL at the 1-based `position`."""
        self._check_position(position)
        self._values[position] = None
        self._null_types[position] = sql_type

    def clear_parameters(self) -> None:
        self._values.clear()
        self._null_types.clear()

    def arguments(self) -> tuple:
        """Bound values in marker order.

        Raises
            IllegalStateError: if a marker has no bound value
        """
        missing = [p for p in range(1, self.placeholders + 1) if p not in self._values]
        if missing:
            raise IllegalStateError(f'No value bound for parameter(s) {missing}: {self.sql}')
        return tuple(self._values[p] for p in range(1, self.placeholders + 1))

    def _execute(self, arguments: Sequence[Any]) -> None:
        if self._closed:
            raise IllegalStateError(f'Statement is closed: {self.sql}')
        self._cursor.execute(self.native_sql, tuple(arguments))

    @dumpsql
    def execute_query(self, arguments: Sequence[Any]) -> list[tuple]:
        """Run a SELECT and fetch all rows."""
        self._execute(arguments)
        return [tuple(row) for row in self._cursor.fetchall()]

    @dumpsql
    def execute_update(self, arguments: Sequence[Any]) -> int:
        """Run INSERT/UPDATE/DELETE and return the affected row count.

        Generated keys are captured for `generated_key()`.
        """
        self._execute(arguments)
        if self.returning:
            self._generated = [tuple(row) for row in self._cursor.fetchall()]
        else:
            lastrowid = getattr(self._cursor, 'lastrowid', None)
            self._generated = [(lastrowid,)] if lastrowid is not None else []
        return self._cursor.rowcount

    def generated_key(self) -> tuple | None:
        """First generated-key row of the last update, or None."""
        return self._generated[0] if self._generated else None

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._cursor.close()
        except DriverError as err:
            logger.debug(f'Error closing statement cursor: {err}')
