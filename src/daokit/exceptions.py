"""
DAO-specific exception classes.

Every error raised by the library derives from `DatabaseError`, so callers
can catch a single family at the boundary of their unit of work. Driver
failures are wrapped into `UncheckedSQLError` with the original exception
kept as ``__cause__``.
"""
import sqlite3

import psycopg

__all__ = [
    'DatabaseError',
    'UncheckedSQLError',
    'CouldNotConnectError',
    'PoolTimeoutError',
    'EntryNotFoundError',
    'IllegalStateError',
    'UnsupportedValueError',
    'UnsupportedPrimaryError',
    'NoNullTypeError',
    'ValidationError',
    'DbConnectionError',
    'DriverError',
]


class DatabaseError(Exception):
    """Base class for all daokit errors.
    """


class UncheckedSQLError(DatabaseError):
    """Driver-level failure wrapped into the library's error family.
    """

    def __init__(self, cause: BaseException, message: str | None = None) -> None:
        self.cause = cause
        super().__init__(message or f'{type(cause).__name__}: {cause}')


class CouldNotConnectError(UncheckedSQLError):
    """A physical connection could not be created for the pool.
    """

    def __init__(self, cause: BaseException) -> None:
        super().__init__(cause, f'Could not connect due to: {cause}')


class PoolTimeoutError(UncheckedSQLError):
    """No pooled connection became available within the borrow wait time.
    """


class EntryNotFoundError(DatabaseError, LookupError):
    """A single-row load matched no rows.
    """

    def __init__(self, column: str | None = None, value: object = None) -> None:
        self.column = column
        self.value = value
        if column is None:
            super().__init__('Entry not found')
        else:
            super().__init__(f'Entry with {column}={value} not found')


class IllegalStateError(DatabaseError):
    """Operation precondition violated (caller logic error).
    """


class UnsupportedValueError(DatabaseError, TypeError):
    """No registered parameter type accepts the value's class.
    """

    def __init__(self, value_type: type) -> None:
        self.value_type = value_type
        name = f'{value_type.__module__}.{value_type.__qualname__}'
        super().__init__(f'Class {name} is not supported as a parameter value')


class UnsupportedPrimaryError(DatabaseError, TypeError):
    """Primary-key type outside the supported numeric types.
    """

    def __init__(self, type_name: str) -> None:
        self.type_name = type_name
        super().__init__(f'Column type {type_name} is not supported as primary key')


class NoNullTypeError(DatabaseError, ValueError):
    """A NULL value was bound without an explicit SQL type.
    """

    def __init__(self, sql: str, position: int, column: str = 'unknown') -> None:
        self.sql = sql
        self.position = position
        self.column = column
        super().__init__(
            f'NULL value passed at position {position} [{column}] without a SQL type\n'
            f'(problem SQL) {sql}')


class ValidationError(DatabaseError, ValueError):
    """Invalid configuration or input.
    """


DbConnectionError = (
    psycopg.OperationalError,
    psycopg.InterfaceError,
    sqlite3.OperationalError,
    sqlite3.InterfaceError,
    )

DriverError = (
    psycopg.Error,
    sqlite3.Error,
    )
