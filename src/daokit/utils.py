"""Low-level connection utilities with no internal dependencies.

These helpers work with SQLAlchemy engines and dialects, pool proxies and
raw DBAPI connections, and import nothing from other daokit modules.
"""
import logging
from typing import Any

logger = logging.getLogger(__name__)

__all__ = ['get_dialect_name', 'get_raw_connection']


def get_dialect_name(obj: Any) -> str:
    """Get dialect name for a database connection, engine or dialect.
    """
    if hasattr(obj, 'dialect_name'):
        return str(obj.dialect_name).lower()

    if hasattr(obj, 'dialect'):
        dialect = obj.dialect
        if isinstance(dialect, str):
            return dialect.lower()
        return str(dialect.name).lower()

    if hasattr(obj, 'dbapi_connection'):
        return get_dialect_name(obj.dbapi_connection)

    if hasattr(obj, 'wrapped'):
        return get_dialect_name(obj.wrapped)

    if hasattr(obj, 'name') and hasattr(obj, 'paramstyle'):
        return str(obj.name).lower()

    type_name = f'{type(obj).__module__}.{type(obj).__name__}'
    if 'psycopg' in type_name:
        return 'postgresql'
    if 'sqlite3' in type_name:
        return 'sqlite'

    raise AttributeError(f'Cannot determine dialect for {type(obj)}')


def get_raw_connection(connection: Any) -> Any:
    """Extract the raw DBAPI connection from a pool proxy or wrapper.
    """
    raw_conn = connection
    if hasattr(raw_conn, 'dbapi_connection'):
        raw_conn = raw_conn.dbapi_connection
    if hasattr(raw_conn, 'wrapped'):
        raw_conn = raw_conn.wrapped
    return raw_conn
