"""
SQLite-specific strategy implementation.

SQLite uses ``?`` markers natively, reports a closed connection only by
raising on use, and needs ``isolation_level=None`` to run every statement
in auto-commit mode.
"""
import datetime
import logging
import sqlite3
from typing import TYPE_CHECKING, Any

import dateutil.parser

from daokit.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from daokit.options import DatabaseOptions

logger = logging.getLogger(__name__)


def convert_date(value: bytes) -> datetime.date:
    """Read a stored ISO date."""
    return dateutil.parser.isoparse(value.decode()).date()


def convert_datetime(value: bytes) -> datetime.datetime:
    """Read a stored ISO timestamp (space or T separated)."""
    return dateutil.parser.isoparse(value.decode())


def adapt_datetime(value: datetime.datetime) -> str:
    return value.isoformat(sep=' ')


def adapt_date(value: datetime.date) -> str:
    return value.isoformat()


@register_strategy('sqlite')
class SQLiteStrategy(DatabaseStrategy):
    """SQLite-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for SQLite."""
        return 'sqlite'

    @property
    def product_name(self) -> str:
        return 'SQLite'

    def get_engine_kwargs(self, options: 'DatabaseOptions | None') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for SQLite.

        Pooled connections may be handed to another thread on the next
        borrow, so the same-thread check is disabled.
        """
        return {
            'connect_args': {
                'detect_types': sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
                'check_same_thread': False,
            }
        }

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for SQLite.
        """
        raw_conn.isolation_level = None

    def is_closed(self, raw_conn: Any) -> bool:
        """sqlite3 has no ``closed`` flag; any access raises once closed.
        """
        try:
            raw_conn.total_changes
        except sqlite3.ProgrammingError:
            return True
        return False

    def get_placeholder_style(self) -> str:
        """Return SQLite's placeholder marker.
        """
        return '?'

    def register_type_adapters(self, connection: Any) -> None:
        """Register date adapters and converters for SQLite.

        The registration is process-wide in sqlite3; converters only apply
        to connections opened with ``detect_types``.
        """
        sqlite3.register_adapter(datetime.datetime, adapt_datetime)
        sqlite3.register_adapter(datetime.date, adapt_date)
        sqlite3.register_converter('date', convert_date)
        sqlite3.register_converter('datetime', convert_datetime)
        sqlite3.register_converter('timestamp', convert_datetime)
