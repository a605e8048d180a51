"""
PostgreSQL-specific strategy implementation.

psycopg uses ``%s`` markers, exposes ``closed`` and ``autocommit`` on the
connection and supports ``RETURNING`` for generated keys.
"""
import logging
from typing import TYPE_CHECKING, Any

from daokit.strategy.base import DatabaseStrategy, register_strategy

if TYPE_CHECKING:
    from daokit.options import DatabaseOptions

logger = logging.getLogger(__name__)


@register_strategy('postgresql')
class PostgresStrategy(DatabaseStrategy):
    """PostgreSQL-specific operations.
    """

    @property
    def dialect_name(self) -> str:
        """Return the dialect identifier for PostgreSQL."""
        return 'postgresql'

    @property
    def product_name(self) -> str:
        return 'PostgreSQL'

    def get_engine_kwargs(self, options: 'DatabaseOptions | None') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for PostgreSQL."""
        if options is not None and options.appname:
            return {'connect_args': {'application_name': options.appname}}
        return {}

    def enable_autocommit(self, raw_conn: Any) -> None:
        """Enable auto-commit mode for a psycopg connection.
        """
        raw_conn.autocommit = True

    def is_closed(self, raw_conn: Any) -> bool:
        return bool(raw_conn.closed)

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return required options for PostgreSQL connections."""
        return ['hostname', 'username', 'password', 'database', 'port']
