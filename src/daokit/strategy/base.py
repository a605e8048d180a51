"""
Base strategy interface for dialect-specific behaviour.

The DAO layer only needs a handful of things from a dialect: the product
name used for `DatabaseType` detection, the driver's placeholder marker,
how to switch a raw connection to auto-commit and how to tell whether a
raw connection is closed. Each concrete strategy registers itself for a
SQLAlchemy dialect name.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any

from daokit.sql import standardize_placeholders

if TYPE_CHECKING:
    from daokit.options import DatabaseOptions

logger = logging.getLogger(__name__)

# Registry of dialect name -> strategy class
# Defined here to avoid circular imports (concrete strategies import from base)
_STRATEGY_REGISTRY: dict[str, type['DatabaseStrategy']] = {}


def register_strategy(dialect: str):
    """Decorator to register a strategy class for a dialect.

    Usage:
        @register_strategy('postgresql')
        class PostgresStrategy(DatabaseStrategy):
            ...
    """
    def decorator(cls: type['DatabaseStrategy']) -> type['DatabaseStrategy']:
        _STRATEGY_REGISTRY[dialect] = cls
        return cls
    return decorator


class DatabaseType(Enum):
    """Database products recognised by their product-name prefix.

    Only two decisions hang off the product: whether a LIMIT fragment may
    be emitted and whether generated keys are read back through a
    returning-columns clause instead of ``cursor.lastrowid``.
    """
    MICROSOFT = 'Microsoft SQL Server'
    ORACLE = 'Oracle'
    POSTGRES = 'PostgreSQL'
    MYSQL = 'MySQL'
    HSQLDB = 'HSQL Database Engine'
    DB2 = 'DB2'
    H2 = 'H2'
    DERBY = 'Apache Derby'
    SQLITE = 'SQLite'
    UNKNOWN = None

    @property
    def identifier(self) -> str | None:
        return self.value

    @classmethod
    def from_identifier(cls, identifier: str | None) -> 'DatabaseType':
        """Match a product name against the known prefixes.
        """
        if identifier:
            for database_type in cls:
                if database_type.value is None:
                    continue
                if identifier.startswith(database_type.value):
                    return database_type
        return cls.UNKNOWN

    @property
    def supports_limit(self) -> bool:
        """Oracle has no LIMIT clause; callers must use ROWNUM instead.
        """
        return self is not DatabaseType.ORACLE

    @property
    def returns_generated_keys(self) -> bool:
        """Generated keys come back as a result row of the INSERT itself.
        """
        return self in {DatabaseType.ORACLE, DatabaseType.POSTGRES}


class DatabaseStrategy(ABC):
    """Base class for dialect-specific operations.
    """

    @property
    @abstractmethod
    def dialect_name(self) -> str:
        """SQLAlchemy dialect name this strategy serves."""

    @property
    @abstractmethod
    def product_name(self) -> str:
        """Database product name as reported by the server."""

    @property
    def database_type(self) -> DatabaseType:
        return DatabaseType.from_identifier(self.product_name)

    def get_engine_kwargs(self, options: 'DatabaseOptions | None') -> dict[str, Any]:
        """Return SQLAlchemy create_engine kwargs for this dialect.
        """
        return {}

    @abstractmethod
    def enable_autocommit(self, raw_conn: Any) -> None:
        """Put a raw DBAPI connection into auto-commit mode.
        """

    def register_type_adapters(self, connection: Any) -> None:
        """Register dialect-specific type adapters for a new connection.
        """

    def is_closed(self, raw_conn: Any) -> bool:
        """Whether the raw connection reports itself closed.
        """
        return bool(getattr(raw_conn, 'closed', False))

    def get_placeholder_style(self) -> str:
        """Return the placeholder marker for this database.

        Returns
            str: '%s' for format-style drivers, '?' for qmark drivers
        """
        return '%s'

    def standardize_sql(self, sql: str) -> str:
        """Convert ``?`` markers to this dialect's placeholder style.
        """
        return standardize_placeholders(sql, self.get_placeholder_style())

    @classmethod
    def get_required_options(cls) -> list[str]:
        """Return list of required option field names for this dialect.
        """
        return ['database']

    @classmethod
    def validate_options(cls, options: 'DatabaseOptions') -> None:
        """Validate options for this dialect.

        Raises
            ValueError: If any required field is None or 0
        """
        for field in cls.get_required_options():
            if not getattr(options, field):
                raise ValueError(f'field {field} cannot be None or 0')
