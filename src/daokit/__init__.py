"""
Generic data access objects for PostgreSQL and SQLite.

Entity classes derive from `DBObject`; one `DAO` subclass per entity
declares the table and maps entities to parameters and rows to entities,
and gets CRUD, filtered loads and counts in return. `CrossTable2DAO` and
`CrossTable3DAO` load many-to-many and ternary links, `PaginationDAO`
adds offset and keyset pages.
"""
__version__ = '0.1.0'

from daokit.cache import StatementCache, StatementKey
from daokit.connection import DataSource, dispose_all_engines
from daokit.cross import CrossTable2DAO, CrossTable3DAO, CrossTableDAO
from daokit.cross import Relation2, Relation3
from daokit.dao import DAO, CascadeContext, DAOBase
from daokit.entity import Convertible, DBColumn, DBEnum, DBObject, PrimaryType
from daokit.exceptions import CouldNotConnectError, DatabaseError, DbConnectionError
from daokit.exceptions import DriverError, EntryNotFoundError, IllegalStateError
from daokit.exceptions import NoNullTypeError, PoolTimeoutError, UncheckedSQLError
from daokit.exceptions import UnsupportedPrimaryError, UnsupportedValueError
from daokit.exceptions import ValidationError
from daokit.options import ClosePolicy, DatabaseOptions, PoolConfig
from daokit.pagination import KeysetReader, PageReader, PaginationDAO
from daokit.parameter import Parameter, ParameterList
from daokit.pool import ConnectionPool, PooledConnection
from daokit.row import RowLoader
from daokit.strategy import DatabaseType
from daokit.types import BasicParameterType, NumpyParameterType, PandasParameterType
from daokit.types import ParameterType, ParameterTypeRegistry, SQLType
from daokit.types import default_registry

__all__ = [
    '__version__',
    'BasicParameterType',
    'CascadeContext',
    'ClosePolicy',
    'ConnectionPool',
    'Convertible',
    'CouldNotConnectError',
    'CrossTable2DAO',
    'CrossTable3DAO',
    'CrossTableDAO',
    'DAO',
    'DAOBase',
    'DataSource',
    'DatabaseError',
    'DatabaseOptions',
    'DatabaseType',
    'DBColumn',
    'DBEnum',
    'DBObject',
    'DbConnectionError',
    'DriverError',
    'EntryNotFoundError',
    'IllegalStateError',
    'KeysetReader',
    'NoNullTypeError',
    'NumpyParameterType',
    'PageReader',
    'PaginationDAO',
    'PandasParameterType',
    'Parameter',
    'ParameterList',
    'ParameterType',
    'ParameterTypeRegistry',
    'PoolConfig',
    'PoolTimeoutError',
    'PooledConnection',
    'PrimaryType',
    'Relation2',
    'Relation3',
    'RowLoader',
    'SQLType',
    'StatementCache',
    'StatementKey',
    'UncheckedSQLError',
    'UnsupportedPrimaryError',
    'UnsupportedValueError',
    'ValidationError',
    'default_registry',
    'dispose_all_engines',
]
