"""
Physical connection sources.

This module provides:
1. URL construction from `DatabaseOptions`
2. A thread-safe engine registry, disposed at interpreter exit
3. `DataSource`, which opens new raw DBAPI connections for a pool

Engines are only used for their dialect and URL: connections are created
through the dialect and pooled by `daokit.pool`, so every engine is built
with `NullPool`.
"""
import atexit
import logging
import threading
from collections.abc import Callable, Mapping
from typing import Any

import sqlalchemy as sa
from sqlalchemy.engine import Engine
from sqlalchemy.pool import NullPool

from daokit.options import DatabaseOptions
from daokit.strategy import get_strategy

__all__ = [
    'DataSource',
    'create_url_from_options',
    'get_engine_for_options',
    'dispose_all_engines',
]

logger = logging.getLogger(__name__)

_engine_registry: dict[str, Engine] = {}
_engine_registry_lock = threading.RLock()


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    if options.drivername == 'sqlite':
        return url_creator(
            drivername='sqlite',
            database=options.database
        )

    elif options.drivername == 'postgresql':
        query = {}
        if options.timeout:
            query['connect_timeout'] = str(options.timeout)

        return url_creator(
            drivername='postgresql+psycopg',
            username=options.username,
            password=options.password,
            host=options.hostname,
            port=options.port,
            database=options.database,
            query=query
        )

    raise ValueError(f'Unsupported database type: {options.drivername}')


def _register_engine(key: str, url: 'sa.URL | str',
                     engine_factory: Callable[..., Engine]) -> Engine:
    with _engine_registry_lock:
        if key in _engine_registry:
            logger.debug(f'Using existing engine for {key}')
            return _engine_registry[key]
        engine = engine_factory(url, poolclass=NullPool)
        _engine_registry[key] = engine
        logger.debug(f'Created new engine for {engine.dialect.name}')
        return engine


def get_engine_for_options(options: DatabaseOptions,
                           engine_factory: Callable[..., Engine] = sa.create_engine) -> Engine:
    """Get or create a SQLAlchemy engine for the given options.
    """
    url = create_url_from_options(options)
    return _register_engine(url.render_as_string(hide_password=False), url, engine_factory)


def get_engine_for_url(url: 'sa.URL | str',
                       engine_factory: Callable[..., Engine] = sa.create_engine) -> Engine:
    """Get or create a SQLAlchemy engine for a URL.
    """
    url = sa.make_url(url)
    return _register_engine(url.render_as_string(hide_password=False), url, engine_factory)


def dispose_all_engines() -> None:
    """Dispose all engines in the registry.
    """
    with _engine_registry_lock:
        for engine in _engine_registry.values():
            engine.dispose()
        _engine_registry.clear()
        logger.debug('All database engines disposed')


atexit.register(dispose_all_engines)


class DataSource:
    """Factory of raw DBAPI connections for one database.

    Accepts `DatabaseOptions`, a mapping of option values, a SQLAlchemy
    URL (or URL string) or an `Engine`. Every `connect()` opens a new
    physical connection with the dialect's type adapters registered and,
    unless disabled, auto-commit enabled.
    """

    def __init__(self, source: 'DatabaseOptions | Mapping[str, Any] | sa.URL | str | Engine',
                 autocommit: bool | None = None,
                 connect_args: Mapping[str, Any] | None = None) -> None:
        self.options = None
        if isinstance(source, Mapping):
            source = DatabaseOptions(**source)
        if isinstance(source, DatabaseOptions):
            self.options = source
            self.engine = get_engine_for_options(source)
        elif isinstance(source, Engine):
            self.engine = source
        elif isinstance(source, sa.URL | str):
            self.engine = get_engine_for_url(source)
        else:
            raise TypeError(f'Cannot build a data source from {type(source).__name__}')

        self.dialect_name = self.engine.dialect.name
        self.strategy = get_strategy(self.dialect_name)
        if autocommit is None:
            autocommit = self.options.autocommit if self.options else True
        self.autocommit = autocommit

        engine_kwargs = self.strategy.get_engine_kwargs(self.options)
        self.connect_args: dict[str, Any] = dict(engine_kwargs.get('connect_args', {}))
        self.connect_args.update(connect_args or {})

    def __repr__(self) -> str:
        return f'<DataSource {self.engine.url.render_as_string(hide_password=True)}>'

    def connect(self) -> Any:
        """Open a new raw DBAPI connection.
        """
        dialect = self.engine.dialect
        cargs, cparams = dialect.create_connect_args(self.engine.url)
        cparams.update(self.connect_args)
        raw_conn = dialect.connect(*cargs, **cparams)
        self.strategy.register_type_adapters(raw_conn)
        if self.autocommit:
            self.strategy.enable_autocommit(raw_conn)
        logger.debug(f'Opened {self.dialect_name} connection')
        return raw_conn
