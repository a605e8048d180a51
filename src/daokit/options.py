"""
Configuration objects: connection options, pool sizing and close policy.
"""
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Self

from daokit.exceptions import ValidationError
from daokit.strategy import get_available_dialects, get_strategy_class
from daokit.strategy import is_supported_dialect

__all__ = [
    'DatabaseOptions',
    'PoolConfig',
    'ClosePolicy',
]


def _scriptname() -> str | None:
    """Name of the running script without extension, if any."""
    argv0 = sys.argv[0] if sys.argv else ''
    if not argv0 or argv0 == '-c':
        return None
    return os.path.splitext(os.path.basename(argv0))[0] or None


class ClosePolicy(Enum):
    """What happens to a borrowed connection after each DAO operation.

    ALWAYS: statements are closed and the connection invalidated after
    every call; nothing is cached across calls.
    KEEP_OPEN: the connection goes back to the pool with its statement
    cache intact.
    """
    ALWAYS = 'always'
    KEEP_OPEN = 'keep_open'


@dataclass
class DatabaseOptions:
    """Options

    supported driver names: `postgresql`, `sqlite`

    - autocommit: run every statement in auto-commit mode (default: True)
    """
    drivername: str = 'postgresql'
    hostname: str = None
    username: str = None
    password: str = None
    database: str = None
    port: int = 0
    timeout: int = 0
    appname: str = None
    autocommit: bool = True

    def __post_init__(self):
        if not is_supported_dialect(self.drivername):
            available = get_available_dialects()
            raise ValueError(f'drivername must be one of: {available}')
        self.appname = self.appname or _scriptname() or 'python_console'
        strategy_cls = get_strategy_class(self.drivername)
        strategy_cls.validate_options(self)

    @classmethod
    def from_config(cls, config: Any, section: str | None = None, **overrides: Any) -> Self:
        """Build options from a mapping or an attribute-style config object.

        With `section` the options are read from ``config[section]`` or
        ``config.<section>``; unknown keys are ignored.
        """
        if section is not None:
            config = config[section] if isinstance(config, Mapping) else getattr(config, section)
        names = [f.name for f in fields(cls)]
        if isinstance(config, Mapping):
            values = {k: v for k, v in config.items() if k in names}
        else:
            values = {k: getattr(config, k) for k in names if hasattr(config, k)}
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class PoolConfig:
    """Connection pool sizing.

    - min_idle: connections opened eagerly when the pool is (re)built
    - max_idle: connections kept open while returned
    - max_total: upper bound of simultaneously borrowed connections
    - max_wait: seconds a borrow waits before failing
    """
    min_idle: int = 0
    max_idle: int = 8
    max_total: int = 8
    max_wait: float = 30.0

    def __post_init__(self):
        if self.max_idle < 1:
            raise ValidationError('max_idle must be at least 1')
        if not 0 <= self.min_idle <= self.max_idle <= self.max_total:
            raise ValidationError(
                'pool sizes must satisfy 0 <= min_idle <= max_idle <= max_total, '
                f'got {self.min_idle}, {self.max_idle}, {self.max_total}')
        if self.max_wait <= 0:
            raise ValidationError('max_wait must be positive')

    @property
    def max_overflow(self) -> int:
        """Connections allowed above `max_idle`; closed again on return."""
        return self.max_total - self.max_idle
