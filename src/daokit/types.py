"""
Parameter type adapters and their registry.

This module provides:
- SQLType: JDBC-style type codes used to type NULL parameters
- ParameterType: adapter interface that claims or declines a value
- BasicParameterType, NumpyParameterType, PandasParameterType
- ParameterTypeRegistry: ordered, explicitly constructed adapter chain
"""
import datetime
import decimal
import enum
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from daokit.cursor import Statement

logger = logging.getLogger(__name__)

__all__ = [
    'SQLType',
    'ParameterType',
    'BasicParameterType',
    'NumpyParameterType',
    'PandasParameterType',
    'ParameterTypeRegistry',
    'default_registry',
]

DECLINED = -1


class SQLType(enum.IntEnum):
    """Standard SQL type codes, used to bind typed NULLs.
    """
    BIT = -7
    TINYINT = -6
    SMALLINT = 5
    INTEGER = 4
    BIGINT = -5
    FLOAT = 6
    REAL = 7
    DOUBLE = 8
    NUMERIC = 2
    DECIMAL = 3
    CHAR = 1
    VARCHAR = 12
    LONGVARCHAR = -1
    DATE = 91
    TIME = 92
    TIMESTAMP = 93
    BINARY = -2
    VARBINARY = -3
    NULL = 0
    OTHER = 1111
    BOOLEAN = 16


class ParameterType(ABC):
    """Adapter binding values of the types it recognises.
    """

    @abstractmethod
    def set_parameter(self, statement: 'Statement', position: int, value: Any) -> int:
        """Bind `value` at `position`.

        Returns the next free position, or -1 when the value's type is not
        handled by this adapter.
        """


class BasicParameterType(ParameterType):
    """Built-in scalar types the DBAPI drivers bind directly.

    Plain enums bind by member name.
    """

    scalar_types = (
        str, bool, int, float, decimal.Decimal,
        datetime.datetime, datetime.date, datetime.time, datetime.timedelta,
        bytes, bytearray, memoryview,
        )

    def set_parameter(self, statement: 'Statement', position: int, value: Any) -> int:
        if isinstance(value, enum.Enum):
            statement.set_value(position, value.name)
            return position + 1
        if isinstance(value, self.scalar_types):
            statement.set_value(position, value)
            return position + 1
        return DECLINED


def _convert_numpy_value(val: np.generic) -> Any:
    """Convert NumPy scalar to a plain Python value; NaN and NaT become None."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None
    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        return val.astype('datetime64[us]').item()
    if isinstance(val, np.timedelta64):
        if np.isnat(val):
            return None
        return val.astype('timedelta64[us]').item()
    return val.item()


class NumpyParameterType(ParameterType):
    """NumPy scalars (as found in arrays and DataFrame rows).
    """

    def set_parameter(self, statement: 'Statement', position: int, value: Any) -> int:
        if not isinstance(value, np.generic):
            return DECLINED
        statement.set_value(position, _convert_numpy_value(value))
        return position + 1


class PandasParameterType(ParameterType):
    """Pandas scalars: Timestamp, Timedelta and the missing-value markers.
    """

    def set_parameter(self, statement: 'Statement', position: int, value: Any) -> int:
        if value is pd.NA or value is pd.NaT:
            statement.set_value(position, None)
            return position + 1
        if isinstance(value, pd.Timestamp):
            statement.set_value(position, value.to_pydatetime())
            return position + 1
        if isinstance(value, pd.Timedelta):
            statement.set_value(position, value.to_pytimedelta())
            return position + 1
        if isinstance(value, pd.Period):
            statement.set_value(position, value.to_timestamp().to_pydatetime())
            return position + 1
        return DECLINED


class ParameterTypeRegistry:
    """Ordered chain of parameter adapters.

    Adapters are consulted in registration order; the first one that
    claims a value binds it. Registration is expected at startup, lookups
    afterwards only read the chain.
    """

    def __init__(self, types: Iterable[ParameterType] = ()) -> None:
        self._types: list[ParameterType] = list(types)
        self._lock = threading.Lock()

    def register(self, parameter_type: ParameterType, first: bool = False) -> None:
        """Add an adapter at the end of the chain, or at the front.
        """
        with self._lock:
            if first:
                self._types = [parameter_type, *self._types]
            else:
                self._types = [*self._types, parameter_type]
        logger.debug(f'Registered parameter type {type(parameter_type).__name__}')

    def __iter__(self) -> Iterator[ParameterType]:
        return iter(self._types)

    def __len__(self) -> int:
        return len(self._types)

    def set_parameter(self, statement: 'Statement', position: int, value: Any) -> int:
        """Offer the value to each adapter; -1 when none claims it.
        """
        for parameter_type in self._types:
            result = parameter_type.set_parameter(statement, position, value)
            if result != DECLINED:
                return result
        return DECLINED

    @classmethod
    def with_defaults(cls) -> 'ParameterTypeRegistry':
        """Registry holding the pandas, numpy and basic adapters."""
        return cls([PandasParameterType(), NumpyParameterType(), BasicParameterType()])


_default_registry: ParameterTypeRegistry | None = None
_default_lock = threading.Lock()


def default_registry() -> ParameterTypeRegistry:
    """Shared registry used by DAOs constructed without one."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = ParameterTypeRegistry.with_defaults()
    return _default_registry
