"""
Entity base classes and the values that bind as something else.

- `DBObject`: mapped entity with a write-once primary key
- `DBEnum`: enum stored by its identifier
- `DBColumn`: value object stored as a single column value
- `Convertible`: anything exposing `to_bindable()`
- `PrimaryType`: declared primary-key type of a DAO
"""
import enum
from abc import ABC, abstractmethod
from typing import Any, Protocol, Self, runtime_checkable

import numpy as np

from daokit.exceptions import IllegalStateError, UnsupportedPrimaryError

__all__ = [
    'Convertible',
    'DBObject',
    'DBEnum',
    'DBColumn',
    'PrimaryType',
]


@runtime_checkable
class Convertible(Protocol):
    """A value that binds as another value.

    `to_bindable()` may itself return a convertible; binding resolves the
    chain until a plain value or None is reached.
    """

    def to_bindable(self) -> Any: ...


class DBObject:
    """Base class for entities mapped to a table row.

    The primary key stays None until the row is inserted. Once set it can
    only be cleared (on delete), never replaced by another value.
    """

    _primary: int | float | None = None

    @property
    def primary(self) -> int | float | None:
        return self._primary

    @primary.setter
    def primary(self, value: int | float | None) -> None:
        if value is not None and self._primary is not None:
            raise IllegalStateError(
                f'{type(self).__name__} already has primary key {self._primary}, '
                f'cannot assign {value}')
        self._primary = value

    def to_bindable(self) -> int | float | None:
        return self._primary


class DBEnum(enum.Enum):
    """Enum persisted by its identifier (the member value by default).
    """

    @property
    def identifier(self) -> Any:
        return self.value

    def to_bindable(self) -> Any:
        return self.identifier

    @classmethod
    def from_identifier(cls, identifier: Any) -> Self | None:
        """Resolve a stored identifier back to its member.
        """
        if identifier is None:
            return None
        for member in cls:
            if member.identifier == identifier:
                return member
        raise ValueError(f'{identifier!r} is not a valid identifier of {cls.__name__}')


class DBColumn(ABC):
    """Value object persisted as one column value.
    """

    @abstractmethod
    def to_column(self) -> Any:
        """Return the raw column value."""

    def to_bindable(self) -> Any:
        return self.to_column()


class PrimaryType(enum.Enum):
    """Supported primary-key types and the Python type their values read as.
    """
    INT = ('int', int)
    LONG = ('long', int)
    BYTE = ('byte', int)
    SHORT = ('short', int)
    DOUBLE = ('double', float)
    FLOAT = ('float', float)

    def __init__(self, type_name: str, python_type: type) -> None:
        self.type_name = type_name
        self.python_type = python_type

    def read(self, value: Any) -> int | float | None:
        """Coerce a column value into the key type; NULL stays None.
        """
        if value is None:
            return None
        return self.python_type(value)

    @classmethod
    def resolve(cls, spec: 'PrimaryType | type') -> 'PrimaryType':
        """Map a declared key type onto a supported primary type.

        Raises
            UnsupportedPrimaryError: for anything but the numeric types
        """
        if isinstance(spec, PrimaryType):
            return spec
        if isinstance(spec, type):
            if spec in _NUMPY_PRIMARY:
                return _NUMPY_PRIMARY[spec]
            if issubclass(spec, bool):
                raise UnsupportedPrimaryError(spec.__name__)
            if issubclass(spec, int):
                return cls.LONG
            if issubclass(spec, float):
                return cls.DOUBLE
            raise UnsupportedPrimaryError(spec.__name__)
        raise UnsupportedPrimaryError(type(spec).__name__)


_NUMPY_PRIMARY = {
    np.int8: PrimaryType.BYTE,
    np.int16: PrimaryType.SHORT,
    np.int32: PrimaryType.INT,
    np.int64: PrimaryType.LONG,
    np.float32: PrimaryType.FLOAT,
    np.float64: PrimaryType.DOUBLE,
    }
