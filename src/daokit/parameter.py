"""
Statement parameters and ordered parameter lists.
"""
import logging
from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Self

from daokit.entity import Convertible
from daokit.exceptions import IllegalStateError, NoNullTypeError
from daokit.exceptions import UnsupportedValueError
from daokit.sql import column_name_at
from daokit.types import DECLINED, SQLType

if TYPE_CHECKING:
    from daokit.cursor import Statement

logger = logging.getLogger(__name__)

__all__ = ['Parameter', 'ParameterList', 'resolve_bindable']

_MAX_CONVERSIONS = 32


def resolve_bindable(value: Any) -> Any:
    """Reduce enum identifiers, entities and column objects to plain values.

    The reduction repeats because a resolved value may itself convert
    further (an entity whose primary key is a column object, for example).
    """
    for _ in range(_MAX_CONVERSIONS):
        if value is None or not isinstance(value, Convertible):
            return value
        resolved = value.to_bindable()
        if resolved is value:
            return value
        value = resolved
    raise IllegalStateError(f'Conversion of {type(value).__name__} did not terminate')


@dataclass(frozen=True)
class Parameter:
    """A value bound at one statement position.

    A NULL value needs `sql_type`; binding None without it is an error
    rather than a silent untyped NULL.
    """
    value: Any
    sql_type: SQLType | int | None = None

    def bind(self, statement: 'Statement', position: int) -> int:
        """Bind into `statement` at the 1-based `position`; return the next position.
        """
        value = resolve_bindable(self.value)
        if value is None:
            if self.sql_type is None:
                raise NoNullTypeError(statement.sql, position,
                                      column_name_at(statement.sql, position))
            statement.set_null(position, self.sql_type)
            return position + 1

        next_position = statement.registry.set_parameter(statement, position, value)
        if next_position == DECLINED:
            raise UnsupportedValueError(type(value))
        return next_position


class ParameterList:
    """Ordered parameters, matching marker order in the generated SQL.

    Plain values are wrapped into untyped parameters; `Parameter` items are
    kept as given and nested lists are flattened.
    """

    def __init__(self, *values: Any) -> None:
        self._params: list[Parameter] = []
        for value in values:
            self.add(value)

    def add(self, value: Any, sql_type: SQLType | int | None = None) -> Self:
        if isinstance(value, ParameterList):
            self._params.extend(value)
        elif isinstance(value, Parameter):
            self._params.append(value)
        else:
            self._params.append(Parameter(value, sql_type))
        return self

    def bind(self, statement: 'Statement', position: int = 1) -> int:
        """Bind all parameters starting at `position`; return the next position.
        """
        for param in self._params:
            position = param.bind(statement, position)
        return position

    @property
    def values(self) -> list[Any]:
        return [p.value for p in self._params]

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._params)

    def __len__(self) -> int:
        return len(self._params)

    def __getitem__(self, index: int) -> Parameter:
        return self._params[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParameterList):
            return NotImplemented
        return self._params == other._params

    def __repr__(self) -> str:
        return f'ParameterList({", ".join(repr(p) for p in self._params)})'
