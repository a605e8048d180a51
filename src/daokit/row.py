"""
Positional reader over one result row.

`RowLoader` walks a row from left to right with a 1-based position, the
way entity mappers read their columns in SELECT order. Plain readers
return a zero value for NULL; the ``next_null_*`` readers keep NULL as
None. Date and time readers accept driver objects and ISO strings, as
SQLite returns text for columns declared without a date type.
"""
import datetime
import decimal
import enum
import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Self, TypeVar

import dateutil.parser

if TYPE_CHECKING:
    from daokit.dao import DAO
    from daokit.entity import DBObject

logger = logging.getLogger(__name__)

__all__ = ['RowLoader', 'loaded_object_or_none']

T = TypeVar('T')
E = TypeVar('E', bound=enum.Enum)

_TRUE_STRINGS = {'1', 't', 'true', 'y', 'yes', 'on'}


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    if isinstance(value, bytes):
        return _to_bool(value.decode())
    return bool(value)


def _to_text(value: Any) -> str:
    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode()
    return str(value)


def _to_timestamp(value: Any) -> datetime.datetime:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, datetime.date):
        return datetime.datetime.combine(value, datetime.time())
    return dateutil.parser.isoparse(_to_text(value))


def _to_date(value: Any) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return dateutil.parser.isoparse(_to_text(value)).date()


def _to_time(value: Any) -> datetime.time:
    if isinstance(value, datetime.datetime):
        return value.time()
    if isinstance(value, datetime.time):
        return value
    if isinstance(value, datetime.timedelta):
        return (datetime.datetime.min + value).time()
    text = _to_text(value)
    if 'T' in text or '-' in text[:10]:
        return dateutil.parser.isoparse(text).time()
    return dateutil.parser.isoparser().parse_isotime(text)


def loaded_object_or_none(position: int, row: Sequence[Any], dao: 'DAO',
                          loaded: Sequence['DBObject'] = ()) -> 'DBObject | None':
    """Resolve the foreign key at `position` into an entity.

    NULL gives None. An entity of the DAO's class with the same primary key
    in `loaded` is reused; otherwise the entity is loaded through `dao`.
    """
    key = dao.get_primary(row, position)
    if key is None:
        return None
    for obj in loaded or ():
        if isinstance(obj, dao.entity_class) and obj.primary == key:
            return obj
    return dao.load_from_id(key, loaded=loaded)


class RowLoader:
    """Cursor over the columns of one row.

    Basic usage:
        loader = RowLoader(row, loaded=loaded)
        entity.s = loader.next_string()
        entity.i = loader.next_int()
        entity.test2 = loader.next_db_object(test2_dao)
    """

    def __init__(self, row: Sequence[Any], start: int = 1,
                 loaded: Sequence['DBObject'] = ()) -> None:
        self.row = row
        self._position = start
        self.loaded = tuple(loaded or ())

    def __repr__(self) -> str:
        return f'RowLoader(position={self._position}, columns={len(self.row)})'

    @property
    def position(self) -> int:
        """1-based position of the next column to read."""
        return self._position

    def skip(self, steps: int = 1) -> Self:
        self._position += steps
        return self

    def _next(self) -> Any:
        position = self._position
        if not 1 <= position <= len(self.row):
            raise IndexError(f'Column {position} out of range 1..{len(self.row)}')
        self._position += 1
        return self.row[position - 1]

    def next_value(self) -> Any:
        """Raw driver value of the next column."""
        return self._next()

    def next_string(self) -> str | None:
        value = self._next()
        return None if value is None else _to_text(value)

    def next_boolean(self) -> bool:
        value = self._next()
        return False if value is None else _to_bool(value)

    def next_byte(self) -> int:
        return self.next_int()

    def next_short(self) -> int:
        return self.next_int()

    def next_int(self) -> int:
        value = self._next()
        return 0 if value is None else int(value)

    def next_long(self) -> int:
        return self.next_int()

    def next_float(self) -> float:
        value = self._next()
        return 0.0 if value is None else float(value)

    def next_double(self) -> float:
        return self.next_float()

    def next_decimal(self) -> decimal.Decimal | None:
        value = self._next()
        if value is None or isinstance(value, decimal.Decimal):
            return value
        return decimal.Decimal(_to_text(value))

    def next_date(self) -> datetime.date | None:
        value = self._next()
        return None if value is None else _to_date(value)

    def next_time(self) -> datetime.time | None:
        value = self._next()
        return None if value is None else _to_time(value)

    def next_timestamp(self) -> datetime.datetime | None:
        value = self._next()
        return None if value is None else _to_timestamp(value)

    # nullable readers

    def next_null_boolean(self) -> bool | None:
        value = self._next()
        return None if value is None else _to_bool(value)

    def next_null_int(self) -> int | None:
        value = self._next()
        return None if value is None else int(value)

    next_null_byte = next_null_int
    next_null_short = next_null_int
    next_null_long = next_null_int

    def next_null_float(self) -> float | None:
        value = self._next()
        return None if value is None else float(value)

    next_null_double = next_null_float

    def next_char(self) -> str:
        """First character of the next column.

        Raises
            ValueError: if the column is NULL or empty
        """
        value = self.next_string()
        if not value:
            raise ValueError(f'Column {self._position - 1} is NULL or empty, no character to read')
        return value[0]

    def next_null_char(self) -> str | None:
        value = self.next_string()
        return value[0] if value else None

    def next_enum(self, enum_cls: type[E]) -> E | None:
        """Read a stored enum.

        `DBEnum` subclasses are looked up by identifier, other enums by
        member name.
        """
        value = self._next()
        if value is None:
            return None
        if hasattr(enum_cls, 'from_identifier'):
            return enum_cls.from_identifier(value)
        return enum_cls[_to_text(value)]

    def next_db_object(self, dao: 'DAO', loaded: Sequence['DBObject'] | None = None) -> 'DBObject | None':
        """Resolve the next column as a foreign key through `dao`."""
        position = self._position
        self._position += 1
        return loaded_object_or_none(position, self.row, dao,
                                     self.loaded if loaded is None else loaded)

    def next_into(self, setter: Callable[[T], Any], reader: Callable[[], T]) -> Self:
        """Pass the next value read by `reader` to `setter`."""
        setter(reader())
        return self

    def next_mapped(self, mapper: Callable[[Any], T], reader: Callable[[], Any] | None = None) -> T:
        """Read the next value and convert it with `mapper`."""
        return mapper(reader() if reader is not None else self._next())
