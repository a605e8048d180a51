"""
Cross-table (join table) access.

A cross table links two or three entity tables through foreign-key
columns and has no key of its own. `CrossTable2DAO` and `CrossTable3DAO`
load the entities on one side of a relation through the other side's DAO
(a JOIN against the cross table) and read, create and delete the link rows
themselves as `Relation2` / `Relation3` values.

Subclasses declare the cross table and its columns and attach the entity
DAOs in their constructor:

    class OrderTagDAO(CrossTable2DAO):
        table = 'OrderTag'
        col_a = 'Orders'
        col_b = 'Tag'

        def __init__(self, source, **kwargs):
            super().__init__(source, **kwargs)
            self.dao_a = OrderDAO(self)
            self.dao_b = TagDAO(self)
"""
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from daokit.cache import StatementKey
from daokit.dao import DAO, DAOBase
from daokit.entity import DBObject
from daokit.exceptions import DatabaseError
from daokit.parameter import Parameter, ParameterList
from daokit.row import loaded_object_or_none
from daokit.sql import insert_placeholders, nullable_where, select_predicates
from daokit.types import SQLType

logger = logging.getLogger(__name__)

__all__ = ['Relation2', 'Relation3', 'CrossTableDAO', 'CrossTable2DAO', 'CrossTable3DAO']


@dataclass(frozen=True)
class Relation2:
    """One row of a two-column cross table."""
    a: DBObject | None
    b: DBObject | None


@dataclass(frozen=True)
class Relation3:
    """One row of a three-column cross table."""
    a: DBObject | None
    b: DBObject | None
    c: DBObject | None


class CrossTableDAO(DAOBase):
    """Shared loading and linking for cross tables.

    `columns()` lists ``(column, dao, sql_type)`` per foreign key, in table
    column order; `sql_type` types NULL links of nullable columns.
    """

    relation_class: type = Relation2

    def columns(self) -> list[tuple[str, DAO, SQLType | int | None]]:
        raise NotImplementedError

    @property
    def all_columns(self) -> str:
        return ', '.join(col for col, _, _ in self.columns())

    def relation_from_row(self, row: Sequence[Any], loaded: Sequence[DBObject] = ()) -> Any:
        """Resolve every column of a link row into its entity."""
        return self.relation_class(*(
            loaded_object_or_none(position, row, dao, loaded)
            for position, (_, dao, _) in enumerate(self.columns(), 1)
            ))

    def _link_parameters(self, objs: Sequence[DBObject | None]) -> ParameterList:
        columns = self.columns()
        if len(objs) != len(columns):
            raise ValueError(f'{self.table} links {len(columns)} objects, got {len(objs)}')
        return ParameterList(*(Parameter(obj, sql_type) for obj, (_, _, sql_type) in zip(objs, columns)))

    def create_relation(self, *objs: DBObject | None) -> None:
        """Insert the link row for `objs`, one per column."""
        params = self._link_parameters(objs)
        sql = f'INSERT INTO {self.table} ({self.all_columns}) VALUES ({insert_placeholders(self.all_columns)})'
        key = StatementKey('create_relation', self.table)
        with self._borrow() as conn:
            statement = conn.statement(key, lambda: conn.prepare(sql))
            params.bind(statement, 1)
            statement.execute_update()
        logger.debug(f'Linked {objs} in {self.table}')

    def delete_relation(self, *objs: DBObject | None) -> None:
        """Delete the link row for `objs`; a None member matches NULL."""
        params = self._link_parameters(objs)
        where = nullable_where(select_predicates(self.all_columns, ' AND ', '='), params)
        sql = f'DELETE FROM {self.table} WHERE {where}'
        mask = ''.join('N' if obj is None else 'v' for obj in objs)
        key = StatementKey('delete_relation', self.table, (), mask)
        with self._borrow() as conn:
            statement = conn.statement(key, lambda: conn.prepare(sql))
            params.bind(statement, 1)
            statement.execute_update()

    def load_all_relations(self, loaded: Sequence[DBObject] = ()) -> list[Any]:
        return self.load_relations_from_where(
            cache_key=StatementKey('load_all_relations', self.table), loaded=loaded)

    def load_relations_from_col(self, join: str | None, col: str, value: Any, limit: Any = None,
                                order: str | None = None,
                                cache_key: 'StatementKey | str | None' = None,
                                loaded: Sequence[DBObject] = ()) -> list[Any]:
        return self.load_relations_from_where(join, f'{col}=?', ParameterList(value), limit, order,
                                              cache_key, loaded)

    def load_relations_from_where(self, join: str | None = None, where: str | None = None,
                                  params: ParameterList | None = None, limit: Any = None,
                                  order: str | None = None,
                                  cache_key: 'StatementKey | str | None' = None,
                                  loaded: Sequence[DBObject] = ()) -> list[Any]:
        """Link rows matching the filter, entities resolved.

        Entities found in `loaded` are reused, the others are loaded
        through their DAO one by one.
        """
        with self._borrow() as conn:
            statement = conn.select_statement(self.all_columns, join, where, limit, order,
                                              cache_key, params)
            if params is not None:
                params.bind(statement, 1)
            rows = statement.execute_query()
        return [self.relation_from_row(row, loaded) for row in rows]

    def load_all_count(self) -> int:
        return self.load_count_from_where(cache_key=StatementKey('load_all_count', self.table))

    def load_count_from_col(self, join: str | None, col: str, value: Any,
                            cache_key: 'StatementKey | str | None' = None) -> int:
        return self.load_count_from_where(join, f'{col}=?', ParameterList(value), cache_key)

    def load_count_from_where(self, join: str | None = None, where: str | None = None,
                              params: ParameterList | None = None,
                              cache_key: 'StatementKey | str | None' = None) -> int:
        with self._borrow() as conn:
            statement = conn.select_statement('count(*)', join, where, None, None, cache_key, params)
            if params is not None:
                params.bind(statement, 1)
            rows = statement.execute_query()
        if not rows:
            raise DatabaseError(f'SELECT count(*) on {self.table} returned no row')
        return int(rows[0][0])

    def _load_from(self, dao: DAO, result_col: str, other_col: str, obj: DBObject,
                   sql_type: SQLType | int | None = None,
                   loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        """Entities of `dao` linked to `obj` through `other_col`."""
        join = f'{self.table} ON {self.table}.{result_col}={dao.table}.{dao.primary_col}'
        return dao.load_all_from_col(
            join, f'{self.table}.{other_col}', Parameter(obj, sql_type),
            cache_key=StatementKey('load_from', self.table, (result_col, other_col)),
            loaded=loaded)

    def _load_from2(self, dao: DAO, result_col: str,
                    col1: str, obj1: DBObject, type1: SQLType | int | None,
                    col2: str, obj2: DBObject, type2: SQLType | int | None,
                    loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        """Entities of `dao` linked to both `obj1` and `obj2`."""
        join = f'{self.table} ON {self.table}.{result_col}={dao.table}.{dao.primary_col}'
        where = f'{self.table}.{col1}=? AND {self.table}.{col2}=?'
        params = ParameterList(Parameter(obj1, type1), Parameter(obj2, type2))
        return dao.load_all_from_where(
            join, where, params,
            cache_key=StatementKey('load_from', self.table, (result_col, col1, col2)),
            loaded=loaded)

    def _count_from2(self, col1: str, obj1: DBObject, type1: SQLType | int | None,
                     col2: str, obj2: DBObject, type2: SQLType | int | None) -> int:
        params = ParameterList(Parameter(obj1, type1), Parameter(obj2, type2))
        return self.load_count_from_where(
            None, f'{col1}=? AND {col2}=?', params,
            cache_key=StatementKey('count_from', self.table, (col1, col2)))


class CrossTable2DAO(CrossTableDAO):
    """Many-to-many link between the entities of `dao_a` and `dao_b`.
    """

    col_a: str = None
    col_b: str = None
    type_a: SQLType | int | None = None
    type_b: SQLType | int | None = None
    dao_a: DAO = None
    dao_b: DAO = None

    def columns(self) -> list[tuple[str, DAO, SQLType | int | None]]:
        return [(self.col_a, self.dao_a, self.type_a), (self.col_b, self.dao_b, self.type_b)]

    def load_a_from_b(self, b: DBObject, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from(self.dao_a, self.col_a, self.col_b, b, self.type_b, loaded)

    def load_b_from_a(self, a: DBObject, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from(self.dao_b, self.col_b, self.col_a, a, self.type_a, loaded)

    def load_relations_from_a(self, a: DBObject) -> list[Any]:
        return self.load_relations_from_col(
            None, self.col_a, Parameter(a, self.type_a),
            cache_key=StatementKey('load_relations_from', self.table, (self.col_a,)), loaded=(a,))

    def load_relations_from_b(self, b: DBObject) -> list[Any]:
        return self.load_relations_from_col(
            None, self.col_b, Parameter(b, self.type_b),
            cache_key=StatementKey('load_relations_from', self.table, (self.col_b,)), loaded=(b,))

    def load_all_count_from_a(self, a: DBObject) -> int:
        return self.load_count_from_col(
            None, self.col_a, Parameter(a, self.type_a),
            StatementKey('count_from', self.table, (self.col_a,)))

    def load_all_count_from_b(self, b: DBObject) -> int:
        return self.load_count_from_col(
            None, self.col_b, Parameter(b, self.type_b),
            StatementKey('count_from', self.table, (self.col_b,)))


class CrossTable3DAO(CrossTable2DAO):
    """Ternary link between the entities of `dao_a`, `dao_b` and `dao_c`.
    """

    relation_class = Relation3
    col_c: str = None
    type_c: SQLType | int | None = None
    dao_c: DAO = None

    def columns(self) -> list[tuple[str, DAO, SQLType | int | None]]:
        return [*super().columns(), (self.col_c, self.dao_c, self.type_c)]

    def load_a_from_c(self, c: DBObject, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from(self.dao_a, self.col_a, self.col_c, c, self.type_c, loaded)

    def load_b_from_c(self, c: DBObject, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from(self.dao_b, self.col_b, self.col_c, c, self.type_c, loaded)

    def load_c_from_a(self, a: DBObject, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from(self.dao_c, self.col_c, self.col_a, a, self.type_a, loaded)

    def load_c_from_b(self, b: DBObject, loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from(self.dao_c, self.col_c, self.col_b, b, self.type_b, loaded)

    def load_a_from_b_and_c(self, b: DBObject, c: DBObject,
                            loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from2(self.dao_a, self.col_a, self.col_b, b, self.type_b,
                                self.col_c, c, self.type_c, loaded)

    def load_b_from_a_and_c(self, a: DBObject, c: DBObject,
                            loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from2(self.dao_b, self.col_b, self.col_a, a, self.type_a,
                                self.col_c, c, self.type_c, loaded)

    def load_c_from_a_and_b(self, a: DBObject, b: DBObject,
                            loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self._load_from2(self.dao_c, self.col_c, self.col_a, a, self.type_a,
                                self.col_b, b, self.type_b, loaded)

    def load_relations_from_c(self, c: DBObject) -> list[Any]:
        return self.load_relations_from_col(
            None, self.col_c, Parameter(c, self.type_c),
            cache_key=StatementKey('load_relations_from', self.table, (self.col_c,)), loaded=(c,))

    def load_all_count_from_c(self, c: DBObject) -> int:
        return self.load_count_from_col(
            None, self.col_c, Parameter(c, self.type_c),
            StatementKey('count_from', self.table, (self.col_c,)))

    def load_all_count_from_a_and_b(self, a: DBObject, b: DBObject) -> int:
        return self._count_from2(self.col_a, a, self.type_a, self.col_b, b, self.type_b)

    def load_all_count_from_a_and_c(self, a: DBObject, c: DBObject) -> int:
        return self._count_from2(self.col_a, a, self.type_a, self.col_c, c, self.type_c)

    def load_all_count_from_b_and_c(self, b: DBObject, c: DBObject) -> int:
        return self._count_from2(self.col_b, b, self.type_b, self.col_c, c, self.type_c)
