"""
Paged loading and batch writing.

`PaginationDAO` adds offset pages, keyset pages (rows after a last seen
primary key) and an upsert-all writer to `DAO`. `PageReader` and
`KeysetReader` iterate over those pages; a `KeysetReader` can persist its
position in an execution context (any mutable mapping) and resume from it.
"""
import logging
import threading
from collections.abc import Iterator, MutableMapping, Sequence
from typing import Any

from daokit.cache import StatementKey
from daokit.dao import DAO
from daokit.entity import DBObject
from daokit.parameter import ParameterList

logger = logging.getLogger(__name__)

__all__ = [
    'PaginationDAO',
    'PageReader',
    'KeysetReader',
    'ExecutionContext',
    'save_last_primary',
    'load_last_primary',
]

ExecutionContext = MutableMapping[str, Any]

DONE_KEY = 'paginationdao.done'
LAST_PRIMARY = 'lastprimary'


def save_last_primary(dao: DAO, last_primary: int | float | None,
                      context: ExecutionContext, key: str) -> None:
    """Store the last primary key read, typed by the DAO's key type.

    None removes the key.
    """
    if last_primary is None:
        context.pop(key, None)
        return
    context[key] = dao.primary_type.read(last_primary)


def load_last_primary(dao: DAO, context: ExecutionContext, key: str) -> int | float | None:
    if key not in context:
        return None
    return dao.primary_type.read(context[key])


class PaginationDAO(DAO):
    """DAO with page loads and a resumable batch writer.
    """

    def __init__(self, source: Any, **kwargs: Any) -> None:
        super().__init__(source, **kwargs)
        self.done = 0

    def load_page(self, page: int, size: int, join: str | None = None, where: str | None = None,
                  params: ParameterList | None = None,
                  loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        """Page `page` (0-based) of `size` rows, ordered by primary key."""
        return self.load_all_from_where(join, where, params, f'{size} OFFSET {page * size}',
                                        self._primary_key_name, loaded=loaded)

    def load_page_from_primary(self, last_primary: int | float | None, size: int,
                               join: str | None = None, where: str | None = None,
                               params: ParameterList | None = None,
                               loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        """Up to `size` rows with a primary key above `last_primary`.

        Without `last_primary` the first page is read.
        """
        keyset = f'{self._primary_key_name} > ?'
        full_where = f'({where}) AND {keyset}' if where and where.strip() else keyset
        full_params = ParameterList() if params is None else ParameterList(params)
        full_params.add(0 if last_primary is None else last_primary)
        key = StatementKey('load_page_from_primary', self.table, (self.primary_col,),
                           f'{join}|{where}|{size}')
        return self.load_all_from_where(join, full_where, full_params, size,
                                        self._primary_key_name, key, loaded)

    def load_custom_page(self, join: str | None = None, where: str | None = None,
                         params: ParameterList | None = None, limit: Any = None,
                         order: str | None = None,
                         cache_key: 'StatementKey | str | None' = None,
                         loaded: Sequence[DBObject] = ()) -> list[DBObject]:
        return self.load_all_from_where(join, where, params, limit, order, cache_key, loaded)

    def open(self, context: ExecutionContext) -> None:
        """Restore the number of items already written."""
        if DONE_KEY in context:
            self.done = int(context[DONE_KEY])

    def write(self, items: Sequence[DBObject], context: ExecutionContext | None = None) -> None:
        """Upsert all items.

        Progress is kept in `done` (and in `context` under
        ``paginationdao.done``) so a failed chunk resumes after the last
        written item.
        """
        if context is not None:
            self.open(context)
        while self.done < len(items):
            self.upsert(items[self.done])
            self.done += 1
            if context is not None:
                context[DONE_KEY] = self.done
        logger.debug(f'Wrote {len(items)} items to {self.table}')
        self.done = 0
        if context is not None:
            context.pop(DONE_KEY, None)


class PageReader:
    """Iterate over all matching entities page by page.
    """

    def __init__(self, dao: PaginationDAO, join: str | None = None, where: str | None = None,
                 params: ParameterList | None = None, page_size: int = 10) -> None:
        self.dao = dao
        self.join = join
        self.where = where
        self.params = params
        self.page_size = page_size

    def pages(self) -> Iterator[list[DBObject]]:
        page = 0
        while True:
            logger.debug(f'Reading page {page} of size {self.page_size}')
            results = self.dao.load_page(page, self.page_size, self.join, self.where, self.params)
            if results:
                yield results
            if len(results) < self.page_size:
                return
            page += 1

    def __iter__(self) -> Iterator[DBObject]:
        for results in self.pages():
            yield from results


class KeysetReader:
    """Read entities in primary-key order, one keyset page at a time.

    `read()` returns the next entity or None at the end. The position is
    saved to and restored from an execution context under
    ``<name>.lastprimary``.
    """

    def __init__(self, dao: PaginationDAO, join: str | None = None, where: str | None = None,
                 params: ParameterList | None = None, page_size: int = 10,
                 name: str | None = None) -> None:
        self.dao = dao
        self.join = join
        self.where = where
        self.params = params
        self.page_size = page_size
        self.name = name or 'KeysetReader'
        self.last_primary: int | float | None = None
        self._results: list[DBObject] | None = None
        self._index = 0
        self._lock = threading.Lock()

    @property
    def context_key(self) -> str:
        return f'{self.name}.{LAST_PRIMARY}'

    def read(self) -> DBObject | None:
        with self._lock:
            if self._results is None or self._index >= self.page_size:
                logger.debug(f'Reading page after primary {self.last_primary}')
                self._results = self.dao.load_page_from_primary(
                    self.last_primary, self.page_size, self.join, self.where, self.params)
                self._index = 0
            position = self._index
            self._index += 1
            if position < len(self._results):
                result = self._results[position]
                self.last_primary = result.primary
                return result
            return None

    def __iter__(self) -> Iterator[DBObject]:
        result = self.read()
        while result is not None:
            yield result
            result = self.read()

    def open(self, context: ExecutionContext) -> None:
        if self.context_key in context:
            self.last_primary = load_last_primary(self.dao, context, self.context_key)

    def update(self, context: ExecutionContext) -> None:
        save_last_primary(self.dao, self.last_primary, context, self.context_key)

    def close(self) -> None:
        self.last_primary = None
        self._results = None
        self._index = 0
