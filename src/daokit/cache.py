"""
Per-connection prepared statement cache.

Statements are keyed by a structured `StatementKey` (operation, table,
columns and clause shape) instead of concatenated strings. The cache is a
cachetools LRUCache whose evictions close the evicted statement.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import cachetools

if TYPE_CHECKING:
    from daokit.cursor import Statement

logger = logging.getLogger(__name__)

__all__ = ['StatementKey', 'StatementCache']


@dataclass(frozen=True, slots=True)
class StatementKey:
    """Identity of a cached statement.

    A key must always describe the same SQL shape; free-form keys supplied
    by callers land in `shape` under the ``custom`` operation.
    """
    operation: str
    table: str
    columns: tuple[str, ...] = ()
    shape: str = ''

    @classmethod
    def of(cls, key: 'StatementKey | str | None', table: str) -> 'StatementKey | None':
        """Normalise a caller-supplied cache key."""
        if key is None or isinstance(key, StatementKey):
            return key
        return cls('custom', table, (), str(key))


class StatementCache(cachetools.LRUCache):
    """LRU mapping of `StatementKey` to open statements.
    """

    def __init__(self, maxsize: int = 128) -> None:
        super().__init__(maxsize=maxsize)

    def popitem(self) -> tuple[StatementKey, 'Statement']:
        key, statement = super().popitem()
        logger.debug(f'Evicting cached statement {key}')
        statement.close()
        return key, statement

    def close_all(self) -> None:
        """Close every cached statement and empty the cache."""
        for statement in list(self.values()):
            statement.close()
        self.clear()
