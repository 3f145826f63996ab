"""
ExploreValley API - Missing-column retry decorator

Older deployments may lack optional columns. A write that fails with
MissingColumnError is retried with that column stripped from every row. Each
distinct column is stripped at most once; a second failure on the same column,
or on a column the rows never carried, propagates. When `strippable` is
given, only those columns may be dropped.
"""
import functools
import logging

from explorevalley.core.errors import MissingColumnError

logger = logging.getLogger(__name__)


def with_column_strip_retry(func):
    """
    Decorator for async writers shaped `(self, table, rows, *args, **kwargs)`.
    The wrapped call returns the set of stripped columns.

    Usage:
        @with_column_strip_retry
        async def upsert_tolerant(self, table, rows, on_conflict):
            await self.upsert(table, rows, on_conflict)
    """

    @functools.wraps(func)
    async def wrapper(
        self, table: str, rows: list[dict], *args, strippable: tuple[str, ...] | None = None, **kwargs,
    ) -> set[str]:
        stripped: set[str] = set()
        while True:
            try:
                await func(self, table, rows, *args, **kwargs)
                return stripped
            except MissingColumnError as exc:
                column = exc.column
                if (
                    not column
                    or column in stripped
                    or (strippable is not None and column not in strippable)
                    or not any(column in r for r in rows)
                ):
                    logger.error("Column %r missing on %s and cannot be stripped", column, table)
                    raise
                stripped.add(column)
                logger.warning(
                    "Column %r missing on %s; retrying without it (stripped so far: %s)",
                    column, table, sorted(stripped),
                )
                rows = [{k: v for k, v in row.items() if k != column} for row in rows]

    return wrapper
