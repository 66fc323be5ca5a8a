# ==============================================
# Relational Source Interface
# ==============================================
#
# PURPOSE:
#   Everything the inferencer and the writer need from a row-oriented
#   database, behind one abstract class. Concrete sources handle the
#   dialect (quoting, random sampling, stable row order) and turn
#   driver values into cells.
#
# CELLS:
#   A cell is one of: None | int | float | str | bytes.
#   Sources must not hand anything else to the writer.
#
# CLASSES:
# --------
# - SourceColumn (frozen dataclass)
#     name, declared_type, not_null
#
# - ColumnCursor
#     Streams the rows of a single-column query.
#       current() -> tuple | None    (None = end of data)
#       advance() -> None
#       close() -> None
#
# - RelationalSource (ABC)
#     list_tables(), table_columns(table), count_nulls(table, column),
#     min_max(table, column), sample(table, column, limit),
#     count_rows(query), column_query(table, column), open_cursor(query)
#
# ==============================================

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Tuple

from sql2parquet.errors import SourceQueryError


@dataclass(frozen=True)
class SourceColumn:
    """One column as declared in the source schema."""
    name: str
    declared_type: str
    not_null: bool


class ColumnCursor:
    """
    Forward-only cursor over a query's result rows.

    Wraps a DB-API cursor. Call ``advance()`` once to move onto the
    first row; ``current()`` then returns that row until the next
    ``advance()``, and None once the result set is exhausted.

    Driver exceptions listed in ``driver_errors`` are re-raised as
    SourceQueryError.
    """

    def __init__(
        self,
        cursor,
        convert: Optional[Callable[[Any], Any]] = None,
        on_close: Optional[Callable[[], None]] = None,
        driver_errors: Tuple[type, ...] = (),
    ):
        self._cursor = cursor
        self._convert = convert
        self._on_close = on_close
        self._driver_errors = driver_errors
        self._row: Optional[tuple] = None
        self._exhausted = False

    def current(self) -> Optional[tuple]:
        return self._row

    def advance(self) -> None:
        if self._exhausted:
            self._row = None
            return
        try:
            row = self._cursor.fetchone()
        except self._driver_errors as exc:
            raise SourceQueryError(f"Reading query results failed: {exc}") from exc
        if row is None:
            self._exhausted = True
            self._row = None
            return
        if self._convert is not None:
            row = tuple(self._convert(value) for value in row)
        else:
            row = tuple(row)
        self._row = row

    @property
    def exhausted(self) -> bool:
        return self._exhausted

    def close(self) -> None:
        try:
            self._cursor.close()
        finally:
            if self._on_close is not None:
                self._on_close()
                self._on_close = None


class RelationalSource(ABC):
    """
    A row-oriented database the converter can introspect and stream from.

    Supports ``with source: ...``; ``close()`` releases the connection.
    """

    @abstractmethod
    def list_tables(self) -> List[str]:
        """User tables, in the order the catalog lists them."""

    @abstractmethod
    def table_columns(self, table: str) -> List[SourceColumn]:
        """
        Columns of ``table`` in declared order.

        Raises:
            SourceIntrospectionError: If the table is missing or the
                                      catalog cannot be read
        """

    @abstractmethod
    def count_nulls(self, table: str, column: str) -> int:
        """Number of NULLs in ``column`` over the whole table."""

    @abstractmethod
    def min_max(self, table: str, column: str) -> Tuple[Any, Any]:
        """MIN and MAX of ``column`` (both None for an empty table)."""

    @abstractmethod
    def sample(self, table: str, column: str, limit: int) -> List[Any]:
        """Up to ``limit`` non-null cells of ``column``, chosen uniformly at random."""

    @abstractmethod
    def count_rows(self, query: str) -> int:
        """Number of rows ``query`` yields."""

    @abstractmethod
    def column_query(self, table: str, column: str) -> str:
        """A SELECT of just ``column`` in a stable row order."""

    @abstractmethod
    def open_cursor(self, query: str) -> ColumnCursor:
        """Execute ``query`` and return a cursor positioned before the first row."""

    @abstractmethod
    def quote(self, identifier: str) -> str:
        """Quote an identifier for this dialect."""

    def table_query(self, table: str) -> str:
        return f"SELECT * FROM {self.quote(table)}"

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
