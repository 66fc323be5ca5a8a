# ==============================================
# SQLiteSource
# ==============================================
#
# PURPOSE:
#   RelationalSource backed by the standard library sqlite3 module.
#   SQLite hands back None/int/float/str/bytes already, so cells need
#   no conversion.
#
# ROW ORDER:
#   Column queries are ordered by rowid so every column cursor walks
#   the table in the same order. WITHOUT ROWID tables are ordered by
#   their primary key instead; views stay unordered.
#
# ==============================================

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from sql2parquet.errors import SourceIntrospectionError, SourceQueryError
from sql2parquet.source.base import ColumnCursor, RelationalSource, SourceColumn

logger = logging.getLogger(__name__)


class SQLiteSource(RelationalSource):
    """
    Reads tables from a SQLite database.

    Args:
        database: Path to the database file, or an open sqlite3.Connection.
                  A connection passed in is not closed by ``close()``.
    """

    SCHEMA_TABLE = "sqlite_master"

    def __init__(self, database: Union[str, Path, sqlite3.Connection]):
        if isinstance(database, sqlite3.Connection):
            self.connection = database
            self._owns_connection = False
        else:
            self.connection = sqlite3.connect(str(database))
            self._owns_connection = True
        self._order_cache: Dict[str, str] = {}

    def close(self) -> None:
        if self._owns_connection and self.connection is not None:
            self.connection.close()
            self.connection = None

    def quote(self, identifier: str) -> str:
        return '"' + identifier.replace('"', '""') + '"'

    def _scalar(self, table: str, query: str, params: tuple = ()) -> Any:
        try:
            row = self.connection.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise SourceIntrospectionError(table, str(exc)) from exc
        return row[0] if row is not None else None

    def list_tables(self) -> List[str]:
        rows = self.connection.execute(
            f"SELECT name FROM {self.SCHEMA_TABLE} "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY rowid"
        ).fetchall()
        return [row[0] for row in rows]

    def table_columns(self, table: str) -> List[SourceColumn]:
        try:
            rows = self.connection.execute(
                'SELECT name, type, "notnull" FROM pragma_table_info(?) ORDER BY cid',
                (table,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise SourceIntrospectionError(table, str(exc)) from exc
        if not rows:
            raise SourceIntrospectionError(table, "no such table")
        return [
            SourceColumn(name=name, declared_type=declared or "", not_null=bool(not_null))
            for name, declared, not_null in rows
        ]

    def _check_column(self, table: str, column: str) -> None:
        # unknown double-quoted names would otherwise fall back to string literals
        row = self._scalar(
            table,
            "SELECT COUNT(*) FROM pragma_table_info(?) WHERE name = ? COLLATE NOCASE",
            (table, column),
        )
        if not row:
            raise SourceIntrospectionError(table, f"no such column: {column}")

    def count_nulls(self, table: str, column: str) -> int:
        self._check_column(table, column)
        return self._scalar(
            table,
            f"SELECT COUNT(*) FROM {self.quote(table)} WHERE {self.quote(column)} IS NULL",
        )

    def min_max(self, table: str, column: str) -> Tuple[Any, Any]:
        self._check_column(table, column)
        try:
            row = self.connection.execute(
                f"SELECT MIN({self.quote(column)}), MAX({self.quote(column)}) "
                f"FROM {self.quote(table)}"
            ).fetchone()
        except sqlite3.Error as exc:
            raise SourceIntrospectionError(table, str(exc)) from exc
        return row[0], row[1]

    def sample(self, table: str, column: str, limit: int) -> List[Any]:
        self._check_column(table, column)
        try:
            rows = self.connection.execute(
                f"SELECT {self.quote(column)} FROM {self.quote(table)} "
                f"WHERE {self.quote(column)} IS NOT NULL ORDER BY RANDOM() LIMIT ?",
                (limit,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise SourceIntrospectionError(table, str(exc)) from exc
        return [row[0] for row in rows]

    def count_rows(self, query: str) -> int:
        try:
            row = self.connection.execute(f"SELECT COUNT(1) FROM ({query})").fetchone()
        except sqlite3.Error as exc:
            raise SourceQueryError(f"Counting rows of {query!r} failed: {exc}") from exc
        return row[0]

    def _order_clause(self, table: str) -> str:
        if table in self._order_cache:
            return self._order_cache[table]
        clause = ""
        try:
            self.connection.execute(f"SELECT rowid FROM {self.quote(table)} LIMIT 0")
            clause = " ORDER BY rowid"
        except sqlite3.OperationalError:
            pk_rows = self.connection.execute(
                'SELECT name FROM pragma_table_info(?) WHERE pk > 0 ORDER BY pk',
                (table,),
            ).fetchall()
            if pk_rows:
                clause = " ORDER BY " + ", ".join(self.quote(row[0]) for row in pk_rows)
            else:
                logger.debug("No stable row order for %s, leaving column queries unordered", table)
        self._order_cache[table] = clause
        return clause

    def column_query(self, table: str, column: str) -> str:
        return (
            f"SELECT {self.quote(column)} FROM {self.quote(table)}"
            f"{self._order_clause(table)}"
        )

    def open_cursor(self, query: str) -> ColumnCursor:
        try:
            cursor = self.connection.execute(query)
        except sqlite3.Error as exc:
            raise SourceQueryError(f"Query {query!r} failed: {exc}") from exc
        return ColumnCursor(cursor, driver_errors=(sqlite3.Error,))
