# ==============================================
# MySQLSource
# ==============================================
#
# PURPOSE:
#   RelationalSource for MySQL / MariaDB through pymysql.
#
# WHY ONE CONNECTION PER CURSOR:
#   The writer streams every column at once. A MySQL connection can
#   only stream one unbuffered result set at a time, so each column
#   cursor gets its own connection with an SSCursor, and closes it
#   when the cursor is closed. Introspection queries share the main
#   connection.
#
# CLASS: MySQLSource
# ------------------
#   Constructor:
#   ------------
#   - __init__(host, port, user, password, database)
#       Store connection params. Don't connect yet.
#   - from_config(config: MySQLConfig)
#
#   Methods:
#   --------
#   - connect() / disconnect()
#   - everything in RelationalSource
#
#   Cell conversion (to_cell):
#   --------------------------
#     Decimal   → float
#     datetime  → nanoseconds since the epoch (naive values taken as UTC)
#     date      → days since the epoch
#     timedelta → nanoseconds (MySQL TIME)
#     bytearray → bytes
#
# ==============================================

import datetime
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import pymysql
import pymysql.cursors

from sql2parquet.config import MySQLConfig
from sql2parquet.errors import SourceIntrospectionError, SourceQueryError
from sql2parquet.source.base import ColumnCursor, RelationalSource, SourceColumn

logger = logging.getLogger(__name__)

EPOCH = datetime.datetime(1970, 1, 1, tzinfo=datetime.timezone.utc)
EPOCH_DATE = datetime.date(1970, 1, 1)


def to_cell(value: Any) -> Any:
    """Normalise a pymysql value to None | int | float | str | bytes."""
    if value is None or isinstance(value, (int, float, str, bytes)):
        return value
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytearray):
        return bytes(value)
    if isinstance(value, datetime.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=datetime.timezone.utc)
        delta = value - EPOCH
        return (delta.days * 86_400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1_000
    if isinstance(value, datetime.date):
        return (value - EPOCH_DATE).days
    if isinstance(value, datetime.timedelta):
        return (value.days * 86_400 + value.seconds) * 1_000_000_000 + value.microseconds * 1_000
    return str(value)


class MySQLSource(RelationalSource):
    def __init__(self, host, port, user, password, database):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.database = database
        self.connection = None
        self._order_cache: Dict[str, str] = {}

    @classmethod
    def from_config(cls, config: MySQLConfig, database: Optional[str] = None) -> "MySQLSource":
        return cls(
            host=config.host,
            port=config.port,
            user=config.user,
            password=config.password,
            database=database or config.database,
        )

    def _new_connection(self):
        return pymysql.connect(
            host=self.host,
            port=self.port,
            user=self.user,
            password=self.password,
            database=self.database,
        )

    def connect(self) -> None:
        if self.connection is None:
            try:
                self.connection = self._new_connection()
            except pymysql.MySQLError as exc:
                raise SourceQueryError(
                    f"Cannot connect to MySQL at {self.host}:{self.port}: {exc}"
                ) from exc

    def disconnect(self) -> None:
        # Close connection cleanly
        if self.connection:
            self.connection.close()
            self.connection = None

    def close(self) -> None:
        self.disconnect()

    def __enter__(self):
        self.connect()
        return self

    def quote(self, identifier: str) -> str:
        return "`" + identifier.replace("`", "``") + "`"

    def _fetch_all(self, table: str, query: str, params: tuple = None) -> List[tuple]:
        self.connect()
        try:
            cursor = self.connection.cursor()
            try:
                cursor.execute(query, params)
                return list(cursor.fetchall())
            finally:
                cursor.close()
        except pymysql.MySQLError as exc:
            raise SourceIntrospectionError(table, str(exc)) from exc

    def list_tables(self) -> List[str]:
        rows = self._fetch_all(
            self.database,
            "SELECT TABLE_NAME FROM INFORMATION_SCHEMA.TABLES "
            "WHERE TABLE_SCHEMA = %s AND TABLE_TYPE = 'BASE TABLE' ORDER BY TABLE_NAME",
            (self.database,),
        )
        return [str(row[0]) for row in rows]

    def table_columns(self, table: str) -> List[SourceColumn]:
        rows = self._fetch_all(
            table,
            "SELECT COLUMN_NAME, COLUMN_TYPE, IS_NULLABLE FROM INFORMATION_SCHEMA.COLUMNS "
            "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s ORDER BY ORDINAL_POSITION",
            (self.database, table),
        )
        if not rows:
            raise SourceIntrospectionError(table, "no such table")
        return [
            SourceColumn(
                name=str(name),
                declared_type=(
                    column_type.decode() if isinstance(column_type, bytes) else str(column_type)
                ),
                not_null=str(nullable).upper() == "NO",
            )
            for name, column_type, nullable in rows
        ]

    def count_nulls(self, table: str, column: str) -> int:
        rows = self._fetch_all(
            table,
            f"SELECT COUNT(*) FROM {self.quote(table)} WHERE {self.quote(column)} IS NULL",
        )
        return int(rows[0][0])

    def min_max(self, table: str, column: str) -> Tuple[Any, Any]:
        rows = self._fetch_all(
            table,
            f"SELECT MIN({self.quote(column)}), MAX({self.quote(column)}) FROM {self.quote(table)}",
        )
        return to_cell(rows[0][0]), to_cell(rows[0][1])

    def sample(self, table: str, column: str, limit: int) -> List[Any]:
        rows = self._fetch_all(
            table,
            f"SELECT {self.quote(column)} FROM {self.quote(table)} "
            f"WHERE {self.quote(column)} IS NOT NULL ORDER BY RAND() LIMIT %s",
            (limit,),
        )
        return [to_cell(row[0]) for row in rows]

    def count_rows(self, query: str) -> int:
        self.connect()
        try:
            cursor = self.connection.cursor()
            try:
                cursor.execute(f"SELECT COUNT(1) FROM ({query}) AS counted")
                return int(cursor.fetchone()[0])
            finally:
                cursor.close()
        except pymysql.MySQLError as exc:
            raise SourceQueryError(f"Counting rows of {query!r} failed: {exc}") from exc

    def _order_clause(self, table: str) -> str:
        if table not in self._order_cache:
            rows = self._fetch_all(
                table,
                "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE "
                "WHERE TABLE_SCHEMA = %s AND TABLE_NAME = %s AND CONSTRAINT_NAME = 'PRIMARY' "
                "ORDER BY ORDINAL_POSITION",
                (self.database, table),
            )
            if rows:
                self._order_cache[table] = " ORDER BY " + ", ".join(
                    self.quote(str(row[0])) for row in rows
                )
            else:
                logger.debug("%s has no primary key, leaving column queries unordered", table)
                self._order_cache[table] = ""
        return self._order_cache[table]

    def column_query(self, table: str, column: str) -> str:
        return (
            f"SELECT {self.quote(column)} FROM {self.quote(table)}"
            f"{self._order_clause(table)}"
        )

    def open_cursor(self, query: str) -> ColumnCursor:
        try:
            connection = self._new_connection()
        except pymysql.MySQLError as exc:
            raise SourceQueryError(f"Connecting for {query!r} failed: {exc}") from exc
        try:
            cursor = connection.cursor(pymysql.cursors.SSCursor)
            cursor.execute(query)
        except pymysql.MySQLError as exc:
            connection.close()
            raise SourceQueryError(f"Query {query!r} failed: {exc}") from exc
        return ColumnCursor(
            cursor,
            convert=to_cell,
            on_close=connection.close,
            driver_errors=(pymysql.MySQLError,),
        )
