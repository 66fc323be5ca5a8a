# ==============================================
# Tests for MySQLSource
# ==============================================
#
# No server needed: pymysql.connect is replaced by a fake
# connection that answers queries from a handler function.
#
# ==============================================

import datetime
from decimal import Decimal

import pymysql
import pytest

from sql2parquet.config import MySQLConfig
from sql2parquet.errors import SourceIntrospectionError, SourceQueryError
from sql2parquet.source.base import SourceColumn
from sql2parquet.source.mysql_source import MySQLSource, to_cell


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.rows = []
        self.closed = False

    def execute(self, query, params=None):
        self.connection.executed.append((query, params))
        self.rows = list(self.connection.handler(query, params))

    def fetchall(self):
        rows, self.rows = self.rows, []
        return rows

    def fetchone(self):
        return self.rows.pop(0) if self.rows else None

    def close(self):
        self.closed = True


class FakeConnection:
    def __init__(self, handler):
        self.handler = handler
        self.executed = []
        self.closed = False
        self.cursor_classes = []

    def cursor(self, cursor_class=None):
        self.cursor_classes.append(cursor_class)
        return FakeCursor(self)

    def close(self):
        self.closed = True


@pytest.fixture
def fake_mysql(monkeypatch):
    """Patch pymysql.connect; returns the list of connections opened."""
    state = {"handler": lambda query, params: [], "connections": []}

    def connect(**kwargs):
        connection = FakeConnection(state["handler"])
        connection.kwargs = kwargs
        state["connections"].append(connection)
        return connection

    monkeypatch.setattr(pymysql, "connect", connect)
    return state


@pytest.fixture
def source():
    return MySQLSource("db.local", 3306, "reader", "secret", "shop")


# ==============================================
# Cell conversion
# ==============================================

class TestToCell:

    def test_plain_values_pass_through(self):
        for value in (None, 7, 1.5, "x", b"\x00"):
            assert to_cell(value) == value

    def test_decimal(self):
        assert to_cell(Decimal("12.50")) == 12.5

    def test_bytearray(self):
        assert to_cell(bytearray(b"ab")) == b"ab"

    def test_naive_datetime_is_utc(self):
        assert to_cell(datetime.datetime(1970, 1, 2)) == 86_400 * 1_000_000_000

    def test_aware_datetime(self):
        tz = datetime.timezone(datetime.timedelta(hours=1))
        value = datetime.datetime(1970, 1, 1, 1, 0, 0, 5, tzinfo=tz)
        assert to_cell(value) == 5_000

    def test_date(self):
        assert to_cell(datetime.date(1970, 1, 11)) == 10
        assert to_cell(datetime.date(1969, 12, 31)) == -1

    def test_time_of_day(self):
        assert to_cell(datetime.timedelta(hours=1, microseconds=2)) == 3_600_000_002_000


# ==============================================
# Introspection
# ==============================================

class TestIntrospection:

    def test_from_config(self):
        config = MySQLConfig(host="h", port=3307, user="u", password="p", database="d")
        source = MySQLSource.from_config(config, database="other")
        assert (source.host, source.port, source.database) == ("h", 3307, "other")

    def test_table_columns(self, fake_mysql, source):
        fake_mysql["handler"] = lambda query, params: [
            ("id", b"int(11)", "NO"),
            ("total", "decimal(10,2)", "YES"),
        ]
        columns = source.table_columns("orders")

        assert columns == [
            SourceColumn("id", "int(11)", True),
            SourceColumn("total", "decimal(10,2)", False),
        ]
        query, params = fake_mysql["connections"][0].executed[0]
        assert "INFORMATION_SCHEMA.COLUMNS" in query
        assert params == ("shop", "orders")

    def test_missing_table(self, fake_mysql, source):
        with pytest.raises(SourceIntrospectionError) as exc_info:
            source.table_columns("nope")
        assert exc_info.value.table == "nope"

    def test_driver_error_during_introspection(self, fake_mysql, source):
        def handler(query, params):
            raise pymysql.err.OperationalError(1146, "Table doesn't exist")

        fake_mysql["handler"] = handler
        with pytest.raises(SourceIntrospectionError):
            source.count_nulls("orders", "id")

    def test_statistics_convert_cells(self, fake_mysql, source):
        fake_mysql["handler"] = lambda query, params: [(Decimal("1.5"), Decimal("9.5"))]
        assert source.min_max("orders", "total") == (1.5, 9.5)

    def test_identifiers_use_backticks(self, source):
        assert source.quote("we`ird") == "`we``ird`"

    def test_shares_one_connection(self, fake_mysql, source):
        fake_mysql["handler"] = lambda query, params: [(3,)]
        source.count_nulls("orders", "id")
        source.count_rows("SELECT id FROM orders")
        assert len(fake_mysql["connections"]) == 1
        source.close()
        assert fake_mysql["connections"][0].closed


# ==============================================
# Column queries / cursors
# ==============================================

class TestColumnQueries:

    def test_primary_key_order(self, fake_mysql, source):
        fake_mysql["handler"] = lambda query, params: [("shop_id",), ("id",)]
        assert source.column_query("orders", "total") == (
            "SELECT `total` FROM `orders` ORDER BY `shop_id`, `id`"
        )

    def test_no_primary_key(self, fake_mysql, source):
        assert source.column_query("log", "line") == "SELECT `line` FROM `log`"

    def test_order_is_cached(self, fake_mysql, source):
        fake_mysql["handler"] = lambda query, params: [("id",)]
        source.column_query("orders", "a")
        source.column_query("orders", "b")
        assert len(fake_mysql["connections"][0].executed) == 1

    def test_cursor_has_own_connection(self, fake_mysql, source):
        """Each column streams on a separate connection, closed with the cursor."""
        fake_mysql["handler"] = lambda query, params: [(Decimal("2.5"),), (None,)]
        source.connect()

        cursor = source.open_cursor("SELECT total FROM orders")
        cursor_connection = fake_mysql["connections"][1]
        assert cursor_connection.cursor_classes == [pymysql.cursors.SSCursor]

        cursor.advance()
        assert cursor.current() == (2.5,)
        cursor.advance()
        assert cursor.current() == (None,)
        cursor.advance()
        assert cursor.current() is None
        assert cursor.exhausted

        cursor.close()
        assert cursor_connection.closed
        assert not fake_mysql["connections"][0].closed

    def test_bad_query_closes_connection(self, fake_mysql, source):
        def handler(query, params):
            raise pymysql.err.ProgrammingError(1064, "syntax error")

        fake_mysql["handler"] = handler
        with pytest.raises(SourceQueryError):
            source.open_cursor("SELEC nothing")
        assert fake_mysql["connections"][0].closed

    def test_bad_count_query(self, fake_mysql, source):
        def handler(query, params):
            raise pymysql.err.ProgrammingError(1064, "syntax error")

        fake_mysql["handler"] = handler
        with pytest.raises(SourceQueryError):
            source.count_rows("SELEC nothing")


class TestConnect:

    def test_connect_failure(self, monkeypatch, source):
        def refuse(**kwargs):
            raise pymysql.err.OperationalError(2003, "Can't connect")

        monkeypatch.setattr(pymysql, "connect", refuse)
        with pytest.raises(SourceQueryError, match="db.local:3306"):
            source.connect()

    def test_context_manager(self, fake_mysql, source):
        with source as connected:
            assert connected.connection is fake_mysql["connections"][0]
        assert source.connection is None
