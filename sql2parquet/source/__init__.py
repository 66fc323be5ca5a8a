# ==============================================
# SOURCES (row-oriented databases)
# ==============================================
#
# This package hides the relational database behind one interface:
# schema introspection, the statistics queries schema inference
# needs, and streaming single-column cursors for the writer.
#
# Modules:
# --------
# - base.py            → RelationalSource, SourceColumn, ColumnCursor
# - sqlite_source.py   → SQLite via the standard library sqlite3
# - mysql_source.py    → MySQL / MariaDB via pymysql
#
# ==============================================

from .base import ColumnCursor, RelationalSource, SourceColumn
from .sqlite_source import SQLiteSource
from .mysql_source import MySQLSource

__all__ = [
    "ColumnCursor",
    "RelationalSource",
    "SourceColumn",
    "SQLiteSource",
    "MySQLSource",
]
