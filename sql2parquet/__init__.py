# ==============================================
# sql2parquet
# ==============================================
#
# Dump relational tables (SQLite, MySQL) to parquet files, one
# column query per output column, written a row group at a time.
#
# Package Structure:
#
# sql2parquet/
# ├── schema/          # ColumnPlan, type mapping, inference, YAML plan files
# ├── source/          # Relational sources: SQLite, MySQL
# ├── writer/          # Coercion, pyarrow sink, row-group coordinator
# ├── summary.py       # Column table and size report
# ├── diagnostics.py   # Warning sink
# ├── errors.py        # Exceptions and warnings
# ├── config.py        # Configuration management
# └── cli.py           # Command line entry point
#
# Two ways in:
#
#   plans = infer_schema(source, "events")          # guess from schema + data
#   plans = load_plans("plans.yaml")["events"]      # or spell them out
#   write_table(source, "events", plans, "events.parquet", group_size=100_000)
#
# ==============================================

__version__ = "0.1.0"

from sql2parquet.diagnostics import Diagnostics
from sql2parquet.errors import (
    ConversionError,
    EncodingWarning,
    FixedLengthMismatchError,
    InferenceWarning,
    LengthAnnotationWarning,
    NumericOverflowError,
    PlanValidationError,
    RequiredColumnNullError,
    RowCountMismatchError,
    SinkIOError,
    SourceIntrospectionError,
    SourceQueryError,
    Sql2ParquetError,
    TypeMismatchError,
    UnknownTypeWarning,
)
from sql2parquet.schema import (
    ColumnPlan,
    Encoding,
    LogicalKind,
    LogicalType,
    PhysicalType,
    SchemaInferencer,
    TimeUnit,
    infer_schema,
    load_plans,
    save_plans,
)
from sql2parquet.source import MySQLSource, RelationalSource, SQLiteSource
from sql2parquet.writer import Progress, RowGroupCoordinator, WriterState, coerce, write_table
