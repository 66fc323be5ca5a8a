# ==============================================
# Writer: cells → parquet
# ==============================================
#
# coercion.py    → coerce(cell, physical_type, length)
# sink.py        → ParquetSink / RowGroupWriter / ColumnWriter (pyarrow)
# coordinator.py → RowGroupCoordinator, write_table()
# progress.py    → Progress, ProgressPrinter
#
# ==============================================

from .coercion import SourceKind, coerce, coercer_for, source_kind
from .coordinator import RowGroupCoordinator, WriterState, write_table
from .progress import Progress, ProgressPrinter
from .sink import ColumnWriter, ParquetSink, RowGroupWriter, arrow_field

__all__ = [
    "ColumnWriter",
    "ParquetSink",
    "Progress",
    "ProgressPrinter",
    "RowGroupCoordinator",
    "RowGroupWriter",
    "SourceKind",
    "WriterState",
    "arrow_field",
    "coerce",
    "coercer_for",
    "source_kind",
    "write_table",
]
