# ==============================================
# RowGroupCoordinator
# ==============================================
#
# PURPOSE:
#   Streams every ColumnPlan's query in lock-step and writes the rows
#   to a parquet file, one row group of at most `group_size` rows at
#   a time.
#
# HOW ONE ROW GROUP IS WRITTEN:
#
#   ┌────────────┐  ┌────────────┐       ┌────────────┐
#   │ cursor  0  │  │ cursor  1  │  ...  │ cursor  n  │   one per plan
#   └─────┬──────┘  └─────┬──────┘       └─────┬──────┘
#         │ ≤ group_size  │                    │
#         ▼               ▼                    ▼
#   null → def level 0    else → def level 1 + coerce(cell)
#         │               │                    │
#         ▼               ▼                    ▼
#   ┌──────────────────────────────────────────────────┐
#   │ RowGroupWriter: write_batch → close_column       │
#   │ progress_callback(Progress) after every column   │
#   └─────────────────────┬────────────────────────────┘
#                         │ every column has the same row count?
#                         ▼
#                 sink.close_row_group()
#
#   Repeats while the FIRST cursor still has a row.
#
# STATES:
#   IDLE → OPENED → WRITING_GROUP ⇄ OPENED → FINALIZING → CLOSED
#   Any exception on the way moves to ABORTED: the sink is aborted
#   (no footer), every cursor is closed and the exception propagates.
#   The partial output file is left for the caller to discard.
#
# ROW COUNT CHECK:
#   Runs before the group is committed. A column that stops early, or
#   still has rows after the first column ran out, raises
#   RowCountMismatchError for that group.
#
# ==============================================

import logging
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union

import pyarrow.parquet as pq

from sql2parquet.config import DEFAULT_GROUP_SIZE
from sql2parquet.diagnostics import Diagnostics
from sql2parquet.errors import (
    ConversionError,
    RequiredColumnNullError,
    RowCountMismatchError,
)
from sql2parquet.schema.plan import ColumnPlan
from sql2parquet.source.base import ColumnCursor, RelationalSource
from sql2parquet.writer.coercion import coercer_for
from sql2parquet.writer.progress import Progress
from sql2parquet.writer.sink import ColumnWriter, ParquetSink

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[Progress], None]


class WriterState(Enum):
    IDLE = "idle"
    OPENED = "opened"
    WRITING_GROUP = "writing_group"
    FINALIZING = "finalizing"
    CLOSED = "closed"
    ABORTED = "aborted"


def _no_progress(progress: Progress) -> None:
    pass


class RowGroupCoordinator:
    """
    Drives one table write from source cursors to a parquet sink.

    A coordinator is single-use: ``run()`` may be called once.

    Args:
        source: Where the column queries run
        table_name: Schema name recorded in the file; metadata only
        plans: One ColumnPlan per output column, in output order
        output: Destination file path
        group_size: Rows per row group (values below 1 are treated as 1)
        progress_callback: Called after every column with the cumulative
                           Progress. Raising from it cancels the write.
        compression: Parquet compression codec
        diagnostics: Sink for encoding warnings
    """

    def __init__(
        self,
        source: RelationalSource,
        table_name: str,
        plans: Sequence[ColumnPlan],
        output: Union[str, Path],
        group_size: int = DEFAULT_GROUP_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
        compression: str = "zstd",
        diagnostics: Optional[Diagnostics] = None,
    ):
        if not plans:
            raise ValueError(f"No columns to write for table '{table_name}'")
        self.source = source
        self.table_name = table_name
        self.plans = list(plans)
        self.output = Path(output)
        self.group_size = max(1, group_size)
        self.progress_callback = progress_callback or _no_progress
        self.compression = compression
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()

        self.state = WriterState.IDLE
        self.progress = Progress()
        self._sink: Optional[ParquetSink] = None
        self._cursors: List[ColumnCursor] = []
        self._coercers = [coercer_for(plan.physical_type, plan.length) for plan in self.plans]

    def run(self) -> pq.FileMetaData:
        """
        Write the whole table.

        Returns:
            Metadata of the finished file (rows, row groups, column sizes)

        Raises:
            ConversionError: A cell could not be coerced (with column/group context)
            RowCountMismatchError: Column queries disagreed on their row count
            RequiredColumnNullError: A null turned up in a required column
            SinkIOError: pyarrow or the filesystem failed
            SourceQueryError: A column query failed
            Exception: Anything the progress callback raised
        """
        if self.state != WriterState.IDLE:
            raise RuntimeError(f"Coordinator already used (state: {self.state.value})")
        try:
            self._open()
            while self._cursors[0].current() is not None:
                self._write_group()
            self.state = WriterState.FINALIZING
            metadata = self._sink.close()
            self.state = WriterState.CLOSED
        except BaseException:
            self._abort()
            raise
        finally:
            self._close_cursors()

        logger.info(
            "Wrote %s: %d rows in %d row groups",
            self.output, metadata.num_rows, metadata.num_row_groups,
        )
        return metadata

    def _open(self) -> None:
        self._sink = ParquetSink(
            self.output,
            self.plans,
            table_name=self.table_name,
            compression=self.compression,
            diagnostics=self.diagnostics,
        ).open()
        for plan in self.plans:
            cursor = self.source.open_cursor(plan.source_expression)
            self._cursors.append(cursor)
            cursor.advance()
        self.state = WriterState.OPENED
        logger.debug(
            "Writing %s to %s (%d columns, group size %d)",
            self.table_name, self.output, len(self.plans), self.group_size,
        )

    def _write_group(self) -> None:
        self.state = WriterState.WRITING_GROUP
        group_index = self.progress.n_groups
        row_group = self._sink.next_row_group()
        expected_rows = None

        for position, (plan, cursor) in enumerate(zip(self.plans, self._cursors)):
            column = row_group.next_column()
            n_rows = self._write_column(column, plan, cursor, position, group_index)
            row_group.close_column(column)

            if expected_rows is None:
                expected_rows = n_rows
            elif n_rows != expected_rows:
                raise RowCountMismatchError(group_index, plan.name, expected_rows, n_rows)
            elif self._cursors[0].exhausted and cursor.current() is not None:
                # the first column ran out here but this one has more rows
                raise RowCountMismatchError(group_index, plan.name, expected_rows, n_rows + 1)

            self.progress_callback(
                Progress(
                    n_cols=position + 1,
                    n_rows=self.progress.n_rows,
                    n_groups=self.progress.n_groups,
                )
            )

        self._sink.close_row_group(row_group)
        self.progress = Progress(
            n_cols=0,
            n_rows=self.progress.n_rows + expected_rows,
            n_groups=group_index + 1,
        )
        self.state = WriterState.OPENED

    def _write_column(
        self,
        column: ColumnWriter,
        plan: ColumnPlan,
        cursor: ColumnCursor,
        position: int,
        group_index: int,
    ) -> int:
        coerce_cell = self._coercers[position]
        values = []
        def_levels = []
        for _ in range(self.group_size):
            row = cursor.current()
            if row is None:
                break
            cell = row[0]
            if cell is None:
                if plan.required:
                    raise RequiredColumnNullError(plan.name, group_index)
                def_levels.append(0)
            else:
                try:
                    values.append(coerce_cell(cell))
                except ConversionError as exc:
                    exc.add_context(plan.name, group_index)
                    raise
                def_levels.append(1)
            cursor.advance()
        column.write_batch(values, def_levels)
        return len(def_levels)

    def _abort(self) -> None:
        self.state = WriterState.ABORTED
        if self._sink is not None:
            self._sink.abort()
        logger.warning("Aborted writing %s after %d row groups", self.output, self.progress.n_groups)

    def _close_cursors(self) -> None:
        cursors, self._cursors = self._cursors, []
        for cursor in cursors:
            cursor.close()


def write_table(
    source: RelationalSource,
    table_name: str,
    plans: Sequence[ColumnPlan],
    output: Union[str, Path],
    group_size: int = DEFAULT_GROUP_SIZE,
    progress_callback: Optional[ProgressCallback] = None,
    compression: str = "zstd",
    diagnostics: Optional[Diagnostics] = None,
) -> pq.FileMetaData:
    """
    Write the rows produced by ``plans`` to a parquet file.

    The plans' queries must all return the same number of rows, in
    corresponding order. ``table_name`` is only recorded in the file's
    schema metadata and can be any string.

    Larger groups compress better but need more memory, and a reader
    has to decode a whole row group to reach any row in it; between
    100k and 1M rows is a sensible range.

    Returns:
        pyarrow.parquet.FileMetaData of the written file
    """
    coordinator = RowGroupCoordinator(
        source,
        table_name,
        plans,
        output,
        group_size=group_size,
        progress_callback=progress_callback,
        compression=compression,
        diagnostics=diagnostics,
    )
    return coordinator.run()
