# ==============================================
# ParquetSink
# ==============================================
#
# PURPOSE:
#   Column-at-a-time parquet writer on top of pyarrow.
#
# HOW IT WORKS:
#   pyarrow writes whole tables, not individual column chunks, so each
#   ColumnWriter buffers its values and definition levels until the
#   row group is closed. The buffered columns are then turned into
#   arrow arrays and written as one table whose row_group_size equals
#   its length, which makes every close_row_group() exactly one parquet
#   row group.
#
# CLASSES:
# --------
# - ParquetSink
#     open() -> self
#     next_row_group() -> RowGroupWriter
#     close_row_group(row_group) -> None
#     close() -> pyarrow.parquet.FileMetaData
#     abort() -> None         (closes the file, no footer)
#
# - RowGroupWriter
#     next_column() -> ColumnWriter | None   (None after the last column)
#     close_column(column_writer) -> None
#
# - ColumnWriter
#     write_batch(values, def_levels=None, rep_levels=None) -> None
#
# TYPE MAPPING (physical + logical → arrow):
# ------------------------------------------
#   BOOLEAN                          → bool
#   INT32                            → int32
#   INT32 + DATE                     → date32
#   INT32 + TIME(MILLIS)             → time32[ms]
#   INT32 + INTEGER(8|16|32, s)      → (u)int8 / (u)int16 / (u)int32
#   INT64                            → int64
#   INT64 + TIMESTAMP(unit, utc)     → timestamp[unit, tz=UTC if utc]
#   INT64 + TIME(MICROS|NANOS)       → time64[us|ns]
#   INT64 + INTEGER(64, s)           → (u)int64
#   FLOAT / DOUBLE                   → float32 / float64
#   BYTE_ARRAY + STRING              → string
#   BYTE_ARRAY + JSON                → json (extension, parquet JSON)
#   BYTE_ARRAY (+ BSON)              → binary
#   FIXED_LEN_BYTE_ARRAY[16] + UUID  → uuid (extension, parquet UUID)
#   FIXED_LEN_BYTE_ARRAY[n]          → binary(n)
#
#   pyarrow has no BSON type, so BSON columns are written as plain
#   binary with an EncodingWarning. Every logical type is also stored
#   in the field metadata under "logical_type".
#
# ==============================================

import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pyarrow as pa
import pyarrow.parquet as pq

from sql2parquet.diagnostics import Diagnostics
from sql2parquet.errors import EncodingWarning, SinkIOError
from sql2parquet.schema.plan import (
    ColumnPlan,
    Encoding,
    LogicalKind,
    LogicalType,
    PhysicalType,
    TimeUnit,
)

logger = logging.getLogger(__name__)

PARQUET_VERSION = "2.6"

STORAGE_TYPES = {
    PhysicalType.BOOLEAN: pa.bool_(),
    PhysicalType.INT32: pa.int32(),
    PhysicalType.INT64: pa.int64(),
    PhysicalType.FLOAT: pa.float32(),
    PhysicalType.DOUBLE: pa.float64(),
    PhysicalType.BYTE_ARRAY: pa.binary(),
}

ARROW_UNITS = {
    TimeUnit.MILLIS: "ms",
    TimeUnit.MICROS: "us",
    TimeUnit.NANOS: "ns",
}

# Encodings pyarrow accepts in column_encoding, and the physical types
# each one applies to.
SUPPORTED_ENCODINGS = {
    Encoding.PLAIN: set(PhysicalType),
    Encoding.RLE: {PhysicalType.BOOLEAN},
    Encoding.DELTA_BINARY_PACKED: {PhysicalType.INT32, PhysicalType.INT64},
    Encoding.DELTA_LENGTH_BYTE_ARRAY: {PhysicalType.BYTE_ARRAY},
    Encoding.DELTA_BYTE_ARRAY: {PhysicalType.BYTE_ARRAY, PhysicalType.FIXED_LEN_BYTE_ARRAY},
    Encoding.BYTE_STREAM_SPLIT: {
        PhysicalType.FLOAT,
        PhysicalType.DOUBLE,
        PhysicalType.INT32,
        PhysicalType.INT64,
        PhysicalType.FIXED_LEN_BYTE_ARRAY,
    },
}


def storage_type(plan: ColumnPlan) -> pa.DataType:
    """Arrow type matching the plan's physical type alone."""
    if plan.physical_type == PhysicalType.FIXED_LEN_BYTE_ARRAY:
        return pa.binary(plan.length)
    return STORAGE_TYPES[plan.physical_type]


def _integer_type(logical: LogicalType) -> pa.DataType:
    width = logical.bit_width
    if logical.signed:
        return {8: pa.int8(), 16: pa.int16(), 32: pa.int32(), 64: pa.int64()}[width]
    return {8: pa.uint8(), 16: pa.uint16(), 32: pa.uint32(), 64: pa.uint64()}[width]


def arrow_type(plan: ColumnPlan) -> pa.DataType:
    """Arrow type carrying both the physical and the logical type of a plan."""
    logical = plan.logical_type
    if logical is None:
        return storage_type(plan)
    kind = logical.kind
    if kind == LogicalKind.STRING:
        return pa.string()
    if kind == LogicalKind.JSON:
        return pa.json_()
    if kind == LogicalKind.UUID:
        return pa.uuid()
    if kind == LogicalKind.DATE:
        return pa.date32()
    if kind == LogicalKind.TIMESTAMP:
        return pa.timestamp(ARROW_UNITS[logical.unit], tz="UTC" if logical.utc else None)
    if kind == LogicalKind.TIME:
        if logical.unit == TimeUnit.MILLIS:
            return pa.time32("ms")
        return pa.time64(ARROW_UNITS[logical.unit])
    if kind == LogicalKind.INTEGER:
        return _integer_type(logical)
    # BSON: tag only, stored as plain bytes
    return storage_type(plan)


def arrow_field(plan: ColumnPlan) -> pa.Field:
    metadata = None
    if plan.logical_type is not None:
        metadata = {"logical_type": str(plan.logical_type)}
    return pa.field(
        plan.name,
        arrow_type(plan),
        nullable=not plan.required,
        metadata=metadata,
    )


def arrow_schema(plans: Sequence[ColumnPlan], table_name: str) -> pa.Schema:
    return pa.schema(
        [arrow_field(plan) for plan in plans],
        metadata={"table_name": table_name},
    )


def writer_options(
    plans: Sequence[ColumnPlan], diagnostics: Diagnostics
) -> Dict[str, object]:
    """
    Translate per-column dictionary and encoding hints into
    ``pq.ParquetWriter`` keyword arguments.

    Returns:
        Dict with ``use_dictionary`` and ``column_encoding``
    """
    dictionary_columns: List[str] = []
    column_encoding: Dict[str, str] = {}
    for plan in plans:
        if plan.logical_type is not None and plan.logical_type.kind == LogicalKind.BSON:
            diagnostics.warn(EncodingWarning(
                plan.name, "pyarrow cannot annotate BSON; writing plain binary"
            ))
        dictionary = plan.dictionary_enabled
        encoding = plan.encoding
        if encoding == Encoding.RLE_DICTIONARY:
            dictionary = True
            encoding = None
        elif encoding == Encoding.BIT_PACKED:
            diagnostics.warn(EncodingWarning(
                plan.name, "BIT_PACKED is deprecated and not writable; using the default encoding"
            ))
            encoding = None
        elif encoding is not None and plan.physical_type not in SUPPORTED_ENCODINGS[encoding]:
            diagnostics.warn(EncodingWarning(
                plan.name,
                f"{encoding.value} does not apply to {plan.physical_type.value}; "
                f"using the default encoding",
            ))
            encoding = None

        if encoding is not None:
            if dictionary:
                diagnostics.warn(EncodingWarning(
                    plan.name, f"explicit {encoding.value} encoding disables the dictionary"
                ))
            column_encoding[plan.name] = encoding.value
        elif dictionary:
            dictionary_columns.append(plan.name)

    return {
        "use_dictionary": dictionary_columns if dictionary_columns else False,
        "column_encoding": column_encoding or None,
    }


class ColumnWriter:
    """
    Buffers one column chunk of the current row group.

    Values are the non-null cells only; definition levels say where
    they go (1 = value present, 0 = null).
    """

    def __init__(self, plan: ColumnPlan, field: pa.Field):
        self.plan = plan
        self.field = field
        self._cells: List[object] = []
        self.closed = False

    @property
    def num_rows(self) -> int:
        return len(self._cells)

    def write_batch(
        self,
        values: Sequence[object],
        def_levels: Optional[Sequence[int]] = None,
        rep_levels: Optional[Sequence[int]] = None,
    ) -> None:
        """
        Append a batch of rows.

        Args:
            values: Non-null values, already coerced to the physical type
            def_levels: One level per row. May be omitted for required
                        columns, meaning every row has a value.
            rep_levels: Accepted for interface symmetry; columns are flat so
                        repetition levels carry no information.
        """
        if self.closed:
            raise ValueError(f"Column '{self.plan.name}' is already closed")
        if def_levels is None:
            self._cells.extend(values)
            return
        if self.plan.required and 0 in def_levels:
            raise ValueError(f"Column '{self.plan.name}' is required but got a null")
        present = sum(def_levels)
        if present != len(values):
            raise ValueError(
                f"Column '{self.plan.name}': {present} definition levels are set "
                f"but {len(values)} values were given"
            )
        it = iter(values)
        self._cells.extend(next(it) if level else None for level in def_levels)

    def to_array(self) -> pa.Array:
        target = self.field.type
        array = pa.array(self._cells, type=storage_type(self.plan))
        if isinstance(target, pa.BaseExtensionType):
            if array.type != target.storage_type:
                array = array.cast(target.storage_type)
            return pa.ExtensionArray.from_storage(target, array)
        if array.type != target:
            array = array.cast(target)
        return array


class RowGroupWriter:
    def __init__(self, sink: "ParquetSink", index: int):
        self.sink = sink
        self.index = index
        self.columns: List[ColumnWriter] = []
        self._open_column: Optional[ColumnWriter] = None

    def next_column(self) -> Optional[ColumnWriter]:
        if self._open_column is not None:
            raise ValueError(f"Column '{self._open_column.plan.name}' was not closed")
        position = len(self.columns)
        if position == len(self.sink.plans):
            return None
        column = ColumnWriter(self.sink.plans[position], self.sink.schema.field(position))
        self._open_column = column
        return column

    def close_column(self, column: ColumnWriter) -> None:
        if column is not self._open_column:
            raise ValueError(f"Column '{column.plan.name}' is not the open column")
        column.closed = True
        self.columns.append(column)
        self._open_column = None

    def to_table(self) -> pa.Table:
        if len(self.columns) != len(self.sink.plans):
            raise ValueError(
                f"Row group {self.index} has {len(self.columns)} of "
                f"{len(self.sink.plans)} columns"
            )
        lengths = {column.num_rows for column in self.columns}
        if len(lengths) > 1:
            raise ValueError(f"Row group {self.index} has columns of different lengths")
        return pa.Table.from_arrays(
            [column.to_array() for column in self.columns],
            schema=self.sink.schema,
        )


class ParquetSink:
    """
    Writes a parquet file one row group at a time.

    Usage:
        sink = ParquetSink("out.parquet", plans).open()
        group = sink.next_row_group()
        while (column := group.next_column()) is not None:
            column.write_batch(values, def_levels)
            group.close_column(column)
        sink.close_row_group(group)
        metadata = sink.close()
    """

    def __init__(
        self,
        path: Union[str, Path],
        plans: Sequence[ColumnPlan],
        table_name: str = "schema",
        compression: str = "zstd",
        diagnostics: Optional[Diagnostics] = None,
    ):
        self.path = Path(path)
        self.plans = list(plans)
        self.table_name = table_name
        self.compression = compression
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.schema = arrow_schema(self.plans, table_name)
        self.num_row_groups = 0
        self._stream = None
        self._writer: Optional[pq.ParquetWriter] = None
        self._row_group: Optional[RowGroupWriter] = None

    def open(self) -> "ParquetSink":
        options = writer_options(self.plans, self.diagnostics)
        try:
            self._stream = pa.OSFile(str(self.path), "wb")
            self._writer = pq.ParquetWriter(
                self._stream,
                self.schema,
                version=PARQUET_VERSION,
                compression=self.compression,
                **options,
            )
        except (pa.ArrowException, OSError) as exc:
            self._close_stream()
            raise SinkIOError(f"Cannot open {self.path} for writing: {exc}") from exc
        logger.debug("Opened %s (%d columns, %s)", self.path, len(self.plans), self.compression)
        return self

    def next_row_group(self) -> RowGroupWriter:
        if self._writer is None:
            raise ValueError("Sink is not open")
        if self._row_group is not None:
            raise ValueError(f"Row group {self._row_group.index} was not closed")
        self._row_group = RowGroupWriter(self, self.num_row_groups)
        return self._row_group

    def close_row_group(self, row_group: RowGroupWriter) -> None:
        if row_group is not self._row_group:
            raise ValueError("Not the open row group")
        try:
            table = row_group.to_table()
            self._writer.write_table(table, row_group_size=max(table.num_rows, 1))
        except (pa.ArrowException, OSError) as exc:
            raise SinkIOError(
                f"Writing row group {row_group.index} to {self.path} failed: {exc}"
            ) from exc
        self.num_row_groups += 1
        self._row_group = None

    def close(self) -> pq.FileMetaData:
        """
        Write the footer and close the file.

        Returns:
            The finished file's metadata, as read back from disk
        """
        if self._writer is None:
            raise ValueError("Sink is not open")
        try:
            self._writer.close()
            self._close_stream()
            metadata = pq.read_metadata(str(self.path))
        except (pa.ArrowException, OSError) as exc:
            raise SinkIOError(f"Finalizing {self.path} failed: {exc}") from exc
        finally:
            self._writer = None
        logger.debug(
            "Closed %s: %d rows in %d row groups",
            self.path, metadata.num_rows, metadata.num_row_groups,
        )
        return metadata

    def abort(self) -> None:
        """Close the output without a footer, leaving an unreadable partial file."""
        writer, self._writer = self._writer, None
        # the stream goes first so the footer write has nowhere to land
        self._close_stream()
        if writer is not None:
            try:
                writer.close()
            except (pa.ArrowException, OSError) as exc:
                logger.debug("No footer written to %s: %s", self.path, exc)
        self._row_group = None
        logger.debug("Aborted %s", self.path)

    def _close_stream(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def __enter__(self) -> "ParquetSink":
        if self._writer is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            self.abort()
        elif self._writer is not None:
            self.close()
