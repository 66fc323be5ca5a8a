# ==============================================
# Tests for the pyarrow ParquetSink
# ==============================================

import gc

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from sql2parquet.errors import EncodingWarning, SinkIOError
from sql2parquet.schema.plan import (
    ColumnPlan,
    Encoding,
    LogicalKind,
    LogicalType,
    PhysicalType,
    TimeUnit,
)
from sql2parquet.writer.sink import ParquetSink, arrow_field, arrow_type, writer_options


def plan(name, physical_type, **kwargs):
    return ColumnPlan(name, physical_type, f"SELECT {name} FROM t", **kwargs)


def write_groups(sink, groups):
    """Write a list of row groups, each a list of (values, def_levels) per column."""
    for columns in groups:
        row_group = sink.next_row_group()
        for values, def_levels in columns:
            column = row_group.next_column()
            column.write_batch(values, def_levels)
            row_group.close_column(column)
        assert row_group.next_column() is None
        sink.close_row_group(row_group)


# ==============================================
# Schema mapping
# ==============================================

class TestArrowTypes:

    @pytest.mark.parametrize(
        "column_plan, expected",
        [
            (plan("a", PhysicalType.BOOLEAN), pa.bool_()),
            (plan("a", PhysicalType.INT32), pa.int32()),
            (plan("a", PhysicalType.INT64), pa.int64()),
            (plan("a", PhysicalType.FLOAT), pa.float32()),
            (plan("a", PhysicalType.DOUBLE), pa.float64()),
            (plan("a", PhysicalType.BYTE_ARRAY), pa.binary()),
            (plan("a", PhysicalType.FIXED_LEN_BYTE_ARRAY, length=12), pa.binary(12)),
            (plan("a", PhysicalType.BYTE_ARRAY, logical_type=LogicalType.string()), pa.string()),
            (plan("a", PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.JSON)), pa.json_()),
            (
                plan("a", PhysicalType.FIXED_LEN_BYTE_ARRAY, length=16,
                     logical_type=LogicalType(LogicalKind.UUID)),
                pa.uuid(),
            ),
            (plan("a", PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.BSON)), pa.binary()),
            (plan("a", PhysicalType.INT32, logical_type=LogicalType.date()), pa.date32()),
            (
                plan("a", PhysicalType.INT64, logical_type=LogicalType.timestamp()),
                pa.timestamp("ns", tz="UTC"),
            ),
            (
                plan("a", PhysicalType.INT64,
                     logical_type=LogicalType.timestamp(utc=False, unit=TimeUnit.MICROS)),
                pa.timestamp("us"),
            ),
            (plan("a", PhysicalType.INT64, logical_type=LogicalType.time()), pa.time64("ns")),
            (
                plan("a", PhysicalType.INT32, logical_type=LogicalType.time(unit=TimeUnit.MILLIS)),
                pa.time32("ms"),
            ),
            (plan("a", PhysicalType.INT32, logical_type=LogicalType.integer(8)), pa.int8()),
            (
                plan("a", PhysicalType.INT64, logical_type=LogicalType.integer(64, signed=False)),
                pa.uint64(),
            ),
        ],
    )
    def test_mapping(self, column_plan, expected):
        assert arrow_type(column_plan) == expected

    def test_required_is_not_nullable(self):
        assert arrow_field(plan("a", PhysicalType.INT32, required=True)).nullable is False
        assert arrow_field(plan("a", PhysicalType.INT32)).nullable is True

    def test_logical_tag_in_metadata(self):
        field = arrow_field(
            plan("a", PhysicalType.FIXED_LEN_BYTE_ARRAY, length=16,
                 logical_type=LogicalType(LogicalKind.UUID))
        )
        assert field.type == pa.uuid()
        assert field.metadata == {b"logical_type": b"UUID"}


# ==============================================
# Encoding / dictionary options
# ==============================================

class TestWriterOptions:

    def test_dictionary_columns(self, diagnostics):
        options = writer_options(
            [plan("a", PhysicalType.INT32, dictionary_enabled=True), plan("b", PhysicalType.INT32)],
            diagnostics,
        )
        assert options == {"use_dictionary": ["a"], "column_encoding": None}

    def test_no_dictionary_at_all(self, diagnostics):
        options = writer_options([plan("a", PhysicalType.INT32)], diagnostics)
        assert options["use_dictionary"] is False

    def test_explicit_encoding(self, diagnostics):
        options = writer_options(
            [plan("a", PhysicalType.INT64, encoding=Encoding.DELTA_BINARY_PACKED)], diagnostics
        )
        assert options["column_encoding"] == {"a": "DELTA_BINARY_PACKED"}
        assert len(diagnostics) == 0

    def test_rle_dictionary_enables_dictionary(self, diagnostics):
        options = writer_options(
            [plan("a", PhysicalType.BYTE_ARRAY, encoding=Encoding.RLE_DICTIONARY)], diagnostics
        )
        assert options == {"use_dictionary": ["a"], "column_encoding": None}

    def test_bit_packed_is_ignored(self, diagnostics):
        options = writer_options(
            [plan("a", PhysicalType.INT32, encoding=Encoding.BIT_PACKED)], diagnostics
        )
        assert options["column_encoding"] is None
        assert len(diagnostics.of_type(EncodingWarning)) == 1

    def test_encoding_beats_dictionary(self, diagnostics):
        """An explicit encoding wins over dictionary_enabled, with a warning."""
        options = writer_options(
            [plan("a", PhysicalType.INT32, encoding=Encoding.PLAIN, dictionary_enabled=True)],
            diagnostics,
        )
        assert options == {"use_dictionary": False, "column_encoding": {"a": "PLAIN"}}
        (warning,) = diagnostics.of_type(EncodingWarning)
        assert warning.column == "a"

    def test_encoding_for_wrong_type(self, diagnostics):
        options = writer_options(
            [plan("a", PhysicalType.DOUBLE, encoding=Encoding.DELTA_BINARY_PACKED)], diagnostics
        )
        assert options["column_encoding"] is None
        assert len(diagnostics.of_type(EncodingWarning)) == 1

    def test_bson_is_reported(self, diagnostics):
        writer_options(
            [plan("b", PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.BSON))],
            diagnostics,
        )
        (warning,) = diagnostics.of_type(EncodingWarning)
        assert warning.column == "b"
        assert "BSON" in str(warning)


# ==============================================
# Writing
# ==============================================

class TestParquetSink:

    def test_row_groups_and_nulls(self, tmp_path, diagnostics):
        path = tmp_path / "out.parquet"
        plans = [
            plan("id", PhysicalType.INT32, required=True),
            plan("name", PhysicalType.BYTE_ARRAY, logical_type=LogicalType.string()),
        ]
        sink = ParquetSink(path, plans, table_name="people", diagnostics=diagnostics).open()
        write_groups(sink, [
            [([1, 2], [1, 1]), ([b"ann"], [1, 0])],
            [([3], [1]), ([b"cy"], [1])],
        ])
        metadata = sink.close()

        assert metadata.num_rows == 3
        assert metadata.num_row_groups == 2
        assert [metadata.row_group(i).num_rows for i in range(2)] == [2, 1]

        table = pq.read_table(path)
        assert table.to_pydict() == {"id": [1, 2, 3], "name": ["ann", None, "cy"]}
        assert table.schema.metadata[b"table_name"] == b"people"

    def test_temporal_round_trip(self, tmp_path):
        path = tmp_path / "t.parquet"
        plans = [
            plan("d", PhysicalType.INT32, logical_type=LogicalType.date()),
            plan("ts", PhysicalType.INT64, logical_type=LogicalType.timestamp()),
        ]
        sink = ParquetSink(path, plans).open()
        write_groups(sink, [[([19000], [1]), ([1_600_000_000_123_456_789], [1])]])
        sink.close()

        table = pq.read_table(path)
        assert table.schema.field("d").type == pa.date32()
        assert table.column("d").cast(pa.int32()).to_pylist() == [19000]
        assert table.column("ts").cast(pa.int64()).to_pylist() == [1_600_000_000_123_456_789]

    def test_logical_types_in_parquet_schema(self, tmp_path, diagnostics):
        """UUID and JSON reach the file as parquet logical types, not just metadata."""
        path = tmp_path / "logical.parquet"
        uuid_bytes = bytes(range(16))
        plans = [
            plan("u", PhysicalType.FIXED_LEN_BYTE_ARRAY, length=16,
                 logical_type=LogicalType(LogicalKind.UUID)),
            plan("j", PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.JSON)),
            plan("b", PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.BSON)),
        ]
        sink = ParquetSink(path, plans, diagnostics=diagnostics).open()
        write_groups(sink, [[([uuid_bytes], [1, 0]), ([b'{"k": 1}', b"[]"], [1, 1]), ([], [0, 0])]])
        sink.close()

        schema = pq.ParquetFile(path).schema
        logical = {schema.column(i).name: str(schema.column(i).logical_type) for i in range(3)}
        assert logical["u"] == "UUID"
        assert logical["j"] == "JSON"
        assert len(diagnostics.of_type(EncodingWarning)) == 1

        table = pq.read_table(path)
        assert table.column("u").type == pa.uuid()
        assert table.column("u").chunk(0).storage.to_pylist() == [uuid_bytes, None]
        assert table.column("j").chunk(0).storage.to_pylist() == ['{"k": 1}', "[]"]

    def test_float_column_is_single_precision(self, tmp_path):
        path = tmp_path / "f.parquet"
        sink = ParquetSink(path, [plan("f", PhysicalType.FLOAT)]).open()
        write_groups(sink, [[([0.1, 0.5], [1, 1])]])
        metadata = sink.close()

        assert metadata.schema.column(0).physical_type == "FLOAT"
        values = pq.read_table(path).column("f").to_pylist()
        assert values == pa.array([0.1, 0.5], pa.float32()).to_pylist()
        assert values[0] != 0.1

    def test_dictionary_requested(self, tmp_path):
        path = tmp_path / "dict.parquet"
        plans = [
            plan("a", PhysicalType.BYTE_ARRAY, required=True, dictionary_enabled=True),
            plan("b", PhysicalType.BYTE_ARRAY, required=True),
        ]
        sink = ParquetSink(path, plans).open()
        write_groups(sink, [[([b"x"] * 100, None), ([b"x"] * 100, None)]])
        metadata = sink.close()

        column_a = metadata.row_group(0).column(0)
        column_b = metadata.row_group(0).column(1)
        assert column_a.has_dictionary_page
        assert not column_b.has_dictionary_page

    def test_def_levels_must_match_values(self, tmp_path):
        sink = ParquetSink(tmp_path / "x.parquet", [plan("a", PhysicalType.INT32)]).open()
        column = sink.next_row_group().next_column()
        with pytest.raises(ValueError):
            column.write_batch([1, 2], [1, 0])
        sink.abort()

    def test_required_column_rejects_null_level(self, tmp_path):
        sink = ParquetSink(
            tmp_path / "x.parquet", [plan("a", PhysicalType.INT32, required=True)]
        ).open()
        column = sink.next_row_group().next_column()
        with pytest.raises(ValueError):
            column.write_batch([], [0])
        sink.abort()

    def test_abort_leaves_no_footer(self, tmp_path):
        path = tmp_path / "partial.parquet"
        sink = ParquetSink(path, [plan("a", PhysicalType.INT32, required=True)]).open()
        write_groups(sink, [[([1, 2, 3], None)]])
        sink.abort()

        assert path.exists()
        with pytest.raises((pa.ArrowException, OSError)):
            pq.read_metadata(path)

    def test_abort_survives_garbage_collection(self, tmp_path):
        """Dropping the aborted writer later must not finish the file."""
        path = tmp_path / "partial.parquet"
        sink = ParquetSink(path, [plan("a", PhysicalType.INT64)]).open()
        write_groups(sink, [[([1, 2], [1, 1])], [([3], [1])]])
        sink.abort()
        del sink
        gc.collect()

        with pytest.raises((pa.ArrowException, OSError)):
            pq.read_metadata(path)
        with pytest.raises((pa.ArrowException, OSError)):
            pq.read_table(path)

    def test_unwritable_path(self, tmp_path):
        sink = ParquetSink(tmp_path / "missing" / "x.parquet", [plan("a", PhysicalType.INT32)])
        with pytest.raises(SinkIOError):
            sink.open()

    def test_context_manager_closes(self, tmp_path):
        path = tmp_path / "ctx.parquet"
        with ParquetSink(path, [plan("a", PhysicalType.DOUBLE)]) as sink:
            write_groups(sink, [[([0.5], [1])]])
        assert pq.read_table(path).column("a").to_pylist() == [0.5]
