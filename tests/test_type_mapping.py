# ==============================================
# Tests for Declared Type Mapping
# ==============================================

import pytest

from sql2parquet.schema.plan import LogicalKind, PhysicalType, TimeUnit
from sql2parquet.schema.type_mapping import TypeMapper


class TestParse:

    @pytest.mark.parametrize(
        "declared, base, length",
        [
            ("TEXT", "TEXT", None),
            ("varchar(255)", "VARCHAR", 255),
            ("BLOB[16]", "BLOB", 16),
            ("BINARY ( 8 )", "BINARY", 8),
            ("int(11) unsigned", "INT", 11),
            ("DECIMAL(10,2)", "DECIMAL", 10),
            ("double  precision", "DOUBLE PRECISION", None),
            ("UNSIGNED BIG INT", "UNSIGNED BIG INT", None),
        ],
    )
    def test_base_and_length(self, declared, base, length):
        parsed = TypeMapper.parse(declared)
        assert parsed.base == base
        assert parsed.length == length
        assert parsed.raw == declared.strip()

    def test_empty_declared_type(self):
        """SQLite allows columns without a declared type."""
        parsed = TypeMapper.parse("")
        assert parsed.base == ""
        assert parsed.length is None


class TestLookup:

    def test_text_family_is_string(self):
        for name in ("TEXT", "CHAR", "VARCHAR", "NVARCHAR", "LONGTEXT"):
            rule = TypeMapper.lookup(name)
            assert rule.physical_type == PhysicalType.BYTE_ARRAY
            assert rule.logical_type.kind == LogicalKind.STRING

    def test_temporal_types(self):
        date = TypeMapper.lookup("DATE")
        assert date.physical_type == PhysicalType.INT32
        assert date.logical_type.kind == LogicalKind.DATE

        time = TypeMapper.lookup("TIME")
        assert time.physical_type == PhysicalType.INT64
        assert time.logical_type.utc is False
        assert time.logical_type.unit == TimeUnit.NANOS

        for name in ("DATETIME", "TIMESTAMP"):
            rule = TypeMapper.lookup(name)
            assert rule.physical_type == PhysicalType.INT64
            assert rule.logical_type.kind == LogicalKind.TIMESTAMP
            assert rule.logical_type.utc is True

    def test_fixed_length_conventions(self):
        uuid = TypeMapper.lookup("UUID")
        assert uuid.physical_type == PhysicalType.FIXED_LEN_BYTE_ARRAY
        assert uuid.length == 16
        assert uuid.logical_type.kind == LogicalKind.UUID

        interval = TypeMapper.lookup("INTERVAL")
        assert interval.physical_type == PhysicalType.FIXED_LEN_BYTE_ARRAY
        assert interval.length == 12
        assert interval.logical_type is None

    def test_binary_takes_length_from_annotation(self):
        assert TypeMapper.lookup("BLOB").length_from_annotation
        assert TypeMapper.lookup("BINARY").length_from_annotation
        assert not TypeMapper.lookup("VARBINARY").length_from_annotation

    def test_floating_point(self):
        assert TypeMapper.lookup("FLOAT").physical_type == PhysicalType.FLOAT
        assert TypeMapper.lookup("REAL").physical_type == PhysicalType.DOUBLE
        assert TypeMapper.lookup("DOUBLE").physical_type == PhysicalType.DOUBLE
        assert TypeMapper.lookup("DOUBLE PRECISION").physical_type == PhysicalType.DOUBLE

    def test_json_and_bson(self):
        assert TypeMapper.lookup("JSON").logical_type.kind == LogicalKind.JSON
        assert TypeMapper.lookup("BSON").logical_type.kind == LogicalKind.BSON

    def test_integer_family(self):
        """Integer spellings, including ones not in the table, need a MIN/MAX scan."""
        for name in ("INTEGER", "INT", "BIGINT", "SMALLINT", "INT8", "BIGINT UNSIGNED"):
            assert TypeMapper.lookup(name).integer_family, name

    def test_boolean(self):
        assert TypeMapper.lookup("BOOLEAN").physical_type == PhysicalType.BOOLEAN
        assert TypeMapper.lookup("BOOL").physical_type == PhysicalType.BOOLEAN

    def test_unknown(self):
        assert TypeMapper.lookup("MONEY") is None
        assert TypeMapper.lookup("") is None
