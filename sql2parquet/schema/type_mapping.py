import re
from dataclasses import dataclass
from typing import Dict, Optional

from sql2parquet.schema.plan import LogicalKind, LogicalType, PhysicalType


@dataclass(frozen=True)
class DeclaredType:
    """A declared column type split into its base name and length annotation."""
    raw: str
    base: str
    length: Optional[int] = None


@dataclass(frozen=True)
class TypeRule:
    physical_type: PhysicalType
    length: int = 0
    logical_type: Optional[LogicalType] = None
    integer_family: bool = False
    length_from_annotation: bool = False


class TypeMapper:
    """
    Maps declared SQL type names to parquet physical/logical types.

    Lookups are by upper-cased base name, with any ``(n)`` / ``[n]``
    length annotation (and whatever follows it) stripped off first.
    """

    DECLARED_PATTERN = re.compile(
        r'^\s*(?P<base>[A-Za-z_][A-Za-z0-9_ ]*?)\s*'
        r'(?:[(\[]\s*(?P<length>\d+)\s*(?:,\s*\d+\s*)?[)\]][A-Za-z ]*)?\s*$'
    )

    INTEGER = TypeRule(PhysicalType.INT64, integer_family=True)
    TEXT = TypeRule(PhysicalType.BYTE_ARRAY, logical_type=LogicalType.string())
    BINARY = TypeRule(PhysicalType.BYTE_ARRAY, length_from_annotation=True)
    VARBINARY = TypeRule(PhysicalType.BYTE_ARRAY)

    TYPE_TABLE: Dict[str, TypeRule] = {
        "BOOL": TypeRule(PhysicalType.BOOLEAN),
        "BOOLEAN": TypeRule(PhysicalType.BOOLEAN),
        "DATE": TypeRule(PhysicalType.INT32, logical_type=LogicalType.date()),
        "TIME": TypeRule(PhysicalType.INT64, logical_type=LogicalType.time(utc=False)),
        "DATETIME": TypeRule(PhysicalType.INT64, logical_type=LogicalType.timestamp(utc=True)),
        "TIMESTAMP": TypeRule(PhysicalType.INT64, logical_type=LogicalType.timestamp(utc=True)),
        "UUID": TypeRule(
            PhysicalType.FIXED_LEN_BYTE_ARRAY, length=16, logical_type=LogicalType(LogicalKind.UUID)
        ),
        "INTERVAL": TypeRule(PhysicalType.FIXED_LEN_BYTE_ARRAY, length=12),
        "TEXT": TEXT,
        "CHAR": TEXT,
        "VARCHAR": TEXT,
        "CHARACTER": TEXT,
        "NCHAR": TEXT,
        "NVARCHAR": TEXT,
        "CLOB": TEXT,
        "TINYTEXT": TEXT,
        "MEDIUMTEXT": TEXT,
        "LONGTEXT": TEXT,
        "BLOB": BINARY,
        "BINARY": BINARY,
        "VARBINARY": VARBINARY,
        "TINYBLOB": VARBINARY,
        "MEDIUMBLOB": VARBINARY,
        "LONGBLOB": VARBINARY,
        "JSON": TypeRule(PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.JSON)),
        "BSON": TypeRule(PhysicalType.BYTE_ARRAY, logical_type=LogicalType(LogicalKind.BSON)),
        "FLOAT": TypeRule(PhysicalType.FLOAT),
        "REAL": TypeRule(PhysicalType.DOUBLE),
        "DOUBLE": TypeRule(PhysicalType.DOUBLE),
        "DOUBLE PRECISION": TypeRule(PhysicalType.DOUBLE),
        "INTEGER": INTEGER,
        "INT": INTEGER,
        "BIGINT": INTEGER,
        "SMALLINT": INTEGER,
        "TINYINT": INTEGER,
        "MEDIUMINT": INTEGER,
        "UNSIGNED BIG INT": INTEGER,
    }

    @classmethod
    def parse(cls, declared: str) -> DeclaredType:
        """
        Split ``"VARCHAR(255)"`` into ``DeclaredType("VARCHAR(255)", "VARCHAR", 255)``.

        Anything after the annotation is dropped, so MySQL's
        ``"int(11) unsigned"`` parses as ``INT`` with length 11.
        """
        raw = (declared or "").strip()
        match = cls.DECLARED_PATTERN.match(raw)
        if not match:
            return DeclaredType(raw=raw, base=raw.upper())
        length = match.group("length")
        return DeclaredType(
            raw=raw,
            base=" ".join(match.group("base").upper().split()),
            length=int(length) if length is not None else None,
        )

    @classmethod
    def lookup(cls, base: str) -> Optional[TypeRule]:
        """
        Find the rule for a base type name.

        Returns:
            The matching TypeRule, or None for unrecognised names
        """
        rule = cls.TYPE_TABLE.get(base)
        if rule is not None:
            return rule
        # Fall back to the integer family for other integral spellings
        # (INT8, INT UNSIGNED, BIGINT UNSIGNED, ...)
        if base.startswith("INT") or base.endswith("INT UNSIGNED"):
            return cls.INTEGER
        return None
