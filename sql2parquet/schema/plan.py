# ==============================================
# ColumnPlan (Data Classes)
# ==============================================
#
# PURPOSE:
#   Data classes that describe ONE output column: how it is stored,
#   whether it may be null, which encoding to ask for, and which
#   query produces its values.
#
# WHY THIS FILE EXISTS:
#   Plans come from two places: the SchemaInferencer, or a YAML file
#   written by a user. Both go through the same validated value
#   object, so the writer has a single code path.
#
# ENUMS:
# ------
# - PhysicalType: BOOLEAN, INT32, INT64, FLOAT, DOUBLE,
#                 BYTE_ARRAY, FIXED_LEN_BYTE_ARRAY
# - LogicalKind:  STRING, DATE, TIME, TIMESTAMP, JSON, BSON, UUID, INTEGER
# - TimeUnit:     MILLIS, MICROS, NANOS
# - Encoding:     PLAIN, RLE, BIT_PACKED, DELTA_BINARY_PACKED,
#                 DELTA_LENGTH_BYTE_ARRAY, DELTA_BYTE_ARRAY,
#                 RLE_DICTIONARY, BYTE_STREAM_SPLIT
#
# CLASSES:
# --------
# - LogicalType (frozen dataclass)
#     kind + the parameters that kind needs (utc/unit for time
#     types, bit_width/signed for INTEGER).
#
# - ColumnPlan (frozen dataclass)
#     name, required, physical_type, length, logical_type,
#     encoding, dictionary_enabled, source_expression
#
#     Invariants (checked in __post_init__):
#       - FIXED_LEN_BYTE_ARRAY needs length > 0, every other type length == 0
#       - the logical type must fit the physical type
#
# ==============================================

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from sql2parquet.errors import PlanValidationError


class PhysicalType(Enum):
    """On-disk value representation."""
    BOOLEAN = "BOOLEAN"
    INT32 = "INT32"
    INT64 = "INT64"
    FLOAT = "FLOAT"
    DOUBLE = "DOUBLE"
    BYTE_ARRAY = "BYTE_ARRAY"
    FIXED_LEN_BYTE_ARRAY = "FIXED_LEN_BYTE_ARRAY"


class LogicalKind(Enum):
    STRING = "STRING"
    DATE = "DATE"
    TIME = "TIME"
    TIMESTAMP = "TIMESTAMP"
    JSON = "JSON"
    BSON = "BSON"
    UUID = "UUID"
    INTEGER = "INTEGER"


class TimeUnit(Enum):
    MILLIS = "MILLIS"
    MICROS = "MICROS"
    NANOS = "NANOS"


class Encoding(Enum):
    PLAIN = "PLAIN"
    RLE = "RLE"
    BIT_PACKED = "BIT_PACKED"
    DELTA_BINARY_PACKED = "DELTA_BINARY_PACKED"
    DELTA_LENGTH_BYTE_ARRAY = "DELTA_LENGTH_BYTE_ARRAY"
    DELTA_BYTE_ARRAY = "DELTA_BYTE_ARRAY"
    RLE_DICTIONARY = "RLE_DICTIONARY"
    BYTE_STREAM_SPLIT = "BYTE_STREAM_SPLIT"


@dataclass(frozen=True)
class LogicalType:
    """
    Semantic annotation layered on a physical type.

    Only the parameters relevant to ``kind`` are set; the others stay None.
    """

    kind: LogicalKind
    utc: Optional[bool] = None
    unit: Optional[TimeUnit] = None
    bit_width: Optional[int] = None
    signed: Optional[bool] = None

    @classmethod
    def string(cls) -> "LogicalType":
        return cls(LogicalKind.STRING)

    @classmethod
    def date(cls) -> "LogicalType":
        return cls(LogicalKind.DATE)

    @classmethod
    def time(cls, utc: bool = False, unit: TimeUnit = TimeUnit.NANOS) -> "LogicalType":
        return cls(LogicalKind.TIME, utc=utc, unit=unit)

    @classmethod
    def timestamp(cls, utc: bool = True, unit: TimeUnit = TimeUnit.NANOS) -> "LogicalType":
        return cls(LogicalKind.TIMESTAMP, utc=utc, unit=unit)

    @classmethod
    def integer(cls, bit_width: int, signed: bool = True) -> "LogicalType":
        return cls(LogicalKind.INTEGER, bit_width=bit_width, signed=signed)

    def physical_types(self) -> tuple:
        """Physical types able to carry this logical type."""
        if self.kind in (LogicalKind.STRING, LogicalKind.JSON, LogicalKind.BSON):
            return (PhysicalType.BYTE_ARRAY,)
        if self.kind == LogicalKind.UUID:
            return (PhysicalType.FIXED_LEN_BYTE_ARRAY,)
        if self.kind == LogicalKind.DATE:
            return (PhysicalType.INT32,)
        if self.kind == LogicalKind.TIMESTAMP:
            return (PhysicalType.INT64,)
        if self.kind == LogicalKind.TIME:
            if self.unit == TimeUnit.MILLIS:
                return (PhysicalType.INT32,)
            return (PhysicalType.INT64,)
        if self.kind == LogicalKind.INTEGER:
            if self.bit_width == 64:
                return (PhysicalType.INT64,)
            return (PhysicalType.INT32,)
        return ()

    def validate(self) -> None:
        if self.kind in (LogicalKind.TIME, LogicalKind.TIMESTAMP):
            if self.unit is None or self.utc is None:
                raise PlanValidationError(f"{self.kind.value} needs both 'utc' and 'unit'")
        if self.kind == LogicalKind.INTEGER:
            if self.bit_width not in (8, 16, 32, 64) or self.signed is None:
                raise PlanValidationError(
                    f"INTEGER needs bit_width in (8, 16, 32, 64) and 'signed', "
                    f"got bit_width={self.bit_width}"
                )

    def __str__(self) -> str:
        if self.kind in (LogicalKind.TIME, LogicalKind.TIMESTAMP):
            return f"{self.kind.value}({self.unit.value}, utc={self.utc})"
        if self.kind == LogicalKind.INTEGER:
            return f"INTEGER({self.bit_width}, signed={self.signed})"
        return self.kind.value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value}
        if self.utc is not None:
            data["utc"] = self.utc
        if self.unit is not None:
            data["unit"] = self.unit.value
        if self.bit_width is not None:
            data["bit_width"] = self.bit_width
        if self.signed is not None:
            data["signed"] = self.signed
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "LogicalType":
        """Accepts either a mapping or a bare kind name such as ``"STRING"``."""
        if isinstance(data, str):
            data = {"kind": data}
        if not isinstance(data, dict) or "kind" not in data:
            raise PlanValidationError(f"Invalid logical type: {data!r}")
        try:
            kind = LogicalKind(str(data["kind"]).upper())
            unit = TimeUnit(str(data["unit"]).upper()) if data.get("unit") is not None else None
        except ValueError as exc:
            raise PlanValidationError(f"Invalid logical type: {data!r}") from exc
        if kind == LogicalKind.TIME:
            return cls.time(utc=data.get("utc", False), unit=unit or TimeUnit.NANOS)
        if kind == LogicalKind.TIMESTAMP:
            return cls.timestamp(utc=data.get("utc", True), unit=unit or TimeUnit.NANOS)
        if kind == LogicalKind.INTEGER:
            return cls.integer(data.get("bit_width"), data.get("signed", True))
        return cls(kind)


@dataclass(frozen=True)
class ColumnPlan:
    """
    Everything the writer needs to know about one output column.

    Immutable once built. The writer consumes plans read-only, so a plan
    produced by inference and one loaded from a file behave identically.
    """

    name: str
    physical_type: PhysicalType
    source_expression: str
    required: bool = False
    length: int = 0  # only meaningful for FIXED_LEN_BYTE_ARRAY
    logical_type: Optional[LogicalType] = None
    encoding: Optional[Encoding] = None
    dictionary_enabled: bool = False

    def __post_init__(self):
        if not self.name:
            raise PlanValidationError("Column name must not be empty")
        if not self.source_expression:
            raise PlanValidationError(f"Column '{self.name}' has no query")
        if self.physical_type == PhysicalType.FIXED_LEN_BYTE_ARRAY:
            if self.length <= 0:
                raise PlanValidationError(
                    f"Column '{self.name}': FIXED_LEN_BYTE_ARRAY needs a length > 0, "
                    f"got {self.length}"
                )
        elif self.length != 0:
            raise PlanValidationError(
                f"Column '{self.name}': {self.physical_type.value} cannot carry a length"
            )
        if self.logical_type is not None:
            self.logical_type.validate()
            if self.physical_type not in self.logical_type.physical_types():
                raise PlanValidationError(
                    f"Column '{self.name}': logical type {self.logical_type} "
                    f"cannot be stored as {self.physical_type.value}"
                )
            if self.logical_type.kind == LogicalKind.UUID and self.length != 16:
                raise PlanValidationError(
                    f"Column '{self.name}': UUID needs FIXED_LEN_BYTE_ARRAY[16]"
                )

    @property
    def type_label(self) -> str:
        """Physical type with its length, e.g. ``FIXED_LEN_BYTE_ARRAY[16]``."""
        if self.length:
            return f"{self.physical_type.value}[{self.length}]"
        return self.physical_type.value

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the plan for YAML storage.

        Returns:
            A plain dictionary using the same keys the plan store reads
        """
        data: Dict[str, Any] = {
            "name": self.name,
            "required": self.required,
            "physical_type": self.physical_type.value,
        }
        if self.length:
            data["length"] = self.length
        if self.logical_type is not None:
            data["logical_type"] = self.logical_type.to_dict()
        if self.encoding is not None:
            data["encoding"] = self.encoding.value
        data["dictionary"] = self.dictionary_enabled
        data["query"] = self.source_expression
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnPlan":
        """
        Reconstruct a ColumnPlan from a stored mapping.

        Args:
            data: Mapping with at least ``name``, ``physical_type`` and ``query``

        Returns:
            A validated ColumnPlan

        Raises:
            PlanValidationError: If a key is missing or holds an unknown value
        """
        if not isinstance(data, dict):
            raise PlanValidationError(f"Column plan must be a mapping, got {data!r}")
        for key in ("name", "physical_type", "query"):
            if key not in data:
                raise PlanValidationError(f"Column plan is missing '{key}': {data!r}")
        try:
            physical_type = PhysicalType(str(data["physical_type"]).upper())
            encoding = (
                Encoding(str(data["encoding"]).upper())
                if data.get("encoding") is not None
                else None
            )
        except ValueError as exc:
            raise PlanValidationError(f"Invalid column plan {data.get('name')!r}: {exc}") from exc
        logical_type = (
            LogicalType.from_dict(data["logical_type"])
            if data.get("logical_type") is not None
            else None
        )
        return cls(
            name=str(data["name"]),
            required=bool(data.get("required", False)),
            physical_type=physical_type,
            length=int(data.get("length", 0)),
            logical_type=logical_type,
            encoding=encoding,
            dictionary_enabled=bool(data.get("dictionary", False)),
            source_expression=str(data["query"]),
        )
