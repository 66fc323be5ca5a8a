# ==============================================
# Value Coercion
# ==============================================
#
# PURPOSE:
#   Convert one dynamically-typed source cell into the statically-typed
#   value a parquet column of a given physical type stores.
#
# CELL KINDS:
#   None → Null, int → Integer, float → Real, str → Text, bytes → Blob
#
# RULES (target ← accepted source kinds):
#   BOOLEAN              ← Integer (1 is true, anything else false)
#   INT32                ← Integer, range-checked
#   INT64                ← Integer, range-checked
#   FLOAT                ← Real (narrowed to single precision by the float32 array)
#   DOUBLE               ← Real
#   BYTE_ARRAY           ← Text (UTF-8), Blob, Integer/Real as decimal text
#   FIXED_LEN_BYTE_ARRAY ← Text/Blob of exactly `length` bytes
#   anything else        → TypeMismatchError
#
# NULLS:
#   Nulls never reach coerce(); the coordinator turns them into a
#   definition level of 0. Passing None is a caller bug (ValueError).
#
# ==============================================

from enum import Enum
from typing import Any, Callable, Dict

from sql2parquet.errors import (
    FixedLengthMismatchError,
    NumericOverflowError,
    TypeMismatchError,
)
from sql2parquet.schema.plan import PhysicalType

INT32_MIN, INT32_MAX = -(2 ** 31), 2 ** 31 - 1
INT64_MIN, INT64_MAX = -(2 ** 63), 2 ** 63 - 1


class SourceKind(Enum):
    NULL = "Null"
    INTEGER = "Integer"
    REAL = "Real"
    TEXT = "Text"
    BLOB = "Blob"


def source_kind(cell: Any) -> SourceKind:
    """Classify a cell. Raises TypeError for values outside the cell union."""
    if cell is None:
        return SourceKind.NULL
    if isinstance(cell, int):
        return SourceKind.INTEGER
    if isinstance(cell, float):
        return SourceKind.REAL
    if isinstance(cell, str):
        return SourceKind.TEXT
    if isinstance(cell, (bytes, bytearray, memoryview)):
        return SourceKind.BLOB
    raise TypeError(f"Not a source cell: {cell!r} ({type(cell).__name__})")


def _mismatch(kind: SourceKind, physical_type: PhysicalType) -> TypeMismatchError:
    return TypeMismatchError(kind.value, physical_type.value)


def _to_bool(cell: Any, kind: SourceKind, length: int) -> bool:
    if kind != SourceKind.INTEGER:
        raise _mismatch(kind, PhysicalType.BOOLEAN)
    return cell == 1


def _to_int32(cell: Any, kind: SourceKind, length: int) -> int:
    if kind != SourceKind.INTEGER:
        raise _mismatch(kind, PhysicalType.INT32)
    if not INT32_MIN <= cell <= INT32_MAX:
        raise NumericOverflowError(cell, PhysicalType.INT32.value)
    return int(cell)


def _to_int64(cell: Any, kind: SourceKind, length: int) -> int:
    if kind != SourceKind.INTEGER:
        raise _mismatch(kind, PhysicalType.INT64)
    if not INT64_MIN <= cell <= INT64_MAX:
        raise NumericOverflowError(cell, PhysicalType.INT64.value)
    return int(cell)


def _to_float(cell: Any, kind: SourceKind, length: int) -> float:
    if kind != SourceKind.REAL:
        raise _mismatch(kind, PhysicalType.FLOAT)
    return cell


def _to_double(cell: Any, kind: SourceKind, length: int) -> float:
    if kind != SourceKind.REAL:
        raise _mismatch(kind, PhysicalType.DOUBLE)
    return cell


def _as_bytes(cell: Any, kind: SourceKind) -> bytes:
    if kind == SourceKind.TEXT:
        return cell.encode("utf-8")
    return bytes(cell)


def _to_byte_array(cell: Any, kind: SourceKind, length: int) -> bytes:
    if kind in (SourceKind.TEXT, SourceKind.BLOB):
        return _as_bytes(cell, kind)
    # numbers are rendered as their decimal text
    return str(cell).encode("ascii")


def _to_fixed_len_byte_array(cell: Any, kind: SourceKind, length: int) -> bytes:
    if kind not in (SourceKind.TEXT, SourceKind.BLOB):
        raise _mismatch(kind, PhysicalType.FIXED_LEN_BYTE_ARRAY)
    value = _as_bytes(cell, kind)
    if len(value) != length:
        raise FixedLengthMismatchError(length, len(value))
    return value


COERCERS: Dict[PhysicalType, Callable[[Any, SourceKind, int], Any]] = {
    PhysicalType.BOOLEAN: _to_bool,
    PhysicalType.INT32: _to_int32,
    PhysicalType.INT64: _to_int64,
    PhysicalType.FLOAT: _to_float,
    PhysicalType.DOUBLE: _to_double,
    PhysicalType.BYTE_ARRAY: _to_byte_array,
    PhysicalType.FIXED_LEN_BYTE_ARRAY: _to_fixed_len_byte_array,
}


def coerce(cell: Any, physical_type: PhysicalType, length: int = 0) -> Any:
    """
    Convert a non-null source cell to the value stored for ``physical_type``.

    Args:
        cell: int, float, str or bytes
        physical_type: Target physical type
        length: Byte length, for FIXED_LEN_BYTE_ARRAY only

    Returns:
        bool, int, float or bytes, depending on the target

    Raises:
        TypeMismatchError: The cell's kind can't be stored in the target type
        NumericOverflowError: An integer doesn't fit the target width
        FixedLengthMismatchError: Wrong byte length for a fixed-length column
        ValueError: ``cell`` is None (nulls are the caller's job)
    """
    kind = source_kind(cell)
    if kind == SourceKind.NULL:
        raise ValueError("coerce() called with a null cell; nulls must be handled by the caller")
    return COERCERS[physical_type](cell, kind, length)


def coercer_for(physical_type: PhysicalType, length: int = 0) -> Callable[[Any], Any]:
    """
    Bind ``coerce`` to one target type, for use in a per-column loop.

    The returned function has the same contract as ``coerce``.
    """
    convert = COERCERS[physical_type]

    def coerce_cell(cell: Any) -> Any:
        kind = source_kind(cell)
        if kind == SourceKind.NULL:
            raise ValueError("coerce() called with a null cell; nulls must be handled by the caller")
        return convert(cell, kind, length)

    return coerce_cell
