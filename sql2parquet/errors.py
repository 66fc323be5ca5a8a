# ==============================================
# Errors and Warnings
# ==============================================
#
# PURPOSE:
#   One place for every failure the converter can report.
#
# POLICY:
#   - Only type-inference ambiguities are recoverable. They are
#     InferenceWarning instances handed to a Diagnostics sink and
#     inference carries on with a default.
#   - Everything raised while writing is fatal and aborts the whole
#     write. There is no skip-bad-row mode.
#
# EXCEPTIONS:
# -----------
# - Sql2ParquetError            → base class
#     - SourceIntrospectionError  → table metadata / statistics unreadable
#     - PlanValidationError       → ColumnPlan breaks an invariant
#     - ConversionError           → one cell could not be coerced
#         - TypeMismatchError
#         - NumericOverflowError
#         - FixedLengthMismatchError
#     - RowCountMismatchError     → column queries returned different row counts
#     - RequiredColumnNullError   → null in a column inferred as required
#     - SinkIOError               → pyarrow / filesystem failure
#     - SourceQueryError          → a column query failed mid-write
#
# WARNINGS:
# ---------
# - InferenceWarning(UserWarning)
#     - UnknownTypeWarning
#     - LengthAnnotationWarning
#     - EncodingWarning
#
# ==============================================

from typing import Any, Optional


class Sql2ParquetError(Exception):
    """Base class for all sql2parquet errors."""


class SourceIntrospectionError(Sql2ParquetError):
    """The source schema or its statistics could not be read."""

    def __init__(self, table: str, message: str):
        self.table = table
        super().__init__(f"Cannot introspect table '{table}': {message}")


class PlanValidationError(Sql2ParquetError):
    """A ColumnPlan (or a document describing one) is invalid."""


class ConversionError(Sql2ParquetError):
    """
    A single source cell could not be converted to the target type.

    The coordinator fills in ``column`` and ``group_index`` before
    re-raising so the message points at the offending place.
    """

    def __init__(self, message: str):
        self.detail = message
        self.column: Optional[str] = None
        self.group_index: Optional[int] = None
        super().__init__(message)

    def add_context(self, column: str, group_index: int) -> "ConversionError":
        self.column = column
        self.group_index = group_index
        self.args = (f"Group {group_index}, column '{column}': {self.detail}",)
        return self


class TypeMismatchError(ConversionError):
    def __init__(self, source_kind: str, physical_type: str):
        self.source_kind = source_kind
        self.physical_type = physical_type
        super().__init__(f"Can't convert {source_kind} to {physical_type}")


class NumericOverflowError(ConversionError):
    def __init__(self, value: int, physical_type: str):
        self.value = value
        self.physical_type = physical_type
        super().__init__(f"Integer {value} does not fit in {physical_type}")


class FixedLengthMismatchError(ConversionError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Expected exactly {expected} bytes for a fixed-length column, got {actual}"
        )


class RowCountMismatchError(Sql2ParquetError):
    """Column queries did not yield the same number of rows."""

    def __init__(self, group_index: int, column: str, expected_rows: int, actual_rows: int):
        self.group_index = group_index
        self.column = column
        self.expected_rows = expected_rows
        self.actual_rows = actual_rows
        super().__init__(
            f"Group {group_index}: column '{column}' yielded {actual_rows} rows "
            f"but the first column yielded {expected_rows}"
        )


class RequiredColumnNullError(Sql2ParquetError):
    def __init__(self, column: str, group_index: int):
        self.column = column
        self.group_index = group_index
        super().__init__(
            f"Group {group_index}: null value in required column '{column}'"
        )


class SinkIOError(Sql2ParquetError):
    """Raised from the underlying pyarrow / OS error."""


class SourceQueryError(Sql2ParquetError):
    """A column query failed while the writer was streaming it."""


# ==============================================
# Warnings
# ==============================================

class InferenceWarning(UserWarning):
    """Non-fatal ambiguity resolved by falling back to a default."""

    def __init__(self, column: str, message: str):
        self.column = column
        super().__init__(f"{column}: {message}")


class UnknownTypeWarning(InferenceWarning):
    def __init__(self, column: str, declared_type: str):
        self.declared_type = declared_type
        super().__init__(
            column, f"unknown type {declared_type!r}, storing as a byte array"
        )


class LengthAnnotationWarning(InferenceWarning):
    """
    A length annotation on the declared type was ignored.

    ``kept`` is the length that ended up in the plan (0 when the
    physical type carries no length at all).
    """

    def __init__(self, column: str, declared_type: str, annotated: int, kept: int):
        self.declared_type = declared_type
        self.annotated = annotated
        self.kept = kept
        if kept == 0:
            message = f"length annotation {annotated} on {declared_type!r} discarded"
        else:
            message = (
                f"length annotation {annotated} on {declared_type!r} conflicts "
                f"with the inferred length {kept}; keeping {kept}"
            )
        super().__init__(column, message)


class EncodingWarning(InferenceWarning):
    def __init__(self, column: str, detail: Any):
        self.detail = detail
        super().__init__(column, str(detail))
