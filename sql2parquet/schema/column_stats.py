# ==============================================
# ColumnStats
# ==============================================
#
# PURPOSE:
#   Data class that holds everything observed about one source
#   column while inferring its plan. This is the "evidence" the
#   inferencer bases its nullability, width and dictionary
#   decisions on.
#
# CLASS: ColumnStats (dataclass)
# ------------------------------
#   Attributes:
#   -----------
#   - name: str                    → Source column name
#   - declared_type: str           → Type as written in the source schema
#   - not_null: bool               → Schema declares NOT NULL
#   - null_count: int | None       → NULLs over the whole table (None = not scanned)
#   - min_value / max_value        → MIN/MAX (integer family only)
#   - sample_count: int            → Non-null cells in the random sample
#   - distinct_count: int          → Distinct values among them
#
#   Computed Properties:
#   --------------------
#   - is_required -> bool
#   - uniqueness_ratio -> float | None
#   - fits_int32 -> bool
#
# ==============================================

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


@dataclass
class ColumnStats:
    """Observed statistics for a single source column."""

    name: str
    declared_type: str = ""
    not_null: bool = False

    null_count: Optional[int] = None

    min_value: Any = None
    max_value: Any = None

    sample_count: int = 0
    distinct_count: int = 0

    def observe_sample(self, values: Iterable[Any]) -> None:
        """
        Record a random sample of non-null cells.

        Args:
            values: The sampled cell values
        """
        values = list(values)
        self.sample_count = len(values)
        self.distinct_count = len(set(values))

    @property
    def is_required(self) -> bool:
        """True when the schema says NOT NULL or the table holds no NULLs."""
        return self.not_null or self.null_count == 0

    @property
    def uniqueness_ratio(self) -> Optional[float]:
        """
        distinct_count / sample_count.

        Returns:
            The ratio, or None when the sample was empty
        """
        if self.sample_count == 0:
            return None
        return self.distinct_count / self.sample_count

    @property
    def fits_int32(self) -> bool:
        """
        Whether both MIN and MAX fit a signed 32-bit integer.

        An empty column (both bounds None) fits. Non-integer bounds,
        e.g. text stored in an INTEGER column, never do.
        """
        bounds = [v for v in (self.min_value, self.max_value) if v is not None]
        return all(
            isinstance(v, int) and INT32_MIN <= v <= INT32_MAX
            for v in bounds
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "declared_type": self.declared_type,
            "not_null": self.not_null,
            "null_count": self.null_count,
            "min_value": self.min_value,
            "max_value": self.max_value,
            "sample_count": self.sample_count,
            "distinct_count": self.distinct_count,
        }
