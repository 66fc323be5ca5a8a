# ==============================================
# Summary / Reporting
# ==============================================
#
# PURPOSE:
#   Human-readable reports for the CLI: the column table printed
#   before a write, and the per-column size breakdown printed after.
#
# FUNCTIONS:
# ----------
# - describe_plan(plan) -> str
#     One fixed-width row under COLUMN_HEADER.
# - summarize(plans, metadata) -> SizeSummary
#     Total bytes across row groups, compressed/uncompressed bytes per
#     column, from pyarrow's FileMetaData.
# - format_summary(summary) -> str
#     "Total  <n> KiB" followed by one line per column with its share.
#
# ==============================================

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import pyarrow.parquet as pq

from sql2parquet.schema.plan import ColumnPlan

COLUMN_HEADER = (
    f"{'Column':<22} {'Repeat':<8} {'Physical type':<26} {'Logical type':<30} "
    f"{'Encoding':<24} {'Dictionary':<11} SQL"
)


def describe_plan(plan: ColumnPlan) -> str:
    repetition = "REQUIRED" if plan.required else "OPTIONAL"
    logical = str(plan.logical_type) if plan.logical_type is not None else ""
    encoding = plan.encoding.value if plan.encoding is not None else ""
    dictionary = "+dictionary" if plan.dictionary_enabled else ""
    return (
        f"{plan.name:<22} {repetition:<8} {plan.type_label:<26} {logical:<30} "
        f"{encoding:<24} {dictionary:<11} {plan.source_expression}"
    )


@dataclass
class ColumnSize:
    name: str
    compressed_bytes: int = 0
    uncompressed_bytes: int = 0

    def share(self, total_bytes: int) -> float:
        """Percentage of ``total_bytes`` taken by this column (0 when the total is 0)."""
        if total_bytes <= 0:
            return 0.0
        return self.compressed_bytes / total_bytes * 100.0


@dataclass
class SizeSummary:
    """Where the bytes of a written parquet file went."""
    num_rows: int = 0
    num_row_groups: int = 0
    total_bytes: int = 0
    columns: List[ColumnSize] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_rows": self.num_rows,
            "num_row_groups": self.num_row_groups,
            "total_bytes": self.total_bytes,
            "columns": [
                {
                    "name": column.name,
                    "compressed_bytes": column.compressed_bytes,
                    "uncompressed_bytes": column.uncompressed_bytes,
                    "share": round(column.share(self.total_bytes), 2),
                }
                for column in self.columns
            ],
        }


def summarize(plans: Sequence[ColumnPlan], metadata: pq.FileMetaData) -> SizeSummary:
    """
    Add up the sizes recorded in a parquet footer.

    Args:
        plans: The plans the file was written from, in column order
        metadata: The file's metadata (as returned by write_table)

    Returns:
        SizeSummary with one ColumnSize per plan
    """
    columns = [ColumnSize(plan.name) for plan in plans]
    total_bytes = 0
    for group_index in range(metadata.num_row_groups):
        row_group = metadata.row_group(group_index)
        total_bytes += row_group.total_byte_size
        for column_index, column in enumerate(columns):
            chunk = row_group.column(column_index)
            column.compressed_bytes += chunk.total_compressed_size
            column.uncompressed_bytes += chunk.total_uncompressed_size
    return SizeSummary(
        num_rows=metadata.num_rows,
        num_row_groups=metadata.num_row_groups,
        total_bytes=total_bytes,
        columns=columns,
    )


def format_kib(n_bytes: int) -> str:
    return f"{n_bytes // 1024:>9,} KiB"


def format_summary(summary: SizeSummary) -> str:
    lines = [f"{'Total':<22} {format_kib(summary.total_bytes)}"]
    for column in summary.columns:
        lines.append(
            f"  {column.name:<20} {format_kib(column.compressed_bytes)} "
            f"({column.share(summary.total_bytes):>2.0f}%)"
        )
    return "\n".join(lines)
