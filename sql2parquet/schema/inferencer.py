# ==============================================
# SchemaInferencer
# ==============================================
#
# PURPOSE:
#   Turn a source table into one ColumnPlan per column, using the
#   declared schema plus statistics gathered from the data itself.
#
# WHY THIS CLASS EXISTS:
#   The source schema has to allow for every state the data might
#   ever be in; the parquet schema only has to fit the data as it is
#   now. A column declared nullable that holds no NULLs is written as
#   required, and an INTEGER column whose values all fit in 32 bits is
#   written as INT32.
#
# CLASS: SchemaInferencer
# -----------------------
#   Constructor:
#   ------------
#   - __init__(source, diagnostics=None, config=None)
#
#   Methods:
#   --------
#   - infer(table) -> list[ColumnPlan]
#   - iter_plans(table) -> Iterator[ColumnPlan]
#       Yields plans one at a time, in declared column order.
#   - infer_column(table, column: SourceColumn) -> ColumnPlan
#       Applies the rules in order:
#
#       RULE 1: NULLABILITY
#         required = NOT NULL declared, or no NULLs in the whole table.
#         The full scan is skipped when NOT NULL is declared.
#
#       RULE 2: PHYSICAL TYPE
#         Lookup by declared type name (TypeMapper). Integer family
#         runs MIN/MAX and picks INT32 when both bounds fit.
#         Unknown names become BYTE_ARRAY with an UnknownTypeWarning.
#
#       RULE 3: LENGTH ANNOTATION
#         BLOB[n] / BINARY(n) become FIXED_LEN_BYTE_ARRAY[n].
#         Any other annotation is discarded (no inherent length) or
#         overruled by the conventional length (UUID, INTERVAL),
#         each with a LengthAnnotationWarning.
#
#       RULE 4: LOGICAL TYPE
#         Attached from the same lookup table.
#
#       RULE 5: DICTIONARY
#         Sample up to sample_size random non-null cells; enable the
#         dictionary when distinct / sampled < max_dictionary_ratio.
#         Never for BOOLEAN, never for an empty sample.
#
#       RULE 6: ENCODING
#         Left unset; the sink's defaults apply.
#
#       RULE 7: QUERY
#         The source's stable-order single-column SELECT.
#
#   Attributes:
#   -----------
#   - stats: dict[str, ColumnStats]   (from the last table inferred)
#
# ==============================================

import logging
from typing import Dict, Iterator, List, Optional

from sql2parquet.config import InferenceConfig
from sql2parquet.diagnostics import Diagnostics
from sql2parquet.errors import LengthAnnotationWarning, UnknownTypeWarning
from sql2parquet.schema.column_stats import ColumnStats
from sql2parquet.schema.plan import ColumnPlan, PhysicalType
from sql2parquet.schema.type_mapping import TypeMapper, TypeRule
from sql2parquet.source.base import RelationalSource, SourceColumn

logger = logging.getLogger(__name__)

FALLBACK_RULE = TypeRule(PhysicalType.BYTE_ARRAY)


class SchemaInferencer:
    """
    Derives ColumnPlans from a table's declared schema and its data.

    Stateless apart from ``stats``, which keeps the evidence behind the
    most recent table's plans for inspection.
    """

    def __init__(
        self,
        source: RelationalSource,
        diagnostics: Optional[Diagnostics] = None,
        config: Optional[InferenceConfig] = None,
    ):
        """
        Args:
            source: Where to read schema and statistics from
            diagnostics: Sink for non-fatal warnings. A private one is
                         created when omitted, so warnings still get logged.
            config: Sampling parameters (defaults: 1000 rows, ratio 0.75)
        """
        self.source = source
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self.config = config or InferenceConfig()
        self.stats: Dict[str, ColumnStats] = {}

    def infer(self, table: str) -> List[ColumnPlan]:
        return list(self.iter_plans(table))

    def iter_plans(self, table: str) -> Iterator[ColumnPlan]:
        """
        Yield one plan per column, in declared order.

        Raises:
            SourceIntrospectionError: If the table's metadata can't be read
        """
        columns = self.source.table_columns(table)
        self.stats = {}
        for column in columns:
            yield self.infer_column(table, column)

    def infer_column(self, table: str, column: SourceColumn) -> ColumnPlan:
        declared = TypeMapper.parse(column.declared_type)
        stats = ColumnStats(
            name=column.name,
            declared_type=column.declared_type,
            not_null=column.not_null,
        )
        self.stats[column.name] = stats

        # Rule 1: trust NOT NULL, otherwise look for NULLs
        if not column.not_null:
            stats.null_count = self.source.count_nulls(table, column.name)

        # Rule 2: physical type
        rule = TypeMapper.lookup(declared.base)
        if rule is None:
            self.diagnostics.warn(UnknownTypeWarning(column.name, column.declared_type))
            rule = FALLBACK_RULE
        physical_type = rule.physical_type
        length = rule.length
        if rule.integer_family:
            stats.min_value, stats.max_value = self.source.min_max(table, column.name)
            physical_type = PhysicalType.INT32 if stats.fits_int32 else PhysicalType.INT64

        # Rule 3: length annotation
        annotated = declared.length
        if annotated is not None:
            if rule.length_from_annotation and annotated > 0:
                physical_type = PhysicalType.FIXED_LEN_BYTE_ARRAY
                length = annotated
            elif length == 0:
                self.diagnostics.warn(
                    LengthAnnotationWarning(column.name, column.declared_type, annotated, 0)
                )
            elif annotated != length:
                self.diagnostics.warn(
                    LengthAnnotationWarning(column.name, column.declared_type, annotated, length)
                )

        # Rule 5: dictionary
        dictionary_enabled = False
        if physical_type != PhysicalType.BOOLEAN:
            stats.observe_sample(
                self.source.sample(table, column.name, self.config.sample_size)
            )
            ratio = stats.uniqueness_ratio
            dictionary_enabled = ratio is not None and ratio < self.config.max_dictionary_ratio

        plan = ColumnPlan(
            name=column.name,
            required=stats.is_required,
            physical_type=physical_type,
            length=length,
            logical_type=rule.logical_type,
            encoding=None,
            dictionary_enabled=dictionary_enabled,
            source_expression=self.source.column_query(table, column.name),
        )
        logger.debug("Inferred %s.%s: %s", table, column.name, plan)
        return plan


def infer_schema(
    source: RelationalSource,
    table: str,
    diagnostics: Optional[Diagnostics] = None,
    config: Optional[InferenceConfig] = None,
) -> List[ColumnPlan]:
    """
    Infer a parquet schema for ``table``.

    Args:
        source: The relational source holding the table
        table: Table name
        diagnostics: Optional warning sink
        config: Optional sampling parameters

    Returns:
        One ColumnPlan per source column, in declared order
    """
    return SchemaInferencer(source, diagnostics=diagnostics, config=config).infer(table)
