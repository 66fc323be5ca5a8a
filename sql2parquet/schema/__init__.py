# ==============================================
# SCHEMA: plans and inference
# ==============================================
#
# This package decides what the parquet file looks like: one
# ColumnPlan per output column, either inferred from a source table
# or loaded from a YAML plan file.
#
# Modules:
# --------
# - plan.py           → ColumnPlan and its enums / LogicalType
# - type_mapping.py   → Declared SQL type name → physical/logical type
# - column_stats.py   → Evidence gathered per column during inference
# - inferencer.py     → SchemaInferencer, infer_schema()
# - plan_store.py     → load_plans() / save_plans() for YAML plan files
#
# ==============================================

from .plan import ColumnPlan, Encoding, LogicalKind, LogicalType, PhysicalType, TimeUnit
from .column_stats import ColumnStats
from .type_mapping import DeclaredType, TypeMapper, TypeRule
from .inferencer import SchemaInferencer, infer_schema
from .plan_store import load_plans, save_plans

__all__ = [
    "ColumnPlan",
    "Encoding",
    "LogicalKind",
    "LogicalType",
    "PhysicalType",
    "TimeUnit",
    "ColumnStats",
    "DeclaredType",
    "TypeMapper",
    "TypeRule",
    "SchemaInferencer",
    "infer_schema",
    "load_plans",
    "save_plans",
]
