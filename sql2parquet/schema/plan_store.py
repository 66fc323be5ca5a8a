# ==============================================
# Plan Store
# ==============================================
#
# PURPOSE:
#   Explicit column plans on disk, loaded with load_plans() and
#   written with save_plans().
#
# FORMAT:
#   YAML mapping of table name to a list of column plans, each using
#   the keys of ColumnPlan.to_dict():
#
#     events:
#       - name: category
#         required: true
#         physical_type: BYTE_ARRAY
#         logical_type: STRING
#         dictionary: true
#         query: SELECT category FROM events GROUP BY category ORDER BY MIN(ts)
#       - name: first_ts
#         required: true
#         physical_type: INT64
#         logical_type: {kind: TIMESTAMP, utc: true, unit: NANOS}
#         encoding: DELTA_BINARY_PACKED
#         query: SELECT MIN(ts) FROM events GROUP BY category ORDER BY MIN(ts)
#
# ==============================================

import logging
from pathlib import Path
from typing import Dict, List, Union

import yaml

from sql2parquet.errors import PlanValidationError
from sql2parquet.schema.plan import ColumnPlan

logger = logging.getLogger(__name__)


def plans_from_document(document) -> Dict[str, List[ColumnPlan]]:
    """
    Build validated plans from an already-parsed YAML document.

    Raises:
        PlanValidationError: If the document shape is wrong or a plan is invalid
    """
    if document is None:
        return {}
    if not isinstance(document, dict):
        raise PlanValidationError("Plan file must map table names to column lists")
    plans: Dict[str, List[ColumnPlan]] = {}
    for table, columns in document.items():
        if not isinstance(columns, list) or not columns:
            raise PlanValidationError(f"Table '{table}' must list at least one column")
        table_plans = [ColumnPlan.from_dict(column) for column in columns]
        names = [plan.name for plan in table_plans]
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise PlanValidationError(
                f"Table '{table}' has duplicate column names: {', '.join(duplicates)}"
            )
        plans[str(table)] = table_plans
    return plans


def load_plans(path: Union[str, Path]) -> Dict[str, List[ColumnPlan]]:
    """
    Load explicit column plans from a YAML file.

    Args:
        path: Plan file location

    Returns:
        Mapping of table name → ordered list of ColumnPlan
    """
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            document = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise PlanValidationError(f"{path}: {exc}") from exc
    plans = plans_from_document(document)
    logger.info("Loaded plans for %d table(s) from %s", len(plans), path)
    return plans


def save_plans(path: Union[str, Path], plans: Dict[str, List[ColumnPlan]]) -> None:
    """
    Write column plans to a YAML file that ``load_plans`` can read back.

    Args:
        path: Destination file (parent directories are created)
        plans: Mapping of table name → ordered list of ColumnPlan
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    document = {
        table: [plan.to_dict() for plan in table_plans]
        for table, table_plans in plans.items()
    }
    with open(path, "w", encoding="utf-8") as f:
        yaml.safe_dump(document, f, sort_keys=False)
    logger.info("Saved plans for %d table(s) to %s", len(plans), path)
