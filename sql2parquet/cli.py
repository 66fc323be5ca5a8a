# ==============================================
# CLI: Command Line Entry Point
# ==============================================
#
# PURPOSE:
#   Dump the tables of a relational database to one parquet file
#   per table.
#
# USAGE:
# ------
#   sql2parquet data.db parquet/
#   sql2parquet data.db parquet/ --table events --table users -g 100000
#   sql2parquet data.db parquet/ --config plans.yaml
#   sql2parquet data.db parquet/ --dump-plans plans.yaml
#   sql2parquet shop parquet/ --backend mysql      (MYSQL_* from .env)
#   python -m sql2parquet ...
#
# FLOW (per table):
# -----------------
#   1. Count rows
#   2. Take the plans from --config, or infer them (printing the
#      column table and how long inference took)
#   3. Write OUT_DIR/<table>.parquet with a live progress line
#   4. Print the final progress line and the size summary
#
#   Output files with the same name are overwritten. Exit status is 1
#   when any table fails.
#
# ==============================================

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional

from sql2parquet.config import AppConfig, get_config
from sql2parquet.diagnostics import Diagnostics
from sql2parquet.errors import Sql2ParquetError
from sql2parquet.schema.inferencer import SchemaInferencer
from sql2parquet.schema.plan import ColumnPlan
from sql2parquet.schema.plan_store import load_plans, save_plans
from sql2parquet.source.base import RelationalSource
from sql2parquet.source.mysql_source import MySQLSource
from sql2parquet.source.sqlite_source import SQLiteSource
from sql2parquet.summary import COLUMN_HEADER, describe_plan, format_summary, summarize
from sql2parquet.writer.coordinator import write_table
from sql2parquet.writer.progress import Progress, ProgressPrinter

logger = logging.getLogger(__name__)

BACKENDS = ("sqlite", "mysql")


def build_parser(config: AppConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sql2parquet",
        description=(
            "Extract the tables of a SQLite or MySQL database into parquet files, "
            "one file per table. Column types, nullability and dictionary "
            "encoding are inferred from the schema and the data unless a plan "
            "file is given."
        ),
    )
    parser.add_argument(
        "source",
        nargs="?",
        default=config.source.sqlite_path or config.mysql.database or None,
        help="SQLite database file, or the MySQL database name (default: SQLITE_PATH / MYSQL_DATABASE)",
    )
    parser.add_argument(
        "out_dir",
        nargs="?",
        default=config.out_dir,
        help=f"Directory for the parquet files (default: {config.out_dir})",
    )
    parser.add_argument(
        "--backend",
        choices=BACKENDS,
        default=config.source.backend,
        help=f"Source database kind (default: {config.source.backend})",
    )
    parser.add_argument("--config", type=Path, help="YAML file of explicit column plans")
    parser.add_argument(
        "-t", "--table",
        action="append",
        default=[],
        help="Table to extract; repeat for several (default: all tables)",
    )
    parser.add_argument(
        "-g", "--group-size",
        type=int,
        default=config.writer.group_size,
        help=f"Rows per row group (default: {config.writer.group_size})",
    )
    parser.add_argument(
        "--compression",
        default=config.writer.compression,
        help=f"Parquet compression codec (default: {config.writer.compression})",
    )
    parser.add_argument(
        "--include-schema",
        action="store_true",
        help="Also extract the SQLite schema table",
    )
    parser.add_argument("--dump-plans", type=Path, help="Write the plans used to this YAML file")
    parser.add_argument(
        "--log-level",
        default=config.log_level,
        help=f"Logging level (default: {config.log_level})",
    )
    return parser


def open_source(backend: str, location: str, config: AppConfig) -> RelationalSource:
    if backend == "mysql":
        source = MySQLSource.from_config(config.mysql, database=location)
        source.connect()
        return source
    if not Path(location).exists():
        raise FileNotFoundError(f"SQLite database not found: {location}")
    return SQLiteSource(location)


def select_tables(
    source: RelationalSource,
    requested: List[str],
    configured: Dict[str, List[ColumnPlan]],
    include_schema: bool,
) -> List[str]:
    if requested:
        tables = list(requested)
    elif configured:
        tables = list(configured)
    else:
        tables = source.list_tables()
    if include_schema:
        if isinstance(source, SQLiteSource):
            tables.append(SQLiteSource.SCHEMA_TABLE)
        else:
            logger.warning("--include-schema only applies to SQLite sources; ignored")
    return tables


def resolve_plans(
    source: RelationalSource,
    table: str,
    configured: Optional[List[ColumnPlan]],
    inferencer: SchemaInferencer,
) -> List[ColumnPlan]:
    if configured is not None:
        print(f"    {COLUMN_HEADER}")
        for plan in configured:
            print(f"    {describe_plan(plan)}")
        return configured

    print(f"Inferring schema for {table}...")
    print(f"    {COLUMN_HEADER}")
    started = time.monotonic()
    plans = []
    for plan in inferencer.iter_plans(table):
        print(f"    {describe_plan(plan)}")
        plans.append(plan)
    print(f"✓ Inferred schema in {time.monotonic() - started:.2f}s")
    return plans


def convert_table(
    source: RelationalSource,
    table: str,
    out_dir: Path,
    configured: Optional[List[ColumnPlan]],
    inferencer: SchemaInferencer,
    group_size: int,
    compression: str,
    diagnostics: Diagnostics,
) -> List[ColumnPlan]:
    """
    Write one table to ``out_dir/<table>.parquet``.

    Returns:
        The plans the table was written with
    """
    out_path = out_dir / f"{table}.parquet"
    print(f"→ {table} → {out_path}")

    print("Counting rows...", end="", flush=True)
    count_query = configured[0].source_expression if configured else source.table_query(table)
    n_rows = source.count_rows(count_query)
    print(f" {n_rows}")

    plans = resolve_plans(source, table, configured, inferencer)

    group_size = max(1, group_size)
    print(f"Group size: {group_size}")
    printer = ProgressPrinter(Progress.expected(len(plans), n_rows, group_size), group_size)
    metadata = write_table(
        source,
        table,
        plans,
        out_path,
        group_size=group_size,
        progress_callback=printer,
        compression=compression,
        diagnostics=diagnostics,
    )
    printer.finish(metadata.num_rows, metadata.num_row_groups)
    print(format_summary(summarize(plans, metadata)))
    return plans


def main(argv: Optional[List[str]] = None) -> int:
    config = get_config()
    args = build_parser(config).parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if not args.source:
        print("✗ No source given (pass SOURCE or set SQLITE_PATH / MYSQL_DATABASE)", file=sys.stderr)
        return 2

    diagnostics = Diagnostics()
    used_plans: Dict[str, List[ColumnPlan]] = {}
    try:
        configured = load_plans(args.config) if args.config else {}
        with open_source(args.backend, args.source, config) as source:
            tables = select_tables(source, args.table, configured, args.include_schema)
            out_dir = Path(args.out_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            inferencer = SchemaInferencer(source, diagnostics=diagnostics, config=config.inference)

            for table in tables:
                used_plans[table] = convert_table(
                    source,
                    table,
                    out_dir,
                    configured.get(table),
                    inferencer,
                    args.group_size,
                    args.compression,
                    diagnostics,
                )
    except (Sql2ParquetError, OSError) as exc:
        print(f"\n✗ {exc}", file=sys.stderr)
        return 1
    finally:
        if args.dump_plans and used_plans:
            save_plans(args.dump_plans, used_plans)
            print(f"✓ Saved plans for {len(used_plans)} table(s) to {args.dump_plans}")

    if diagnostics.warnings:
        print(f"⚠ {len(diagnostics)} warning(s) during inference")
    print(f"✓ Wrote {len(used_plans)} table(s) to {args.out_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
