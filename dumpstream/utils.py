"""
Utility functions for dumpstream.
"""

import logging
import sys
from pathlib import Path
from typing import Any

from .models import DumpConfig, DumpInvocation, DumpStats


def setup_logging(log_settings: dict[str, Any]) -> None:
    """Setup logging configuration."""
    log_level = getattr(logging, log_settings.get('level', 'INFO').upper())
    log_file = log_settings.get('file')

    # stdout may carry the dump itself, so logs go to stderr
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True
    )


def describe_scope(config: DumpConfig) -> str:
    """Describe which databases and tables a config dumps."""
    scope = config.table_scope
    if scope is not None and scope.tables:
        return f"tables {', '.join(scope.tables)} of database '{scope.database}'"
    if config.databases:
        return f"databases {', '.join(config.databases)}"
    return "all databases"


def print_dry_run_info(config: DumpConfig, invocation: DumpInvocation) -> None:
    """Print information about what would be dumped in dry-run mode."""
    logging.info(f"Would dump {describe_scope(config)} from {config.address}")

    for database, tables in config.ignore_tables.items():
        for table in tables:
            logging.info(f"  - ignoring {database}.{table}")

    if config.where_clause:
        logging.info(f"  Row filter: {config.where_clause}")
    if config.schema_only:
        logging.info("  Schema only (no rows)")

    logging.info(f"  mysqldump {' '.join(invocation.display_args())}")
    if invocation.preamble:
        for line in invocation.preamble.decode('utf-8').splitlines():
            logging.info(f"  preamble: {line}")


def log_dump_summary(stats: DumpStats) -> None:
    """Log what a parsed dump contained."""
    logging.info("=" * 50)
    logging.info("DUMP COMPLETE")
    if stats.binlog_file:
        logging.info(f"Binlog position: {stats.binlog_file}:{stats.binlog_pos}")
    if stats.gtid_set is not None:
        logging.info(f"GTID set: {stats.gtid_set or '(empty)'}")
    logging.info(f"Schema statements: {stats.schema_statements}")
    logging.info(f"Tables: {len(stats.tables)}")
    for table_stats in stats.tables.values():
        logging.info(f"  ✓ {table_stats.database}.{table_stats.table}: {table_stats.rows} rows")
    logging.info(f"Total Rows: {stats.total_rows}")
