#!/usr/bin/env python3
"""
dumpstream - CLI Entry Point
============================
Dump a MySQL server with mysqldump as a consistent, parser-friendly snapshot:
- Single-transaction snapshot with binlog / GTID coordinates
- Database, table and ignore-table scoping (with wildcard patterns)
- Write the dump to a file (optionally gzip-compressed) or to stdout
- Parse the dump on the fly without storing it
"""

import argparse
import gzip
import logging
import sys
from pathlib import Path
from typing import BinaryIO

import yaml
from mysql.connector import Error as MySQLError

from .config import ConfigLoader
from .connection import DatabaseConnection
from .dumper import Dumper
from .exceptions import DumpError
from .exclusions import expand_ignore_tables, has_wildcard
from .invocation import build_invocation
from .models import DumpConfig
from .parser import RowCountHandler
from .utils import log_dump_summary, print_dry_run_info, setup_logging


def resolve_ignore_patterns(config: DumpConfig) -> None:
    """Expand wildcard ignore-table entries against the server."""
    if not any(has_wildcard(t) for tables in config.ignore_tables.values() for t in tables):
        return

    with DatabaseConnection.from_address(config.address, config.user, config.password) as conn:
        config.ignore_tables = expand_ignore_tables(config.ignore_tables, conn.get_tables)


def open_output(output_settings: dict, output_file: str) -> BinaryIO:
    """Open the dump destination, with optional compression."""
    if output_file == '-':
        return sys.stdout.buffer

    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_settings.get('compress', False):
        if output_path.suffix != '.gz':
            output_path = Path(str(output_path) + '.gz')
        logging.info(f"Writing compressed dump to {output_path}")
        return gzip.open(output_path, 'wb')

    logging.info(f"Writing dump to {output_path}")
    return open(output_path, 'wb')


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='dumpstream - Consistent, streamable mysqldump snapshots'
    )
    parser.add_argument(
        '-c', '--config',
        default='config.yaml',
        help='Path to configuration file (default: config.yaml)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose output'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Show the mysqldump invocation without running it'
    )
    parser.add_argument(
        '--parse',
        action='store_true',
        help='Parse the dump as it streams instead of writing it out'
    )
    parser.add_argument(
        '-o', '--output',
        help="Output file, '-' for stdout (overrides output.file)"
    )

    args = parser.parse_args()

    # Load configuration
    try:
        config = ConfigLoader(args.config)
    except FileNotFoundError:
        print(f"Error: Configuration file '{args.config}' not found", file=sys.stderr)
        sys.exit(1)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file: {e}", file=sys.stderr)
        sys.exit(1)

    # Setup logging
    log_settings = config.get_logging_settings()
    if args.verbose:
        log_settings['level'] = 'DEBUG'
    setup_logging(log_settings)

    try:
        dump_config = config.build_dump_config()

        # Dry run mode
        if args.dry_run:
            logging.info("DRY RUN MODE - Nothing will be dumped")
            print_dry_run_info(dump_config, build_invocation(dump_config))
            sys.exit(0)

        resolve_ignore_patterns(dump_config)
        dumper = Dumper(config.get_execution_path(), dump_config)

        if args.parse:
            handler = RowCountHandler()
            dumper.dump_and_parse(handler)
            log_dump_summary(handler.stats)
            return

        output_settings = config.get_output_settings()
        output_file = args.output or output_settings.get('file', '-')
        output = open_output(output_settings, output_file)
        try:
            dumper.dump(output)
        finally:
            if output is not sys.stdout.buffer:
                output.close()
        logging.info("DUMP COMPLETE")

    except (DumpError, ValueError, MySQLError) as e:
        logging.error(f"Fatal error: {e}")
        sys.exit(1)


if __name__ == '__main__':
    main()
