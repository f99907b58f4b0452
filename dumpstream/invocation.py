"""
Builds mysqldump command lines from a DumpConfig.
"""

from typing import Optional

from .exceptions import ConfigError
from .models import DumpConfig, DumpInvocation

# Flags that make the output a consistent snapshot the parser can stream:
# one transaction without table locks, no extra metadata, one row per INSERT.
SNAPSHOT_FLAGS = (
    "--single-transaction",
    "--skip-lock-tables",
)
OUTPUT_SHAPE_FLAGS = (
    "--compact",
    "--skip-opt",
    "--quick",
    "--skip-extended-insert",
)


def split_address(address: str) -> tuple[str, Optional[str]]:
    """Split ``host[:port]`` into host and port; an empty port counts as none.

    Raises:
        ConfigError: If the address has no host component.
    """
    host, _, port = address.partition(":")
    if not host:
        raise ConfigError(f"Address '{address}' has no host")
    return host, (port or None)


def build_invocation(config: DumpConfig) -> DumpInvocation:
    """Build the mysqldump arguments and preamble for a config.

    The same config always yields the same arguments.
    """
    args: list[str] = []

    host, port = split_address(config.address)
    args.append(f"--host={host}")
    if port is not None:
        args.append(f"--port={port}")

    args.append(f"--user={config.user}")
    args.append(f"--password={config.password}")

    if config.capture_binlog_position:
        args.append("--master-data")
        if config.binlog_position_includes_gtid:
            args.append("--set-gtid-purged=ON")

    if config.schema_only:
        args.append("--no-data")

    if config.max_packet_mb > 0:
        # mysqldump wants --max-allowed-packet, not --max_allowed_packet
        args.append(f"--max-allowed-packet={config.max_packet_mb}M")

    args.extend(SNAPSHOT_FLAGS)
    args.extend(OUTPUT_SHAPE_FLAGS)

    if config.hex_encode_binary:
        args.append("--hex-blob")

    for database, tables in config.ignore_tables.items():
        for table in tables:
            args.append(f"--ignore-table={database}.{table}")

    if config.charset:
        args.append(f"--default-character-set={config.charset}")

    if config.where_clause:
        args.append(f"--where={config.where_clause}")

    preamble = b""
    scope = config.table_scope
    if scope is not None and scope.tables:
        args.append(scope.database)
        args.extend(scope.tables)
        # Table-scoped dumps carry no database name, so add one for the parser
        preamble = (
            f"CREATE DATABASE IF NOT EXISTS `{scope.database}`;\n"
            f"USE `{scope.database}`;\n"
        ).encode("utf-8")
    elif config.databases:
        args.append("--databases")
        args.extend(config.databases)
    else:
        args.append("--all-databases")

    return DumpInvocation(args=args, preamble=preamble)
