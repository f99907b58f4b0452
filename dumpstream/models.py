"""
Data models for dumpstream.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

DEFAULT_CHARSET = "utf8"


@dataclass
class TableScope:
    """A single database and the tables to dump from it."""
    database: str
    tables: list[str] = field(default_factory=list)


@dataclass
class DumpConfig:
    """Everything needed to build one mysqldump invocation.

    The config is owned by the caller and may be reused across dumps:
    change the scope with the ``add_*`` methods, or call ``reset`` to drop
    the scope while keeping the connection and formatting options.
    It must not be mutated while a dump is running.
    """
    address: str
    user: str = ""
    password: str = ""

    # Overrides databases when it holds at least one table
    table_scope: Optional[TableScope] = None
    databases: list[str] = field(default_factory=list)
    ignore_tables: dict[str, list[str]] = field(default_factory=dict)
    where_clause: str = ""

    charset: str = DEFAULT_CHARSET
    max_packet_mb: int = 0
    capture_binlog_position: bool = True
    binlog_position_includes_gtid: bool = False
    hex_encode_binary: bool = False
    schema_only: bool = False

    # None forwards mysqldump's stderr to the log; otherwise a file descriptor
    # or any writable stream, binary or text
    error_sink: Any = None

    def add_databases(self, *databases: str) -> None:
        """Append databases to the database-level scope."""
        self.databases.extend(databases)

    def add_tables(self, database: str, *tables: str) -> None:
        """Scope the dump to tables of one database.

        Switching to a different database discards the tables collected
        for the previous one.
        """
        if self.table_scope is None or self.table_scope.database != database:
            self.table_scope = TableScope(database=database)
        self.table_scope.tables.extend(tables)

    def add_ignore_tables(self, database: str, *tables: str) -> None:
        """Exclude tables of a database from the dump."""
        ignored = self.ignore_tables.setdefault(database, [])
        for table in tables:
            if table not in ignored:
                ignored.append(table)

    def reset(self) -> None:
        """Clear the dump scope and row filter."""
        self.table_scope = None
        self.databases = []
        self.ignore_tables = {}
        self.where_clause = ""

    @property
    def gtid_expected(self) -> bool:
        return self.capture_binlog_position and self.binlog_position_includes_gtid


@dataclass
class DumpInvocation:
    """Arguments for mysqldump plus the bytes to emit before its output."""
    args: list[str]
    preamble: bytes = b""

    def display_args(self) -> list[str]:
        """Arguments safe for logging."""
        return [
            "--password=***" if arg.startswith("--password=") else arg
            for arg in self.args
        ]


@dataclass
class TableStats:
    """Rows seen for a single table."""
    database: str
    table: str
    rows: int = 0


@dataclass
class DumpStats:
    """What a parsed dump contained."""
    binlog_file: Optional[str] = None
    binlog_pos: Optional[int] = None
    gtid_set: Optional[str] = None
    schema_statements: int = 0
    tables: dict[str, TableStats] = field(default_factory=dict)

    @property
    def total_rows(self) -> int:
        return sum(t.rows for t in self.tables.values())

    def table(self, database: str, table: str) -> TableStats:
        """Get (or start) the stats entry for a table."""
        key = f"{database}.{table}"
        if key not in self.tables:
            self.tables[key] = TableStats(database=database, table=table)
        return self.tables[key]
