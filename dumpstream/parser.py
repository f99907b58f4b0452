"""
Streaming reader for mysqldump output.

The stream is consumed one statement at a time and handed to a
ParseHandler, so a dump of any size is processed in constant memory.
Only the statements needed to follow a dump are recognised; row values
are passed on as raw SQL text.
"""

import logging
import re
from typing import BinaryIO, Iterator, Optional

from .exceptions import ParseError, StreamClosedError
from .models import DumpStats

IDENTIFIER = r"`((?:[^`]|``)+)`"

BINLOG_RE = re.compile(
    r"^CHANGE (?:MASTER|REPLICATION SOURCE) TO "
    r"(?:MASTER|SOURCE)_LOG_FILE='([^']+)',\s*(?:MASTER|SOURCE)_LOG_POS=(\d+);$"
)
GTID_RE = re.compile(
    r"^SET @@GLOBAL\.GTID_PURGED\s*=\s*(?:/\*!\d+\s*'\+'\s*\*/\s*)?'([^']*)';$",
    re.DOTALL,
)
USE_RE = re.compile(rf"^USE {IDENTIFIER};$")
CREATE_DATABASE_RE = re.compile(
    rf"^CREATE DATABASE (?:/\*!\d+ IF NOT EXISTS\*/ |IF NOT EXISTS )?{IDENTIFIER}"
)
SCHEMA_RE = re.compile(r"^(?:CREATE|DROP|ALTER)\s", re.IGNORECASE)
INSERT_RE = re.compile(rf"^INSERT INTO {IDENTIFIER} VALUES \((.*)\);$", re.DOTALL)


class ParseHandler:
    """Receives the events found in a dump.

    Schema statements arrive before the rows they describe. Override the
    callbacks you need; the defaults ignore the event.
    """

    def binlog(self, name: str, pos: int) -> None:
        """Binary log coordinates of the snapshot."""

    def gtid_set(self, gtid_set: str) -> None:
        """GTID set purged at the time of the snapshot."""

    def schema(self, database: Optional[str], statement: str) -> None:
        """A CREATE, DROP or ALTER statement."""

    def data(self, database: str, table: str, values: str) -> None:
        """One row, as the SQL text between the VALUES parentheses."""


class RowCountHandler(ParseHandler):
    """Collects DumpStats and logs progress as rows stream past."""

    LOG_EVERY = 100000

    def __init__(self):
        self.stats = DumpStats()

    def binlog(self, name: str, pos: int) -> None:
        self.stats.binlog_file = name
        self.stats.binlog_pos = pos
        logging.info(f"Snapshot binlog position: {name}:{pos}")

    def gtid_set(self, gtid_set: str) -> None:
        self.stats.gtid_set = gtid_set
        logging.info(f"Snapshot GTID set: {gtid_set or '(empty)'}")

    def schema(self, database: Optional[str], statement: str) -> None:
        self.stats.schema_statements += 1

    def data(self, database: str, table: str, values: str) -> None:
        table_stats = self.stats.table(database, table)
        table_stats.rows += 1
        if table_stats.rows % self.LOG_EVERY == 0:
            logging.info(f"  {database}.{table}: {table_stats.rows} rows so far")


def _unquote(identifier: str) -> str:
    return identifier.replace("``", "`")


def iter_statements(stream: BinaryIO, encoding: str = "utf-8") -> Iterator[str]:
    """Yield complete statements from a dump stream.

    A statement ends at a line ending in ';'. Comment lines between
    statements are dropped, except a commented-out CHANGE MASTER TO.

    Raises:
        ParseError: If the stream fails or ends inside a statement.
    """
    pending: list[bytes] = []
    in_comment = False
    # Pieces of a commented CHANGE line, None for any other comment
    kept: Optional[list[bytes]] = None
    try:
        for raw in stream:
            if in_comment:
                if kept is not None:
                    kept.append(raw)
            elif not pending:
                stripped = raw.strip()
                if not stripped:
                    continue
                if stripped.startswith(b"--"):
                    in_comment = True
                    comment = raw.lstrip()[2:].lstrip()
                    kept = [comment] if comment.startswith(b"CHANGE ") else None
            if in_comment:
                # A comment line longer than the stream buffer spans several pieces
                if raw.endswith(b"\n"):
                    in_comment = False
                    if kept is not None:
                        yield b"".join(kept).decode(encoding, errors="surrogateescape").strip()
                        kept = None
                continue
            pending.append(raw)
            # Long lines may arrive in pieces; only a full line can end a statement
            if raw.endswith(b"\n") and raw.rstrip().endswith(b";"):
                yield b"".join(pending).decode(encoding, errors="surrogateescape").strip()
                pending = []
    except StreamClosedError as e:
        raise ParseError(f"Dump stream failed: {e.reason or e}") from e

    if kept is not None:
        yield b"".join(kept).decode(encoding, errors="surrogateescape").strip()
    if pending:
        tail = b"".join(pending).rstrip()
        if not tail.endswith(b";"):
            preview = tail[:80].decode(encoding, errors="replace")
            raise ParseError(f"Dump stream ended inside a statement: {preview}...")
        yield tail.decode(encoding, errors="surrogateescape").strip()


def parse(
    stream: BinaryIO,
    handler: ParseHandler,
    binlog_position_expected: bool,
    gtid_expected: bool,
) -> None:
    """Read a mysqldump stream to the end, feeding ``handler``.

    Args:
        stream: Binary stream of mysqldump output, read line by line.
        handler: Receives the events in stream order.
        binlog_position_expected: Fail if no CHANGE MASTER TO is seen.
        gtid_expected: Fail if no GTID_PURGED statement is seen.

    Raises:
        ParseError: On malformed input, a truncated or failed stream, or
            missing snapshot coordinates.
    """
    database: Optional[str] = None
    binlog_seen = False
    gtid_seen = False

    for statement in iter_statements(stream):
        if statement.startswith("INSERT INTO "):
            match = INSERT_RE.match(statement)
            if match is None:
                raise ParseError(f"Malformed INSERT statement: {statement[:80]}...")
            if database is None:
                raise ParseError(f"Row for table `{match.group(1)}` before any USE statement")
            handler.data(database, _unquote(match.group(1)), match.group(2))
            continue

        match = USE_RE.match(statement)
        if match:
            database = _unquote(match.group(1))
            logging.debug(f"Parsing database '{database}'")
            continue

        match = BINLOG_RE.match(statement)
        if match:
            binlog_seen = True
            handler.binlog(match.group(1), int(match.group(2)))
            continue

        match = GTID_RE.match(statement)
        if match:
            gtid_seen = True
            handler.gtid_set(re.sub(r"\s+", "", match.group(1)))
            continue

        match = CREATE_DATABASE_RE.match(statement)
        if match:
            handler.schema(_unquote(match.group(1)), statement)
            continue

        if SCHEMA_RE.match(statement):
            handler.schema(database, statement)

    if binlog_position_expected and not binlog_seen:
        raise ParseError("Dump has no binlog position")
    if gtid_expected and not gtid_seen:
        raise ParseError("Dump has no GTID set")
