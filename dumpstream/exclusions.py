"""
Wildcard support for ignored tables.

mysqldump only accepts literal ``--ignore-table=db.table`` flags, so
patterns such as ``*_backup`` are expanded against the live table list.
"""

import fnmatch
import logging
import re
from typing import Callable

WILDCARD_CHARS = set('*?[')


def has_wildcard(pattern: str) -> bool:
    """Check whether a table name is an fnmatch pattern."""
    return any(c in WILDCARD_CHARS for c in pattern)


def expand_ignore_tables(
    ignore_tables: dict[str, list[str]],
    list_tables: Callable[[str], list[str]]
) -> dict[str, list[str]]:
    """
    Replace wildcard entries with the matching table names.

    Supports fnmatch patterns such as '*_old', 'tmp_*' and '*_backup_*';
    entries without wildcards are kept as they are.

    Args:
        ignore_tables: Database name to table names or patterns.
        list_tables: Returns the tables of a database; only called for
            databases that have at least one pattern.

    Returns:
        Database name to literal table names, in first-seen order.
    """
    expanded: dict[str, list[str]] = {}
    for database, entries in ignore_tables.items():
        names = [e for e in entries if not has_wildcard(e)]
        patterns = [e for e in entries if has_wildcard(e)]

        if patterns:
            # One alternation per database, tried against every table once
            matcher = re.compile('|'.join(f'(?:{fnmatch.translate(p)})' for p in patterns))
            matched = [t for t in list_tables(database) if matcher.match(t)]
            if not matched:
                logging.warning(f"No tables in '{database}' match {patterns}")
            else:
                logging.info(f"Ignoring {len(matched)} table(s) in '{database}' matching {patterns}")
                logging.debug(f"Ignored in '{database}': {', '.join(matched)}")
            names.extend(matched)

        expanded[database] = list(dict.fromkeys(names))
    return expanded
