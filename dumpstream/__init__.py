"""
dumpstream
==========
Consistent, machine-parseable MySQL snapshots driven by mysqldump:
- Deterministic mysqldump command lines from a DumpConfig
- Single-transaction snapshots with binlog / GTID coordinates
- Streaming the dump into a parser through a bounded in-memory pipe
- Writing the dump to any binary sink
"""

from .config import ConfigLoader
from .dumper import Dumper
from .exceptions import (
    ConfigError,
    DumpError,
    ParseError,
    ProcessError,
    ResolutionError,
    StreamClosedError,
)
from .invocation import build_invocation, split_address
from .main import main
from .models import (
    DEFAULT_CHARSET,
    DumpConfig,
    DumpInvocation,
    DumpStats,
    TableScope,
    TableStats,
)
from .parser import ParseHandler, RowCountHandler, parse
from .pipe import BytePipe, PipeReader, PipeWriter

__version__ = "1.0.0"

__all__ = [
    # Main entry point
    "main",
    # Core classes
    "ConfigLoader",
    "Dumper",
    "BytePipe",
    "PipeReader",
    "PipeWriter",
    "ParseHandler",
    "RowCountHandler",
    # Functions
    "build_invocation",
    "parse",
    "split_address",
    # Models
    "DEFAULT_CHARSET",
    "DumpConfig",
    "DumpInvocation",
    "DumpStats",
    "TableScope",
    "TableStats",
    # Exceptions
    "ConfigError",
    "DumpError",
    "ParseError",
    "ProcessError",
    "ResolutionError",
    "StreamClosedError",
]
