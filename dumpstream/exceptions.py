"""
Exceptions raised by dumpstream.
"""

from typing import Optional


class DumpError(Exception):
    """Base class for every dumpstream error."""


class ConfigError(DumpError):
    """Configuration error."""
    # e.g. an address without a host, or a config file missing a required key


class ResolutionError(DumpError):
    """The mysqldump executable could not be found."""


class ProcessError(DumpError):
    """mysqldump failed to start, exited non-zero, or its output could not be delivered."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ParseError(DumpError):
    """The dump stream could not be interpreted."""


class StreamClosedError(DumpError):
    """The other end of an in-memory pipe has been closed.

    ``reason`` holds the error the other end was closed with, or None
    when it was closed cleanly.
    """

    def __init__(self, message: str, reason: Optional[BaseException] = None):
        super().__init__(message)
        self.reason = reason
