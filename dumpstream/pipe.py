"""
In-memory byte pipe connecting one producer thread to one consumer thread.
"""

import threading
from typing import Iterator, Optional

from .exceptions import StreamClosedError


class BytePipe:
    """Bounded FIFO of bytes with a reader end and a writer end.

    Writes block while the buffer is full, reads block while it is empty.
    Either end can be closed with an error; the other end then fails with
    a StreamClosedError whose ``reason`` is that error. Bytes written
    before the writer closed are always delivered first.
    """

    DEFAULT_CAPACITY = 64 * 1024

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError("Pipe capacity must be positive")
        self.capacity = capacity
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._writer_closed = False
        self._writer_error: Optional[BaseException] = None
        self._reader_closed = False
        self._reader_error: Optional[BaseException] = None
        self.reader = PipeReader(self)
        self.writer = PipeWriter(self)

    def __enter__(self) -> "BytePipe":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Close both ends, passing on the exception that ended the block."""
        self.writer.close(exc_val)
        self.reader.close(exc_val)

    def _write(self, data: bytes) -> int:
        view = memoryview(data)
        with self._cond:
            while view:
                while len(self._buffer) >= self.capacity and not self._reader_closed:
                    if self._writer_closed:
                        break
                    self._cond.wait()
                if self._reader_closed:
                    raise StreamClosedError("Read end of pipe is closed", self._reader_error)
                if self._writer_closed:
                    raise StreamClosedError("Write to closed pipe")
                room = self.capacity - len(self._buffer)
                self._buffer += view[:room]
                view = view[room:]
                self._cond.notify_all()
        return len(data)

    def _read(self, size: int) -> bytes:
        with self._cond:
            self._wait_readable(lambda: bool(self._buffer))
            if not self._buffer:
                return self._end_of_stream()
            if size < 0 or size >= len(self._buffer):
                size = len(self._buffer)
            chunk = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._cond.notify_all()
            return chunk

    def _readline(self) -> bytes:
        with self._cond:
            # A line longer than the buffer is handed out in pieces
            self._wait_readable(
                lambda: b"\n" in self._buffer or len(self._buffer) >= self.capacity
            )
            if not self._buffer:
                return self._end_of_stream()
            end = self._buffer.find(b"\n")
            size = len(self._buffer) if end < 0 else end + 1
            line = bytes(self._buffer[:size])
            del self._buffer[:size]
            self._cond.notify_all()
            return line

    def _wait_readable(self, ready) -> None:
        while not ready() and not self._writer_closed and not self._reader_closed:
            self._cond.wait()
        if self._reader_closed:
            raise StreamClosedError("Read from closed pipe", self._reader_error)

    def _end_of_stream(self) -> bytes:
        if self._writer_error is not None:
            raise StreamClosedError(
                f"Write end of pipe closed with error: {self._writer_error}",
                self._writer_error,
            )
        return b""

    def _close_writer(self, error: Optional[BaseException]) -> None:
        with self._cond:
            if not self._writer_closed:
                self._writer_closed = True
                self._writer_error = error
            self._cond.notify_all()

    def _close_reader(self, error: Optional[BaseException]) -> None:
        with self._cond:
            if not self._reader_closed:
                self._reader_closed = True
                self._reader_error = error
                self._buffer.clear()
            self._cond.notify_all()


class PipeReader:
    """Read end of a BytePipe."""

    def __init__(self, pipe: BytePipe):
        self._pipe = pipe

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything until the end with -1.

        Returns b"" once the writer has closed cleanly and the buffer is
        drained.
        """
        if size == 0:
            return b""
        if size > 0:
            return self._pipe._read(size)
        chunks = []
        while True:
            chunk = self._pipe._read(-1)
            if not chunk:
                return b"".join(chunks)
            chunks.append(chunk)

    def readline(self) -> bytes:
        """Read one line, including its trailing newline when present."""
        return self._pipe._readline()

    def __iter__(self) -> Iterator[bytes]:
        while True:
            line = self.readline()
            if not line:
                return
            yield line

    def close(self, error: Optional[BaseException] = None) -> None:
        """Close the read end; pending and later writes fail with ``error``."""
        self._pipe._close_reader(error)


class PipeWriter:
    """Write end of a BytePipe."""

    def __init__(self, pipe: BytePipe):
        self._pipe = pipe

    def write(self, data: bytes) -> int:
        """Write all of ``data``, blocking while the pipe is full."""
        return self._pipe._write(data)

    def flush(self) -> None:
        pass

    def close(self, error: Optional[BaseException] = None) -> None:
        """Close the write end.

        Once the buffered bytes are read, further reads return b"" or,
        when ``error`` is given, raise StreamClosedError carrying it.
        """
        self._pipe._close_writer(error)
