"""
Runs mysqldump and streams its output to a sink or straight into a parser.
"""

import collections
import io
import logging
import os
import shutil
import signal
import subprocess
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import IO, Any, BinaryIO, Callable, Optional

from .exceptions import ProcessError, ResolutionError, StreamClosedError
from .invocation import build_invocation
from .models import DumpConfig, DumpInvocation
from .parser import ParseHandler, parse as parse_dump
from .pipe import BytePipe, PipeReader, PipeWriter

ParseFunc = Callable[[BinaryIO, ParseHandler, bool, bool], None]


class Dumper:
    """Drives mysqldump for one DumpConfig.

    The executable is resolved once, here; the config may be changed and
    reused between dumps, but not while one is running.
    """

    CHUNK_SIZE = 64 * 1024
    STDERR_TAIL_LINES = 20

    def __init__(
        self,
        execution_path: str,
        config: DumpConfig,
        parse: ParseFunc = parse_dump,
    ):
        resolved = shutil.which(execution_path) if execution_path else None
        if resolved is None:
            raise ResolutionError(f"mysqldump executable '{execution_path}' not found")

        self.execution_path = resolved
        self.config = config
        self.parse = parse

    def dump(self, writer: BinaryIO) -> None:
        """Dump to a binary writer.

        Raises:
            ConfigError: If the config cannot produce a command line.
            ProcessError: If mysqldump fails or the writer rejects its output.
        """
        self._run(build_invocation(self.config), writer)

    def dump_and_parse(self, handler: ParseHandler) -> None:
        """Dump and parse concurrently, without buffering the whole dump.

        mysqldump writes into an in-memory pipe on the calling thread while
        the parse runs on a worker thread reading the other end. The call
        returns once both have finished.

        Raises:
            ConfigError: Before anything is started, for a bad config.
            ProcessError: If mysqldump failed, even when parsing failed too.
            ParseError: If parsing failed while mysqldump succeeded.
        """
        invocation = build_invocation(self.config)
        binlog_expected = self.config.capture_binlog_position
        gtid_expected = self.config.gtid_expected

        with BytePipe(self.CHUNK_SIZE) as pipe, \
                ThreadPoolExecutor(max_workers=1, thread_name_prefix="dump-parse") as pool:
            future = pool.submit(
                self._consume, pipe.reader, handler, binlog_expected, gtid_expected
            )

            try:
                dump_error = self._produce(invocation, pipe.writer)
            except BaseException as e:
                # Unblock the parser before the executor waits for it
                pipe.writer.close(e)
                raise
            pipe.writer.close(dump_error)

            parse_error = future.exception()

        if dump_error is not None:
            raise dump_error
        if parse_error is not None:
            raise parse_error

    def _consume(
        self,
        reader: PipeReader,
        handler: ParseHandler,
        binlog_expected: bool,
        gtid_expected: bool,
    ) -> None:
        try:
            self.parse(reader, handler, binlog_expected, gtid_expected)
        except BaseException as e:
            reader.close(e)
            raise
        reader.close()

    def _produce(self, invocation: DumpInvocation, writer: PipeWriter) -> Optional[ProcessError]:
        """Run the dump into the pipe, returning its error instead of raising."""
        try:
            self._run(invocation, writer)
        except StreamClosedError as e:
            if e.reason is not None:
                # The parser failed; its error is the one to report
                return None
            return ProcessError("Parser stopped reading before mysqldump finished")
        except ProcessError as e:
            return e
        return None

    def _run(self, invocation: DumpInvocation, writer: BinaryIO) -> None:
        """Write the preamble, then copy mysqldump's stdout to ``writer``."""
        if invocation.preamble:
            self._write(writer, invocation.preamble)

        logging.info(f"exec mysqldump with {invocation.display_args()}")
        cmd = [self.execution_path, *invocation.args]
        stderr_target, relay_sink = self._stderr_target()

        try:
            # Own process group, so a wrapper script and its children die together
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=stderr_target,
                start_new_session=True,
            )
        except OSError as e:
            raise ProcessError(f"Failed to start mysqldump: {e}") from e

        stderr_tail: collections.deque = collections.deque(maxlen=self.STDERR_TAIL_LINES)
        stderr_thread = None
        if stderr_target is subprocess.PIPE:
            stderr_thread = threading.Thread(
                target=self._relay_stderr,
                args=(proc.stderr, stderr_tail, relay_sink),
                name="mysqldump-stderr",
                daemon=True,
            )
            stderr_thread.start()

        with proc:
            try:
                for chunk in iter(lambda: proc.stdout.read1(self.CHUNK_SIZE), b""):
                    self._write(writer, chunk)
            except BaseException:
                self._kill(proc)
                proc.stdout.close()
                raise
            finally:
                proc.wait()
                if stderr_thread is not None:
                    stderr_thread.join()

        if proc.returncode != 0:
            message = f"mysqldump exited with status {proc.returncode}"
            if stderr_tail:
                message += ": " + " | ".join(stderr_tail)
            raise ProcessError(message, returncode=proc.returncode)

        logging.debug("mysqldump finished")

    def _stderr_target(self) -> tuple[Any, Optional[IO]]:
        """Pick the child's stderr and the stream to relay it into, if any.

        Sinks without a file descriptor (BytesIO, StringIO, captured
        streams) are fed by the relay thread instead of the child.
        """
        sink = self.config.error_sink
        if sink is None or isinstance(sink, int):
            return (subprocess.PIPE if sink is None else sink), None
        try:
            sink.fileno()
        except (AttributeError, OSError):
            return subprocess.PIPE, sink
        return sink, None

    @staticmethod
    def _kill(proc: subprocess.Popen) -> None:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            # Group already gone
            pass

    @staticmethod
    def _write(writer: BinaryIO, data: bytes) -> None:
        try:
            writer.write(data)
        except OSError as e:
            raise ProcessError(f"Failed to write dump output: {e}") from e

    @staticmethod
    def _relay_stderr(stream: BinaryIO, tail: collections.deque, sink: Optional[IO]) -> None:
        text_sink = isinstance(sink, io.TextIOBase)
        for raw in stream:
            if sink is not None:
                sink.write(raw.decode("utf-8", errors="replace") if text_sink else raw)
                continue
            line = raw.decode("utf-8", errors="replace").rstrip()
            if line:
                tail.append(line)
                logging.warning(f"mysqldump: {line}")
