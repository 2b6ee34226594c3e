"""Stream pumping between a child process and the caller's streams.

OS pipe buffers are bounded: a child writing to a full stdout pipe blocks until
someone reads it. Each stream therefore gets its own background thread that
drains (or feeds) it while the executor waits for the process to exit.
"""

from __future__ import annotations

import codecs
import io
import logging
import subprocess
import sys
import threading
from typing import IO, Any

from procexec.core.error_policy import ErrorPolicy
from procexec.core.errors import StreamPumpError

_CHUNK_SIZE = 8192


class StreamPumper:
    """Copies one readable stream into one writable stream on a daemon thread.

    The pumper records an I/O failure instead of raising it on the pump thread;
    the owning handler inspects ``error`` once the pump has finished.
    """

    def __init__(
        self,
        *,
        source: IO[Any],
        sink: IO[Any],
        name: str,
        encoding: str = "utf-8",
        close_source_when_exhausted: bool = False,
        close_sink_when_exhausted: bool = False,
    ) -> None:
        self._source = source
        self._sink = sink
        self._name = name
        self._close_source_when_exhausted = close_source_when_exhausted
        self._close_sink_when_exhausted = close_sink_when_exhausted
        self._decoder = None
        if isinstance(sink, io.TextIOBase) and not isinstance(source, io.TextIOBase):
            self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._encoding = encoding
        # Binary sinks are flushed by the handler once the stream ends.
        self._flush_each_chunk = isinstance(sink, io.TextIOBase) and not close_sink_when_exhausted
        self._thread = threading.Thread(target=self._run, name=f"procexec-{name}", daemon=True)
        self.error: BaseException | None = None

    @property
    def name(self) -> str:
        return self._name

    def start(self) -> None:
        self._thread.start()

    def join(self, timeout_seconds: float | None = None) -> bool:
        """Waits for the pump to finish. Returns True if it did."""

        if self._thread.ident is None:
            return True
        self._thread.join(timeout_seconds)
        return not self._thread.is_alive()

    def _run(self) -> None:
        try:
            while True:
                chunk = self._read_chunk()
                if not chunk:
                    break
                self._write(chunk)
            if self._decoder is not None:
                tail = self._decoder.decode(b"", final=True)
                if tail:
                    self._sink.write(tail)
        except (OSError, ValueError) as exc:
            self.error = exc
        finally:
            if self._close_source_when_exhausted:
                self._close_quietly(self._source)
            if self._close_sink_when_exhausted:
                # Child may have exited before reading all input.
                self._close_quietly(self._sink)

    def _close_quietly(self, stream: IO[Any]) -> None:
        try:
            stream.close()
        except OSError as exc:
            if self.error is None:
                self.error = exc

    def _read_chunk(self) -> Any:
        reader = getattr(self._source, "read1", None)
        if reader is not None:
            return reader(_CHUNK_SIZE)
        return self._source.read(_CHUNK_SIZE)

    def _write(self, chunk: Any) -> None:
        if self._decoder is not None:
            text = self._decoder.decode(chunk)
            if text:
                self._sink.write(text)
        elif isinstance(chunk, str):
            self._sink.write(chunk.encode(self._encoding))
        else:
            self._sink.write(chunk)
        if self._flush_each_chunk:
            self._sink.flush()


class PumpStreamHandler:
    """Pumps a process's stdout/stderr into sinks and feeds its stdin.

    Args:
        stdout: Sink for the child's stdout; defaults to ``sys.stdout``.
        stderr: Sink for the child's stderr; defaults to ``sys.stderr``.
        stdin: Data for the child's stdin (bytes, str or a readable stream).
        encoding: Encoding used between byte pipes and text streams.
        stop_timeout_seconds: How long ``stop`` waits for the pumps to drain.
        error_policy: Policy applied to pump failures.
    """

    def __init__(
        self,
        stdout: IO[Any] | None = None,
        stderr: IO[Any] | None = None,
        stdin: bytes | str | IO[Any] | None = None,
        *,
        encoding: str = "utf-8",
        stop_timeout_seconds: float | None = 10.0,
        error_policy: ErrorPolicy | None = None,
    ) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._stdin = stdin
        self._encoding = encoding
        self._stop_timeout_seconds = stop_timeout_seconds
        self._error_policy = error_policy or ErrorPolicy()
        self._pumpers: list[StreamPumper] = []

    @property
    def has_input(self) -> bool:
        return self._stdin is not None

    def attach(self, process: subprocess.Popen[bytes]) -> None:
        """Creates pumps bound to the process's pipes."""

        self._pumpers = []
        if process.stdout is not None:
            self._pumpers.append(
                StreamPumper(
                    source=process.stdout,
                    sink=self._stdout if self._stdout is not None else sys.stdout,
                    name="stdout",
                    encoding=self._encoding,
                    close_source_when_exhausted=True,
                )
            )
        if process.stderr is not None:
            self._pumpers.append(
                StreamPumper(
                    source=process.stderr,
                    sink=self._stderr if self._stderr is not None else sys.stderr,
                    name="stderr",
                    encoding=self._encoding,
                    close_source_when_exhausted=True,
                )
            )
        if process.stdin is not None:
            self._pumpers.append(
                StreamPumper(
                    source=self._input_stream(),
                    sink=process.stdin,
                    name="stdin",
                    encoding=self._encoding,
                    close_sink_when_exhausted=True,
                )
            )

    def start(self) -> None:
        for pumper in self._pumpers:
            pumper.start()

    def stop(self) -> None:
        """Waits for the pumps to drain and reports their failures.

        Raises:
            StreamPumpError: If a pump failed and the error policy is strict.
        """

        for pumper in self._pumpers:
            if not pumper.join(self._stop_timeout_seconds):
                self._error_policy.handle_exception(
                    "Stream pump did not finish in time",
                    StreamPumpError(
                        "Stream pump did not finish in time",
                        details={
                            "stream": pumper.name,
                            "timeout_seconds": self._stop_timeout_seconds,
                        },
                    ),
                )
            elif pumper.error is not None:
                error = StreamPumpError(
                    "Stream pump failed",
                    details={"stream": pumper.name, "error": pumper.error},
                )
                error.__cause__ = pumper.error
                self._error_policy.handle_exception(
                    f"Got exception while pumping {pumper.name}", error
                )
        for sink in (self._stdout, self._stderr):
            if sink is not None:
                self._flush(sink)

    def _input_stream(self) -> IO[Any]:
        if isinstance(self._stdin, bytes):
            return io.BytesIO(self._stdin)
        if isinstance(self._stdin, str):
            return io.BytesIO(self._stdin.encode(self._encoding))
        assert self._stdin is not None
        return self._stdin

    def _flush(self, sink: IO[Any]) -> None:
        try:
            sink.flush()
        except (OSError, ValueError) as exc:
            self._error_policy.handle_exception("Got exception while flushing stream", exc)


class LogOutputStream(io.RawIOBase):
    """Binary sink that logs each complete line of child output.

    Args:
        logger: Logger receiving the lines.
        level: Log level for each line.
        encoding: Encoding used to decode the child output.
    """

    def __init__(
        self,
        logger: logging.Logger,
        level: int = logging.INFO,
        *,
        encoding: str = "utf-8",
    ) -> None:
        super().__init__()
        self._logger = logger
        self._level = level
        self._encoding = encoding
        self._buffer = bytearray()
        self._lock = threading.Lock()

    def writable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        with self._lock:
            self._buffer.extend(data)
            while True:
                index = self._buffer.find(b"\n")
                if index < 0:
                    break
                line = bytes(self._buffer[:index])
                del self._buffer[: index + 1]
                self._emit(line)
        return len(data)

    def flush(self) -> None:
        with self._lock:
            if self._buffer:
                line = bytes(self._buffer)
                self._buffer.clear()
                self._emit(line)

    def close(self) -> None:
        if not self.closed:
            self.flush()
        super().close()

    def _emit(self, line: bytes) -> None:
        text = line.rstrip(b"\r").decode(self._encoding, errors="replace")
        self._logger.log(self._level, "%s", text)
