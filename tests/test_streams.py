from __future__ import annotations

import io
import logging

import pytest

from procexec.core.error_policy import ErrorPolicy
from procexec.core.errors import StreamPumpError
from procexec.integrations.process.streams import LogOutputStream, PumpStreamHandler, StreamPumper


class _FailingReader(io.RawIOBase):
    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        raise OSError("read failed")


class _ChunkedReader(io.RawIOBase):
    def __init__(self, chunks: list[bytes]) -> None:
        super().__init__()
        self._chunks = list(chunks)

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        return self._chunks.pop(0) if self._chunks else b""


class _FakeProcess:
    def __init__(self, *, stdout: io.IOBase, stderr: io.IOBase) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.stdin = None


def test_stream_pumper_copies_bytes_and_decodes_for_text_sinks() -> None:
    payload = "héllo\nwörld\n".encode("utf-8")
    binary_sink = io.BytesIO()
    text_sink = io.StringIO()

    for sink in (binary_sink, text_sink):
        pumper = StreamPumper(source=io.BytesIO(payload), sink=sink, name="stdout")
        pumper.start()
        assert pumper.join(5.0)
        assert pumper.error is None

    assert binary_sink.getvalue() == payload
    assert text_sink.getvalue() == "héllo\nwörld\n"


def test_stream_pumper_records_read_errors() -> None:
    pumper = StreamPumper(source=_FailingReader(), sink=io.BytesIO(), name="stderr")
    pumper.start()
    assert pumper.join(5.0)
    assert isinstance(pumper.error, OSError)


def test_pump_stream_handler_swallows_pump_errors_when_lenient() -> None:
    stdout = io.BytesIO()
    handler = PumpStreamHandler(stdout=stdout, stderr=io.BytesIO())
    handler.attach(_FakeProcess(stdout=io.BytesIO(b"out"), stderr=_FailingReader()))
    handler.start()
    handler.stop()
    assert stdout.getvalue() == b"out"


def test_pump_stream_handler_raises_pump_errors_when_strict() -> None:
    handler = PumpStreamHandler(
        stdout=io.BytesIO(),
        stderr=io.BytesIO(),
        error_policy=ErrorPolicy(strict=True),
    )
    handler.attach(_FakeProcess(stdout=io.BytesIO(b""), stderr=_FailingReader()))
    handler.start()
    with pytest.raises(StreamPumpError) as excinfo:
        handler.stop()
    assert isinstance(excinfo.value.__cause__, OSError)


def test_pump_stream_handler_reports_input_presence() -> None:
    assert PumpStreamHandler().has_input is False
    assert PumpStreamHandler(stdin=b"data").has_input is True


def test_log_output_stream_emits_one_record_per_line(caplog) -> None:
    logger = logging.getLogger("procexec.tests.child")
    caplog.set_level(logging.INFO, logger="procexec.tests.child")
    sink = LogOutputStream(logger)

    sink.write(b"first li")
    sink.write(b"ne\r\nsecond\nthird")
    assert [record.getMessage() for record in caplog.records] == ["first line", "second"]

    sink.close()
    assert [record.getMessage() for record in caplog.records] == [
        "first line",
        "second",
        "third",
    ]


def test_log_output_stream_keeps_lines_split_across_pipe_reads(caplog) -> None:
    logger = logging.getLogger("procexec.tests.child")
    caplog.set_level(logging.INFO, logger="procexec.tests.child")
    handler = PumpStreamHandler(stdout=LogOutputStream(logger), stderr=io.BytesIO())
    handler.attach(
        _FakeProcess(
            stdout=_ChunkedReader([b"hello ", b"world", b"\n", b"tail"]),
            stderr=io.BytesIO(b""),
        )
    )
    handler.start()
    handler.stop()

    assert [record.getMessage() for record in caplog.records] == ["hello world", "tail"]
