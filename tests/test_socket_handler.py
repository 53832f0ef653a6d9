"""Unit tests for writing responses to socket streams."""

import io

import pytest

from response import ChunkedWriter, HTTPResponse
from socket_handler import SendError, write_http_response_message


class _FlushRecorder(io.BytesIO):
    def __init__(self) -> None:
        super().__init__()
        self.flushed_at: list[int] = []

    def flush(self) -> None:
        self.flushed_at.append(len(self.getvalue()))
        super().flush()


class _BrokenWriter(io.RawIOBase):
    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        raise BrokenPipeError("peer went away")


def test_buffered_response_is_written_and_counted() -> None:
    writer = io.BytesIO()
    response = HTTPResponse(status_code=200, body=b"hello")

    bytes_sent = write_http_response_message(writer, response, write_chunk_size=2)

    assert writer.getvalue().startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Length: 5\r\n" in writer.getvalue()
    assert writer.getvalue().endswith(b"\r\n\r\nhello")
    assert bytes_sent == len(writer.getvalue())


def test_stream_head_is_flushed_before_producer_runs() -> None:
    writer = _FlushRecorder()
    head_seen: list[bytes] = []

    def produce(sink: ChunkedWriter) -> None:
        head_seen.append(writer.getvalue())
        sink.write(b"abc")

    bytes_sent = write_http_response_message(writer, HTTPResponse(status_code=200, stream=produce))

    assert head_seen[0].endswith(b"\r\n\r\n")
    assert b"Transfer-Encoding: chunked" in head_seen[0]
    assert writer.flushed_at[0] == len(head_seen[0])
    assert writer.getvalue().endswith(b"3\r\nabc\r\n0\r\n\r\n")
    assert bytes_sent == len(writer.getvalue())


def test_producer_error_becomes_send_error_after_terminal_chunk() -> None:
    writer = io.BytesIO()

    def produce(sink: ChunkedWriter) -> None:
        sink.write(b"part")
        raise OSError("disk vanished")

    with pytest.raises(SendError):
        write_http_response_message(writer, HTTPResponse(status_code=200, stream=produce))

    assert writer.getvalue().endswith(b"4\r\npart\r\n0\r\n\r\n")
    assert writer.getvalue().count(b"0\r\n\r\n") == 1


def test_write_failure_becomes_send_error() -> None:
    with pytest.raises(SendError):
        write_http_response_message(_BrokenWriter(), HTTPResponse(status_code=200, body=b"x"))
