"""HTTP response model, serializer and chunked transfer encoder."""

from __future__ import annotations

import io
from collections.abc import Callable
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import BinaryIO

from config import SERVER_NAME

HTTP_VERSION = "HTTP/1.1"
CRLF = b"\r\n"
TERMINAL_CHUNK = b"0\r\n\r\n"

REASON_PHRASES: dict[int, str] = {
    200: "OK",
    201: "Created",
    204: "No Content",
    400: "Bad Request",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    500: "Internal Server Error",
}


class ChunkedWriter:
    """Chunk sink handed to streaming producers.

    Every non-empty ``write`` becomes one chunk; ``close`` emits the terminal
    chunk once no matter how many times it is called.
    """

    def __init__(self, writer: BinaryIO, *, flush_each: bool = True) -> None:
        self._writer = writer
        self._flush_each = flush_each
        self._closed = False
        self.bytes_written = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def write(self, data: bytes) -> int:
        if self._closed:
            raise ValueError("write to closed chunk sink")
        if not data:
            return 0
        frame = f"{len(data):x}".encode("ascii") + CRLF + bytes(data) + CRLF
        self._writer.write(frame)
        self.bytes_written += len(frame)
        if self._flush_each:
            self._writer.flush()
        return len(data)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.write(TERMINAL_CHUNK)
        self.bytes_written += len(TERMINAL_CHUNK)
        self._writer.flush()


StreamProducer = Callable[[ChunkedWriter], None]


@dataclass(slots=True)
class PreparedResponse:
    head: bytes
    body: bytes | None = None
    stream: StreamProducer | None = None


@dataclass(slots=True)
class HTTPResponse:
    status_code: int
    reason_phrase: str | None = None
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str = b""
    stream: StreamProducer | None = None
    http_version: str = HTTP_VERSION

    def __post_init__(self) -> None:
        if isinstance(self.body, str):
            self.body = self.body.encode("utf-8")
        if self.stream is not None and self.body:
            raise ValueError("Response cannot set both body and stream")

    def get_header(self, name: str) -> str | None:
        """Case-insensitive header lookup."""
        key = find_header(self.headers, name)
        return None if key is None else self.headers[key]

    def set_header(self, name: str, value: str) -> None:
        """Replace any existing spelling of ``name`` with ``value``."""
        _replace(self.headers, name, value)

    def to_bytes(self) -> bytes:
        """Serialize the response into HTTP/1.1 wire format bytes."""
        return serialize(self)


def find_header(headers: dict[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key in headers:
        if key.lower() == lowered:
            return key
    return None


def prepare_response(response: HTTPResponse) -> PreparedResponse:
    reason = response.reason_phrase or REASON_PHRASES.get(response.status_code, "Unknown")
    normalized_headers = dict(response.headers)
    _set_default(
        normalized_headers,
        "Date",
        formatdate(timeval=None, localtime=False, usegmt=True),
    )
    _set_default(normalized_headers, "Server", SERVER_NAME)
    _set_default(normalized_headers, "Content-Type", "text/plain")

    body: bytes | None = None
    stream: StreamProducer | None = None
    if response.stream is not None:
        length_key = find_header(normalized_headers, "Content-Length")
        if length_key is not None:
            del normalized_headers[length_key]
        _replace(normalized_headers, "Transfer-Encoding", "chunked")
        stream = response.stream
    else:
        body = bytes(response.body)
        # HEAD responses keep the framing headers of the GET they mirror.
        if find_header(normalized_headers, "Transfer-Encoding") is None:
            _set_default(normalized_headers, "Content-Length", str(len(body)))

    header_lines = [f"{response.http_version} {response.status_code} {reason}"]
    header_lines.extend(f"{key}: {value}" for key, value in normalized_headers.items())
    head = "\r\n".join(header_lines).encode("iso-8859-1") + b"\r\n\r\n"
    return PreparedResponse(head=head, body=body, stream=stream)


def serialize(response: HTTPResponse) -> bytes:
    """Render a full response, running any stream producer into memory."""
    prepared = prepare_response(response)
    if prepared.stream is None:
        return prepared.head + (prepared.body or b"")

    buffer = io.BytesIO()
    buffer.write(prepared.head)
    sink = ChunkedWriter(buffer, flush_each=False)
    try:
        prepared.stream(sink)
    finally:
        sink.close()
    return buffer.getvalue()


def _set_default(headers: dict[str, str], name: str, value: str) -> None:
    if find_header(headers, name) is None:
        headers[name] = value


def _replace(headers: dict[str, str], name: str, value: str) -> None:
    key = find_header(headers, name)
    if key is not None:
        del headers[key]
    headers[name] = value


def bad_request_response() -> HTTPResponse:
    return HTTPResponse(
        status_code=400,
        headers={"Content-Type": "text/plain", "Connection": "close"},
        body="400 Bad Request",
    )


def not_found_response() -> HTTPResponse:
    return HTTPResponse(
        status_code=404,
        headers={"Content-Type": "text/plain"},
        body="404 Not Found",
    )


def method_not_allowed_response(allow: str) -> HTTPResponse:
    return HTTPResponse(
        status_code=405,
        headers={"Content-Type": "text/plain", "Allow": allow},
        body="405 Method Not Allowed",
    )


def options_response(allow: str) -> HTTPResponse:
    return HTTPResponse(status_code=204, headers={"Allow": allow}, body=b"")


def internal_server_error_response() -> HTTPResponse:
    return HTTPResponse(
        status_code=500,
        headers={"Content-Type": "text/plain"},
        body="500 Internal Server Error",
    )
