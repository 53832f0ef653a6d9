"""HTTP request model and parser."""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from typing import BinaryIO
from urllib.parse import parse_qs

from config import MAX_BODY_BYTES, MAX_HEADER_LINE_BYTES, MAX_REQUEST_LINE_BYTES
from socket_handler import TransportError


class EndOfStream(Exception):
    """Peer closed the connection before sending a request."""


class HTTPRequestParseError(ValueError):
    """Request bytes do not form an acceptable HTTP/1.1 request."""


class MalformedRequestLine(HTTPRequestParseError):
    pass


class RequestLineTooLong(HTTPRequestParseError):
    pass


class HeaderLineTooLong(HTTPRequestParseError):
    pass


class MalformedHeaderLine(HTTPRequestParseError):
    pass


class TruncatedHeaders(HTTPRequestParseError):
    """Stream ended inside the request line or header block."""


class InvalidContentLength(HTTPRequestParseError):
    pass


class BodyTooLarge(HTTPRequestParseError):
    pass


class TruncatedBody(HTTPRequestParseError):
    pass


@dataclass(slots=True)
class HTTPRequest:
    method: str
    path: str
    http_version: str
    raw_target: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    path_params: dict[str, str] = field(default_factory=dict)
    query_params: dict[str, list[str]] = field(default_factory=dict)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "HTTPRequest":
        """Parse one complete in-memory request."""
        return read_request(io.BytesIO(raw))


def read_request(
    reader: BinaryIO,
    *,
    max_request_line: int = MAX_REQUEST_LINE_BYTES,
    max_header_line: int = MAX_HEADER_LINE_BYTES,
    max_body_bytes: int = MAX_BODY_BYTES,
) -> HTTPRequest:
    """Read exactly one request from a buffered binary stream.

    Raises ``EndOfStream`` when the peer closed before sending anything,
    ``TransportError`` when the underlying read fails, and a subclass of
    ``HTTPRequestParseError`` for anything else that prevents parsing.
    """
    raw_line = _read_line(reader, max_request_line)
    if not raw_line:
        raise EndOfStream("Client closed connection before sending request")
    request_line = _decode_line(raw_line, max_request_line, RequestLineTooLong, "Request line")

    parts = request_line.split()
    if len(parts) != 3:
        raise MalformedRequestLine(f"Malformed request line: {request_line!r}")
    method, target, http_version = parts

    headers: dict[str, str] = {}
    while True:
        raw_line = _read_line(reader, max_header_line)
        if not raw_line:
            raise TruncatedHeaders("Connection closed inside header block")
        line = _decode_line(raw_line, max_header_line, HeaderLineTooLong, "Header line")
        if not line:
            break
        if ":" not in line:
            raise MalformedHeaderLine(f"Malformed header line: {line!r}")
        name, value = line.split(":", 1)
        header_name = name.strip().lower()
        if not header_name:
            raise MalformedHeaderLine("Header name cannot be empty")
        headers[header_name] = value.strip()

    body = b""
    if "content-length" in headers:
        content_length = _parse_content_length(headers["content-length"])
        if content_length > max_body_bytes:
            raise BodyTooLarge(f"Request body too large: {content_length} bytes")
        body = _read_exact(reader, content_length)

    path, _separator, query = target.partition("?")
    return HTTPRequest(
        method=method,
        path=path,
        http_version=http_version,
        raw_target=target,
        headers=headers,
        body=body,
        query_params=parse_qs(query, keep_blank_values=True),
    )


def _read_line(reader: BinaryIO, limit: int) -> bytes:
    # Room for the CRLF terminator plus one byte to detect overflow.
    try:
        return reader.readline(limit + 3)
    except OSError as exc:
        raise TransportError(f"Failed to read from client: {exc}") from exc


def _decode_line(
    raw_line: bytes,
    limit: int,
    too_long: type[HTTPRequestParseError],
    label: str,
) -> str:
    stripped = raw_line.rstrip(b"\r\n")
    if len(stripped) > limit:
        raise too_long(f"{label} too long: more than {limit} bytes")
    if not raw_line.endswith(b"\n"):
        raise TruncatedHeaders(f"{label} not terminated before end of stream")
    return stripped.decode("iso-8859-1")


def _parse_content_length(value: str) -> int:
    if not value.isascii() or not value.isdigit():
        raise InvalidContentLength(f"Invalid Content-Length: {value!r}")
    return int(value)


def _read_exact(reader: BinaryIO, length: int) -> bytes:
    body = bytearray()
    while len(body) < length:
        try:
            chunk = reader.read(length - len(body))
        except OSError as exc:
            raise TransportError(f"Failed to read request body: {exc}") from exc
        if not chunk:
            raise TruncatedBody(f"Expected {length} body bytes, received {len(body)}")
        body.extend(chunk)
    return bytes(body)
