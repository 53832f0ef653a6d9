"""Unit tests for HTTP response serialization and chunked encoding."""

import io

import pytest

from response import (
    ChunkedWriter,
    HTTPResponse,
    method_not_allowed_response,
    serialize,
)


def _split(raw: bytes) -> tuple[bytes, dict[str, str], bytes]:
    head, body = raw.split(b"\r\n\r\n", 1)
    lines = head.decode("iso-8859-1").split("\r\n")
    headers = {}
    for line in lines[1:]:
        name, value = line.split(": ", 1)
        headers[name] = value
    return lines[0].encode("iso-8859-1"), headers, body


def test_response_serialization_sets_length_and_default_content_type() -> None:
    response = HTTPResponse(status_code=200, body="hello")

    raw = response.to_bytes()

    assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
    assert b"Content-Type: text/plain\r\n" in raw
    assert b"Content-Length: 5\r\n" in raw
    assert raw.endswith(b"\r\n\r\nhello")


def test_response_serialization_preserves_custom_content_type() -> None:
    response = HTTPResponse(
        status_code=404,
        headers={"Content-Type": "text/html; charset=utf-8"},
        body=b"<h1>Not Found</h1>",
    )

    raw = response.to_bytes()

    assert raw.startswith(b"HTTP/1.1 404 Not Found\r\n")
    assert b"Content-Type: text/html; charset=utf-8\r\n" in raw
    assert b"Content-Length: 18\r\n" in raw


@pytest.mark.parametrize("body", [b"", b"x", b"\x00" * 1000, "café".encode("utf-8")])
def test_content_length_matches_body_length(body: bytes) -> None:
    status_line, headers, payload = _split(serialize(HTTPResponse(status_code=200, body=body)))

    assert status_line == b"HTTP/1.1 200 OK"
    assert headers["Content-Length"] == str(len(body))
    assert payload == body


def test_explicit_content_length_is_kept() -> None:
    response = HTTPResponse(status_code=200, headers={"content-length": "99"}, body=b"abc")

    _status_line, headers, _payload = _split(serialize(response))

    assert headers["content-length"] == "99"
    assert "Content-Length" not in headers


def test_lowercase_content_type_is_not_duplicated() -> None:
    response = HTTPResponse(status_code=200, headers={"content-type": "image/png"}, body=b"x")

    _status_line, headers, _payload = _split(serialize(response))

    assert headers["content-type"] == "image/png"
    assert "Content-Type" not in headers


def test_custom_reason_phrase_and_version() -> None:
    response = HTTPResponse(status_code=299, reason_phrase="Fine", http_version="HTTP/1.0")

    assert serialize(response).startswith(b"HTTP/1.0 299 Fine\r\n")


def test_date_and_server_headers_are_added() -> None:
    _status_line, headers, _payload = _split(serialize(HTTPResponse(status_code=204)))

    assert headers["Date"].endswith("GMT")
    assert headers["Server"]


def test_set_header_replaces_any_spelling() -> None:
    response = HTTPResponse(status_code=200, headers={"connection": "keep-alive"})

    response.set_header("Connection", "close")

    assert response.headers == {"Connection": "close"}
    assert response.get_header("CONNECTION") == "close"


def test_method_not_allowed_carries_allow_header() -> None:
    raw = method_not_allowed_response("GET, POST").to_bytes()

    assert raw.startswith(b"HTTP/1.1 405 Method Not Allowed\r\n")
    assert b"Allow: GET, POST\r\n" in raw


def test_body_and_stream_are_mutually_exclusive() -> None:
    with pytest.raises(ValueError):
        HTTPResponse(status_code=200, body=b"x", stream=lambda sink: None)


def test_chunked_writer_frames_writes_and_terminates_once() -> None:
    buffer = io.BytesIO()
    sink = ChunkedWriter(buffer)

    assert sink.write(b"") == 0
    assert buffer.getvalue() == b""
    assert sink.write(b"hello") == 5
    assert sink.write(b"a" * 1024) == 1024
    sink.close()
    sink.close()

    assert buffer.getvalue() == (
        b"5\r\nhello\r\n"
        + b"400\r\n" + b"a" * 1024 + b"\r\n"
        + b"0\r\n\r\n"
    )
    assert sink.closed


def test_chunked_writer_uses_lowercase_hex() -> None:
    buffer = io.BytesIO()
    sink = ChunkedWriter(buffer)

    sink.write(b"z" * 255)

    assert buffer.getvalue().startswith(b"ff\r\n")


def test_chunked_writer_rejects_writes_after_close() -> None:
    sink = ChunkedWriter(io.BytesIO())
    sink.close()

    with pytest.raises(ValueError):
        sink.write(b"late")


def test_response_stream_serializes_with_chunked_transfer() -> None:
    def produce(sink: ChunkedWriter) -> None:
        sink.write(b"hello")
        sink.write(b"")
        sink.write(b"world")

    response = HTTPResponse(
        status_code=200,
        headers={"Content-Length": "10"},
        stream=produce,
    )
    raw = response.to_bytes()

    assert b"Transfer-Encoding: chunked\r\n" in raw
    assert b"Content-Length" not in raw
    assert raw.endswith(b"\r\n\r\n5\r\nhello\r\n5\r\nworld\r\n0\r\n\r\n")


def test_stream_error_still_terminates_body_and_propagates() -> None:
    seen: list[ChunkedWriter] = []

    def produce(sink: ChunkedWriter) -> None:
        seen.append(sink)
        sink.write(b"partial")
        raise RuntimeError("producer failed")

    with pytest.raises(RuntimeError, match="producer failed"):
        serialize(HTTPResponse(status_code=200, stream=produce))

    assert seen[0].closed
