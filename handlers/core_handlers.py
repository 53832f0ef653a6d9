"""Built-in route handlers."""

from __future__ import annotations

from request import HTTPRequest
from response import ChunkedWriter, HTTPResponse

MAX_STREAM_LINES = 1_000


class RootHandler:
    def handle(self, request: HTTPRequest) -> HTTPResponse:
        _ = request
        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": "text/plain"},
            body="Welcome to my HTTP server",
        )


class EchoHandler:
    """Reflects everything after ``/echo/`` back as the body, byte for byte."""

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": "text/plain"},
            body=request.path_params.get("message", "").encode("iso-8859-1"),
        )


class UserAgentHandler:
    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": "text/plain"},
            body=request.headers.get("user-agent", "").encode("iso-8859-1"),
        )


class StreamHandler:
    """Streams ``count`` numbered lines as a chunked body, one chunk per line."""

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        count = min(int(request.path_params.get("count", "0")), MAX_STREAM_LINES)

        def produce(sink: ChunkedWriter) -> None:
            for index in range(1, count + 1):
                sink.write(f"chunk-{index}\n".encode("ascii"))

        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": "text/plain"},
            stream=produce,
        )
