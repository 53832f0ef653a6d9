"""Low-level socket read/write utilities."""

from __future__ import annotations

import socket
from typing import BinaryIO

from config import WRITE_CHUNK_SIZE
from response import ChunkedWriter, HTTPResponse, prepare_response


class TransportError(Exception):
    """Raised when the peer resets, times out, or the socket read fails."""


class SendError(Exception):
    """Raised when a response could not be delivered to the peer."""


def open_streams(client_socket: socket.socket) -> tuple[BinaryIO, BinaryIO]:
    """Return buffered (reader, writer) file objects over a connected socket."""
    return client_socket.makefile("rb"), client_socket.makefile("wb")


def write_http_response_message(
    writer: BinaryIO,
    response: HTTPResponse,
    *,
    write_chunk_size: int = WRITE_CHUNK_SIZE,
) -> int:
    """Write an HTTPResponse and flush it, returning the number of bytes sent.

    Streamed responses flush their head before the producer runs. Any failure
    while writing, including an error raised by the producer, is reported as
    ``SendError``.
    """
    prepared = prepare_response(response)
    try:
        writer.write(prepared.head)
        writer.flush()
        bytes_sent = len(prepared.head)

        if prepared.stream is not None:
            sink = ChunkedWriter(writer)
            try:
                prepared.stream(sink)
            finally:
                sink.close()
            return bytes_sent + sink.bytes_written

        body = memoryview(prepared.body or b"")
        for offset in range(0, len(body), write_chunk_size):
            writer.write(body[offset : offset + write_chunk_size])
        writer.flush()
        return bytes_sent + len(body)
    except Exception as exc:
        raise SendError(f"failed to send {response.status_code} response: {exc}") from exc
