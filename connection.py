"""Per-connection request/response lifecycle."""

from __future__ import annotations

import enum
import logging
import socket
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import BinaryIO

from config import IDLE_TIMEOUT_SECS, READ_TIMEOUT_SECS, WRITE_TIMEOUT_SECS
from request import EndOfStream, HTTPRequest, HTTPRequestParseError, read_request
from response import HTTPResponse, bad_request_response
from router import Router
from socket_handler import SendError, TransportError, open_streams, write_http_response_message


class ConnectionState(enum.Enum):
    READING = "reading"
    DISPATCHING = "dispatching"
    WRITING = "writing"
    KEEP_ALIVE = "keep-alive"
    CLOSED = "closed"


@dataclass(slots=True)
class ExchangeRecord:
    """One finished request/response exchange, reported to the access log."""

    address: tuple[str, int] | str
    method: str
    path: str
    status_code: int
    bytes_out: int
    bytes_in: int
    duration_ms: float
    request_id: int
    connection_reused: bool


AccessLog = Callable[[ExchangeRecord], None]


def wants_keep_alive(request: HTTPRequest) -> bool:
    return request.headers.get("connection", "").strip().lower() == "keep-alive"


class HTTPConnection:
    """Drives parse, dispatch and write for one accepted socket until it closes."""

    def __init__(
        self,
        client_socket: socket.socket,
        address: tuple[str, int] | str,
        router: Router,
        logger: logging.Logger,
        *,
        read_timeout: float = READ_TIMEOUT_SECS,
        idle_timeout: float = IDLE_TIMEOUT_SECS,
        write_timeout: float = WRITE_TIMEOUT_SECS,
        access_log: AccessLog | None = None,
    ) -> None:
        self.sock = client_socket
        self.address = address
        self.router = router
        self.read_timeout = read_timeout
        self.idle_timeout = idle_timeout
        self.write_timeout = write_timeout
        self.state = ConnectionState.READING
        self.requests_served = 0
        self._logger = logger
        self._access_log = access_log
        self._closed = False

    def serve(self) -> None:
        reader, writer = open_streams(self.sock)
        try:
            self._run(reader, writer)
        finally:
            self.close(reader, writer)

    def close(self, reader: BinaryIO | None = None, writer: BinaryIO | None = None) -> None:
        if self._closed:
            return
        self._closed = True
        self.state = ConnectionState.CLOSED
        for stream in (writer, reader):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError:
                self._logger.debug("Error closing stream for %s", self.address)
        try:
            self.sock.close()
        except OSError:
            self._logger.debug("Error closing socket for %s", self.address)
        self._logger.debug(
            "Closed connection from %s after %d request(s)", self.address, self.requests_served
        )

    def _run(self, reader: BinaryIO, writer: BinaryIO) -> None:
        timeout = self.read_timeout
        while self.state is not ConnectionState.CLOSED:
            started_at = time.perf_counter()
            request = self._read(reader, writer, timeout, started_at)
            if request is None:
                self.state = ConnectionState.CLOSED
                continue

            self.state = ConnectionState.DISPATCHING
            response = self._dispatch(request)

            self.state = ConnectionState.WRITING
            self.state = self._write(writer, request, response, started_at)

            if self.state is ConnectionState.KEEP_ALIVE:
                timeout = self.idle_timeout
                self.state = ConnectionState.READING

    def _read(
        self, reader: BinaryIO, writer: BinaryIO, timeout: float, started_at: float
    ) -> HTTPRequest | None:
        self.sock.settimeout(timeout)
        try:
            return read_request(reader)
        except EndOfStream:
            self._logger.debug("Client %s closed the connection", self.address)
        except TransportError as exc:
            self._logger.debug("Read from %s ended: %s", self.address, exc)
        except HTTPRequestParseError as exc:
            self._logger.warning("Bad request from %s: %s", self.address, exc)
            self._send_bad_request(writer, started_at)
        return None

    def _dispatch(self, request: HTTPRequest) -> HTTPResponse:
        self._logger.debug("Dispatching %s %s", request.method, request.path)
        response = self.router.dispatch(request)
        response.set_header("Connection", "keep-alive" if wants_keep_alive(request) else "close")
        return response

    def _write(
        self,
        writer: BinaryIO,
        request: HTTPRequest,
        response: HTTPResponse,
        started_at: float,
    ) -> ConnectionState:
        self.sock.settimeout(self.write_timeout)
        try:
            bytes_sent = write_http_response_message(writer, response)
        except SendError as exc:
            self._logger.error("Failed to send response to %s: %s", self.address, exc)
            return ConnectionState.CLOSED
        self.requests_served += 1
        self._report(
            request.method,
            request.path,
            response,
            bytes_sent,
            len(request.body),
            started_at,
        )
        return ConnectionState.KEEP_ALIVE if wants_keep_alive(request) else ConnectionState.CLOSED

    def _send_bad_request(self, writer: BinaryIO, started_at: float) -> None:
        response = bad_request_response()
        self.sock.settimeout(self.write_timeout)
        try:
            bytes_sent = write_http_response_message(writer, response)
        except SendError as exc:
            self._logger.warning("Could not send 400 to %s: %s", self.address, exc)
            return
        self._report("-", "-", response, bytes_sent, 0, started_at)

    def _report(
        self,
        method: str,
        path: str,
        response: HTTPResponse,
        bytes_out: int,
        bytes_in: int,
        started_at: float,
    ) -> None:
        if self._access_log is None:
            return
        self._access_log(
            ExchangeRecord(
                address=self.address,
                method=method,
                path=path,
                status_code=response.status_code,
                bytes_out=bytes_out,
                bytes_in=bytes_in,
                duration_ms=(time.perf_counter() - started_at) * 1000,
                request_id=self.requests_served,
                connection_reused=self.requests_served > 1,
            )
        )
