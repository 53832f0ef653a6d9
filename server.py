"""Main HTTP server entry point: listener, default routes and CLI."""

from __future__ import annotations

import argparse
import itertools
import json
import logging
import socket
import threading
from pathlib import Path

from config import (
    ACCEPT_TIMEOUT_SECS,
    FILES_DIR,
    HOST,
    IDLE_TIMEOUT_SECS,
    LISTEN_BACKLOG,
    LOG_FORMAT,
    PORT,
    READ_TIMEOUT_SECS,
    WRITE_TIMEOUT_SECS,
    load_settings,
)
from connection import ExchangeRecord, HTTPConnection
from handlers.core_handlers import EchoHandler, RootHandler, StreamHandler, UserAgentHandler
from handlers.file_handlers import FileHandler
from log_setup import build_logger
from router import LoggingMiddleware, MatchKind, Router


class HTTPServer:
    def __init__(
        self,
        host: str = HOST,
        port: int = PORT,
        router: Router | None = None,
        *,
        files_directory: str | Path = FILES_DIR,
        read_timeout: float = READ_TIMEOUT_SECS,
        idle_timeout: float = IDLE_TIMEOUT_SECS,
        write_timeout: float = WRITE_TIMEOUT_SECS,
        log_format: str = LOG_FORMAT,
        logger: logging.Logger | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.files_directory = Path(files_directory)
        self.read_timeout = read_timeout
        self.idle_timeout = idle_timeout
        self.write_timeout = write_timeout
        self.log_format = log_format
        self.logger = logger or logging.getLogger("http_server")
        self.router = router or self._build_default_router()

        self._server_socket: socket.socket | None = None
        self._connection_ids = itertools.count(1)
        self._running = False

    def _build_default_router(self) -> Router:
        router = Router(logger=self.logger)
        files = LoggingMiddleware(FileHandler(self.files_directory, self.logger), self.logger)
        router.register("/", "GET", RootHandler())
        router.register(r"^/echo/(?P<message>.*)$", "GET", EchoHandler(), MatchKind.REGEX)
        router.register("/user-agent", "GET", UserAgentHandler())
        router.register(r"^/stream/(?P<count>\d+)$", "GET", StreamHandler(), MatchKind.REGEX)
        for method in ("GET", "POST", "DELETE"):
            router.register("/files/", method, files, MatchKind.PREFIX)
        return router

    def start(self) -> None:
        """Listen and hand each accepted client to its own worker thread."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as server_socket:
            self._server_socket = server_socket
            server_socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server_socket.bind((self.host, self.port))
            server_socket.listen(LISTEN_BACKLOG)
            server_socket.settimeout(ACCEPT_TIMEOUT_SECS)
            self.port = server_socket.getsockname()[1]
            self.logger.info("Server listening on %s:%s", self.host, self.port)

            self._running = True
            while self._running:
                try:
                    client_socket, address = server_socket.accept()
                except socket.timeout:
                    continue
                except OSError:
                    break

                connection_id = next(self._connection_ids)
                worker = threading.Thread(
                    target=self._handle_client,
                    args=(client_socket, address),
                    name=f"http-conn-{connection_id}",
                    daemon=True,
                )
                worker.start()
            self.logger.info("Server on port %s stopped", self.port)

    def stop(self) -> None:
        self._running = False
        if self._server_socket is not None:
            self._server_socket.close()
            self._server_socket = None

    def _handle_client(self, client_socket: socket.socket, address: tuple[str, int]) -> None:
        self.logger.debug("Accepted connection from %s", address)
        connection = HTTPConnection(
            client_socket,
            address,
            self.router,
            self.logger,
            read_timeout=self.read_timeout,
            idle_timeout=self.idle_timeout,
            write_timeout=self.write_timeout,
            access_log=self._record_and_log,
        )
        try:
            connection.serve()
        except Exception:
            self.logger.exception("Unhandled error on connection from %s", address)

    def _record_and_log(self, record: ExchangeRecord) -> None:
        client = record.address[0] if isinstance(record.address, tuple) else record.address
        event = {
            "client": client,
            "method": record.method,
            "path": record.path,
            "status": record.status_code,
            "request_id": record.request_id,
            "bytes_in": record.bytes_in,
            "bytes_out": record.bytes_out,
            "latency_ms": round(record.duration_ms, 3),
            "connection_reused": record.connection_reused,
        }
        if self.log_format == "json":
            self.logger.info(json.dumps(event, sort_keys=True))
            return

        self.logger.info(
            (
                "client=%s method=%s path=%s status=%s request_id=%s "
                "bytes_in=%s bytes_out=%s duration_ms=%.2f connection_reused=%s"
            ),
            event["client"],
            event["method"],
            event["path"],
            event["status"],
            event["request_id"],
            event["bytes_in"],
            event["bytes_out"],
            record.duration_ms,
            event["connection_reused"],
        )


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Run raw-socket HTTP/1.1 server")
    parser.add_argument("--host", default=settings.host)
    parser.add_argument("--port", type=int, default=settings.port)
    parser.add_argument("--directory", default=settings.files_directory)
    parser.add_argument("--read-timeout", type=float, default=settings.read_timeout)
    parser.add_argument("--idle-timeout", type=float, default=settings.idle_timeout)
    parser.add_argument("--write-timeout", type=float, default=settings.write_timeout)
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warn", "warning", "error"],
        default=settings.log_level,
    )
    parser.add_argument("--log-format", choices=["plain", "json"], default=settings.log_format)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    logger = build_logger(args.log_level)
    server = HTTPServer(
        host=args.host,
        port=args.port,
        files_directory=args.directory,
        read_timeout=args.read_timeout,
        idle_timeout=args.idle_timeout,
        write_timeout=args.write_timeout,
        log_format=args.log_format,
        logger=logger,
    )
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
