"""Handler reading and writing files under a fixed directory."""

from __future__ import annotations

import logging
from pathlib import Path

from request import HTTPRequest
from response import HTTPResponse, internal_server_error_response, not_found_response
from utils import delete_file, read_file, resolve_file, write_file


class FileHandler:
    """Serves ``<prefix><name>`` from ``root``.

    GET reads the file, POST creates or overwrites it with the request body,
    DELETE removes it. Paths escaping ``root`` are refused with 403.
    """

    def __init__(self, root: Path | str, logger: logging.Logger, prefix: str = "/files/") -> None:
        self.root = Path(root)
        self.prefix = prefix
        self._logger = logger

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        file_path = resolve_file(self.root, request.path.removeprefix(self.prefix))
        if file_path is None:
            self._logger.warning("Refusing file path outside root: %s", request.path)
            return HTTPResponse(status_code=403, body="403 Forbidden")

        try:
            if request.method == "POST":
                return self._write(file_path, request.body)
            if request.method == "DELETE":
                return self._delete(file_path)
            return self._read(file_path)
        except OSError:
            self._logger.exception("File operation failed for %s", file_path)
            return internal_server_error_response()

    def _read(self, file_path: Path) -> HTTPResponse:
        if not file_path.is_file():
            self._logger.debug("File not found: %s", file_path)
            return not_found_response()
        data, content_type = read_file(file_path)
        return HTTPResponse(
            status_code=200,
            headers={"Content-Type": content_type},
            body=data,
        )

    def _write(self, file_path: Path, data: bytes) -> HTTPResponse:
        write_file(file_path, data)
        self._logger.info("Wrote %d bytes to %s", len(data), file_path)
        return HTTPResponse(status_code=201, body="201 Created")

    def _delete(self, file_path: Path) -> HTTPResponse:
        if not delete_file(file_path):
            return not_found_response()
        self._logger.info("Deleted %s", file_path)
        return HTTPResponse(status_code=204, body=b"")
