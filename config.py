"""Configuration constants and environment loading for the HTTP server."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

HOST: str = "127.0.0.1"
PORT: int = 4221
SERVER_NAME: str = "raw-http-server/1.0"
FILES_DIR: str = "files"
READ_TIMEOUT_SECS: float = 5
WRITE_TIMEOUT_SECS: float = 5
IDLE_TIMEOUT_SECS: float = 5
ACCEPT_TIMEOUT_SECS: float = 0.2
LISTEN_BACKLOG: int = 128
MAX_REQUEST_LINE_BYTES: int = 4_096
MAX_HEADER_LINE_BYTES: int = 8_192
MAX_BODY_BYTES: int = 10 * 1024 * 1024
WRITE_CHUNK_SIZE: int = 65_536
LOG_LEVEL: str = "info"
LOG_FORMAT: str = "plain"

ENV_IDLE_TIMEOUT_DEFAULT: float = 30

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ServerSettings:
    host: str
    port: int
    read_timeout: float
    write_timeout: float
    idle_timeout: float
    log_level: str
    log_format: str
    files_directory: str


def load_settings(env_file: str | None = None) -> ServerSettings:
    """Build settings from the process environment, loading ``.env`` first.

    Variables already present in the environment win over the file.
    """
    if not load_dotenv(env_file):
        logger.debug("No .env file found, using environment values")

    return ServerSettings(
        host=os.getenv("HOST", HOST),
        port=int(_env_number("PORT", PORT)),
        read_timeout=_env_number("READ_TIMEOUT", READ_TIMEOUT_SECS),
        write_timeout=_env_number("WRITE_TIMEOUT", WRITE_TIMEOUT_SECS),
        idle_timeout=_env_number("IDLE_TIMEOUT", ENV_IDLE_TIMEOUT_DEFAULT),
        log_level=os.getenv("LOG_LEVEL", LOG_LEVEL).strip().lower(),
        log_format=os.getenv("LOG_FORMAT", LOG_FORMAT).strip().lower(),
        files_directory=os.getenv("FILES_DIRECTORY", FILES_DIR),
    )


def _env_number(key: str, default: float) -> float:
    raw_value = os.getenv(key)
    if raw_value is None or not raw_value.strip():
        return default
    try:
        value = float(raw_value)
    except ValueError:
        logger.warning("Invalid %s value %r, using default %s", key, raw_value, default)
        return default
    if value < 0:
        logger.warning("Negative %s value %r, using default %s", key, raw_value, default)
        return default
    return value
