"""Filesystem helpers backing the file routes."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from urllib.parse import unquote


def get_content_type(file_path: Path) -> str:
    content_type, _encoding = mimetypes.guess_type(file_path.name)
    return content_type or "application/octet-stream"


def resolve_file(root: Path, relative_path: str) -> Path | None:
    """Resolve ``relative_path`` under ``root`` or return None for traversal attempts."""
    decoded_relative_path = unquote(relative_path)
    if not decoded_relative_path:
        return None

    files_root = root.resolve()
    candidate = (files_root / decoded_relative_path).resolve()

    try:
        candidate.relative_to(files_root)
    except ValueError:
        return None

    if candidate == files_root:
        return None
    return candidate


def read_file(file_path: Path) -> tuple[bytes, str]:
    """Return the file's bytes and a MIME type derived from its extension."""
    return file_path.read_bytes(), get_content_type(file_path)


def write_file(file_path: Path, data: bytes) -> None:
    # No locking: concurrent writers to one file race and the last one wins.
    file_path.parent.mkdir(parents=True, exist_ok=True)
    file_path.write_bytes(data)


def delete_file(file_path: Path) -> bool:
    try:
        file_path.unlink()
    except FileNotFoundError:
        return False
    return True
