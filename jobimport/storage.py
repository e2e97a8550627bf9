"""Local disk storage for uploaded import files.

Imports keep only the stored file name; it is always resolved inside the
configured upload directory.
"""
from __future__ import annotations

import asyncio
import logging
import secrets
import time
from pathlib import Path

from .config import settings

logger = logging.getLogger(__name__)


class UploadRejected(Exception):
    """Raised when an uploaded file cannot be accepted."""
    pass


def upload_dir() -> Path:
    path = Path(settings.storage.upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_stored_file(file_ref: str) -> Path:
    """Absolute path of a stored file; directory parts of ``file_ref`` are ignored."""
    return upload_dir() / Path(file_ref).name


def check_upload(filename: str, size: int) -> str:
    """Validate an upload's name and size; returns its lowercased extension.

    Raises:
        UploadRejected: If the extension or size is not allowed
    """
    suffix = Path(filename or "").suffix.lower()
    allowed = settings.storage.allowed_extensions
    if suffix not in allowed:
        raise UploadRejected(f"Only {', '.join(allowed)} files are allowed")
    if size == 0:
        raise UploadRejected("Uploaded file is empty")
    if size > settings.storage.max_file_size:
        raise UploadRejected(f"File exceeds the {settings.storage.max_file_size} byte limit")
    return suffix


def _write(path: Path, content: bytes) -> None:
    path.write_bytes(content)


async def save_upload(content: bytes, original_filename: str) -> str:
    """Store an uploaded file under a unique name and return that name."""
    suffix = check_upload(original_filename, len(content))
    name = f"bulk-import-{int(time.time() * 1000)}-{secrets.token_hex(4)}{suffix}"
    await asyncio.to_thread(_write, upload_dir() / name, content)
    logger.info(f"Stored upload {original_filename!r} as {name} ({len(content)} bytes)")
    return name


async def read_stored_file(file_ref: str) -> bytes:
    """Read a stored file fully into memory.

    Raises:
        FileNotFoundError: If the file is gone
    """
    path = resolve_stored_file(file_ref)
    return await asyncio.to_thread(path.read_bytes)


async def delete_stored_file(file_ref: str | None) -> bool:
    """Remove a stored file; returns False when there was nothing to delete."""
    if not file_ref:
        return False
    path = resolve_stored_file(file_ref)
    try:
        await asyncio.to_thread(path.unlink)
    except FileNotFoundError:
        return False
    logger.info(f"Deleted stored file {path}")
    return True
