"""Local byte storage for uploaded documents."""
from __future__ import annotations

import asyncio
import re
from pathlib import Path
from typing import Final, Union
from uuid import uuid4

from fastapi import UploadFile

from docingest.errors import StorageNotFound

_FILENAME_SAFE_CHARS_RE: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9._-]+")


def _sanitize_filename(filename: str) -> str:
    """Return a filesystem-safe filename preserving the extension when possible."""
    sanitized = Path(filename or "upload").name
    sanitized = _FILENAME_SAFE_CHARS_RE.sub("_", sanitized)
    return sanitized.strip("._") or "upload"


class LocalFileStorage:
    """Read-only access to stored documents plus persistence of API uploads.

    Paths are resolved below ``root``; anything escaping it is reported as missing.
    """

    def __init__(self, root: Union[str, Path] = "data") -> None:
        self.root = Path(root)

    def resolve(self, path: Union[str, Path]) -> Path:
        root = self.root.resolve()
        candidate = (root / path).resolve()
        if candidate != root and root not in candidate.parents:
            raise StorageNotFound(f"Path escapes storage root: {path}")
        return candidate

    async def get_file_buffer(self, path: Union[str, Path]) -> bytes:
        target = self.resolve(path)
        if not target.is_file():
            raise StorageNotFound(f"No stored file at {path}")
        return await asyncio.to_thread(target.read_bytes)

    async def save_upload(self, upload: UploadFile, folder: str = "uploads") -> str:
        """Persist *upload* under a unique name and return its storage-relative path."""

        directory = self.root / folder
        directory.mkdir(parents=True, exist_ok=True)

        sanitized_name = _sanitize_filename(upload.filename or "")
        base = Path(sanitized_name).stem or "upload"
        suffix = Path(sanitized_name).suffix
        unique_name = f"{base}-{uuid4().hex}{suffix}"

        contents = await upload.read()
        (directory / unique_name).write_bytes(contents)
        await upload.seek(0)
        return f"{folder}/{unique_name}"
