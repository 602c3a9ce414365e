"""
Local disk storage for uploaded documents.

Files live under settings.UPLOAD_DIR:

    <client_id>/<unique-name>                       client documents
    team-member/<team_member_id>/<unique-name>      team-member self uploads

Blocking file I/O runs in a worker thread so the event loop stays free.
"""

import asyncio
import hashlib
import os
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

import structlog

from cafirm.core.config import settings
from cafirm.core.exceptions import (
    FileTooLargeError,
    FileUploadError,
    InvalidFileTypeError,
    StoredFileMissingError,
)

logger = structlog.get_logger()

TEAM_MEMBER_PREFIX = "team-member"
_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._ -]")


@dataclass
class StoredFile:
    storage_path: str
    sha256: str
    size: int


class StorageService:
    """
    Stores, locates and removes uploaded files.

    Usage:
        storage = StorageService()
        stored = await storage.save(content, "report.pdf", "application/pdf", client_id=cid)
    """

    def __init__(self, root: str | os.PathLike | None = None):
        self.root = Path(root or settings.UPLOAD_DIR)

    def validate_file(self, file_size: int, mime_type: str | None) -> None:
        """Checks size and MIME type before anything touches the disk."""
        max_size_bytes = settings.MAX_UPLOAD_SIZE_MB * 1024 * 1024
        if file_size > max_size_bytes:
            raise FileTooLargeError(
                max_size_mb=settings.MAX_UPLOAD_SIZE_MB,
                actual_size_mb=file_size / (1024 * 1024),
            )

        if mime_type not in settings.ALLOWED_DOCUMENT_TYPES:
            raise InvalidFileTypeError(
                mime_type=mime_type or "unknown",
                allowed_types=settings.ALLOWED_DOCUMENT_TYPES,
            )

    @staticmethod
    def sanitize_filename(filename: str | None) -> str:
        """Strips directories and odd characters from a client supplied name."""
        name = Path(filename or "").name.strip()
        name = _UNSAFE_CHARS.sub("_", name)
        return name or "document"

    def generate_path(
        self,
        original_filename: str,
        client_id: uuid.UUID | None = None,
        team_member_id: uuid.UUID | None = None,
    ) -> str:
        """
        Unique path relative to the upload root.

        Format: <owner>/<epoch-ms>-<8 hex><ext>
        """
        extension = Path(self.sanitize_filename(original_filename)).suffix.lower()
        unique_name = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{extension}"
        if client_id is not None:
            return f"{client_id}/{unique_name}"
        if team_member_id is not None:
            return f"{TEAM_MEMBER_PREFIX}/{team_member_id}/{unique_name}"
        raise FileUploadError("A document must belong to a client or a team member")

    async def save(
        self,
        content: bytes,
        original_filename: str,
        mime_type: str | None,
        client_id: uuid.UUID | None = None,
        team_member_id: uuid.UUID | None = None,
    ) -> StoredFile:
        """Validates and writes an upload, returning where it landed."""
        self.validate_file(len(content), mime_type)

        storage_path = self.generate_path(
            original_filename,
            client_id=client_id,
            team_member_id=team_member_id,
        )
        destination = self.root / storage_path

        try:
            await asyncio.to_thread(self._write, destination, content)
        except OSError as e:
            logger.error("Failed to write upload", storage_path=storage_path, error=str(e))
            raise FileUploadError(f"Failed to store file: {e}")

        logger.info(
            "File stored",
            storage_path=storage_path,
            size_bytes=len(content),
            mime_type=mime_type,
        )

        return StoredFile(
            storage_path=storage_path,
            sha256=hashlib.sha256(content).hexdigest(),
            size=len(content),
        )

    def candidate_paths(self, storage_path: str) -> list[Path]:
        """
        Locations a stored path may refer to, in lookup order.

        Older rows were written with absolute paths or paths relative to the
        working directory, newer ones relative to the upload root.
        """
        raw = Path(storage_path)
        return [
            raw,
            Path.cwd() / storage_path.lstrip("/"),
            self.root / storage_path.lstrip("/"),
        ]

    def resolve(self, storage_path: str) -> Path:
        """First existing candidate for a stored path."""
        for candidate in self.candidate_paths(storage_path):
            if candidate.is_file():
                return candidate

        logger.warning(
            "Stored file not found",
            storage_path=storage_path,
            tried=[str(p) for p in self.candidate_paths(storage_path)],
        )
        raise StoredFileMissingError(storage_path)

    async def delete(self, storage_path: str) -> bool:
        """Removes a stored file. Returns False when nothing was there."""
        try:
            path = self.resolve(storage_path)
        except StoredFileMissingError:
            return False

        await asyncio.to_thread(path.unlink, True)
        logger.info("File deleted", storage_path=storage_path)
        return True

    def iter_files(self):
        """Yields (relative path, modification time) for every stored file."""
        if not self.root.exists():
            return
        for path in self.root.rglob("*"):
            if path.is_file():
                yield path.relative_to(self.root).as_posix(), path.stat().st_mtime

    # === HELPERS ===

    @staticmethod
    def _write(destination: Path, content: bytes) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
