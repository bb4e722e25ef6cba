"""
Local-disk storage for uploaded prescription files.

Keys are ``{patient_profile_id}_{uuid4}{ext}`` relative to the upload root,
so concurrent writers never collide and no locking is needed.
"""

from __future__ import annotations

import logging
import os
import uuid
from pathlib import Path
from typing import BinaryIO

from healthbar.config import settings

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
}
ALLOWED_EXTENSIONS = frozenset(CONTENT_TYPES)


class UploadRejected(ValueError):
    pass


class UploadTooLarge(UploadRejected):
    pass


def content_type_for(extension: str) -> str:
    return CONTENT_TYPES.get(extension.lower(), "application/octet-stream")


def extension_of(filename: str) -> str:
    return os.path.splitext(filename or "")[1].lower()


class BlobStore:
    def __init__(self, root: str | os.PathLike, max_bytes: int):
        self.root = Path(root)
        self.max_bytes = max_bytes

    def new_key(self, patient_id: str, extension: str) -> str:
        return f"{patient_id}_{uuid.uuid4()}{extension}"

    def path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if path.parent != self.root.resolve():
            raise UploadRejected(f"Storage key escapes upload root: {key!r}")
        return path

    def save(self, key: str, source: BinaryIO) -> int:
        """
        Copy ``source`` to ``key`` and return the byte count.
        Raises UploadTooLarge, leaving nothing on disk, past ``max_bytes``.
        """
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        written = 0
        with open(path, "xb") as dst:
            try:
                while chunk := source.read(CHUNK_SIZE):
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise UploadTooLarge(f"File exceeds {self.max_bytes} bytes")
                    dst.write(chunk)
            except BaseException:
                dst.close()
                self.delete(key)
                raise
        logger.info("Stored blob %s (%d bytes)", key, written)
        return written

    def delete(self, key: str) -> None:
        try:
            self.path_for(key).unlink()
        except FileNotFoundError:
            pass

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()


def get_blob_store() -> BlobStore:
    """FastAPI dependency for the configured upload root."""
    return BlobStore(settings.UPLOAD_PATH, settings.MAX_UPLOAD_BYTES)
