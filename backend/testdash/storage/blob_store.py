"""
Blob storage for attachment files.

Files live under ``<attachments_dir>/<execution id>/<file name>``. Callers pick
unique names (see ``unique_blob_name``) so one execution never overwrites its
own files. The core never reads attachment bytes itself; it hands a source path
to the store and records the returned location.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Protocol

from testdash.core.exceptions import StorageError, ValidationError
from testdash.schemas.attachment import TypeBucket
from testdash.schemas.storage import BlobStats, empty_breakdown

logger = logging.getLogger(__name__)

MIME_TYPES: Dict[str, str] = {
    ".mp4": "video/mp4",
    ".webm": "video/webm",
    ".avi": "video/x-msvideo",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".zip": "application/zip",
    ".json": "application/json",
    ".log": "text/plain",
    ".txt": "text/plain",
    ".html": "text/html",
}

DEFAULT_MIME_TYPE = "application/octet-stream"

EXTENSION_TYPES: Dict[str, str] = {
    ".mp4": "video",
    ".webm": "video",
    ".avi": "video",
    ".png": "screenshot",
    ".jpg": "screenshot",
    ".jpeg": "screenshot",
    ".gif": "screenshot",
    ".webp": "screenshot",
    ".zip": "trace",
    ".log": "log",
    ".txt": "log",
}


def mime_type_for(file_name: str) -> str:
    return MIME_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_MIME_TYPE)


def type_for_extension(file_name: str) -> str:
    return EXTENSION_TYPES.get(Path(file_name).suffix.lower(), "other")


def unique_blob_name(file_name: str) -> str:
    """``screenshot.png`` -> ``screenshot-<epoch ms>-<random>.png``"""
    path = Path(file_name)
    return f"{path.stem}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}{path.suffix}"


@dataclass(frozen=True)
class StoredBlob:
    """Where a blob ended up and what it looks like."""

    file_name: str
    file_path: str
    file_size: int
    mime_type: str
    url: str


class BlobStore(Protocol):
    """Outbound contract for attachment file storage."""

    async def save_blob(self, execution_id: str, source_path: str, file_name: Optional[str] = None) -> StoredBlob:
        ...

    async def delete_blob(self, execution_id: str, file_name: str) -> bool:
        ...

    async def delete_blobs_for_execution(self, execution_id: str) -> int:
        ...

    async def delete_all_blobs(self) -> int:
        ...

    async def get_storage_stats(self) -> BlobStats:
        ...


class LocalBlobStore:
    """Blob store on the local filesystem."""

    def __init__(self, attachments_dir: str, url_prefix: str = "/attachments"):
        self.root = Path(attachments_dir).expanduser()
        self.url_prefix = url_prefix.rstrip("/")
        self.root.mkdir(parents=True, exist_ok=True)

    def _resolve(self, *parts: str) -> Path:
        """Resolve a path safely within the attachments directory."""
        for part in parts:
            candidate = Path(part)
            if not part or candidate.is_absolute() or ".." in candidate.parts or len(candidate.parts) != 1:
                raise ValidationError(f"Invalid blob path component: {part!r}")

        full_path = self.root.joinpath(*parts).resolve()
        try:
            full_path.relative_to(self.root.resolve())
        except ValueError as exc:
            raise ValidationError(f"Blob path escapes attachments directory: {'/'.join(parts)}") from exc
        return full_path

    def url_for(self, execution_id: str, file_name: str) -> str:
        return f"{self.url_prefix}/{execution_id}/{file_name}"

    async def save_blob(self, execution_id: str, source_path: str, file_name: Optional[str] = None) -> StoredBlob:
        """
        Copy a file written by the runner into permanent storage.

        Raises:
            StorageError: if the source file is missing or the copy fails
        """
        source = Path(source_path)
        target_name = file_name or source.name
        target = self._resolve(execution_id, target_name)

        def _copy() -> int:
            if not source.is_file():
                raise StorageError(f"Source file not found: {source_path}")
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            return target.stat().st_size

        try:
            size = await asyncio.to_thread(_copy)
        except OSError as exc:
            raise StorageError(f"Failed to store {source_path}: {exc}") from exc

        logger.debug(f"Copied attachment: {source_path} -> {target}")
        return StoredBlob(
            file_name=target_name,
            file_path=str(target),
            file_size=size,
            mime_type=mime_type_for(target_name),
            url=self.url_for(execution_id, target_name),
        )

    async def delete_blob(self, execution_id: str, file_name: str) -> bool:
        """Remove one file; the execution directory goes away once empty."""
        target = self._resolve(execution_id, file_name)

        def _delete() -> bool:
            if not target.is_file():
                return False
            target.unlink()
            directory = target.parent
            if not any(directory.iterdir()):
                directory.rmdir()
            return True

        try:
            return await asyncio.to_thread(_delete)
        except OSError as exc:
            raise StorageError(f"Failed to delete {target}: {exc}") from exc

    async def delete_blobs_for_execution(self, execution_id: str) -> int:
        directory = self._resolve(execution_id)

        def _delete() -> int:
            if not directory.is_dir():
                return 0
            count = sum(1 for item in directory.iterdir() if item.is_file())
            shutil.rmtree(directory)
            return count

        try:
            count = await asyncio.to_thread(_delete)
        except OSError as exc:
            raise StorageError(f"Failed to delete attachments of {execution_id}: {exc}") from exc

        if count:
            logger.info(f"Deleted {count} attachments for execution {execution_id}")
        return count

    async def delete_all_blobs(self) -> int:
        def _delete() -> int:
            count = 0
            for item in self.root.iterdir():
                if item.is_dir():
                    count += sum(1 for child in item.rglob("*") if child.is_file())
                    shutil.rmtree(item)
                elif item.is_file():
                    item.unlink()
                    count += 1
            return count

        try:
            count = await asyncio.to_thread(_delete)
        except OSError as exc:
            raise StorageError(f"Failed to clear attachments directory: {exc}") from exc

        logger.info(f"Deleted {count} attachment files")
        return count

    async def get_storage_stats(self) -> BlobStats:
        """Files, bytes and per-type breakdown of everything on disk."""

        def _collect() -> BlobStats:
            stats = BlobStats(type_breakdown=empty_breakdown())
            if not self.root.is_dir():
                return stats

            for directory in self.root.iterdir():
                if not directory.is_dir():
                    continue
                stats.test_directories += 1
                for item in directory.iterdir():
                    if not item.is_file():
                        continue
                    size = item.stat().st_size
                    bucket_name = type_for_extension(item.name)
                    bucket = stats.type_breakdown[bucket_name]
                    stats.type_breakdown[bucket_name] = TypeBucket(count=bucket.count + 1, size=bucket.size + size)
                    stats.total_files += 1
                    stats.total_size += size
            return stats

        try:
            return await asyncio.to_thread(_collect)
        except OSError as exc:
            raise StorageError(f"Failed to read attachments directory: {exc}") from exc
