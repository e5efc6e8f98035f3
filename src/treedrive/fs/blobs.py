"""Blob stores — opaque content storage keyed by strings the core chooses.

``BlobStore`` is the only contract the item layer depends on.  Blob
calls are never part of the metadata transaction.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol, runtime_checkable

from .exceptions import StorageError

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_KEY_PREFIX = "items/"
_META_SUFFIX = ".meta"


def blob_key_for(item_id: str, prefix: str = DEFAULT_KEY_PREFIX) -> str:
    """Blob key of a file item's content."""
    return f"{prefix}{item_id}"


@dataclass
class BlobObject:
    """A stored blob opened for reading.  The caller closes ``stream``."""

    stream: BinaryIO
    content_type: str


@runtime_checkable
class BlobStore(Protocol):
    """put/get/delete by key.  No transactional guarantee with the item table."""

    async def put(self, key: str, data: bytes, content_type: str) -> None: ...

    async def get(self, key: str) -> BlobObject: ...

    async def delete(self, key: str) -> None: ...


class MemoryBlobStore:
    """In-process blob store backed by a dict."""

    def __init__(self) -> None:
        self._blobs: dict[str, tuple[bytes, str]] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._blobs

    def __len__(self) -> int:
        return len(self._blobs)

    def keys(self) -> list[str]:
        return list(self._blobs)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        self._blobs[key] = (bytes(data), content_type or DEFAULT_CONTENT_TYPE)

    async def get(self, key: str) -> BlobObject:
        try:
            data, content_type = self._blobs[key]
        except KeyError:
            raise StorageError(f"Blob not found: {key}") from None
        return BlobObject(stream=io.BytesIO(data), content_type=content_type)

    async def delete(self, key: str) -> None:
        self._blobs.pop(key, None)


class LocalDiskBlobStore:
    """Blobs stored as files under ``root_dir``.

    - Content at ``{root_dir}/{key}``, content type in a ``.meta`` sidecar
    - Writes go to a temp file in the same directory, then replace
    - Keys may not escape ``root_dir``
    """

    def __init__(self, root_dir: str | Path) -> None:
        self.root_dir = Path(root_dir).resolve()

    def _resolve_key(self, key: str) -> Path:
        rel = key.strip().lstrip("/")
        if not rel or "\0" in rel:
            raise StorageError(f"Invalid blob key: {key!r}")
        resolved = (self.root_dir / rel).resolve()
        try:
            resolved.relative_to(self.root_dir)
        except ValueError:
            raise StorageError(f"Blob key escapes store root: {key!r}") from None
        if resolved == self.root_dir:
            raise StorageError(f"Invalid blob key: {key!r}")
        return resolved

    @staticmethod
    def _meta_path(path: Path) -> Path:
        return path.with_name(path.name + _META_SUFFIX)

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._resolve_key(key)

        def _do_write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                Path(tmp_path).replace(path)
            except Exception:
                tmp = Path(tmp_path)
                if tmp.exists():
                    tmp.unlink()
                raise
            self._meta_path(path).write_text(content_type or DEFAULT_CONTENT_TYPE, encoding="utf-8")

        try:
            await asyncio.to_thread(_do_write)
        except OSError as e:
            raise StorageError(f"Failed to write blob {key}: {e}") from e
        logger.debug("Stored blob %s (%d bytes)", key, len(data))

    async def get(self, key: str) -> BlobObject:
        path = self._resolve_key(key)

        def _do_open() -> BlobObject:
            meta = self._meta_path(path)
            content_type = (
                meta.read_text(encoding="utf-8").strip() if meta.exists() else DEFAULT_CONTENT_TYPE
            )
            return BlobObject(stream=path.open("rb"), content_type=content_type)

        try:
            return await asyncio.to_thread(_do_open)
        except FileNotFoundError:
            raise StorageError(f"Blob not found: {key}") from None
        except OSError as e:
            raise StorageError(f"Failed to read blob {key}: {e}") from e

    async def delete(self, key: str) -> None:
        path = self._resolve_key(key)

        def _do_delete() -> None:
            for target in (path, self._meta_path(path)):
                try:
                    target.unlink()
                except FileNotFoundError:
                    pass

        try:
            await asyncio.to_thread(_do_delete)
        except OSError as e:
            raise StorageError(f"Failed to delete blob {key}: {e}") from e
