"""Drive — synchronous wrapper around DriveAsync."""

from __future__ import annotations

import asyncio
import threading
from typing import TYPE_CHECKING, Any

from treedrive._drive_async import DriveAsync

if TYPE_CHECKING:
    from treedrive.config import DriveConfig
    from treedrive.fs.blobs import BlobStore
    from treedrive.fs.permissions import Access
    from treedrive.fs.types import DeleteResult, DownloadedFile, ItemInfo, UserInfo
    from treedrive.models.shares import ShareRole


class Drive:
    """Synchronous facade backed by a private event loop in a background thread.

    Usage::

        with Drive(DriveConfig(blob_dir="./blobs")) as drive:
            me = drive.me("user_2abc")
            docs = drive.create_folder(me.user_id, "Docs")
            drive.upload_file(me.user_id, b"hello", "hello.txt", parent_id=docs.id)
    """

    def __init__(
        self,
        config: DriveConfig | None = None,
        *,
        blob_store: BlobStore | None = None,
    ) -> None:
        self._closed = False

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._loop.run_forever, daemon=True)
        self._thread.start()

        self._async = DriveAsync(config, blob_store=blob_store)
        self._run(self._async.open())

    def _run(self, coro: Any) -> Any:
        """Submit *coro* to the private loop and block for the result."""
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result()

    @property
    def async_drive(self) -> DriveAsync:
        return self._async

    def close(self) -> None:
        """Dispose of the engine, stop the event loop and join the thread."""
        if self._closed:
            return
        self._closed = True

        try:
            self._run(self._async.close())
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)

    def __enter__(self) -> Drive:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Operations (sync)
    # ------------------------------------------------------------------

    def me(self, external_identity_id: str) -> UserInfo:
        return self._run(self._async.me(external_identity_id))

    def access_for(self, user_id: str, item_id: str) -> Access:
        return self._run(self._async.access_for(user_id, item_id))

    def list_root(self, user_id: str) -> list[ItemInfo]:
        return self._run(self._async.list_root(user_id))

    def list_children(self, user_id: str, folder_id: str) -> list[ItemInfo]:
        return self._run(self._async.list_children(user_id, folder_id))

    def list_shared_roots(self, user_id: str) -> list[ItemInfo]:
        return self._run(self._async.list_shared_roots(user_id))

    def search_by_name(self, user_id: str, query: str, limit: int = 20) -> list[ItemInfo]:
        return self._run(self._async.search_by_name(user_id, query, limit))

    def create_folder(self, user_id: str, name: str, parent_id: str | None = None) -> ItemInfo:
        return self._run(self._async.create_folder(user_id, name, parent_id))

    def patch_item(
        self,
        user_id: str,
        item_id: str,
        *,
        name: str | None = None,
        parent_id: str | None = None,
    ) -> ItemInfo:
        return self._run(self._async.patch_item(user_id, item_id, name=name, parent_id=parent_id))

    def delete_item(self, user_id: str, item_id: str) -> DeleteResult:
        return self._run(self._async.delete_item(user_id, item_id))

    def upload_file(
        self,
        user_id: str,
        content: bytes,
        filename: str | None,
        *,
        parent_id: str | None = None,
        content_type: str | None = None,
        size: int | None = None,
    ) -> ItemInfo:
        return self._run(
            self._async.upload_file(
                user_id,
                content,
                filename,
                parent_id=parent_id,
                content_type=content_type,
                size=size,
            )
        )

    def download_file(self, user_id: str, file_id: str) -> DownloadedFile:
        return self._run(self._async.download_file(user_id, file_id))

    def read_file(self, user_id: str, file_id: str) -> bytes:
        """Download and fully read a file's content."""
        downloaded = self.download_file(user_id, file_id)
        with downloaded.stream as stream:
            return stream.read()

    def share_root(
        self,
        owner_user_id: str,
        item_id: str,
        target_external_identity_id: str,
        role: ShareRole | str = "VIEWER",
    ) -> None:
        self._run(
            self._async.share_root(owner_user_id, item_id, target_external_identity_id, role)
        )
