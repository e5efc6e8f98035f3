"""DriveAsync — primary async facade over the item tree."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager, nullcontext
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from treedrive.config import DriveConfig
from treedrive.fs.blobs import DEFAULT_CONTENT_TYPE, LocalDiskBlobStore, MemoryBlobStore
from treedrive.fs.exceptions import (
    BadRequestError,
    DriveError,
    ForbiddenError,
    NotFoundError,
    StorageError,
)
from treedrive.fs.permissions import PermissionResolver
from treedrive.fs.sharing import SharingService
from treedrive.fs.store import ItemStore
from treedrive.fs.tree import DEFAULT_FILENAME, TreeService
from treedrive.fs.types import DownloadedFile, ItemInfo, UserInfo
from treedrive.fs.users import UserService
from treedrive.models.items import Item, ItemType
from treedrive.models.shares import ItemShare, ShareRole
from treedrive.models.users import AppUser

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from sqlalchemy.ext.asyncio import AsyncEngine

    from treedrive.fs.blobs import BlobStore
    from treedrive.fs.permissions import Access
    from treedrive.fs.types import DeleteResult
    from treedrive.models.items import ItemBase
    from treedrive.models.shares import ItemShareBase
    from treedrive.models.users import AppUserBase

logger = logging.getLogger(__name__)


class DriveAsync:
    """Async facade composing users, shares, permissions, and tree mutations.

    Each public operation runs in its own unit of work: one session,
    committed on success and rolled back on any exception.  Blob store
    calls sit outside that transaction.

    Config-based (creates its own engine)::

        drive = DriveAsync(DriveConfig(database_url="sqlite+aiosqlite:///drive.db",
                                       blob_dir="/var/lib/drive/blobs"))
        await drive.open()
        me = await drive.me("user_2abc")
        folder = await drive.create_folder(me.user_id, "Projects")

    Engine-based::

        drive = DriveAsync(engine=create_async_engine("postgresql+asyncpg://..."),
                           blob_store=my_store)
    """

    def __init__(
        self,
        config: DriveConfig | None = None,
        *,
        engine: AsyncEngine | None = None,
        session_factory: Callable[..., AsyncSession] | None = None,
        blob_store: BlobStore | None = None,
        user_model: type[AppUserBase] | None = None,
        item_model: type[ItemBase] | None = None,
        share_model: type[ItemShareBase] | None = None,
    ) -> None:
        self.config = config or DriveConfig()
        self._owns_engine = engine is None and session_factory is None
        self._engine = engine
        self._session_factory = session_factory
        self._init_lock = asyncio.Lock()
        self._unit_lock = asyncio.Lock()
        self._serialize_units = False
        self._closed = False

        um: type[AppUserBase] = user_model or AppUser
        im: type[ItemBase] = item_model or Item
        sm: type[ItemShareBase] = share_model or ItemShare
        self._models = (um, im, sm)

        if blob_store is None:
            if self.config.blob_dir is not None:
                blob_store = LocalDiskBlobStore(self.config.blob_dir)
            else:
                blob_store = MemoryBlobStore()
        self.blobs: BlobStore = blob_store

        # Composed services
        self.users = UserService(um)
        self.sharing = SharingService(sm)
        self.store = ItemStore(im)
        self.permissions = PermissionResolver(
            self.store, self.sharing, max_depth=self.config.max_tree_depth
        )
        self.tree = TreeService(
            self.store,
            self.permissions,
            self.sharing,
            self.blobs,
            blob_key_prefix=self.config.blob_key_prefix,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Create the engine (if needed), the tables, and the session factory."""
        if self._session_factory is not None:
            return
        async with self._init_lock:
            if self._session_factory is not None:
                return

            if self._engine is None:
                self._engine = create_async_engine(self.config.database_url, echo=self.config.echo)
                if self.config.is_sqlite:

                    @event.listens_for(self._engine.sync_engine, "connect")
                    def _set_sqlite_pragma(
                        dbapi_connection: object, connection_record: object
                    ) -> None:
                        cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
                        cursor.execute("PRAGMA foreign_keys=ON")
                        cursor.close()

            tables = [model.__table__ for model in self._models]  # type: ignore[attr-defined]
            async with self._engine.begin() as conn:
                for table in tables:
                    await conn.run_sync(lambda c, t=table: t.create(c, checkfirst=True))

            # A StaticPool engine (in-memory SQLite) hands every session the same
            # connection, so overlapping units of work would share one transaction.
            self._serialize_units = isinstance(self._engine.pool, StaticPool)
            self._session_factory = async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

    async def close(self) -> None:
        """Dispose of the engine if this instance created it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_engine and self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    async def __aenter__(self) -> DriveAsync:
        await self.open()
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Session Management (one unit of work per operation)
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _transaction(self) -> AsyncGenerator[AsyncSession]:
        if self._closed:
            raise DriveError("Drive is closed")
        await self.open()
        assert self._session_factory is not None
        guard = self._unit_lock if self._serialize_units else nullcontext()
        async with guard:
            session = self._session_factory()
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def me(self, external_identity_id: str) -> UserInfo:
        """Resolve (and on first sight create) the user behind an external identity."""
        async with self._transaction() as session:
            user = await self.users.get_or_create(session, external_identity_id)
            return UserInfo(user_id=user.id, external_identity_id=user.external_identity_id)

    async def access_for(self, user_id: str, item_id: str) -> Access:
        async with self._transaction() as session:
            return await self.permissions.access_for(session, user_id, item_id)

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def list_root(self, user_id: str) -> list[ItemInfo]:
        """Root items owned by *user_id*.  Shared roots are listed separately."""
        async with self._transaction() as session:
            items = await self.store.list_root(session, user_id)
            return [ItemInfo.from_item(it) for it in items]

    async def list_children(self, user_id: str, folder_id: str) -> list[ItemInfo]:
        async with self._transaction() as session:
            await self.permissions.require_read(session, user_id, folder_id)
            folder = await self.store.get(session, folder_id)
            if folder is None or folder.type != ItemType.FOLDER:
                raise NotFoundError(f"Folder not found: {folder_id}")

            infos: list[ItemInfo] = []
            for child in await self.store.list_children(session, folder_id):
                access = await self.permissions.access_for(session, user_id, child.id)
                if access.can_read():
                    infos.append(ItemInfo.from_item(child))
            return infos

    async def list_shared_roots(self, user_id: str) -> list[ItemInfo]:
        """Roots shared with *user_id*; shares on deleted or non-root items are skipped."""
        async with self._transaction() as session:
            roots: list[ItemInfo] = []
            for share in await self.sharing.list_shared_with(session, user_id):
                item = await self.store.get(session, share.item_id)
                if item is None or item.parent_id is not None:
                    continue
                roots.append(ItemInfo.from_item(item))
            return roots

    async def search_by_name(self, user_id: str, query: str, limit: int = 20) -> list[ItemInfo]:
        """Readable items whose name contains *query*, most recently updated first."""
        if not query or not query.strip():
            return []
        clamped = min(max(limit, 1), self.config.search_max_limit)

        async with self._transaction() as session:
            candidates = await self.store.search_by_name(
                session, query, clamped * self.config.search_overfetch
            )
            results: list[ItemInfo] = []
            for item in candidates:
                access = await self.permissions.access_for(session, user_id, item.id)
                if access.can_read():
                    results.append(ItemInfo.from_item(item))
                    if len(results) >= clamped:
                        break
            return results

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        user_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> ItemInfo:
        async with self._transaction() as session:
            folder = await self.tree.create_folder(session, user_id, name, parent_id)
            return ItemInfo.from_item(folder)

    async def patch_item(
        self,
        user_id: str,
        item_id: str,
        *,
        name: str | None = None,
        parent_id: str | None = None,
    ) -> ItemInfo:
        """Rename and/or move an item in one transaction."""
        async with self._transaction() as session:
            item = await self.tree.patch_item(
                session, user_id, item_id, new_name=name, new_parent_id=parent_id
            )
            return ItemInfo.from_item(item)

    async def delete_item(self, user_id: str, item_id: str) -> DeleteResult:
        """Cascading delete.  Deleting a missing item succeeds with nothing removed."""
        async with self._transaction() as session:
            return await self.tree.cascading_delete(session, user_id, item_id)

    async def upload_file(
        self,
        user_id: str,
        content: bytes,
        filename: str | None,
        *,
        parent_id: str | None = None,
        content_type: str | None = None,
        size: int | None = None,
    ) -> ItemInfo:
        """Create a file item and store its bytes under the item's blob key.

        The blob write happens after the row is flushed and before commit.
        A blob failure raises ``StorageError`` and rolls the row back; a
        commit failure after a successful blob write leaves an orphaned
        blob, which is logged with its key.
        """
        if content is None:
            raise BadRequestError("file required")
        size_bytes = len(content) if size is None else size

        async with self._transaction() as session:
            item = await self.tree.create_file_record(
                session,
                user_id,
                filename,
                parent_id=parent_id,
                mime_type=content_type,
                size_bytes=size_bytes,
            )
            assert item.blob_key is not None
            try:
                await self.blobs.put(item.blob_key, content, content_type or DEFAULT_CONTENT_TYPE)
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to store content of {item.id}: {e}") from e
            try:
                await session.commit()
            except Exception:
                logger.warning(
                    "Commit failed for %s; orphaned blob %s",
                    item.id,
                    item.blob_key,
                    exc_info=True,
                )
                raise
            logger.debug("Uploaded %s as %s (%d bytes)", item.name, item.id, size_bytes)
            return ItemInfo.from_item(item)

    async def download_file(self, user_id: str, file_id: str) -> DownloadedFile:
        async with self._transaction() as session:
            item = await self.store.get(session, file_id)
            if item is None or item.type != ItemType.FILE or item.blob_key is None:
                raise NotFoundError(f"File not found: {file_id}")
            await self.permissions.require_read(session, user_id, file_id)
            blob_key = item.blob_key
            mime_type = item.mime_type
            filename = item.name or DEFAULT_FILENAME

        blob = await self.blobs.get(blob_key)
        return DownloadedFile(
            stream=blob.stream,
            mime_type=mime_type or blob.content_type or DEFAULT_CONTENT_TYPE,
            filename=filename,
        )

    async def share_root(
        self,
        owner_user_id: str,
        item_id: str,
        target_external_identity_id: str,
        role: ShareRole | str = ShareRole.VIEWER,
    ) -> None:
        """Grant *role* on a root item to the user behind an external identity.

        Only the item's literal owner may share, and only root items can be
        shared.  The target user is created if it has never been seen.
        """
        if not target_external_identity_id or not target_external_identity_id.strip():
            raise BadRequestError("target identity required")
        try:
            share_role = ShareRole(role or ShareRole.VIEWER)
        except ValueError:
            raise BadRequestError(f"Invalid role: {role!r}") from None

        async with self._transaction() as session:
            item = await self.store.get(session, item_id)
            if item is None:
                raise NotFoundError(f"Item not found: {item_id}")
            if item.owner_id != owner_user_id:
                raise ForbiddenError("Only owner can share")
            if item.parent_id is not None:
                raise BadRequestError("Only root items can be shared")

            target = await self.users.get_or_create(session, target_external_identity_id)
            await self.sharing.share(session, item_id, target.id, share_role)
            logger.debug("Shared %s with %s as %s", item_id, target.id, share_role.value)
