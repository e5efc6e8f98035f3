"""TreeService — structural mutations and cascading delete.

Every method takes the caller's internal user id and the session of the
enclosing unit of work.  Methods flush but never commit.
"""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from treedrive.models.items import ItemType

from .blobs import DEFAULT_KEY_PREFIX, blob_key_for
from .exceptions import BadRequestError, NotFoundError
from .types import DeleteResult

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from treedrive.models.items import ItemBase

    from .blobs import BlobStore
    from .permissions import PermissionResolver
    from .sharing import SharingService
    from .store import ItemStore

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "file"


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


class TreeService:
    """Structural mutations of the item forest.

    Keeps the invariants: parents are existing folders, only files carry
    a blob key, and no move ever makes an item its own ancestor.
    """

    def __init__(
        self,
        store: ItemStore,
        resolver: PermissionResolver,
        sharing: SharingService,
        blobs: BlobStore,
        *,
        blob_key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._sharing = sharing
        self._blobs = blobs
        self._blob_key_prefix = blob_key_prefix

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _require_folder(self, session: AsyncSession, folder_id: str) -> ItemBase:
        folder = await self._store.get(session, folder_id)
        if folder is None:
            raise NotFoundError(f"Folder not found: {folder_id}")
        if folder.type != ItemType.FOLDER:
            raise BadRequestError("parentId must be a folder")
        return folder

    async def require_writable_parent(
        self,
        session: AsyncSession,
        user_id: str,
        parent_id: str | None,
    ) -> None:
        """Validate a create target: an existing folder the caller can edit.

        ``None`` means a new root, which anyone may create.
        """
        if parent_id is None:
            return
        await self._require_folder(session, parent_id)
        await self._resolver.require_write(
            session, user_id, parent_id, "Need EDITOR to create in folder"
        )

    def _new_item(self, **values: object) -> ItemBase:
        now = datetime.now(UTC)
        values.setdefault("id", str(uuid.uuid4()))
        return self._store.item_model(created_at=now, updated_at=now, **values)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_folder(
        self,
        session: AsyncSession,
        user_id: str,
        name: str,
        parent_id: str | None = None,
    ) -> ItemBase:
        if _is_blank(name):
            raise BadRequestError("name required")
        await self.require_writable_parent(session, user_id, parent_id)

        folder = self._new_item(
            owner_id=user_id,
            parent_id=parent_id,
            type=ItemType.FOLDER,
            name=name,
        )
        await self._store.add(session, folder)
        logger.debug("Created folder %s under %s", folder.id, parent_id)
        return folder

    async def create_file_record(
        self,
        session: AsyncSession,
        user_id: str,
        filename: str | None,
        *,
        parent_id: str | None = None,
        mime_type: str | None = None,
        size_bytes: int | None = None,
    ) -> ItemBase:
        """Insert the metadata row of a new file; the caller stores the bytes."""
        await self.require_writable_parent(session, user_id, parent_id)

        item_id = str(uuid.uuid4())
        item = self._new_item(
            id=item_id,
            owner_id=user_id,
            parent_id=parent_id,
            type=ItemType.FILE,
            name=DEFAULT_FILENAME if _is_blank(filename) else filename,
            mime_type=mime_type,
            size_bytes=size_bytes,
            blob_key=blob_key_for(item_id, self._blob_key_prefix),
        )
        await self._store.add(session, item)
        return item

    # ------------------------------------------------------------------
    # Rename / move
    # ------------------------------------------------------------------

    async def patch_item(
        self,
        session: AsyncSession,
        user_id: str,
        item_id: str,
        *,
        new_name: str | None = None,
        new_parent_id: str | None = None,
    ) -> ItemBase:
        """Rename and/or move *item_id*.

        A blank *new_name* leaves the name unchanged.  A move requires
        EDITOR on the destination and rejects any destination inside the
        item's own subtree.
        """
        item = await self._store.get(session, item_id)
        if item is None:
            raise NotFoundError(f"Item not found: {item_id}")
        await self._resolver.require_write(session, user_id, item_id)

        if not _is_blank(new_name):
            item.name = new_name  # type: ignore[assignment]
            item.updated_at = datetime.now(UTC)

        if new_parent_id is not None:
            await self._require_folder(session, new_parent_id)
            await self._resolver.require_write(
                session, user_id, new_parent_id, "Need EDITOR on destination folder"
            )
            if await self._store.exists_in_subtree(session, item_id, new_parent_id):
                raise BadRequestError("Cannot move into its own subtree")

            item.parent_id = new_parent_id
            item.updated_at = datetime.now(UTC)
            logger.debug("Moved %s under %s", item_id, new_parent_id)

        await session.flush()
        return item

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def cascading_delete(
        self,
        session: AsyncSession,
        user_id: str,
        item_id: str,
    ) -> DeleteResult:
        """Remove *item_id* and its whole subtree.

        A missing item is a no-op.  Blob deletions run first and are
        best-effort: each failure is logged and recorded, never raised.
        Rows are then deleted one depth at a time, deepest first.
        """
        result = DeleteResult(item_id=item_id)
        item = await self._store.get(session, item_id)
        if item is None:
            return result
        await self._resolver.require_write(session, user_id, item_id, "Need EDITOR to delete")

        result.blob_keys = await self._store.list_file_keys_in_subtree(session, item_id)
        for key in result.blob_keys:
            try:
                await self._blobs.delete(key)
            except Exception:
                logger.warning("Failed to delete blob %s", key, exc_info=True)
                result.failed_blob_keys.append(key)

        levels = await self._store.list_subtree_levels(session, item_id)
        all_ids = [i for level in levels for i in level]
        await self._sharing.delete_shares_for_items(session, all_ids)
        for level in reversed(levels):
            await self._store.delete_by_ids(session, level)
            result.deleted_ids.extend(level)

        logger.debug(
            "Deleted %d items under %s (%d blobs, %d failed)",
            len(result.deleted_ids),
            item_id,
            len(result.blob_keys),
            len(result.failed_blob_keys),
        )
        return result
