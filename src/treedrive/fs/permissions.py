"""Access levels and the root-derived permission resolver."""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from .exceptions import ConsistencyError, ForbiddenError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from treedrive.models.items import ItemBase
    from treedrive.models.shares import ShareRole

    from .sharing import SharingService
    from .store import ItemStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10_000


class Access(str, Enum):
    """Effective access a user resolves to on a node."""

    NONE = "NONE"
    VIEWER = "VIEWER"
    EDITOR = "EDITOR"

    @classmethod
    def from_role(cls, role: ShareRole) -> Access:
        return cls(role.value)

    def can_read(self) -> bool:
        return self is not Access.NONE

    def can_write(self) -> bool:
        return self is Access.EDITOR


class PermissionResolver:
    """Derives access to any node from its root's owner and share rows.

    Access is never stored on non-root nodes: the resolver walks the
    ``parent_id`` chain up to the root, grants EDITOR to the root's
    owner, and otherwise falls back to the share row for that root.
    """

    def __init__(
        self,
        store: ItemStore,
        sharing: SharingService,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self._store = store
        self._sharing = sharing
        self._max_depth = max_depth

    async def find_root(self, session: AsyncSession, item: ItemBase) -> ItemBase:
        """Follow parent links from *item* to its root.

        Raises ``ConsistencyError`` on a dangling parent, a loop, or a
        chain longer than ``max_depth``.
        """
        seen = {item.id}
        current = item
        while current.parent_id is not None:
            if len(seen) > self._max_depth:
                raise ConsistencyError(f"Tree deeper than {self._max_depth} above {item.id}")
            parent = await self._store.get(session, current.parent_id)
            if parent is None:
                raise ConsistencyError(
                    f"Item {current.id} references missing parent {current.parent_id}"
                )
            if parent.id in seen:
                raise ConsistencyError(f"Parent loop detected at {parent.id}")
            seen.add(parent.id)
            current = parent
        return current

    async def access_for(self, session: AsyncSession, user_id: str, item_id: str) -> Access:
        """Return the effective access of *user_id* on *item_id*."""
        item = await self._store.get(session, item_id)
        if item is None:
            return Access.NONE

        root = await self.find_root(session, item)
        if root.owner_id == user_id:
            return Access.EDITOR

        share = await self._sharing.get_share(session, root.id, user_id)
        if share is None:
            return Access.NONE
        return Access.from_role(share.role)

    async def require_read(self, session: AsyncSession, user_id: str, item_id: str) -> Access:
        access = await self.access_for(session, user_id, item_id)
        if not access.can_read():
            raise ForbiddenError("No access")
        return access

    async def require_write(
        self,
        session: AsyncSession,
        user_id: str,
        item_id: str,
        message: str = "Need EDITOR",
    ) -> Access:
        access = await self.access_for(session, user_id, item_id)
        if not access.can_write():
            logger.debug("Denied write on %s for %s (access=%s)", item_id, user_id, access.value)
            raise ForbiddenError(message)
        return access
