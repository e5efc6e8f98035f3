"""ItemStore — item lookups and subtree traversal.

The recursive primitives walk the tree one level at a time using the
indexed ``parent_id`` column, so no recursive-query support is needed
from the database.  Each walk tracks visited ids and terminates in
O(subtree) even if the stored parent links were ever corrupted.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import case, delete, func
from sqlmodel import select

from treedrive.models.items import ItemType

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from treedrive.models.items import ItemBase

_IN_CHUNK = 500


def escape_like(query: str) -> str:
    """Escape SQL LIKE wildcards so *query* matches literally (escape char ``\\``)."""
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ItemStore:
    """Stateless query helpers over the item table.

    Receives the concrete item model at construction so callers can
    use custom SQLModel subclasses.
    """

    def __init__(self, item_model: type[ItemBase]) -> None:
        self._item_model = item_model

    @property
    def item_model(self) -> type[ItemBase]:
        return self._item_model

    # ------------------------------------------------------------------
    # Point lookups and listings
    # ------------------------------------------------------------------

    async def get(self, session: AsyncSession, item_id: str) -> ItemBase | None:
        return await session.get(self._item_model, item_id)

    def _listing_order(self) -> tuple:
        """Folders before files, then name, then age."""
        model = self._item_model
        return (
            case((model.type == ItemType.FOLDER, 0), else_=1),  # type: ignore[arg-type]
            model.name,
            model.created_at,
        )

    async def list_root(self, session: AsyncSession, owner_id: str) -> list[ItemBase]:
        """Root items owned by *owner_id*."""
        model = self._item_model
        result = await session.execute(
            select(model)
            .where(
                model.owner_id == owner_id,
                model.parent_id.is_(None),  # type: ignore[union-attr]
            )
            .order_by(*self._listing_order())
        )
        return list(result.scalars().all())

    async def list_children(self, session: AsyncSession, parent_id: str) -> list[ItemBase]:
        model = self._item_model
        result = await session.execute(
            select(model).where(model.parent_id == parent_id).order_by(*self._listing_order())
        )
        return list(result.scalars().all())

    async def search_by_name(
        self,
        session: AsyncSession,
        query: str,
        limit: int,
    ) -> list[ItemBase]:
        """Case-insensitive substring match on name, most recently updated first."""
        model = self._item_model
        pattern = f"%{escape_like(query)}%"
        result = await session.execute(
            select(model)
            .where(func.lower(model.name).like(func.lower(pattern), escape="\\"))
            .order_by(model.updated_at.desc())  # type: ignore[union-attr]
            .limit(max(1, limit))
        )
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def add(self, session: AsyncSession, item: ItemBase) -> ItemBase:
        """Persist a new item. Flushes but does not commit."""
        session.add(item)
        await session.flush()
        return item

    async def delete_by_ids(self, session: AsyncSession, item_ids: Sequence[str]) -> int:
        """Delete the given rows in one statement per chunk.

        Callers pass ids that share a depth, so no chunk ever holds a row
        together with its parent.
        """
        model = self._item_model
        count = 0
        for start in range(0, len(item_ids), _IN_CHUNK):
            chunk = list(item_ids[start : start + _IN_CHUNK])
            result = await session.execute(
                delete(model).where(model.id.in_(chunk))  # type: ignore[union-attr]
            )
            count += result.rowcount or 0
        return count

    # ------------------------------------------------------------------
    # Subtree traversal
    # ------------------------------------------------------------------

    async def _children_rows(
        self,
        session: AsyncSession,
        parent_ids: list[str],
    ) -> list[tuple[str, ItemType, str | None]]:
        model = self._item_model
        rows: list[tuple[str, ItemType, str | None]] = []
        for start in range(0, len(parent_ids), _IN_CHUNK):
            chunk = parent_ids[start : start + _IN_CHUNK]
            result = await session.execute(
                select(model.id, model.type, model.blob_key).where(
                    model.parent_id.in_(chunk)  # type: ignore[union-attr]
                )
            )
            rows.extend((row[0], row[1], row[2]) for row in result.all())
        return rows

    async def iter_subtree_levels(
        self,
        session: AsyncSession,
        root_id: str,
    ) -> AsyncIterator[list[tuple[str, ItemType, str | None]]]:
        """Yield ``(id, type, blob_key)`` rows of the subtree, one depth at a time.

        The first level holds only *root_id* (nothing is yielded if it
        does not exist).
        """
        model = self._item_model
        result = await session.execute(
            select(model.id, model.type, model.blob_key).where(model.id == root_id)
        )
        level = [(row[0], row[1], row[2]) for row in result.all()]
        seen = {row[0] for row in level}
        while level:
            yield level
            children = await self._children_rows(session, [row[0] for row in level])
            level = []
            for row in children:
                if row[0] not in seen:
                    seen.add(row[0])
                    level.append(row)

    async def exists_in_subtree(
        self,
        session: AsyncSession,
        root_id: str,
        candidate_id: str,
    ) -> bool:
        """True iff *candidate_id* is *root_id* or one of its descendants."""
        async for level in self.iter_subtree_levels(session, root_id):
            if any(row[0] == candidate_id for row in level):
                return True
        return False

    async def list_file_keys_in_subtree(self, session: AsyncSession, root_id: str) -> list[str]:
        """Blob keys of every FILE in the subtree, *root_id* included."""
        keys: list[str] = []
        async for level in self.iter_subtree_levels(session, root_id):
            keys.extend(
                blob_key
                for _, item_type, blob_key in level
                if item_type == ItemType.FILE and blob_key is not None
            )
        return keys

    async def list_subtree_levels(self, session: AsyncSession, root_id: str) -> list[list[str]]:
        """Ids of the subtree grouped by depth, root level first."""
        return [
            [row[0] for row in level]
            async for level in self.iter_subtree_levels(session, root_id)
        ]

    async def list_subtree_ids_by_depth(self, session: AsyncSession, root_id: str) -> list[str]:
        """Ids of the subtree ordered deepest first (children before parents)."""
        levels = await self.list_subtree_levels(session, root_id)
        return [item_id for level in reversed(levels) for item_id in level]
