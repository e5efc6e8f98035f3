"""SharingService — root share records.

Stateless service that receives the share model at construction
and a session at call time.  Only stores and reads grants; the
root-only and owner-only rules are enforced by the caller.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete
from sqlmodel import select

from treedrive.models.shares import ShareRole

if TYPE_CHECKING:
    from collections.abc import Sequence

    from sqlalchemy.ext.asyncio import AsyncSession

    from treedrive.models.shares import ItemShareBase

_IN_CHUNK = 500


class SharingService:
    """Manages share rows keyed by ``(item_id, target_user_id)``.

    Constructor receives the concrete share model so callers can use
    custom SQLModel subclasses with different table names.
    """

    def __init__(self, share_model: type[ItemShareBase]) -> None:
        self._share_model = share_model

    async def get_share(
        self,
        session: AsyncSession,
        item_id: str,
        target_user_id: str,
    ) -> ItemShareBase | None:
        return await session.get(
            self._share_model,
            {"item_id": item_id, "target_user_id": target_user_id},
        )

    async def share(
        self,
        session: AsyncSession,
        item_id: str,
        target_user_id: str,
        role: ShareRole = ShareRole.VIEWER,
    ) -> ItemShareBase:
        """Grant *role* on *item_id* to *target_user_id*.

        An existing row for the same pair is overwritten (last write wins).
        Flushes but does not commit.
        """
        role = ShareRole(role)
        now = datetime.now(UTC)
        existing = await self.get_share(session, item_id, target_user_id)
        if existing is not None:
            existing.role = role
            existing.created_at = now
            await session.flush()
            return existing

        share = self._share_model(
            item_id=item_id,
            target_user_id=target_user_id,
            role=role,
            created_at=now,
        )
        session.add(share)
        await session.flush()
        return share

    async def list_shared_with(
        self,
        session: AsyncSession,
        target_user_id: str,
    ) -> list[ItemShareBase]:
        """List all shares naming *target_user_id*, oldest first."""
        model = self._share_model
        result = await session.execute(
            select(model)
            .where(model.target_user_id == target_user_id)
            .order_by(model.created_at)  # type: ignore[arg-type]
        )
        return list(result.scalars().all())

    async def list_shares_on_item(
        self,
        session: AsyncSession,
        item_id: str,
    ) -> list[ItemShareBase]:
        model = self._share_model
        result = await session.execute(select(model).where(model.item_id == item_id))
        return list(result.scalars().all())

    async def delete_shares_for_items(
        self,
        session: AsyncSession,
        item_ids: Sequence[str],
    ) -> int:
        """Remove every share on any of *item_ids*. Returns the row count."""
        model = self._share_model
        count = 0
        for start in range(0, len(item_ids), _IN_CHUNK):
            chunk = list(item_ids[start : start + _IN_CHUNK])
            result = await session.execute(
                delete(model).where(model.item_id.in_(chunk))  # type: ignore[union-attr]
            )
            count += result.rowcount or 0
        return count
