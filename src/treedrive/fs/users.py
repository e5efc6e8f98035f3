"""UserService — map external identities to internal user records."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from sqlmodel import select

from .exceptions import BadRequestError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from treedrive.models.users import AppUserBase

logger = logging.getLogger(__name__)


class UserService:
    """Lazily creates users the first time an identity is seen.

    Users are never deleted.  Receives the concrete user model at
    construction so callers can use custom SQLModel subclasses.
    """

    def __init__(self, user_model: type[AppUserBase]) -> None:
        self._user_model = user_model

    async def get(self, session: AsyncSession, user_id: str) -> AppUserBase | None:
        """Point lookup by internal id."""
        return await session.get(self._user_model, user_id)

    async def find_by_external_id(
        self,
        session: AsyncSession,
        external_identity_id: str,
    ) -> AppUserBase | None:
        model = self._user_model
        result = await session.execute(
            select(model).where(model.external_identity_id == external_identity_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create(
        self,
        session: AsyncSession,
        external_identity_id: str,
    ) -> AppUserBase:
        """Return the user for *external_identity_id*, creating it on first sight.

        Flushes but does not commit.
        """
        if not external_identity_id or not external_identity_id.strip():
            raise BadRequestError("external identity required")

        existing = await self.find_by_external_id(session, external_identity_id)
        if existing is not None:
            return existing

        user = self._user_model(
            id=str(uuid.uuid4()),
            external_identity_id=external_identity_id,
            created_at=datetime.now(UTC),
        )
        session.add(user)
        await session.flush()
        logger.debug("Created user %s for identity %r", user.id, external_identity_id)
        return user
