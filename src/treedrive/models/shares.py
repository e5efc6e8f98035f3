"""ItemShare model — per-root grants of a role to another user.

Provides ``ItemShareBase`` (non-table) and ``ItemShare`` (concrete table).
At most one row exists per ``(item_id, target_user_id)``; the pair is the
primary key.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ShareRole(str, Enum):
    """Role granted by a share.  Both roles can read; only editors write."""

    VIEWER = "VIEWER"
    EDITOR = "EDITOR"

    def can_write(self) -> bool:
        return self is ShareRole.EDITOR


class ItemShareBase(SQLModel):
    """Base fields for a share record. Subclass with ``table=True`` for a concrete table."""

    item_id: str = Field(primary_key=True)
    target_user_id: str = Field(primary_key=True, index=True)
    role: ShareRole = Field(default=ShareRole.VIEWER)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ItemShare(ItemShareBase, table=True):
    """Default share table — ``item_share``."""

    __tablename__ = "item_share"

    item_id: str = Field(primary_key=True, foreign_key="item.id")
    target_user_id: str = Field(primary_key=True, index=True, foreign_key="app_user.id")
