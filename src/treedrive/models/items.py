"""Item model — folders and files arranged in a parent/child forest.

Provides ``ItemBase`` (non-table) and ``Item`` (concrete table).  The
self-referencing foreign key lives on the concrete table; a subclass
with a custom ``__tablename__`` must redeclare ``parent_id`` against
its own table name.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ItemType(str, Enum):
    """Kind of tree node.  Only folders may have children."""

    FOLDER = "FOLDER"
    FILE = "FILE"


class ItemBase(SQLModel):
    """Base fields for a tree item. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    owner_id: str = Field(index=True)
    parent_id: str | None = Field(default=None, index=True)
    type: ItemType = Field(default=ItemType.FOLDER)
    name: str = Field(default="")
    mime_type: str | None = Field(default=None)
    size_bytes: int | None = Field(default=None)
    blob_key: str | None = Field(default=None, unique=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def is_folder(self) -> bool:
        return self.type == ItemType.FOLDER


class Item(ItemBase, table=True):
    """Default item table — ``item``."""

    __tablename__ = "item"

    parent_id: str | None = Field(default=None, index=True, foreign_key="item.id")
