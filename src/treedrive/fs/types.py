"""Result types: ItemInfo, UserInfo, DownloadedFile, DeleteResult."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, BinaryIO

if TYPE_CHECKING:
    from datetime import datetime

    from treedrive.models.items import ItemBase, ItemType


@dataclass
class ItemInfo:
    """Folder/file metadata as returned to callers."""

    id: str
    parent_id: str | None
    type: ItemType
    name: str
    mime_type: str | None = None
    size_bytes: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_item(cls, item: ItemBase) -> ItemInfo:
        return cls(
            id=item.id,
            parent_id=item.parent_id,
            type=item.type,
            name=item.name,
            mime_type=item.mime_type,
            size_bytes=item.size_bytes,
            created_at=item.created_at,
            updated_at=item.updated_at,
        )


@dataclass
class UserInfo:
    """Internal user id paired with the external identity it was created from."""

    user_id: str
    external_identity_id: str


@dataclass
class DownloadedFile:
    """Readable content of a file item.  The caller closes ``stream``."""

    stream: BinaryIO
    mime_type: str
    filename: str


@dataclass
class DeleteResult:
    """Outcome of a cascading delete.

    ``deleted_ids`` lists removed items deepest first.  ``failed_blob_keys``
    are blob deletions that raised and were skipped.
    """

    item_id: str
    deleted_ids: list[str] = field(default_factory=list)
    blob_keys: list[str] = field(default_factory=list)
    failed_blob_keys: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.deleted_ids)
