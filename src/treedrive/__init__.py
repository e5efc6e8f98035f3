"""treedrive: a hierarchical file/folder store with owner-based root sharing."""

__version__ = "0.1.0"

from treedrive._drive import Drive
from treedrive._drive_async import DriveAsync
from treedrive.config import DriveConfig
from treedrive.fs.blobs import BlobStore, LocalDiskBlobStore, MemoryBlobStore
from treedrive.fs.exceptions import (
    BadRequestError,
    ConsistencyError,
    DriveError,
    ForbiddenError,
    NotFoundError,
    StorageError,
)
from treedrive.fs.permissions import Access
from treedrive.fs.types import DeleteResult, DownloadedFile, ItemInfo, UserInfo
from treedrive.models.items import ItemType
from treedrive.models.shares import ShareRole

__all__ = [
    "Access",
    "BadRequestError",
    "BlobStore",
    "ConsistencyError",
    "DeleteResult",
    "DownloadedFile",
    "Drive",
    "DriveAsync",
    "DriveConfig",
    "DriveError",
    "ForbiddenError",
    "ItemInfo",
    "ItemType",
    "LocalDiskBlobStore",
    "MemoryBlobStore",
    "NotFoundError",
    "ShareRole",
    "StorageError",
    "UserInfo",
    "__version__",
]
