"""Item layer: store, permissions, sharing, and tree mutations."""

from treedrive.fs.blobs import (
    BlobObject,
    BlobStore,
    LocalDiskBlobStore,
    MemoryBlobStore,
    blob_key_for,
)
from treedrive.fs.exceptions import (
    BadRequestError,
    ConsistencyError,
    DriveError,
    ForbiddenError,
    NotFoundError,
    StorageError,
)
from treedrive.fs.permissions import Access, PermissionResolver
from treedrive.fs.sharing import SharingService
from treedrive.fs.store import ItemStore
from treedrive.fs.tree import TreeService
from treedrive.fs.types import DeleteResult, DownloadedFile, ItemInfo, UserInfo
from treedrive.fs.users import UserService

__all__ = [
    "Access",
    "BadRequestError",
    "BlobObject",
    "BlobStore",
    "ConsistencyError",
    "DeleteResult",
    "DownloadedFile",
    "DriveError",
    "ForbiddenError",
    "ItemInfo",
    "ItemStore",
    "LocalDiskBlobStore",
    "MemoryBlobStore",
    "NotFoundError",
    "PermissionResolver",
    "SharingService",
    "StorageError",
    "TreeService",
    "UserInfo",
    "UserService",
    "blob_key_for",
]
