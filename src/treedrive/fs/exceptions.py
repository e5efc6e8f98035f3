"""Custom exception hierarchy for the treedrive item layer."""


class DriveError(Exception):
    """Base exception for all treedrive errors."""


class NotFoundError(DriveError):
    """Raised when a referenced item or folder is absent or of the wrong type."""


class ForbiddenError(DriveError):
    """Raised when the caller's effective access is below the required role."""


class BadRequestError(DriveError):
    """Raised on invalid input: blank names, non-folder parents, cyclic moves."""


class StorageError(DriveError):
    """Raised on storage backend failures (blob store, DB connection, disk I/O)."""


class ConsistencyError(DriveError):
    """Raised when tree integrity is compromised (e.g. a parent loop)."""
