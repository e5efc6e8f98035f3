"""DriveConfig — construction-time settings for a drive instance."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from treedrive.fs.blobs import DEFAULT_KEY_PREFIX
from treedrive.fs.permissions import DEFAULT_MAX_DEPTH


@dataclass
class DriveConfig:
    """Settings for ``DriveAsync`` / ``Drive``."""

    database_url: str = "sqlite+aiosqlite://"
    """Async SQLAlchemy URL.  The default is an in-memory SQLite database."""

    blob_dir: str | Path | None = None
    """Directory for ``LocalDiskBlobStore``.  ``None`` keeps blobs in memory."""

    blob_key_prefix: str = DEFAULT_KEY_PREFIX
    """Prefix of the blob key assigned to each file item."""

    search_max_limit: int = 50
    """Upper clamp for ``search_by_name`` limits."""

    search_overfetch: int = 3
    """Candidates fetched per requested search result before access filtering."""

    max_tree_depth: int = DEFAULT_MAX_DEPTH
    """Bound on the upward walk to a root; deeper chains are treated as corruption."""

    echo: bool = False
    """Echo SQL statements (SQLAlchemy ``echo``)."""

    def __post_init__(self) -> None:
        if self.search_max_limit < 1:
            raise ValueError(f"search_max_limit must be >= 1, got {self.search_max_limit}")
        if self.search_overfetch < 1:
            raise ValueError(f"search_overfetch must be >= 1, got {self.search_overfetch}")
        if self.max_tree_depth < 1:
            raise ValueError(f"max_tree_depth must be >= 1, got {self.max_tree_depth}")
        if self.blob_dir is not None:
            self.blob_dir = Path(self.blob_dir)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")
