"""Shared fixtures for treedrive tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from treedrive import DriveAsync, DriveConfig
from treedrive.fs.blobs import MemoryBlobStore
from treedrive.fs.exceptions import StorageError

# Register the tables on SQLModel.metadata
from treedrive.models import AppUser, Item, ItemShare  # noqa: F401

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine


class FlakyBlobStore(MemoryBlobStore):
    """Memory blob store that records deletes and fails on chosen keys."""

    def __init__(self) -> None:
        super().__init__()
        self.deleted: list[str] = []
        self.fail_delete: set[str] = set()
        self.fail_put = False

    async def put(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_put:
            raise StorageError(f"put failed: {key}")
        await super().put(key, data, content_type)

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        if key in self.fail_delete:
            raise ConnectionError(f"blob store unreachable for {key}")
        await super().delete(key)


@pytest.fixture
async def async_engine() -> AsyncIterator[AsyncEngine]:
    """Async in-memory SQLite engine with foreign keys on and all tables created."""
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)

    @event.listens_for(eng.sync_engine, "connect")
    def _fk_on(dbapi_connection: object, connection_record: object) -> None:
        cursor = dbapi_connection.cursor()  # type: ignore[union-attr]
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def async_session(async_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Async SQLModel session on the in-memory engine."""
    factory = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with factory() as session:
        yield session


@pytest.fixture
def blobs() -> FlakyBlobStore:
    return FlakyBlobStore()


@pytest.fixture
async def drive(blobs: FlakyBlobStore) -> AsyncIterator[DriveAsync]:
    """DriveAsync on its own in-memory database with a recording blob store."""
    d = DriveAsync(DriveConfig(), blob_store=blobs)
    await d.open()
    yield d
    await d.close()


@pytest.fixture
async def alice(drive: DriveAsync) -> str:
    return (await drive.me("user_alice")).user_id


@pytest.fixture
async def bob(drive: DriveAsync) -> str:
    return (await drive.me("user_bob")).user_id
