"""Tests for tree mutations — create, rename, move, cascading delete."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from treedrive.fs.exceptions import BadRequestError, ForbiddenError, NotFoundError
from treedrive.fs.permissions import Access
from treedrive.models.items import ItemType

if TYPE_CHECKING:
    from conftest import FlakyBlobStore

    from treedrive import DriveAsync


# ---------------------------------------------------------------------------
# create_folder
# ---------------------------------------------------------------------------


class TestCreateFolder:
    async def test_create_root(self, drive: DriveAsync, alice: str):
        folder = await drive.create_folder(alice, "Projects")
        assert folder.type is ItemType.FOLDER
        assert folder.parent_id is None
        assert folder.name == "Projects"
        assert folder.created_at == folder.updated_at
        assert [r.id for r in await drive.list_root(alice)] == [folder.id]

    async def test_create_nested(self, drive: DriveAsync, alice: str):
        parent = await drive.create_folder(alice, "Projects")
        child = await drive.create_folder(alice, "2024", parent.id)
        assert child.parent_id == parent.id

    @pytest.mark.parametrize("name", ["", "   ", None])
    async def test_blank_name_rejected(self, drive: DriveAsync, alice: str, name):
        with pytest.raises(BadRequestError, match="name required"):
            await drive.create_folder(alice, name)

    async def test_missing_parent(self, drive: DriveAsync, alice: str):
        with pytest.raises(NotFoundError):
            await drive.create_folder(alice, "x", "ghost")

    async def test_parent_must_be_folder(self, drive: DriveAsync, alice: str):
        f = await drive.upload_file(alice, b"data", "a.txt")
        with pytest.raises(BadRequestError, match="must be a folder"):
            await drive.create_folder(alice, "x", f.id)

    async def test_stranger_cannot_create_in_folder(self, drive: DriveAsync, alice: str, bob: str):
        parent = await drive.create_folder(alice, "Private")
        with pytest.raises(ForbiddenError):
            await drive.create_folder(bob, "intruder", parent.id)

    async def test_viewer_cannot_create_editor_can(self, drive: DriveAsync, alice: str, bob: str):
        parent = await drive.create_folder(alice, "Team")
        await drive.share_root(alice, parent.id, "user_bob", "VIEWER")
        with pytest.raises(ForbiddenError):
            await drive.create_folder(bob, "nope", parent.id)

        await drive.share_root(alice, parent.id, "user_bob", "EDITOR")
        child = await drive.create_folder(bob, "ok", parent.id)
        assert child.parent_id == parent.id


# ---------------------------------------------------------------------------
# patch_item
# ---------------------------------------------------------------------------


class TestRename:
    async def test_rename(self, drive: DriveAsync, alice: str):
        folder = await drive.create_folder(alice, "old")
        renamed = await drive.patch_item(alice, folder.id, name="new")
        assert renamed.name == "new"
        assert renamed.updated_at >= folder.updated_at

    async def test_blank_name_is_ignored(self, drive: DriveAsync, alice: str):
        folder = await drive.create_folder(alice, "keep")
        patched = await drive.patch_item(alice, folder.id, name="  ")
        assert patched.name == "keep"

    async def test_missing_item(self, drive: DriveAsync, alice: str):
        with pytest.raises(NotFoundError):
            await drive.patch_item(alice, "ghost", name="x")

    async def test_stranger_cannot_rename(self, drive: DriveAsync, alice: str, bob: str):
        folder = await drive.create_folder(alice, "mine")
        with pytest.raises(ForbiddenError):
            await drive.patch_item(bob, folder.id, name="theirs")


class TestMove:
    async def test_move_under_sibling(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B")
        moved = await drive.patch_item(alice, b.id, parent_id=a.id)
        assert moved.parent_id == a.id
        assert [c.id for c in await drive.list_children(alice, a.id)] == [b.id]
        assert [r.id for r in await drive.list_root(alice)] == [a.id]

    async def test_move_into_own_child_rejected(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B", a.id)
        with pytest.raises(BadRequestError, match="own subtree"):
            await drive.patch_item(alice, a.id, parent_id=b.id)

    async def test_move_into_deep_descendant_rejected(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B", a.id)
        c = await drive.create_folder(alice, "C", b.id)
        with pytest.raises(BadRequestError):
            await drive.patch_item(alice, a.id, parent_id=c.id)

    async def test_move_into_itself_rejected(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        with pytest.raises(BadRequestError):
            await drive.patch_item(alice, a.id, parent_id=a.id)

    async def test_move_up_is_allowed(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B", a.id)
        c = await drive.create_folder(alice, "C", b.id)
        moved = await drive.patch_item(alice, c.id, parent_id=a.id)
        assert moved.parent_id == a.id

    async def test_destination_must_be_folder(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        f = await drive.upload_file(alice, b"x", "f.txt")
        with pytest.raises(BadRequestError, match="must be a folder"):
            await drive.patch_item(alice, a.id, parent_id=f.id)

    async def test_destination_missing(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        with pytest.raises(NotFoundError):
            await drive.patch_item(alice, a.id, parent_id="ghost")

    async def test_needs_editor_on_destination(self, drive: DriveAsync, alice: str, bob: str):
        mine = await drive.create_folder(bob, "bobs")
        theirs = await drive.create_folder(alice, "alices")
        with pytest.raises(ForbiddenError, match="destination"):
            await drive.patch_item(bob, mine.id, parent_id=theirs.id)

    async def test_rename_and_move_together(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B")
        patched = await drive.patch_item(alice, b.id, name="B2", parent_id=a.id)
        assert (patched.name, patched.parent_id) == ("B2", a.id)

    async def test_failed_move_rolls_back_rename(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B", a.id)
        with pytest.raises(BadRequestError):
            await drive.patch_item(alice, a.id, name="renamed", parent_id=b.id)
        roots = await drive.list_root(alice)
        assert [r.name for r in roots] == ["A"]

    async def test_moved_item_inherits_destination_access(
        self, drive: DriveAsync, alice: str, bob: str
    ):
        shared = await drive.create_folder(alice, "shared")
        private = await drive.create_folder(alice, "private")
        await drive.share_root(alice, shared.id, "user_bob")
        assert await drive.access_for(bob, private.id) is Access.NONE

        await drive.patch_item(alice, private.id, parent_id=shared.id)
        assert await drive.access_for(bob, private.id) is Access.VIEWER


# ---------------------------------------------------------------------------
# cascading delete
# ---------------------------------------------------------------------------


class TestCascadingDelete:
    async def test_deletes_whole_subtree(
        self, drive: DriveAsync, blobs: FlakyBlobStore, alice: str
    ):
        a = await drive.create_folder(alice, "A")
        f1 = await drive.upload_file(alice, b"one", "f1.txt", parent_id=a.id)
        b = await drive.create_folder(alice, "B", a.id)
        f2 = await drive.upload_file(alice, b"two", "f2.txt", parent_id=b.id)
        keep = await drive.upload_file(alice, b"keep", "keep.txt")

        result = await drive.delete_item(alice, a.id)

        assert set(result.deleted_ids) == {a.id, f1.id, b.id, f2.id}
        assert sorted(blobs.deleted) == sorted([f"items/{f1.id}", f"items/{f2.id}"])
        assert sorted(result.blob_keys) == sorted(blobs.deleted)
        assert result.failed_blob_keys == []
        assert [r.id for r in await drive.list_root(alice)] == [keep.id]
        assert f"items/{keep.id}" in blobs

    async def test_children_removed_before_parents(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B", a.id)
        c = await drive.create_folder(alice, "C", b.id)
        result = await drive.delete_item(alice, a.id)
        assert result.deleted_ids == [c.id, b.id, a.id]

    async def test_blob_failures_do_not_abort(
        self, drive: DriveAsync, blobs: FlakyBlobStore, alice: str
    ):
        a = await drive.create_folder(alice, "A")
        f1 = await drive.upload_file(alice, b"one", "f1.txt", parent_id=a.id)
        b = await drive.create_folder(alice, "B", a.id)
        f2 = await drive.upload_file(alice, b"two", "f2.txt", parent_id=b.id)
        blobs.fail_delete.add(f"items/{f1.id}")

        result = await drive.delete_item(alice, a.id)

        assert len(blobs.deleted) == 2
        assert result.failed_blob_keys == [f"items/{f1.id}"]
        assert f"items/{f2.id}" not in blobs
        assert await drive.list_root(alice) == []

    async def test_delete_nested_leaves_ancestors(self, drive: DriveAsync, alice: str):
        a = await drive.create_folder(alice, "A")
        b = await drive.create_folder(alice, "B", a.id)
        f = await drive.upload_file(alice, b"x", "x.txt", parent_id=a.id)
        await drive.delete_item(alice, b.id)
        assert [c.id for c in await drive.list_children(alice, a.id)] == [f.id]

    async def test_missing_item_is_noop(self, drive: DriveAsync, blobs: FlakyBlobStore, alice):
        result = await drive.delete_item(alice, "ghost")
        assert not result.found
        assert blobs.deleted == []

    async def test_viewer_cannot_delete(
        self, drive: DriveAsync, blobs: FlakyBlobStore, alice: str, bob: str
    ):
        root = await drive.create_folder(alice, "root")
        await drive.share_root(alice, root.id, "user_bob")
        with pytest.raises(ForbiddenError):
            await drive.delete_item(bob, root.id)
        assert blobs.deleted == []

    async def test_deleting_shared_root_drops_shares(
        self, drive: DriveAsync, alice: str, bob: str
    ):
        root = await drive.create_folder(alice, "root")
        await drive.share_root(alice, root.id, "user_bob")
        await drive.delete_item(alice, root.id)
        assert await drive.list_shared_roots(bob) == []
