"""Tests for the atomic local replace procedure."""

from __future__ import annotations

import io
from unittest.mock import patch

import pytest

from conftest import at, read_tree
from worldsync import replace as replace_mod
from worldsync.errors import ReplaceError
from worldsync.localfs import get_mod_time, pack_directory, unpack_archive
from worldsync.replace import LocalReplace, ReplaceState, create_world


@pytest.fixture
def remote_archive(tmp_path, make_world):
    """Archive bytes of the 'remote' version of a world."""
    src = make_world(tmp_path / "remote-src", "Base", {"level.dat": "remote", "region/r.0.0.mca": "new"})
    return pack_directory(src)


@pytest.fixture
def world(saves_root, make_world):
    return make_world(saves_root, "Base", {"level.dat": "local", "region/r.0.0.mca": "old"}, mtime=at(100))


def _artifacts(saves_root, name="Base"):
    return sorted(
        p.name for p in saves_root.iterdir()
        if p.name != name and (p.name.startswith(name) or p.name.startswith(f".{name}."))
    )


class _BrokenStream(io.RawIOBase):
    """Readable stream that fails part way through."""

    def readable(self):
        return True

    def readinto(self, buffer):
        raise OSError("connection reset")


class TestUpdate:
    def test_replaces_content_and_stamps_mtime(self, saves_root, world, remote_archive, tmp_path):
        before = read_tree(world)
        op = LocalReplace(world)

        op.update(io.BytesIO(remote_archive), at(200))

        assert read_tree(world)["level.dat"] == b"remote"
        assert get_mod_time(world) == at(200)
        assert _artifacts(saves_root) == ["Base.old.tar.gz"]
        unpack_archive(op.backup, tmp_path / "old")
        assert read_tree(tmp_path / "old") == before
        assert op.history == [
            ReplaceState.IDLE,
            ReplaceState.BACKING_UP,
            ReplaceState.DOWNLOADING,
            ReplaceState.STAGED,
            ReplaceState.SWAPPING,
            ReplaceState.DONE,
        ]

    def test_existing_backup_is_superseded(self, saves_root, world, remote_archive, tmp_path):
        (saves_root / "Base.old.tar.gz").write_bytes(b"ancient")

        op = LocalReplace(world)
        op.update(io.BytesIO(remote_archive), at(200))

        assert _artifacts(saves_root) == ["Base.old.tar.gz"]
        assert op.backup.read_bytes() != b"ancient"

    def test_leftover_staging_is_cleared(self, saves_root, world, remote_archive):
        (saves_root / ".Base.worldsync-staging").mkdir()
        (saves_root / ".Base.worldsync-staging" / "junk").write_text("x")

        LocalReplace(world).update(io.BytesIO(remote_archive), at(200))

        assert "junk" not in read_tree(world)
        assert _artifacts(saves_root) == ["Base.old.tar.gz"]

    def test_sibling_world_named_like_staging_survives(self, saves_root, make_world, remote_archive):
        survival = make_world(saves_root, "Survival", {"level.dat": "main"}, mtime=at(100))
        sibling = make_world(saves_root, "Survival-new", {"level.dat": "sibling"}, mtime=at(50))
        before = read_tree(sibling)

        LocalReplace(survival).update(io.BytesIO(remote_archive), at(200))

        assert read_tree(sibling) == before
        assert get_mod_time(sibling) == at(50)
        assert read_tree(survival)["level.dat"] == b"remote"

    def test_missing_world(self, saves_root, remote_archive):
        with pytest.raises(ReplaceError):
            LocalReplace(saves_root / "Nope").update(io.BytesIO(remote_archive), at(200))

    def test_single_use(self, world, remote_archive):
        op = LocalReplace(world)
        op.update(io.BytesIO(remote_archive), at(200))
        with pytest.raises(RuntimeError):
            op.update(io.BytesIO(remote_archive), at(300))


class TestUpdateRollback:
    def _assert_untouched(self, saves_root, world, before, backup=None):
        assert read_tree(world) == before
        assert get_mod_time(world) == at(100)
        if backup is None:
            assert _artifacts(saves_root) == []
        else:
            assert _artifacts(saves_root) == ["Base.old.tar.gz"]
            assert (saves_root / "Base.old.tar.gz").read_bytes() == backup

    def test_download_failure(self, saves_root, world):
        before = read_tree(world)
        (saves_root / "Base.old.tar.gz").write_bytes(b"previous backup")
        op = LocalReplace(world)

        with pytest.raises(ReplaceError, match="downloading"):
            op.update(_BrokenStream(), at(200))

        self._assert_untouched(saves_root, world, before, backup=b"previous backup")
        assert ReplaceState.STAGED not in op.history

    def test_corrupt_archive(self, saves_root, world):
        before = read_tree(world)

        with pytest.raises(ReplaceError):
            LocalReplace(world).update(io.BytesIO(b"not a tarball"), at(200))

        self._assert_untouched(saves_root, world, before)

    def test_swap_failure_restores_world(self, saves_root, world, remote_archive):
        before = read_tree(world)
        (saves_root / "Base.old.tar.gz").write_bytes(b"previous backup")
        real_rename = replace_mod.rename_tree

        def failing_rename(src, dst):
            if src.name == ".Base.worldsync-staging":
                raise OSError("disk full")
            real_rename(src, dst)

        with patch("worldsync.replace.rename_tree", side_effect=failing_rename):
            with pytest.raises(ReplaceError, match="swapping"):
                LocalReplace(world).update(io.BytesIO(remote_archive), at(200))

        self._assert_untouched(saves_root, world, before, backup=b"previous backup")

    def test_mtime_failure_restores_world(self, saves_root, world, remote_archive):
        before = read_tree(world)
        real_set = replace_mod.set_mod_time
        calls = []

        def failing_set(path, when):
            calls.append(when)
            if len(calls) == 1:
                raise OSError("read-only filesystem")
            real_set(path, when)

        with patch("worldsync.replace.set_mod_time", side_effect=failing_set):
            with pytest.raises(ReplaceError):
                LocalReplace(world).update(io.BytesIO(remote_archive), at(200))

        self._assert_untouched(saves_root, world, before)

    def test_interrupt_rolls_back_and_propagates(self, saves_root, world):
        before = read_tree(world)

        class Interrupted(io.RawIOBase):
            def readable(self):
                return True

            def readinto(self, buffer):
                raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            LocalReplace(world).update(Interrupted(), at(200))

        self._assert_untouched(saves_root, world, before)


class TestCreate:
    def test_creates_world(self, saves_root, remote_archive):
        path = create_world(saves_root, "Base", io.BytesIO(remote_archive), at(200))

        assert path == saves_root / "Base"
        assert read_tree(path)["level.dat"] == b"remote"
        assert get_mod_time(path) == at(200)
        assert _artifacts(saves_root) == []

    def test_failure_leaves_nothing(self, saves_root):
        with pytest.raises(ReplaceError):
            create_world(saves_root, "Base", io.BytesIO(b"garbage"), at(200))

        assert list(saves_root.iterdir()) == []

    def test_refuses_existing(self, saves_root, world, remote_archive):
        with pytest.raises(ReplaceError):
            create_world(saves_root, "Base", io.BytesIO(remote_archive), at(200))
