"""Tests for the local index."""

from __future__ import annotations

from pathlib import Path

import pytest

from conftest import at
from worldsync.errors import ConfigurationError
from worldsync.local_index import list_local
from worldsync.models import InstanceContext, WorldSource


class TestListLocal:
    def test_one_record_per_world_directory(self, context, saves_root, make_world):
        make_world(saves_root, "Base", mtime=at(100))
        make_world(saves_root, "Creative", mtime=at(50))
        (saves_root / "Base.old.tar.gz").write_bytes(b"backup")
        (saves_root / ".worldsync.lock").write_text("123")

        worlds = list_local(context)

        assert [w.name for w in worlds] == ["Base", "Creative"]
        base = worlds[0]
        assert base.source == WorldSource.LOCAL
        assert base.instance == "survival"
        assert base.last_updated == at(100)
        assert base.path == saves_root / "Base"
        assert base.role is None and base.host is None

    def test_empty_saves(self, context):
        assert list_local(context) == []

    def test_missing_saves_root(self, tmp_path: Path):
        ctx = InstanceContext(instance_id="x", saves_path=tmp_path / "missing")
        with pytest.raises(ConfigurationError):
            list_local(ctx)

    def test_staging_directory_is_ignored(self, context, saves_root, make_world):
        make_world(saves_root, "Base")
        make_world(saves_root, ".Base.worldsync-staging")

        assert [w.name for w in list_local(context)] == ["Base"]

    def test_world_ending_in_new_next_to_sibling_is_kept(self, context, saves_root, make_world):
        make_world(saves_root, "Survival")
        make_world(saves_root, "Survival-new")

        assert [w.name for w in list_local(context)] == ["Survival", "Survival-new"]
