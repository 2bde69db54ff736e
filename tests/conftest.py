"""Shared test fixtures for worldsync."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import pytest

from worldsync.localfs import set_mod_time
from worldsync.models import InstanceContext
from worldsync.remote.local_store import LocalDirStore

BASE_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(seconds: float) -> datetime:
    """Timestamp ``seconds`` after the shared test epoch."""
    return BASE_TIME + timedelta(seconds=seconds)


@pytest.fixture
def saves_root(tmp_path: Path) -> Path:
    """Provide an empty MultiMC-style saves directory."""
    root = tmp_path / "instances" / "survival" / ".minecraft" / "saves"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def context(saves_root: Path) -> InstanceContext:
    return InstanceContext(instance_id="survival", instance_name="Survival", saves_path=saves_root)


@pytest.fixture
def store(tmp_path: Path) -> LocalDirStore:
    """A directory store with a small page size so searches paginate."""
    return LocalDirStore(tmp_path / "remote", page_size=2)


@pytest.fixture
def make_world() -> Callable[..., Path]:
    """Factory writing a world directory with given files and mtime."""

    def _make(
        root: Path,
        name: str,
        files: Optional[dict[str, str]] = None,
        mtime: Optional[datetime] = None,
    ) -> Path:
        world = root / name
        world.mkdir(parents=True, exist_ok=True)
        for rel, content in (files or {"level.dat": f"{name} level"}).items():
            target = world / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        if mtime is not None:
            set_mod_time(world, mtime)
        return world

    return _make


def read_tree(root: Path) -> dict[str, bytes]:
    """Map of relative file path -> content for every file under ``root``."""
    return {
        str(p.relative_to(root)): p.read_bytes()
        for p in sorted(root.rglob("*"))
        if p.is_file()
    }
