"""
Atomic local replace -- swap a world directory for a downloaded version.

The procedure is an explicit state machine:

    IDLE -> BACKING_UP -> DOWNLOADING -> STAGED -> SWAPPING -> DONE

Artifacts next to world ``D`` in the saves root:
    D.old.tar.gz    backup slot (kept after success as the recovery point)
    D.tmp.tar.gz    previous backup, rotated aside while a new one is taken
    D.new.tar.gz    downloaded archive
    .D.worldsync-staging/
                    staging directory the download is unpacked into

Every failure branch goes through ``LocalReplace._rollback``. Before
SWAPPING, ``D`` is untouched and only download artifacts are removed.
From SWAPPING on, ``D`` is rebuilt from the backup taken moments
earlier. Either way the rotated backup returns to its slot, so a
failed attempt leaves the saves root as it found it.
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional

from .errors import ReplaceError
from .localfs import (
    get_mod_time,
    pack_directory_to,
    remove_tree,
    rename_tree,
    set_mod_time,
    unpack_archive,
    write_stream,
)
from .models import WorldFile

logger = logging.getLogger("worldsync.replace")

# Staging directories are hidden and never share a name with a save
STAGING_SUFFIX = ".worldsync-staging"


def staging_name(world_name: str) -> str:
    return f".{world_name}{STAGING_SUFFIX}"


def is_staging_name(name: str) -> bool:
    return name.startswith(".") and name.endswith(STAGING_SUFFIX)


class ReplaceState(str, Enum):
    """Steps of the local replace procedure."""

    IDLE = "idle"
    BACKING_UP = "backing-up"
    DOWNLOADING = "downloading"
    STAGED = "staged"
    SWAPPING = "swapping"
    DONE = "done"


class LocalReplace:
    """Replace or create one world directory from an archive stream.

    Args:
        world_path: The world directory ``D``.
    """

    def __init__(self, world_path: Path):
        self.world = Path(world_path)
        root = self.world.parent
        name = self.world.name
        self.backup = root / f"{name}.old.tar.gz"
        self.rotated = root / f"{name}.tmp.tar.gz"
        self.download = root / f"{name}.new.tar.gz"
        self.staging = root / staging_name(name)

        self.state = ReplaceState.IDLE
        self.history: list[ReplaceState] = [ReplaceState.IDLE]
        self._existed = False
        self._original_mtime: Optional[datetime] = None
        self._rotated_backup = False
        self._backup_started = False

    def _enter(self, state: ReplaceState) -> None:
        logger.debug("%s: %s -> %s", self.world.name, self.state.value, state.value)
        self.state = state
        self.history.append(state)

    def _discard(self, path: Path) -> None:
        if path.exists() or path.is_symlink():
            remove_tree(path)
            logger.debug("Removed %s", path)

    def _clear_leftovers(self) -> None:
        # Staging artifacts of an earlier interrupted attempt
        self._discard(self.download)
        self._discard(self.staging)

    def _receive(self, stream: BinaryIO) -> None:
        size = write_stream(stream, self.download)
        logger.debug("Downloaded %d bytes to %s", size, self.download)
        unpack_archive(self.download, self.staging)

    def update(self, stream: BinaryIO, last_modified: datetime) -> Path:
        """Replace the existing world directory with the archive in ``stream``.

        Args:
            stream: Readable gzip tarball of the new world contents.
            last_modified: Remote timestamp to stamp on the directory.

        Returns:
            Path to the replaced world directory.

        Raises:
            ReplaceError: After rollback, if any step failed.
        """
        if self.state != ReplaceState.IDLE:
            raise RuntimeError("LocalReplace instances are single use")
        if not self.world.is_dir():
            raise ReplaceError(f"Cannot update missing world {self.world}")

        self._existed = True
        self._original_mtime = get_mod_time(self.world)

        try:
            self._enter(ReplaceState.BACKING_UP)
            self._clear_leftovers()
            if self.backup.exists():
                self._discard(self.rotated)
                rename_tree(self.backup, self.rotated)
                self._rotated_backup = True
            self._backup_started = True
            pack_directory_to(self.world, self.backup)

            self._enter(ReplaceState.DOWNLOADING)
            self._receive(stream)
            self._enter(ReplaceState.STAGED)

            self._enter(ReplaceState.SWAPPING)
            remove_tree(self.world)
            rename_tree(self.staging, self.world)
            set_mod_time(self.world, last_modified)
            self._enter(ReplaceState.DONE)
        except BaseException as exc:
            failed = self.state
            self._rollback(failed)
            if not isinstance(exc, Exception):
                raise
            raise ReplaceError(
                f"Failed to replace {self.world.name} while {failed.value}: {exc}"
            ) from exc

        self._discard(self.download)
        if self._rotated_backup:
            self._discard(self.rotated)
        logger.info("Replaced %s with remote version", self.world.name)
        return self.world

    def create(self, stream: BinaryIO, last_modified: datetime) -> Path:
        """Materialize a new world directory from the archive in ``stream``.

        No partial directory is left behind on failure.
        """
        if self.state != ReplaceState.IDLE:
            raise RuntimeError("LocalReplace instances are single use")
        if self.world.exists():
            raise ReplaceError(f"Cannot create {self.world}: it already exists")

        try:
            self._enter(ReplaceState.DOWNLOADING)
            self._clear_leftovers()
            self._receive(stream)
            self._enter(ReplaceState.STAGED)

            self._enter(ReplaceState.SWAPPING)
            rename_tree(self.staging, self.world)
            set_mod_time(self.world, last_modified)
            self._enter(ReplaceState.DONE)
        except BaseException as exc:
            failed = self.state
            self._rollback(failed)
            if not isinstance(exc, Exception):
                raise
            raise ReplaceError(
                f"Failed to create {self.world.name} while {failed.value}: {exc}"
            ) from exc

        self._discard(self.download)
        logger.info("Created %s from remote version", self.world.name)
        return self.world

    def _rollback(self, failed: ReplaceState) -> None:
        """Undo a failed attempt started from IDLE.

        Raises:
            ReplaceError: If the world directory could not be restored.
                The backup is kept in place in that case.
        """
        logger.warning("Rolling back %s (failed while %s)", self.world.name, failed.value)

        self._discard(self.download)
        self._discard(self.staging)

        if failed == ReplaceState.SWAPPING:
            if self._existed:
                if not self.backup.exists():
                    raise ReplaceError(
                        f"Cannot restore {self.world.name}: backup {self.backup} is missing"
                    )
                try:
                    self._discard(self.world)
                    unpack_archive(self.backup, self.world)
                    if self._original_mtime is not None:
                        set_mod_time(self.world, self._original_mtime)
                except Exception as exc:
                    raise ReplaceError(
                        f"Cannot restore {self.world.name}; backup kept at {self.backup}"
                    ) from exc
                logger.info("Restored %s from %s", self.world.name, self.backup.name)
            else:
                self._discard(self.world)

        if self._backup_started:
            self._discard(self.backup)
        if self._rotated_backup:
            rename_tree(self.rotated, self.backup)
            logger.debug("Restored previous backup %s", self.backup.name)


def replace_world(world: WorldFile, stream: BinaryIO, last_modified: datetime) -> Path:
    """Replace a local world in place from a downloaded archive."""
    return LocalReplace(world.path).update(stream, last_modified)


def create_world(saves_root: Path, name: str, stream: BinaryIO, last_modified: datetime) -> Path:
    """Create a new local world from a downloaded archive."""
    return LocalReplace(saves_root / name).create(stream, last_modified)
