"""Local filesystem primitives used by the indexes and the replace procedure.

Archives are gzip-compressed tarballs holding the directory contents
at the archive root (no leading directory component).
"""

from __future__ import annotations

import io
import logging
import os
import shutil
import tarfile
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import BinaryIO, Union

from .models import ensure_utc

logger = logging.getLogger("worldsync.localfs")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ArchiveSource = Union[Path, bytes, BinaryIO]


@dataclass
class LocalEntry:
    """A first-level directory found under a root."""

    name: str
    path: Path
    mod_time: datetime


def datetime_to_ns(when: datetime) -> int:
    """Convert a datetime to integer nanoseconds since the epoch, exactly."""
    delta = ensure_utc(when) - EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


def ns_to_datetime(ns: int) -> datetime:
    """Convert nanoseconds since the epoch to a UTC datetime (microsecond resolution)."""
    return EPOCH + timedelta(microseconds=ns // 1000)


def get_mod_time(path: Path) -> datetime:
    return ns_to_datetime(os.stat(path).st_mtime_ns)


def set_mod_time(path: Path, when: datetime) -> None:
    """Set both atime and mtime of ``path`` to ``when``."""
    ns = datetime_to_ns(when)
    os.utime(path, ns=(ns, ns))


def list_directories(root: Path) -> list[LocalEntry]:
    """List first-level directories under ``root``, sorted by name.

    Files, sockets and other non-directory entries are ignored.
    """
    entries = []
    with os.scandir(root) as it:
        for entry in it:
            if not entry.is_dir(follow_symlinks=True):
                continue
            entries.append(
                LocalEntry(
                    name=entry.name,
                    path=Path(entry.path),
                    mod_time=ns_to_datetime(entry.stat().st_mtime_ns),
                )
            )
    return sorted(entries, key=lambda e: e.name)


def pack_directory_to(path: Path, archive_path: Path) -> Path:
    """Pack the contents of ``path`` into a gzip tarball at ``archive_path``."""
    with tarfile.open(archive_path, "w:gz") as tar:
        for child in sorted(path.iterdir()):
            tar.add(child, arcname=child.name)
    logger.debug("Packed %s into %s", path, archive_path)
    return archive_path


def pack_directory(path: Path) -> bytes:
    """Pack the contents of ``path`` and return the archive bytes."""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for child in sorted(path.iterdir()):
            tar.add(child, arcname=child.name)
    return buf.getvalue()


def unpack_archive(source: ArchiveSource, dest: Path) -> Path:
    """Unpack an archive (path, bytes, or binary stream) into ``dest``.

    ``dest`` is created if missing. Members escaping ``dest`` are
    rejected by the ``data`` extraction filter.
    """
    dest.mkdir(parents=True, exist_ok=True)
    if isinstance(source, (bytes, bytearray)):
        tar = tarfile.open(fileobj=io.BytesIO(source), mode="r:gz")
    elif isinstance(source, Path):
        tar = tarfile.open(source, "r:gz")
    else:
        tar = tarfile.open(fileobj=source, mode="r|gz")
    with tar:
        tar.extractall(path=dest, filter="data")
    logger.debug("Unpacked archive into %s", dest)
    return dest


def write_stream(stream: BinaryIO, dest: Path) -> int:
    """Copy a binary stream into ``dest``; returns bytes written."""
    with open(dest, "wb") as f:
        shutil.copyfileobj(stream, f, length=1024 * 1024)
        size = f.tell()
    return size


def remove_tree(path: Path) -> None:
    """Remove a directory tree or a single file. Missing paths are ignored."""
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


def rename_tree(src: Path, dst: Path) -> None:
    os.rename(src, dst)
