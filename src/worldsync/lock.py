"""Advisory PID lock on a saves root.

Two passes against the same saves directory could race the
backup/swap sequence, so each pass holds ``.worldsync.lock`` for its
whole duration. The PID is written to a private file first and then
hard-linked into place, so the lock never exists without its PID.

A lock whose PID is no longer alive is stale and is taken over. A lock
without a readable PID only counts as stale once it is older than
``LOCK_GRACE_SECONDS``.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Optional

from .errors import LockBusyError

logger = logging.getLogger("worldsync.lock")

LOCK_FILE = ".worldsync.lock"
LOCK_GRACE_SECONDS = 30.0


def read_lock_pid(lock_path: Path) -> Optional[int]:
    """Return the PID recorded in ``lock_path``, or None if missing or unreadable."""
    try:
        return int(lock_path.read_text(encoding="utf-8").strip())
    except (FileNotFoundError, ValueError):
        return None


def pid_alive(pid: int) -> bool:
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Process exists but belongs to another user
        return True
    return True


def lock_age(lock_path: Path) -> Optional[float]:
    """Seconds since ``lock_path`` was written, or None if it is gone."""
    try:
        return time.time() - lock_path.stat().st_mtime
    except FileNotFoundError:
        return None


class SaveRootLock:
    """Context manager holding the saves root lock for one pass."""

    def __init__(self, saves_root: Path):
        self.path = Path(saves_root) / LOCK_FILE
        self._held = False

    def _try_link(self) -> bool:
        pid = os.getpid()
        private = self.path.with_name(f"{LOCK_FILE}.{pid}")
        private.write_text(str(pid), encoding="utf-8")
        try:
            os.link(private, self.path)
        except FileExistsError:
            return False
        finally:
            private.unlink(missing_ok=True)
        return True

    def acquire(self) -> None:
        """Take the lock.

        Raises:
            LockBusyError: If a live process already holds it, or a lock
                without a readable PID is still inside the grace period.
        """
        for _ in range(2):
            if self._try_link():
                self._held = True
                logger.debug("Acquired %s", self.path)
                return

            holder = read_lock_pid(self.path)
            if holder is not None and pid_alive(holder):
                raise LockBusyError(
                    f"Another worldsync pass (pid {holder}) is running on {self.path.parent}"
                )
            age = lock_age(self.path)
            if holder is None and age is not None and age < LOCK_GRACE_SECONDS:
                raise LockBusyError(
                    f"Lock {self.path} has no readable pid yet; retry shortly"
                )

            self.path.unlink(missing_ok=True)
            logger.info("Removed stale lock %s", self.path)
        raise LockBusyError(f"Could not acquire {self.path}")

    def release(self) -> None:
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False
            logger.debug("Released %s", self.path)

    def __enter__(self) -> "SaveRootLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()
