"""
Reconciler -- decides, per world, which copy wins and what to do about it.

    worldsync push  ->  local worlds -> proxy for this host (+ master if newer)
    worldsync pull  ->  remote masters -> local worlds (replace or create)

Worlds are independent: each gets its own outcome, and a failure in
one never stops the others. Per-world work runs on a bounded thread
pool; each world's own steps stay strictly sequential.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import closing
from dataclasses import dataclass, field
from typing import Callable, Optional

from .errors import AmbiguousRecordError, ConfigurationError, DataIntegrityError
from .local_index import list_local
from .localfs import set_mod_time
from .lock import SaveRootLock
from .models import (
    InstanceContext,
    SyncDirection,
    SyncReport,
    WorldFile,
    WorldOutcome,
    WorldResult,
    WorldRole,
)
from .remote.base import RemoteStore
from .remote_index import RemoteFilter, RemoteIndex
from .replace import create_world, is_staging_name, replace_world
from .writer import RemoteWriter

logger = logging.getLogger("worldsync.reconciler")


@dataclass
class FileIndex:
    """Everything one pass knows about an instance's worlds."""

    local: list[WorldFile] = field(default_factory=list)
    proxies: list[WorldFile] = field(default_factory=list)
    masters: list[WorldFile] = field(default_factory=list)


def find_one(records: list[WorldFile], world: WorldFile, host: Optional[str] = None) -> Optional[WorldFile]:
    """Find the record describing the same save as ``world``.

    Args:
        records: Candidate records.
        world: The world to match.
        host: When given, only records from this host match.

    Raises:
        AmbiguousRecordError: If more than one record matches.
    """
    matches = [
        r for r in records
        if r.is_same_save(world) and (host is None or r.host == host)
    ]
    if len(matches) > 1:
        ids = ", ".join(r.backing_ref for r in matches)
        raise AmbiguousRecordError(
            f"{len(matches)} records match {world.instance}/{world.name}: {ids}"
        )
    return matches[0] if matches else None


def _check_world_name(name: str) -> None:
    if not name or name in (".", "..") or "/" in name or "\\" in name or is_staging_name(name):
        raise DataIntegrityError(f"Refusing to materialize world with unsafe name {name!r}")


class Reconciler:
    """Runs upload and download passes for one instance on one host.

    Args:
        store: Remote store.
        context: Instance being synchronized.
        host: This machine's identifier.
        max_workers: Upper bound on worlds processed at once.
    """

    def __init__(
        self,
        store: RemoteStore,
        context: InstanceContext,
        host: str,
        max_workers: int = 4,
    ):
        self.store = store
        self.context = context
        self.host = host
        self.max_workers = max(1, max_workers)
        self._root: Optional[str] = None

    @property
    def root(self) -> str:
        """Sync root handle, resolved once per reconciler."""
        if self._root is None:
            self._root = self.store.resolve_root()
        return self._root

    def load_index(self, include_proxies: bool = True) -> FileIndex:
        """Fetch the local index and remote indexes concurrently.

        Raises:
            ConfigurationError: If the saves root is missing.
            TransportError: If a remote search fails.
        """
        instance = self.context.instance_id
        remote = RemoteIndex(self.store, self.root)

        with ThreadPoolExecutor(max_workers=3) as pool:
            local_future = pool.submit(list_local, self.context)
            masters_future = pool.submit(
                remote.search, RemoteFilter(instance=instance, role=WorldRole.MASTER)
            )
            proxies_future = (
                pool.submit(
                    remote.search,
                    RemoteFilter(instance=instance, host=self.host, role=WorldRole.PROXY),
                )
                if include_proxies
                else None
            )
            index = FileIndex(
                local=local_future.result(),
                masters=masters_future.result(),
                proxies=proxies_future.result() if proxies_future else [],
            )

        logger.debug(
            "Index for %s: %d local, %d proxy, %d master",
            instance, len(index.local), len(index.proxies), len(index.masters),
        )
        return index

    def _run(
        self,
        items: list,
        label: Callable[[object], str],
        action: Callable[[object], WorldResult],
    ) -> list[WorldResult]:
        def guarded(item: object) -> WorldResult:
            name = label(item)
            try:
                return action(item)
            except Exception as exc:
                logger.error("Failed to sync %s: %s", name, exc, exc_info=logger.isEnabledFor(logging.DEBUG))
                return WorldResult(name=name, outcome=WorldOutcome.FAILED, reason=str(exc))

        if not items:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(items))) as pool:
            return list(pool.map(guarded, items))

    # -- upload ---------------------------------------------------------

    def update_remote(self, index: Optional[FileIndex] = None) -> SyncReport:
        """Push local worlds to this host's proxies and, when newer, the masters."""
        index = index or self.load_index()
        report = SyncReport(
            direction=SyncDirection.PUSH,
            instance=self.context.instance_id,
            host=self.host,
        )
        writer = RemoteWriter(self.store, self.root)

        def push(local: WorldFile) -> WorldResult:
            proxy = find_one(index.proxies, local, host=self.host)
            master = find_one(index.masters, local)
            return self._push_world(writer, local, proxy, master)

        report.results = self._run(index.local, lambda w: w.name, push)
        return report

    def _push_world(
        self,
        writer: RemoteWriter,
        local: WorldFile,
        proxy: Optional[WorldFile],
        master: Optional[WorldFile],
    ) -> WorldResult:
        if proxy is not None and proxy.is_newer_than(local):
            logger.info(
                "Skipping %s: remote proxy (%s) is newer than local (%s)",
                local.name, proxy.last_updated.isoformat(), local.last_updated.isoformat(),
            )
            return WorldResult(name=local.name, outcome=WorldOutcome.SKIPPED_REMOTE_NEWER)

        if proxy is not None:
            logger.info("Updating proxy of %s for %s", local.name, self.host)
            writer.update(proxy, local)
        else:
            logger.info("Creating proxy of %s for %s", local.name, self.host)
            writer.create_proxy(local, self.host)

        outcome = WorldOutcome.UPDATED
        if master is None:
            logger.info("Creating master of %s", local.name)
            master = writer.create_master(local)
            outcome = WorldOutcome.UPLOADED
        elif local.is_newer_than(master):
            logger.info(
                "Updating master of %s (%s -> %s)",
                local.name, master.last_updated.isoformat(), local.last_updated.isoformat(),
            )
            writer.update(master, local)
        else:
            logger.info(
                "Leaving master of %s as is (%s, local %s)",
                local.name, master.last_updated.isoformat(), local.last_updated.isoformat(),
            )

        # Align local mtime with the master so the next pass sees no change
        set_mod_time(local.path, master.last_updated)
        local.last_updated = master.last_updated
        return WorldResult(name=local.name, outcome=outcome)

    # -- download -------------------------------------------------------

    def update_local(self, index: Optional[FileIndex] = None) -> SyncReport:
        """Pull every master that is newer than, or missing from, the local saves."""
        index = index or self.load_index(include_proxies=False)
        report = SyncReport(
            direction=SyncDirection.PULL,
            instance=self.context.instance_id,
            host=self.host,
        )

        # One entry per world so duplicate masters surface as one failure
        worlds: list[WorldFile] = []
        for master in index.masters:
            if not any(w.is_same_save(master) for w in worlds):
                worlds.append(master)

        def pull(first: WorldFile) -> WorldResult:
            master = find_one(index.masters, first)
            local = find_one(index.local, master)
            return self._pull_world(master, local)

        report.results = self._run(worlds, lambda w: w.name, pull)
        return report

    def _pull_world(self, master: WorldFile, local: Optional[WorldFile]) -> WorldResult:
        if local is not None and not master.is_newer_than(local):
            logger.info(
                "Skipping %s: local (%s) is not older than remote master (%s)",
                local.name, local.last_updated.isoformat(), master.last_updated.isoformat(),
            )
            return WorldResult(name=master.name, outcome=WorldOutcome.SKIPPED_LOCAL_NEWER)

        _check_world_name(master.name)
        logger.info("Downloading %s save %s", "updated" if local else "new", master.name)
        with closing(self.store.download(master.object_id)) as stream:
            if local is not None:
                replace_world(local, stream, master.last_updated)
                return WorldResult(name=master.name, outcome=WorldOutcome.DOWNLOADED)
            create_world(self.context.saves_path, master.name, stream, master.last_updated)
            return WorldResult(name=master.name, outcome=WorldOutcome.CREATED)


def run_pass(
    direction: SyncDirection,
    store: RemoteStore,
    context: InstanceContext,
    host: str,
    max_workers: int = 4,
) -> SyncReport:
    """Run one locked reconciliation pass in ``direction``.

    Raises:
        LockBusyError: If another pass holds the saves root.
        ConfigurationError: If the saves root is missing.
        TransportError: If the remote index cannot be fetched.
    """
    if not context.saves_path.is_dir():
        raise ConfigurationError(f"Saves directory not found: {context.saves_path}")

    reconciler = Reconciler(store, context, host, max_workers=max_workers)
    with SaveRootLock(context.saves_path):
        if direction == SyncDirection.PUSH:
            report = reconciler.update_remote()
        else:
            report = reconciler.update_local()
    logger.info(
        "%s pass for %s finished: %s",
        direction.value, context.instance_id,
        ", ".join(f"{k}={v}" for k, v in sorted(report.counts().items())) or "nothing to do",
    )
    return report
