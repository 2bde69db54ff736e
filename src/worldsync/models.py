"""
World sync data models -- world records, configuration, and pass results.

A WorldFile describes one world save regardless of where it lives.
Local and remote records share one shape and are told apart by the
``source`` tag; remote records additionally carry a ``role`` and,
for proxies, the originating ``host``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

if TYPE_CHECKING:
    from .remote.base import RemoteMetadata

# Two timestamps closer than this are treated as equal in both directions.
TIMESTAMP_LEEWAY = timedelta(seconds=1)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as a timezone-aware UTC datetime.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class WorldSource(str, Enum):
    """Where a world record was read from."""

    LOCAL = "local"
    REMOTE = "remote"


class WorldRole(str, Enum):
    """Role of a remote world record."""

    PROXY = "proxy"
    MASTER = "master"


class WorldFile(BaseModel):
    """One world save, local or remote.

    Attributes:
        name: Save directory name, stable within an instance.
        instance: Owning MultiMC instance id.
        source: Local filesystem or remote store.
        last_updated: Last content change (directory mtime or store time).
        role: Proxy or master. Remote records only.
        host: Originating machine. Remote proxies only.
        backing_ref: Local absolute path or remote object id.
    """

    name: str
    instance: str
    source: WorldSource
    last_updated: datetime
    role: Optional[WorldRole] = None
    host: Optional[str] = None
    backing_ref: str

    @field_validator("last_updated")
    @classmethod
    def _normalize_timestamp(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @model_validator(mode="after")
    def _check_tags(self) -> "WorldFile":
        if self.source == WorldSource.LOCAL:
            if self.role is not None or self.host is not None:
                raise ValueError("local world records carry no role or host")
            return self
        if self.role is None:
            raise ValueError("remote world records require a role")
        if self.role == WorldRole.PROXY and not self.host:
            raise ValueError("proxy records require a host")
        if self.role == WorldRole.MASTER and self.host is not None:
            raise ValueError("master records are host independent")
        return self

    @classmethod
    def local(cls, name: str, instance: str, last_updated: datetime, path: Path) -> "WorldFile":
        """Build a local record backed by a directory path."""
        return cls(
            name=name,
            instance=instance,
            source=WorldSource.LOCAL,
            last_updated=last_updated,
            backing_ref=str(path),
        )

    @property
    def is_local(self) -> bool:
        return self.source == WorldSource.LOCAL

    @property
    def path(self) -> Path:
        """Directory backing a local record."""
        if not self.is_local:
            raise TypeError(f"{self.describe()} is not a local record")
        return Path(self.backing_ref)

    @property
    def object_id(self) -> str:
        """Store object id backing a remote record."""
        if self.is_local:
            raise TypeError(f"{self.describe()} is not a remote record")
        return self.backing_ref

    def is_same_save(self, other: "WorldFile") -> bool:
        return is_same_save(self, other)

    def is_newer_than(self, other: "WorldFile") -> bool:
        return is_newer_than(self, other)

    def refresh(self, metadata: "RemoteMetadata") -> "WorldFile":
        """Apply an update snapshot from the store in place.

        Identity (name, instance, role, host, object id) is kept; only
        the timestamp moves.
        """
        if metadata.id != self.backing_ref:
            raise ValueError(
                f"Snapshot {metadata.id} does not belong to {self.describe()}"
            )
        self.last_updated = ensure_utc(metadata.modified_time)
        return self

    def describe(self) -> str:
        """Short human-readable label for log lines."""
        if self.is_local:
            return f"{self.instance}/{self.name} (local)"
        if self.role == WorldRole.PROXY:
            return f"{self.instance}/{self.name} (proxy:{self.host})"
        return f"{self.instance}/{self.name} (master)"


def is_same_save(a: WorldFile, b: WorldFile) -> bool:
    """True when both records describe the same world.

    Role, host, and source are not part of identity.
    """
    return a.name == b.name and a.instance == b.instance


def is_newer_than(a: WorldFile, b: WorldFile) -> bool:
    """True when ``a`` is newer than ``b`` by more than the leeway."""
    return a.last_updated - b.last_updated > TIMESTAMP_LEEWAY


class WorldOutcome(str, Enum):
    """Per-world result of a reconciliation pass."""

    SKIPPED_REMOTE_NEWER = "skipped-remote-newer"
    SKIPPED_LOCAL_NEWER = "skipped-local-newer"
    UPLOADED = "uploaded"
    UPDATED = "updated"
    DOWNLOADED = "downloaded"
    CREATED = "created"
    FAILED = "failed"


class SyncDirection(str, Enum):
    """Direction of a reconciliation pass."""

    PUSH = "push"
    PULL = "pull"


class WorldResult(BaseModel):
    """What happened to one world during a pass."""

    name: str
    outcome: WorldOutcome
    reason: Optional[str] = None


class SyncReport(BaseModel):
    """Results of one reconciliation pass."""

    direction: SyncDirection
    instance: str
    host: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    results: list[WorldResult] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(r.outcome == WorldOutcome.FAILED for r in self.results)

    def counts(self) -> dict[str, int]:
        """Number of worlds per outcome, for summaries."""
        tally: dict[str, int] = {}
        for result in self.results:
            tally[result.outcome.value] = tally.get(result.outcome.value, 0) + 1
        return tally

    def outcome_for(self, name: str) -> Optional[WorldOutcome]:
        for result in self.results:
            if result.name == name:
                return result.outcome
        return None


class StoreType(str, Enum):
    """Supported remote store backends."""

    LOCAL = "local"
    GDRIVE = "gdrive"


class StoreConfig(BaseModel):
    """Configuration for the remote store."""

    store_type: StoreType = StoreType.LOCAL

    # Local directory store (NAS, USB drive, synced folder)
    local_path: Optional[Path] = None

    # Google Drive
    drive_dir_name: str = "MinecraftSync"
    credentials_file: Optional[Path] = None
    token_file: Optional[Path] = None

    page_size: int = Field(default=100, ge=1, le=1000)


class SyncConfig(BaseModel):
    """Complete worldsync configuration, read from ``config.yaml``."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    max_workers: int = Field(default=4, ge=1)
    log_level: str = "INFO"
    clear_log_on_start: bool = False
    host: Optional[str] = None


class InstanceContext(BaseModel):
    """The MultiMC instance a pass operates on."""

    instance_id: str
    instance_name: str = ""
    instance_dir: Optional[Path] = None
    saves_path: Path
