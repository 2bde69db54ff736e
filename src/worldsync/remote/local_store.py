"""
Directory-backed remote store for NAS shares, USB drives, or any folder
that another tool already replicates between machines.

Layout under the sync root:
    <root>/
    ├── <id>.tar.gz      # object content
    └── <id>.json        # RemoteMetadata sidecar
"""

from __future__ import annotations

import logging
import os
import shutil
import uuid
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

from pydantic import ValidationError

from ..errors import TransportError
from ..models import ensure_utc
from .base import RemoteMetadata, RemotePage, RemoteQuery, RemoteStore

logger = logging.getLogger("worldsync.remote.local_store")


class LocalDirStore(RemoteStore):
    """Remote store kept in a plain directory.

    Args:
        base_path: Directory holding the sync root.
        dir_name: Name of the sync root folder under ``base_path``.
        page_size: Records returned per search page.
    """

    def __init__(self, base_path: Path, dir_name: str = "MinecraftSync", page_size: int = 100):
        self.base_path = Path(base_path).expanduser()
        self.dir_name = dir_name
        self.page_size = page_size

    @property
    def name(self) -> str:
        return "local"

    @property
    def root_path(self) -> Path:
        return self.base_path / self.dir_name

    def available(self) -> bool:
        return self.base_path.exists()

    def resolve_root(self) -> str:
        try:
            self.root_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise TransportError(f"Cannot create sync root {self.root_path}: {exc}") from exc
        return str(self.root_path)

    def _blob(self, object_id: str) -> Path:
        return self.root_path / f"{object_id}.tar.gz"

    def _sidecar(self, object_id: str) -> Path:
        return self.root_path / f"{object_id}.json"

    def _read_metadata(self, sidecar: Path) -> Optional[RemoteMetadata]:
        try:
            return RemoteMetadata.model_validate_json(sidecar.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning("Unreadable metadata sidecar %s: %s", sidecar, exc)
            return None

    def _write_metadata(self, metadata: RemoteMetadata) -> None:
        sidecar = self._sidecar(metadata.id)
        tmp = sidecar.with_suffix(".json.part")
        tmp.write_text(metadata.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, sidecar)

    def _write_blob(self, object_id: str, stream: BinaryIO) -> None:
        blob = self._blob(object_id)
        tmp = blob.with_name(blob.name + ".part")
        with open(tmp, "wb") as f:
            shutil.copyfileobj(stream, f, length=1024 * 1024)
        os.replace(tmp, blob)

    def search_page(
        self,
        query: RemoteQuery,
        root: str,
        page_token: Optional[str] = None,
    ) -> RemotePage:
        root_path = Path(root)
        if not root_path.is_dir():
            raise TransportError(f"Sync root not found: {root_path}")

        matches = []
        for sidecar in sorted(root_path.glob("*.json")):
            metadata = self._read_metadata(sidecar)
            if metadata is not None and query.matches(metadata.properties):
                matches.append(metadata)

        try:
            offset = int(page_token) if page_token else 0
        except ValueError as exc:
            raise TransportError(f"Invalid page token: {page_token!r}") from exc

        end = offset + self.page_size
        next_token = str(end) if end < len(matches) else None
        return RemotePage(records=matches[offset:end], next_page_token=next_token)

    def create(
        self,
        stream: BinaryIO,
        name: str,
        properties: dict[str, str],
        root: str,
        modified_time: datetime,
    ) -> RemoteMetadata:
        if Path(root) != self.root_path:
            raise TransportError(f"Unknown sync root: {root}")
        metadata = RemoteMetadata(
            id=uuid.uuid4().hex,
            name=name,
            properties=dict(properties),
            modified_time=ensure_utc(modified_time),
        )
        try:
            self._write_blob(metadata.id, stream)
            self._write_metadata(metadata)
        except OSError as exc:
            self._blob(metadata.id).unlink(missing_ok=True)
            raise TransportError(f"Failed to create {name}: {exc}") from exc
        logger.debug("Created object %s (%s)", metadata.id, name)
        return metadata

    def update(
        self,
        stream: BinaryIO,
        object_id: str,
        modified_time: datetime,
    ) -> RemoteMetadata:
        sidecar = self._sidecar(object_id)
        if not sidecar.exists():
            raise TransportError(f"Object not found: {object_id}")
        metadata = self._read_metadata(sidecar)
        if metadata is None:
            raise TransportError(f"Object metadata unreadable: {object_id}")
        metadata.modified_time = ensure_utc(modified_time)
        try:
            self._write_blob(object_id, stream)
            self._write_metadata(metadata)
        except OSError as exc:
            raise TransportError(f"Failed to update {object_id}: {exc}") from exc
        logger.debug("Updated object %s (%s)", object_id, metadata.name)
        return metadata

    def download(self, object_id: str) -> BinaryIO:
        try:
            return open(self._blob(object_id), "rb")
        except OSError as exc:
            raise TransportError(f"Failed to download {object_id}: {exc}") from exc
