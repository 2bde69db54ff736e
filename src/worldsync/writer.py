"""Remote writer -- creates and updates world objects in the store.

Object names follow ``{instance}-{save}-master`` or
``{instance}-{save}-proxy:{host}`` so any tool can tell role, host,
and instance apart from the name alone. The same identity is also
written as structured properties, which is what the index reads.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

from .localfs import pack_directory
from .models import WorldFile, WorldRole
from .remote.base import (
    PROP_HOST,
    PROP_INSTANCE,
    PROP_ROLE,
    PROP_SAVE_NAME,
    PROP_SCHEMA_VERSION,
    SCHEMA_VERSION,
    RemoteStore,
)
from .remote_index import parse_record

logger = logging.getLogger("worldsync.writer")


def format_remote_name(
    instance: str, save_name: str, role: WorldRole, host: Optional[str] = None
) -> str:
    """Deterministic store object name for a world record."""
    if role == WorldRole.MASTER:
        return f"{instance}-{save_name}-master"
    if not host:
        raise ValueError("proxy objects need a host")
    return f"{instance}-{save_name}-proxy:{host}"


def build_properties(
    instance: str, save_name: str, role: WorldRole, host: Optional[str] = None
) -> dict[str, str]:
    props = {
        PROP_SAVE_NAME: save_name,
        PROP_INSTANCE: instance,
        PROP_ROLE: role.value,
        PROP_SCHEMA_VERSION: str(SCHEMA_VERSION),
    }
    if role == WorldRole.PROXY:
        if not host:
            raise ValueError("proxy objects need a host")
        props[PROP_HOST] = host
    return props


class RemoteWriter:
    """Uploads local worlds to a store under one sync root."""

    def __init__(self, store: RemoteStore, root: str):
        self.store = store
        self.root = root

    def _create(self, local: WorldFile, role: WorldRole, host: Optional[str]) -> WorldFile:
        name = format_remote_name(local.instance, local.name, role, host)
        properties = build_properties(local.instance, local.name, role, host)
        stream = io.BytesIO(pack_directory(local.path))
        metadata = self.store.create(
            stream,
            name,
            properties,
            self.root,
            modified_time=local.last_updated,
        )
        record = parse_record(metadata)
        logger.debug("Created %s as %s", record.describe(), metadata.id)
        return record

    def create_proxy(self, local: WorldFile, host: str) -> WorldFile:
        return self._create(local, WorldRole.PROXY, host)

    def create_master(self, local: WorldFile) -> WorldFile:
        return self._create(local, WorldRole.MASTER, None)

    def update(self, record: WorldFile, local: WorldFile) -> WorldFile:
        """Replace a remote record's content with ``local``, in place.

        Returns the same ``record`` object with its new timestamp.
        """
        stream = io.BytesIO(pack_directory(local.path))
        metadata = self.store.update(stream, record.object_id, modified_time=local.last_updated)
        record.refresh(metadata)
        logger.debug("Updated %s", record.describe())
        return record
