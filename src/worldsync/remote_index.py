"""
Remote metadata index -- turns store search results into WorldFile records.

Every record must identify itself completely (save name, instance,
role, and host for proxies). A partially written or foreign object
is rejected here and never takes part in reconciliation.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, ValidationError

from .errors import DataIntegrityError
from .models import WorldFile, WorldRole, WorldSource
from .remote.base import (
    PROP_HOST,
    PROP_INSTANCE,
    PROP_ROLE,
    PROP_SAVE_NAME,
    PROP_SCHEMA_VERSION,
    SCHEMA_VERSION,
    RemoteMetadata,
    RemoteQuery,
    RemoteStore,
)

logger = logging.getLogger("worldsync.remote_index")


class RemoteFilter(BaseModel):
    """Which remote world records to fetch."""

    instance: Optional[str] = None
    host: Optional[str] = None
    role: Optional[WorldRole] = None

    def to_query(self) -> RemoteQuery:
        return RemoteQuery(
            instance=self.instance,
            host=self.host,
            role=self.role.value if self.role else None,
        )


def parse_record(metadata: RemoteMetadata) -> WorldFile:
    """Build a remote WorldFile from a store metadata snapshot.

    Raises:
        DataIntegrityError: If identifying properties are missing or
            malformed, or the object predates the current schema.
    """
    props = metadata.properties
    missing = [key for key in (PROP_SAVE_NAME, PROP_INSTANCE, PROP_ROLE) if not props.get(key)]
    if missing:
        raise DataIntegrityError(
            f"Remote object {metadata.name!r} ({metadata.id}) is missing {', '.join(missing)}"
        )

    try:
        role = WorldRole(props[PROP_ROLE])
    except ValueError:
        raise DataIntegrityError(
            f"Remote object {metadata.name!r} has unknown role {props[PROP_ROLE]!r}"
        )

    host = props.get(PROP_HOST) or None
    if role == WorldRole.PROXY and not host:
        raise DataIntegrityError(f"Proxy object {metadata.name!r} has no host")
    if role == WorldRole.MASTER:
        host = None

    raw_version = props.get(PROP_SCHEMA_VERSION)
    try:
        version = int(raw_version) if raw_version is not None else None
    except ValueError:
        version = None
    if version is None:
        raise DataIntegrityError(
            f"Remote object {metadata.name!r} has no valid {PROP_SCHEMA_VERSION}"
        )
    if version < SCHEMA_VERSION:
        raise DataIntegrityError(
            f"Remote object {metadata.name!r} uses schema version {version}; "
            f"version {SCHEMA_VERSION} or later is required"
        )

    try:
        return WorldFile(
            name=props[PROP_SAVE_NAME],
            instance=props[PROP_INSTANCE],
            source=WorldSource.REMOTE,
            last_updated=metadata.modified_time,
            role=role,
            host=host,
            backing_ref=metadata.id,
        )
    except ValidationError as exc:
        raise DataIntegrityError(f"Remote object {metadata.name!r} is invalid: {exc}") from exc


class RemoteIndex:
    """Searches a store for world records under one sync root.

    Args:
        store: The remote store.
        root: Sync root handle from ``store.resolve_root()``.
    """

    def __init__(self, store: RemoteStore, root: str):
        self.store = store
        self.root = root
        self.rejected: list[str] = []

    def fetch(self, search: RemoteFilter) -> list[RemoteMetadata]:
        """Collect raw metadata for every page of a search, in server order."""
        query = search.to_query()
        records: list[RemoteMetadata] = []
        page = self.store.search_page(query, self.root)
        records.extend(page.records)
        while page.next_page_token:
            logger.debug("Resolving next page (%d records so far)", len(records))
            page = self.store.search_page(query, self.root, page.next_page_token)
            records.extend(page.records)
        return records

    def search(self, search: RemoteFilter) -> list[WorldFile]:
        """Return valid world records matching ``search``.

        Invalid records are logged, remembered in ``rejected``, and left out.
        """
        worlds = []
        for metadata in self.fetch(search):
            try:
                worlds.append(parse_record(metadata))
            except DataIntegrityError as exc:
                logger.warning("Ignoring remote object: %s", exc)
                self.rejected.append(metadata.id)

        logger.debug(
            "Found %d remote record(s) for %s",
            len(worlds),
            search.model_dump(mode="json", exclude_none=True),
        )
        return worlds
