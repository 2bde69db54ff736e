"""
Remote store contract -- where world archives live between hosts.

A store holds opaque blobs, each with a small string property bag.
The index and writer only talk to a store through this interface,
so a directory on a NAS and a Google Drive folder look the same.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import BinaryIO, Optional

from pydantic import BaseModel, Field

# Property keys carried by every remote world object
PROP_SAVE_NAME = "saveName"
PROP_INSTANCE = "instance"
PROP_ROLE = "role"
PROP_HOST = "host"
PROP_SCHEMA_VERSION = "schemaVersion"

SCHEMA_VERSION = 2

ARCHIVE_MIME_TYPE = "application/gzip"


class RemoteMetadata(BaseModel):
    """Metadata snapshot returned by the store for one object."""

    id: str
    name: str
    properties: dict[str, str] = Field(default_factory=dict)
    modified_time: datetime


class RemotePage(BaseModel):
    """One page of search results."""

    records: list[RemoteMetadata] = Field(default_factory=list)
    next_page_token: Optional[str] = None


class RemoteQuery(BaseModel):
    """Store-independent property filter. ``None`` fields match anything."""

    instance: Optional[str] = None
    host: Optional[str] = None
    role: Optional[str] = None

    def clauses(self) -> list[tuple[str, str]]:
        """Property equality clauses, in a stable order."""
        pairs = [
            (PROP_INSTANCE, self.instance),
            (PROP_HOST, self.host),
            (PROP_ROLE, self.role),
        ]
        return [(key, value) for key, value in pairs if value is not None]

    def matches(self, properties: dict[str, str]) -> bool:
        return all(properties.get(key) == value for key, value in self.clauses())


class RemoteStore(ABC):
    """Abstract remote blob store."""

    @abstractmethod
    def resolve_root(self) -> str:
        """Find or create the sync root and return its handle.

        Idempotent: calling it again returns the same handle.
        """

    @abstractmethod
    def search_page(
        self,
        query: RemoteQuery,
        root: str,
        page_token: Optional[str] = None,
    ) -> RemotePage:
        """Return one page of objects under ``root`` matching ``query``."""

    @abstractmethod
    def create(
        self,
        stream: BinaryIO,
        name: str,
        properties: dict[str, str],
        root: str,
        modified_time: datetime,
    ) -> RemoteMetadata:
        """Upload a new object and return its metadata."""

    @abstractmethod
    def update(
        self,
        stream: BinaryIO,
        object_id: str,
        modified_time: datetime,
    ) -> RemoteMetadata:
        """Replace the content of an existing object."""

    @abstractmethod
    def download(self, object_id: str) -> BinaryIO:
        """Open the content of an object as a readable binary stream.

        The caller closes the stream.
        """

    @abstractmethod
    def available(self) -> bool:
        """Check if this store is currently usable."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable store name."""
