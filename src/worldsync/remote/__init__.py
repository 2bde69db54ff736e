"""
Remote stores -- where world archives travel between hosts.

Local: a plain directory (NAS, USB drive, replicated folder).
GDrive: a Google Drive folder via the Drive v3 API.
"""

from __future__ import annotations

from pathlib import Path

from ..errors import ConfigurationError
from ..models import StoreConfig, StoreType
from .base import RemoteMetadata, RemotePage, RemoteQuery, RemoteStore
from .gdrive import DriveStore
from .local_store import LocalDirStore

__all__ = [
    "DriveStore",
    "LocalDirStore",
    "RemoteMetadata",
    "RemotePage",
    "RemoteQuery",
    "RemoteStore",
    "create_store",
]


def create_store(config: StoreConfig, sync_home: Path) -> RemoteStore:
    """Factory function to create the configured store.

    Args:
        config: Store configuration.
        sync_home: worldsync home directory, used for default paths.

    Returns:
        Instantiated RemoteStore.

    Raises:
        ConfigurationError: If the store type is not supported.
    """
    if config.store_type == StoreType.LOCAL:
        base = config.local_path or sync_home / "remote"
        return LocalDirStore(base, dir_name=config.drive_dir_name, page_size=config.page_size)
    if config.store_type == StoreType.GDRIVE:
        return DriveStore(
            dir_name=config.drive_dir_name,
            credentials_file=config.credentials_file,
            token_file=config.token_file,
            page_size=config.page_size,
        )
    raise ConfigurationError(f"Unsupported store: {config.store_type}")
