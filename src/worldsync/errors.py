"""Exception hierarchy for world synchronization."""

from __future__ import annotations


class WorldSyncError(Exception):
    """Base class for every error raised by worldsync."""


class ConfigurationError(WorldSyncError):
    """Raised when the instance context, save root, or store config is unusable.

    Always raised before any side effect of a pass.
    """


class DataIntegrityError(WorldSyncError):
    """Raised when a remote metadata record lacks required identifying fields."""


class AmbiguousRecordError(DataIntegrityError):
    """Raised when a world has more than one master, or more than one proxy per host."""


class TransportError(WorldSyncError):
    """Raised when the remote store fails to list, create, update, or download."""


class ReplaceError(WorldSyncError):
    """Raised after a failed local replace has been rolled back.

    The original failure is available as ``__cause__``.
    """


class LockBusyError(WorldSyncError):
    """Raised when another pass already holds the saves root lock."""
