"""Local index -- one WorldFile per world directory in the instance saves root."""

from __future__ import annotations

import logging

from .errors import ConfigurationError
from .localfs import list_directories
from .models import InstanceContext, WorldFile
from .replace import is_staging_name

logger = logging.getLogger("worldsync.local_index")


def list_local(context: InstanceContext) -> list[WorldFile]:
    """Build local world records from the current saves directory.

    Args:
        context: Instance whose saves root is enumerated.

    Returns:
        Local WorldFile records, sorted by name.

    Raises:
        ConfigurationError: If the saves root does not exist.
    """
    root = context.saves_path
    if not root.is_dir():
        raise ConfigurationError(f"Saves directory not found: {root}")

    worlds = []
    for entry in list_directories(root):
        # Leftover staging directory of an interrupted replace
        if is_staging_name(entry.name):
            logger.debug("Ignoring staging directory %s", entry.path)
            continue
        worlds.append(
            WorldFile.local(
                name=entry.name,
                instance=context.instance_id,
                last_updated=entry.mod_time,
                path=entry.path,
            )
        )

    logger.debug(
        "Found local worlds: %s",
        ", ".join(f"{w.name}@{w.last_updated.isoformat()}" for w in worlds) or "none",
    )
    return worlds
