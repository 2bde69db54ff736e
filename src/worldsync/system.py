"""Host identity for proxy records."""

from __future__ import annotations

import logging
import os
import platform
import shutil
import socket
import subprocess

logger = logging.getLogger("worldsync.system")


def _pretty_hostname() -> str:
    """Linux pretty hostname via hostnamectl, or empty string."""
    if shutil.which("hostnamectl") is None:
        return ""
    try:
        result = subprocess.run(
            ["hostnamectl", "--pretty"],
            capture_output=True, text=True, check=False, timeout=5,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("hostnamectl failed: %s", exc)
        return ""
    if result.returncode != 0:
        return ""
    return result.stdout.strip()


def get_host_name(override: str | None = None) -> str:
    """Identify this machine.

    Order: explicit override, ``MMC_SYNC_HOST``, Windows ``COMPUTERNAME``,
    Linux pretty hostname, then the network hostname.
    """
    if override:
        return override
    env_host = os.environ.get("MMC_SYNC_HOST", "").strip()
    if env_host:
        return env_host

    system = platform.system()
    if system == "Windows":
        name = os.environ.get("COMPUTERNAME", "").strip()
        if name:
            return name
    elif system == "Linux":
        name = _pretty_hostname()
        if name:
            return name
    return socket.gethostname()
