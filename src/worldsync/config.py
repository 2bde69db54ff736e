"""
Configuration -- sync home, config.yaml, and the MultiMC instance context.

The sync home (``$MMC_SYNC_DIR``, default ``~/.mmc-worldsync``) holds
``config.yaml`` and the log file. The instance context comes from the
environment MultiMC exports to custom commands (``INST_ID``,
``INST_NAME``, ``INST_DIR``, ``INST_MC_DIR``).
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from . import SYNC_HOME
from .errors import ConfigurationError
from .models import InstanceContext, SyncConfig

logger = logging.getLogger("worldsync.config")

CONFIG_FILE = "config.yaml"

_TRUTHY = {"1", "true", "yes", "on"}


def sync_home(home: Optional[Path] = None) -> Path:
    """Resolve and create the sync home directory."""
    path = (home or Path(SYNC_HOME)).expanduser()
    path.mkdir(parents=True, exist_ok=True)
    return path


def read_config(home: Path) -> SyncConfig:
    """Read ``config.yaml`` from the sync home as stored, without env overrides.

    A missing file yields defaults. A malformed file is an error: a
    silently defaulted store would see an empty remote index.

    Raises:
        ConfigurationError: If the file cannot be parsed or validated.
    """
    config_file = home / CONFIG_FILE
    data: dict = {}
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Cannot parse {config_file}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigurationError(f"{config_file} must contain a mapping")

    try:
        return SyncConfig(**data)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid {config_file}: {exc}") from exc


def load_config(home: Path) -> SyncConfig:
    """Read ``config.yaml`` and apply the environment overrides for this run.

    Raises:
        ConfigurationError: If the file cannot be parsed or validated.
    """
    config = read_config(home)
    level = os.environ.get("LOGGING_LEVEL")
    if level:
        config.log_level = level.upper()
    clear = os.environ.get("MMC_SYNC_CLEAR_LOG")
    if clear is not None:
        config.clear_log_on_start = clear.strip().lower() in _TRUTHY
    drive_dir = os.environ.get("MMC_SYNC_DRIVE_DIR")
    if drive_dir:
        config.store.drive_dir_name = drive_dir
    return config


def save_config(home: Path, config: SyncConfig) -> Path:
    """Persist configuration to ``config.yaml``."""
    config_file = home / CONFIG_FILE
    data = config.model_dump(mode="json", exclude_none=True)
    config_file.write_text(yaml.dump(data, default_flow_style=False), encoding="utf-8")
    logger.info("Wrote %s", config_file)
    return config_file


def resolve_context(
    instance_id: Optional[str] = None,
    saves_path: Optional[Path] = None,
) -> InstanceContext:
    """Build the instance context from arguments and MultiMC env vars.

    Args:
        instance_id: Overrides ``INST_ID``.
        saves_path: Overrides ``$INST_MC_DIR/saves``.

    Raises:
        ConfigurationError: If the instance id or saves root is unknown
            or the saves root does not exist.
    """
    instance_id = instance_id or os.environ.get("INST_ID")
    if not instance_id:
        raise ConfigurationError(
            "No instance id: run from MultiMC (INST_ID) or pass --instance"
        )

    if saves_path is None:
        mc_dir = os.environ.get("INST_MC_DIR")
        if not mc_dir:
            raise ConfigurationError(
                "No saves directory: run from MultiMC (INST_MC_DIR) or pass --saves"
            )
        saves_path = Path(mc_dir) / "saves"

    saves_path = saves_path.expanduser()
    if not saves_path.is_dir():
        raise ConfigurationError(f"Saves directory not found: {saves_path}")

    inst_dir = os.environ.get("INST_DIR")
    return InstanceContext(
        instance_id=instance_id,
        instance_name=os.environ.get("INST_NAME", ""),
        instance_dir=Path(inst_dir) if inst_dir else None,
        saves_path=saves_path.resolve(),
    )
