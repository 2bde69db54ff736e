"""Setup command: init."""

from __future__ import annotations

from pathlib import Path

import click
from rich.panel import Panel

from ..config import CONFIG_FILE, read_config, save_config, sync_home
from ..errors import ConfigurationError
from ..models import StoreType
from ._common import console, fail, home_option


def register_setup_commands(main: click.Group) -> None:
    """Register the init command."""

    @main.command("init")
    @home_option
    @click.option(
        "--store", "store_type", type=click.Choice([s.value for s in StoreType]),
        default=StoreType.LOCAL.value, show_default=True, help="Remote store backend.",
    )
    @click.option("--path", "local_path", default=None, type=click.Path(path_type=Path),
                  help="Directory for the local store (NAS, USB drive, shared folder).")
    @click.option("--drive-dir", default=None, help="Sync root folder name.")
    @click.option("--credentials", default=None, type=click.Path(path_type=Path),
                  help="Google service account key file.")
    @click.option("--token", default=None, type=click.Path(path_type=Path),
                  help="Google authorized user token file.")
    @click.option("--workers", default=None, type=click.IntRange(min=1), help="Worlds synced at once.")
    def init(home, store_type, local_path, drive_dir, credentials, token, workers):
        """Write config.yaml for the chosen remote store.

        Examples:

            worldsync init --store local --path /mnt/nas/minecraft

            worldsync init --store gdrive --credentials ~/keys/drive.json
        """
        home_path = sync_home(Path(home))
        try:
            config = read_config(home_path)
        except ConfigurationError as exc:
            fail(str(exc))

        config.store.store_type = StoreType(store_type)
        if local_path is not None:
            config.store.local_path = local_path.expanduser().resolve()
        if drive_dir:
            config.store.drive_dir_name = drive_dir
        if credentials is not None:
            config.store.credentials_file = credentials.expanduser()
        if token is not None:
            config.store.token_file = token.expanduser()
        if workers is not None:
            config.max_workers = workers

        if config.store.store_type == StoreType.GDRIVE and not (
            config.store.credentials_file or config.store.token_file
        ):
            fail("The gdrive store needs --credentials or --token")

        path = save_config(home_path, config)
        console.print(
            Panel(
                f"Store: [cyan]{config.store.store_type.value}[/]\n"
                f"Root folder: {config.store.drive_dir_name}\n"
                f"Config: [cyan]{path}[/]",
                title=f"{CONFIG_FILE} written",
                border_style="green",
            )
        )
