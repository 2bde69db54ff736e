"""
worldsync CLI.

Commands are grouped in modules and registered on the main Click
group here.

Entry point: worldsync.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="worldsync")
def main():
    """worldsync -- MultiMC world save synchronization.

    Run `worldsync pull` before launching an instance and
    `worldsync push` after it exits.
    """


from .inspect_cmd import register_inspect_commands
from .setup_cmd import register_setup_commands
from .sync_cmd import register_sync_commands

register_setup_commands(main)
register_sync_commands(main)
register_inspect_commands(main)
