"""Inspection commands: remote list, local list."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

import click
from rich.table import Table

from ..errors import ConfigurationError, TransportError
from ..local_index import list_local
from ..models import WorldRole
from ..remote_index import RemoteFilter, RemoteIndex
from ._common import EXIT_FAILED, console, fail, home_option, instance_options, load_runtime


def register_inspect_commands(main: click.Group) -> None:
    """Register the remote and local command groups."""

    @main.group()
    def remote():
        """Inspect world records in the remote store."""

    @remote.command("list")
    @home_option
    @click.option("--instance", default=None, help="Instance id. Defaults to $INST_ID.")
    @click.option("--all-instances", is_flag=True, help="List every instance.")
    @click.option(
        "--role", type=click.Choice([r.value for r in WorldRole]), default=None,
        help="Only proxies or only masters.",
    )
    def remote_list(home, instance, all_instances, role):
        """List remote world records.

        Examples:

            worldsync remote list --role master

            worldsync remote list --all-instances
        """
        rt = load_runtime(home, need_context=False, console_log=False)
        instance_id: Optional[str] = None
        if not all_instances:
            instance_id = instance or os.environ.get("INST_ID")
            if not instance_id:
                fail("No instance id: pass --instance or --all-instances")

        try:
            index = RemoteIndex(rt.store, rt.store.resolve_root())
            worlds = index.search(
                RemoteFilter(instance=instance_id, role=WorldRole(role) if role else None)
            )
        except (ConfigurationError, TransportError) as exc:
            fail(str(exc), EXIT_FAILED)

        table = Table(title=f"Remote worlds ({rt.store.name})")
        table.add_column("Instance")
        table.add_column("World", style="bold")
        table.add_column("Role")
        table.add_column("Host")
        table.add_column("Last updated")
        table.add_column("Id", style="dim")
        for w in sorted(worlds, key=lambda w: (w.instance, w.name, w.role.value, w.host or "")):
            table.add_row(
                w.instance, w.name, w.role.value, w.host or "",
                w.last_updated.isoformat(timespec="seconds"), w.backing_ref,
            )
        console.print(table)
        if index.rejected:
            console.print(f"  [yellow]{len(index.rejected)} malformed record(s) ignored[/]")

    @main.group()
    def local():
        """Inspect local worlds."""

    @local.command("list")
    @instance_options
    def local_list(home, instance, saves, host):
        """List the worlds in the instance saves directory."""
        rt = load_runtime(home, instance, saves, host, console_log=False)
        try:
            context = rt.instance
            worlds = list_local(context)
        except ConfigurationError as exc:
            fail(str(exc))

        table = Table(title=f"Local worlds ({context.instance_id})")
        table.add_column("World", style="bold")
        table.add_column("Last updated")
        table.add_column("Path", style="dim")
        for w in worlds:
            table.add_row(w.name, w.last_updated.isoformat(timespec="seconds"), str(Path(w.backing_ref)))
        console.print(table)
