"""Sync commands: push, pull, status."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel

from ..errors import ConfigurationError, LockBusyError, TransportError
from ..models import SyncDirection
from ..reconciler import run_pass
from ._common import (
    EXIT_CONFIG,
    EXIT_FAILED,
    console,
    fail,
    home_option,
    instance_options,
    load_runtime,
    print_report,
)


def _sync(direction: SyncDirection, home: str, instance: Optional[str], saves: Optional[Path], host: Optional[str]) -> None:
    rt = load_runtime(home, instance, saves, host)

    try:
        report = run_pass(
            direction,
            rt.store,
            rt.instance,
            rt.host,
            max_workers=rt.config.max_workers,
        )
    except (ConfigurationError, LockBusyError) as exc:
        fail(str(exc), EXIT_CONFIG)
    except TransportError as exc:
        fail(f"Remote store unavailable: {exc}", EXIT_FAILED)

    print_report(report)
    if not report.ok:
        sys.exit(EXIT_FAILED)


def register_sync_commands(main: click.Group) -> None:
    """Register push, pull, and status."""

    @main.command("push")
    @instance_options
    def push(home, instance, saves, host):
        """Upload local worlds to the remote store.

        Updates this host's proxy copy of every world, and the master
        copy wherever the local world is newer.

        Examples:

            worldsync push

            worldsync push --instance 1.20-survival --saves ~/mc/saves
        """
        _sync(SyncDirection.PUSH, home, instance, saves, host)

    @main.command("pull")
    @instance_options
    def pull(home, instance, saves, host):
        """Download master worlds that are newer than, or missing from, the local saves.

        Existing worlds are replaced atomically; the previous version
        is kept as <world>.old.tar.gz in the saves directory.
        """
        _sync(SyncDirection.PULL, home, instance, saves, host)

    @main.command("status")
    @home_option
    @click.option("--instance", default=None, help="Instance id. Defaults to $INST_ID.")
    @click.option("--saves", default=None, type=click.Path(file_okay=False, path_type=Path))
    @click.option("--host", default=None)
    def status(home, instance, saves, host):
        """Show configuration, instance context, and store availability."""
        rt = load_runtime(home, host=host, need_context=False, console_log=False)

        try:
            from ..config import resolve_context

            context = resolve_context(instance, saves)
            context_line = (
                f"Instance: [cyan]{context.instance_id}[/] {context.instance_name}\n"
                f"Saves: [cyan]{context.saves_path}[/]"
            )
        except ConfigurationError as exc:
            context_line = f"Instance: [yellow]{exc}[/]"

        available = rt.store.available()
        console.print()
        console.print(
            Panel(
                f"Home: [cyan]{rt.home}[/]\n"
                f"Host: [bold]{rt.host}[/]\n"
                f"{context_line}\n"
                f"Store: [cyan]{rt.store.name}[/] "
                + ("[green]available[/]" if available else "[red]unavailable[/]")
                + f"\nWorkers: {rt.config.max_workers}",
                title="worldsync",
                border_style="cyan",
            )
        )
        console.print()
