"""Shared utilities for all CLI command modules.

Provides the Rich console, the common instance options, runtime
bootstrapping, and report rendering.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, NoReturn, Optional

import click
from rich.console import Console
from rich.table import Table

from .. import SYNC_HOME
from ..config import load_config, resolve_context, sync_home
from ..errors import ConfigurationError
from ..log import setup_logging
from ..models import InstanceContext, SyncConfig, SyncReport, WorldOutcome
from ..remote import RemoteStore, create_store
from ..system import get_host_name

console = Console()

EXIT_FAILED = 1
EXIT_CONFIG = 2

OUTCOME_STYLES = {
    WorldOutcome.SKIPPED_REMOTE_NEWER: "[yellow]skipped (remote newer)[/]",
    WorldOutcome.SKIPPED_LOCAL_NEWER: "[dim]skipped (local up to date)[/]",
    WorldOutcome.UPLOADED: "[green]uploaded[/]",
    WorldOutcome.UPDATED: "[green]updated[/]",
    WorldOutcome.DOWNLOADED: "[cyan]downloaded[/]",
    WorldOutcome.CREATED: "[cyan]created[/]",
    WorldOutcome.FAILED: "[bold red]failed[/]",
}


@dataclass
class Runtime:
    """Everything a command needs to talk to the saves root and the store."""

    home: Path
    config: SyncConfig
    host: str
    store: RemoteStore
    context: Optional[InstanceContext] = None

    @property
    def instance(self) -> InstanceContext:
        """The resolved instance context.

        Raises:
            ConfigurationError: If the runtime was loaded without one.
        """
        if self.context is None:
            raise ConfigurationError("No instance context was resolved for this command")
        return self.context


def home_option(f: Callable) -> Callable:
    return click.option(
        "--home", default=SYNC_HOME, type=click.Path(), show_default=True,
        help="worldsync home (config.yaml, log file).",
    )(f)


def instance_options(f: Callable) -> Callable:
    """Add --home, --instance, --saves and --host to a command."""
    f = click.option("--host", default=None, help="Host id for proxy records.")(f)
    f = click.option(
        "--saves", default=None, type=click.Path(file_okay=False, path_type=Path),
        help="Saves directory. Defaults to $INST_MC_DIR/saves.",
    )(f)
    f = click.option("--instance", default=None, help="Instance id. Defaults to $INST_ID.")(f)
    return home_option(f)


def fail(message: str, code: int = EXIT_CONFIG) -> NoReturn:
    console.print(f"[bold red]{message}[/]")
    sys.exit(code)


def load_runtime(
    home: str,
    instance: Optional[str] = None,
    saves: Optional[Path] = None,
    host: Optional[str] = None,
    need_context: bool = True,
    console_log: bool = True,
) -> Runtime:
    """Load config, set up logging, and resolve the instance context.

    Configuration errors end the command with exit code 2.
    """
    try:
        home_path = sync_home(Path(home))
        config = load_config(home_path)
        setup_logging(
            home_path,
            level=config.log_level,
            clear=config.clear_log_on_start,
            console=console_log,
        )
        context = resolve_context(instance, saves) if need_context else None
        store = create_store(config.store, home_path)
    except ConfigurationError as exc:
        fail(str(exc))
    return Runtime(
        home=home_path,
        config=config,
        host=get_host_name(host or config.host),
        store=store,
        context=context,
    )


def print_report(report: SyncReport) -> None:
    """Render a pass report as a table plus a one-line summary."""
    table = Table(title=f"{report.direction.value} · {report.instance} @ {report.host}")
    table.add_column("World", style="bold")
    table.add_column("Result")
    table.add_column("Reason", style="dim")
    for result in report.results:
        table.add_row(result.name, OUTCOME_STYLES[result.outcome], result.reason or "")

    console.print()
    if report.results:
        console.print(table)
    else:
        console.print("  [dim]No worlds to sync.[/]")

    summary = ", ".join(f"{count} {name}" for name, count in sorted(report.counts().items()))
    if report.ok:
        console.print(f"  [green]Done[/] {summary}\n")
    else:
        console.print(f"  [bold red]Finished with failures[/] {summary}\n")
