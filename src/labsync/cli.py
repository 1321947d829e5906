"""Command-line interface for inspecting and driving synchronization."""

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from . import __version__
from .app import RemoteNotConfiguredError, build_app
from .config import ConfigModel, load_config
from .log import setup_logging
from .models import EntityKind
from .storage import LocalStore, LocalStoreError
from .sync_service import SyncResult, SyncStatus

console = Console()

STATUS_STYLES = {
    SyncStatus.MERGED: "green",
    SyncStatus.MIGRATED: "green",
    SyncStatus.FAILED: "red",
    SyncStatus.SKIPPED_OFFLINE: "yellow",
    SyncStatus.SKIPPED_IN_PROGRESS: "yellow",
}


def _get_config(ctx: click.Context) -> ConfigModel:
    return ctx.obj["config"]


def _open_local_store(config: ConfigModel) -> LocalStore:
    try:
        return LocalStore.from_config(config)
    except LocalStoreError as e:
        raise click.ClickException(str(e))


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path),
              help="Path to config.yaml (defaults to ~/.labsync/config.yaml)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="labsync")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path], verbose: bool):
    """Synchronize lab inventory data between this device and the remote store."""
    config = load_config(config_path)
    setup_logging("DEBUG" if verbose else config.log_level, config.log_file)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.pass_context
def status(ctx: click.Context):
    """Show connectivity, sync state and local entity counts."""
    config = _get_config(ctx)
    local = _open_local_store(config)

    table = Table(title="Local store", show_header=True, header_style="bold magenta")
    table.add_column("Collection", style="cyan")
    table.add_column("Entities", justify="right")
    data = local.get_data()
    for kind in EntityKind:
        table.add_row(kind.value, str(len(data.collection(kind))))
    console.print(table)

    if not config.remote_url:
        console.print("[yellow]Remote store: not configured[/yellow]")
        return

    async def _probe():
        app = await build_app(config, local=local)
        try:
            return app.service.get_connection_status()
        finally:
            await app.close()

    connection = asyncio.run(_probe())
    state = "[green]online[/green]" if connection.online else "[red]offline[/red]"
    console.print(f"Remote store: {config.remote_url} ({state})")
    console.print(f"Sync in progress: {'yes' if connection.sync_in_progress else 'no'}")


def _print_sync_result(result: SyncResult):
    style = STATUS_STYLES.get(result.status, "white")
    console.print(f"Sync result: [{style}]{result.status.value}[/{style}]")

    if result.status == SyncStatus.MIGRATED:
        console.print(f"  Pushed {result.items_pushed} entities, {result.items_failed} failed")
    elif result.status == SyncStatus.MERGED:
        console.print(
            f"  Adopted {result.items_adopted} remote entities, kept {result.items_kept_local} "
            f"local-only, {result.items_overridden} local edits replaced"
        )
    for error in result.errors:
        console.print(f"  [red]{error}[/red]")


@cli.command()
@click.pass_context
def sync(ctx: click.Context):
    """Run one synchronization pass against the remote store."""
    config = _get_config(ctx)

    async def _run():
        app = await build_app(config, local=_open_local_store(config))
        try:
            return await app.service.force_sync()
        finally:
            await app.close()

    try:
        result = asyncio.run(_run())
    except RemoteNotConfiguredError as e:
        raise click.ClickException(str(e))

    _print_sync_result(result)
    if result.status == SyncStatus.FAILED:
        ctx.exit(1)


@cli.command()
@click.pass_context
def stats(ctx: click.Context):
    """Print aggregate statistics from the local store."""
    local = _open_local_store(_get_config(ctx))
    system_stats = local.get_system_stats()

    table = Table(title="System statistics", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    for name, value in vars(system_stats).items():
        table.add_row(name.replace("_", " ").capitalize(), str(value))
    console.print(table)


@cli.command("export-sessions")
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path),
              help="Write the CSV to this file instead of stdout")
@click.pass_context
def export_sessions(ctx: click.Context, output: Optional[Path]):
    """Export login sessions as CSV."""
    local = _open_local_store(_get_config(ctx))
    csv_text = local.export_login_sessions_csv()
    if output is None:
        click.echo(csv_text, nl=False)
        return
    output.write_text(csv_text, encoding="utf-8")
    console.print(f"[green]Exported {len(local.get_login_sessions())} sessions to {output}[/green]")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
