"""
speclink CLI - local store backups.
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from speclink.cli.context import project_context
from speclink.cli.errors import print_user_error
from speclink.core.store.backup import create_backup, list_backups, restore_backup

console = Console()
app = typer.Typer(
    name="backup",
    help="Back up and restore the local store",
    no_args_is_help=True,
)


@app.command()
def create(ctx: typer.Context) -> None:
    """
    Snapshot the local store now.

    Older backups beyond backup.max_backups are pruned.
    """
    with project_context(ctx) as app_ctx:
        config = app_ctx.config
        path = create_backup(config.db_path, config.backup.directory, config.backup.max_backups)
    console.print(f"[green]✓[/green] Backup written to {path}")


@app.command(name="list")
def list_cmd(ctx: typer.Context) -> None:
    """
    List backups, newest first.
    """
    with project_context(ctx) as app_ctx:
        backups = list_backups(app_ctx.config.backup.directory)

    if not backups:
        console.print("[dim]No backups[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("File", style="cyan")
    table.add_column("Created (UTC)")
    table.add_column("Size", justify="right")
    for info in backups:
        table.add_row(
            info.path.name,
            info.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"{info.size_bytes:,} B",
        )
    console.print(table)


@app.command()
def restore(
    ctx: typer.Context,
    backup: str | None = typer.Argument(
        None, help="Backup file name or path (default: the newest backup)"
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
) -> None:
    """
    Replace the local store with a backup.

    The current store is saved as an emergency backup first.

    Examples:
        speclink backup restore
        speclink backup restore speclink-20251119T104758000000Z.db
    """
    with project_context(ctx) as app_ctx:
        config = app_ctx.config
        if backup is None:
            backups = list_backups(config.backup.directory)
            if not backups:
                raise print_user_error("No backups to restore", solution="speclink backup create")
            source = backups[0].path
        else:
            source = Path(backup)
            if not source.is_absolute() and not source.exists():
                source = config.backup.directory / backup

        if not yes and not typer.confirm(f"Replace the local store with {source.name}?"):
            console.print("[blue]Cancelled[/blue]")
            return

        # Release our own handle before the file is overwritten
        app_ctx.conn.close()
        emergency = restore_backup(source, config.db_path, config.backup.directory)

    console.print(f"[green]✓[/green] Restored from {source.name}")
    if emergency is not None:
        console.print(f"[dim]Previous store saved as {emergency.name}[/dim]")
