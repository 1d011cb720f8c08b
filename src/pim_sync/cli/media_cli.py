"""
Command-line interface for media imports.

This module provides a CLI for copying product media from a Google Drive
folder tree into Storj and recording it in the media tables.
"""

import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .report import display_report, report_failed
from ..config import DUPLICATE_POLICIES, get_media_import_config
from ..imports.manager import ImportManager, admin_only, allow_all
from ..sources.drive_client import DriveClient
from ..sources.tree_walker import TreeWalker
from ..storage.record_store import create_record_store
from ..utils.logger import setup_logger

# Create Typer app
media_app = typer.Typer(
    name="media",
    help="Import product media from Google Drive into object storage.",
    add_completion=False
)

# Rich console for pretty output
console = Console()


@media_app.command("import")
def import_media(
    folder_id: Optional[str] = typer.Option(
        None,
        "--folder-id", "-f",
        help="Drive folder holding one sub-folder per SKU label (default: from .env GOOGLE_DRIVE_SKU_FOLDER_ID)"
    ),
    base_path: Optional[str] = typer.Option(
        None,
        "--base-path", "-b",
        help="Key prefix inside the bucket (default: from .env STORJ_BASE_PATH)"
    ),
    duplicate_policy: Optional[str] = typer.Option(
        None,
        "--duplicates",
        help=f"How to treat files imported before: {' or '.join(DUPLICATE_POLICIES)}"
    ),
    as_user: Optional[str] = typer.Option(
        None,
        "--as-user",
        help="Require this auth user ID to have the admin role"
    ),
    allow_failures: bool = typer.Option(
        False,
        "--allow-failures",
        help="Exit with status 0 even if some files failed"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        help="Enable verbose logging"
    ),
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug logging"
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file", "-l",
        help="Log file path, {command} expands to the command name (default: from .env LOG_FILE)"
    )
):
    """
    Import media files from Google Drive.

    Files under a SKU folder with no matching product are skipped. A file
    that fails is reported and the import continues with the next one.
    """

    console.print(Panel.fit(
        "[bold blue]PIM Media Import[/bold blue]\n"
        "[dim]Copying media from Google Drive to Storj...[/dim]",
        border_style="blue"
    ))

    try:
        config_overrides = {
            "verbose": verbose,
            "debug": debug,
        }
        if folder_id:
            config_overrides["drive_folder_id"] = folder_id
        if base_path is not None:
            config_overrides["base_path"] = base_path
        if duplicate_policy:
            config_overrides["duplicate_policy"] = duplicate_policy
        if log_file:
            config_overrides["log_file"] = str(log_file)

        config = get_media_import_config(**config_overrides)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    logger = setup_logger(config, "media")

    console.print(f"[dim]Drive folder:[/dim] {config.drive_folder_id}")
    console.print(f"[dim]Bucket:[/dim] {config.storage_bucket}")
    console.print(f"[dim]Base path:[/dim] {config.base_path or '(none)'}")
    console.print(f"[dim]Duplicates:[/dim] {config.duplicate_policy}")
    console.print()

    manager = None
    try:
        record_store = create_record_store(config, logger=logger)
        authorize = admin_only(record_store, as_user) if as_user else allow_all
        manager = ImportManager(record_store, authorize=authorize, logger=logger)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            TimeElapsedColumn(),
            console=console,
            transient=True
        ) as progress:

            task = progress.add_task("Walking Drive folder...", total=None)

            def update_progress(report, item: str):
                progress.update(
                    task,
                    description=f"Files: {report.processed} processed, {report.failed} failed - {item}"
                )

            report = manager.run_media_import(config, progress_callback=update_progress)

    except KeyboardInterrupt:
        if manager is not None:
            manager.cancel()
        console.print("\n[yellow]Import cancelled by user[/yellow]")
        raise typer.Exit(1)

    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        if debug:
            console.print_exception()
        raise typer.Exit(1)

    display_report(console, report, "Media Import")

    if report_failed(report, allow_failures):
        console.print("\n[red]Import finished with errors[/red]")
        raise typer.Exit(1)

    console.print("\n[green]✓[/green] Media import completed!")


@media_app.command("list-folder")
def list_folder(
    folder_id: Optional[str] = typer.Argument(
        None,
        help="Drive folder to list (default: from .env GOOGLE_DRIVE_SKU_FOLDER_ID)"
    ),
    credentials_file: Optional[Path] = typer.Option(
        None,
        "--credentials", "-c",
        help="Service account JSON key (default: from .env GOOGLE_APPLICATION_CREDENTIALS)"
    ),
    limit: int = typer.Option(
        200,
        "--limit", "-n",
        help="Maximum number of files to show"
    )
):
    """List the files an import would process, without importing them."""

    folder_id = folder_id or os.getenv("GOOGLE_DRIVE_SKU_FOLDER_ID")
    if not folder_id:
        console.print("[red]Error:[/red] folderId is required (or set GOOGLE_DRIVE_SKU_FOLDER_ID)")
        raise typer.Exit(1)

    console.print(Panel.fit(
        f"[bold blue]Drive Folder {folder_id}[/bold blue]",
        border_style="blue"
    ))

    drive_client = DriveClient(
        credentials_file=str(credentials_file) if credentials_file else os.getenv("GOOGLE_APPLICATION_CREDENTIALS")
    )

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("SKU Label", style="cyan")
    table.add_column("Path", style="green")
    table.add_column("Type", style="yellow")
    table.add_column("Size", justify="right")

    shown = 0
    try:
        for remote_file in TreeWalker(drive_client).walk(folder_id):
            if shown >= limit:
                break
            table.add_row(
                remote_file.grouping_key,
                remote_file.path,
                remote_file.mime_type,
                str(remote_file.size_bytes) if remote_file.size_bytes is not None else "-"
            )
            shown += 1
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(table)
    console.print(f"\n[dim]Files shown:[/dim] {shown}")


if __name__ == "__main__":
    media_app()
