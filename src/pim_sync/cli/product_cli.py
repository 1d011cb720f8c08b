"""
Command-line interface for product imports.

This module provides a CLI for importing products from Shopify using Typer,
with progress display and a summary of the run.
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .report import display_report, report_failed
from ..config import get_product_import_config
from ..imports.manager import ImportManager, admin_only, allow_all
from ..storage.record_store import create_record_store
from ..utils.logger import setup_logger

# Create Typer app
product_app = typer.Typer(
    name="products",
    help="Import products and variants from Shopify into the catalog.",
    add_completion=False
)

# Rich console for pretty output
console = Console()


@product_app.command("import")
def import_products(
    page_size: Optional[int] = typer.Option(
        None,
        "--page-size", "-p",
        help="Products per page (default: from .env SHOPIFY_PAGE_SIZE)"
    ),
    statuses: Optional[List[str]] = typer.Option(
        None,
        "--status", "-s",
        help="Only import products with this Shopify status (can be used multiple times)"
    ),
    as_user: Optional[str] = typer.Option(
        None,
        "--as-user",
        help="Require this auth user ID to have the admin role"
    ),
    allow_failures: bool = typer.Option(
        False,
        "--allow-failures",
        help="Exit with status 0 even if some products failed"
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
    Import products from Shopify.

    Products are matched on their Shopify ID, so running the import again
    updates existing rows instead of duplicating them.
    """

    console.print(Panel.fit(
        "[bold blue]PIM Product Import[/bold blue]\n"
        "[dim]Importing products from Shopify...[/dim]",
        border_style="blue"
    ))

    try:
        config_overrides = {
            "verbose": verbose,
            "debug": debug,
        }
        if page_size:
            config_overrides["page_size"] = page_size
        if statuses:
            config_overrides["import_statuses"] = [status.upper() for status in statuses]
        if log_file:
            config_overrides["log_file"] = str(log_file)

        config = get_product_import_config(**config_overrides)
    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    logger = setup_logger(config, "products")

    console.print(f"[dim]Store:[/dim] {config.shopify_store_domain}")
    console.print(f"[dim]API version:[/dim] {config.shopify_api_version}")
    console.print(f"[dim]Page size:[/dim] {config.page_size}")
    console.print(f"[dim]Statuses:[/dim] {', '.join(config.import_statuses) or 'all'}")
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

            task = progress.add_task("Fetching products...", total=None)

            def update_progress(report, item: str):
                progress.update(
                    task,
                    description=f"Products: {report.processed} processed, {report.failed} failed - {item}"
                )

            report = manager.run_product_import(config, progress_callback=update_progress)

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

    display_report(console, report, "Product Import")

    if report_failed(report, allow_failures):
        console.print("\n[red]Import finished with errors[/red]")
        raise typer.Exit(1)

    console.print("\n[green]✓[/green] Product import completed!")


@product_app.command("status")
def status():
    """Show the last product import and the catalog size."""

    console.print(Panel.fit(
        "[bold blue]Product Import Status[/bold blue]",
        border_style="blue"
    ))

    try:
        config = get_product_import_config()
        manager = ImportManager(create_record_store(config))
        import_status = manager.get_import_status()
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}")
        raise typer.Exit(1)

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Products", str(import_status["product_count"]))

    last_sync = import_status["last_sync"]
    if last_sync:
        for key in ("status", "started_at", "completed_at", "items_processed",
                    "items_succeeded", "items_skipped", "items_failed"):
            table.add_row(key.replace("_", " ").title(), str(last_sync.get(key, "")))
    else:
        table.add_row("Last Sync", "[dim]never[/dim]")

    console.print(table)


@product_app.command("validate-config")
def validate_config():
    """Validate product import configuration and Shopify API access."""

    console.print(Panel.fit(
        "[bold blue]Configuration Validation[/bold blue]",
        border_style="blue"
    ))

    try:
        config = get_product_import_config()

        console.print("[green]✓[/green] Configuration loaded successfully")
        console.print(f"[dim]Store:[/dim] {config.shopify_store_domain}")
        console.print(f"[dim]Max retries:[/dim] {config.max_retries}")
        console.print(f"[dim]Estimated query cost:[/dim] {config.estimated_query_cost:g}")

        from ..utils.api_client import create_shopify_client

        console.print("\n[dim]Testing Shopify API access...[/dim]")

        with create_shopify_client(config) as api_client:
            data = api_client.query("query ShopName { shop { name } }", estimated_cost=1)

        console.print("[green]✓[/green] Shopify API access successful")
        console.print(f"[dim]Shop:[/dim] {(data.get('shop') or {}).get('name', '?')}")

        console.print("\n[green]All checks passed![/green] Ready to import.")

    except Exception as e:
        console.print(f"\n[red]Configuration error:[/red] {e}")

        if "Shopify credentials" in str(e):
            console.print("\n[yellow]Setup instructions:[/yellow]")
            console.print("1. Create a custom app in your Shopify admin")
            console.print("2. Grant it the read_products Admin API scope")
            console.print("3. Add SHOPIFY_STORE_DOMAIN and SHOPIFY_ACCESS_TOKEN to your .env file")

        raise typer.Exit(1)


if __name__ == "__main__":
    product_app()
