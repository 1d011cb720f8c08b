"""
Rich rendering of import run reports shared by the CLI commands.
"""

from rich.console import Console
from rich.table import Table

from ..imports.pipeline import ImportRunReport


def display_report(console: Console, report: ImportRunReport, title: str, max_errors: int = 10) -> None:
    """Display report counters and the first errors in formatted tables."""

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Items Seen", str(report.total))
    table.add_row("Succeeded", str(report.succeeded))
    table.add_row("Skipped", str(report.skipped))
    table.add_row("Failed", f"[red]{report.failed}[/red]" if report.failed else "0")
    table.add_row("Records Created", str(report.grouping_records_created))
    if report.cancelled:
        table.add_row("Cancelled", "[yellow]yes[/yellow]")
    if report.source_error:
        table.add_row("Source Error", f"[red]{report.source_error}[/red]")

    console.print()
    console.print(table)

    if not report.errors:
        return

    errors = Table(title="Errors", show_header=True, header_style="bold red")
    errors.add_column("Item", style="cyan")
    errors.add_column("Message", style="red")

    for error in report.errors[:max_errors]:
        errors.add_row(error["item"], error["message"])

    console.print()
    console.print(errors)

    hidden = max(0, len(report.errors) - max_errors) + report.errors_truncated
    if hidden > 0:
        console.print(f"[dim]... and {hidden} more errors (see log file)[/dim]")


def report_failed(report: ImportRunReport, allow_failures: bool = False) -> bool:
    """Whether the run should end the process with a non-zero exit code."""
    if report.source_error:
        return True
    return report.failed > 0 and not allow_failures
