"""Rich Formatting Utilities for CLI Output"""

from typing import Any

from rich import box
from rich.console import Console
from rich.table import Table

console = Console()


def print_success(message: str):
    """Print success message with green styling"""
    console.print(f"[green]✓ {message}[/green]")


def print_error(message: str):
    """Print error message with red styling"""
    console.print(f"[red]✗ {message}[/red]")


def print_info(message: str):
    """Print info message with blue styling"""
    console.print(f"[blue]ℹ {message}[/blue]")


def create_newsletters_table(newsletters: list[Any]) -> Table:
    """Create a formatted table for the newsletter list"""
    table = Table(title="Newsletters", box=box.ROUNDED)

    table.add_column("ID", justify="left", style="cyan", no_wrap=True)
    table.add_column("Title", justify="left", style="magenta")
    table.add_column("Summary", justify="left", style="white")
    table.add_column("Published", justify="center", style="yellow")

    for newsletter in newsletters:
        summary = newsletter.summary or "—"
        if len(summary) > 60:
            summary = summary[:57] + "..."

        table.add_row(
            str(newsletter.id)[:8],  # Short ID
            newsletter.title,
            summary,
            newsletter.created_at.strftime("%Y-%m-%d"),
        )

    return table
