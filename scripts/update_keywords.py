#!/usr/bin/env python3
"""
CLI to run the weekly keyword ranking update once.

Usage:
    python scripts/update_keywords.py
    python scripts/update_keywords.py --log-level DEBUG
"""

import asyncio
import logging

import click
from rich.console import Console
from rich.table import Table

from search_insights.db.repository import Repository
from search_insights.models.keyword import KeywordUpdateSummary
from search_insights.services.keyword_tracker import KeywordTracker
from search_insights.utils.logging import setup_logging

console = Console()
logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    help="Logging level",
)
def cli(log_level: str) -> None:
    """Update weekly rankings for every active client report."""
    setup_logging(log_level)

    repo = Repository()
    repo.create_tables()

    console.print("\n[bold]Weekly Keyword Update[/bold]\n")
    summary = asyncio.run(run_update(repo))
    display_summary(summary)

    if summary.failed:
        raise SystemExit(1)


async def run_update(repo: Repository) -> KeywordUpdateSummary:
    async with KeywordTracker(repo) as tracker:
        return await tracker.update_all()


def display_summary(summary: KeywordUpdateSummary) -> None:
    """Display the run summary and any per-client errors."""
    table = Table(title=summary.message)
    table.add_column("Clients", justify="right")
    table.add_column("Updated", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Finished", style="cyan")
    table.add_row(
        str(summary.total_clients),
        str(summary.updated),
        str(summary.failed),
        summary.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
    )
    console.print(table)

    for error in summary.errors:
        console.print(f"[red]Report {error.report_id}: {error.error}[/red]")


if __name__ == "__main__":
    cli()
