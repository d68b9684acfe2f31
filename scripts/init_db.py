#!/usr/bin/env python3
"""
Create the database tables and optionally seed a client report.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --client "Acme" --property sc-domain:acme.com --keywords-file data/acme.txt
    python scripts/init_db.py --client "Acme" --domain acme.com --keywords "running shoes,trail shoes"
"""

import logging
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from search_insights.db.repository import Repository
from search_insights.utils.logging import setup_logging

console = Console()
logger = logging.getLogger(__name__)


def load_keywords_from_text(file_path: Path) -> list[str]:
    """Load keywords from a plain text file (one per line)."""
    with open(file_path, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]


@click.command()
@click.option("--client", "client_name", type=str, help="Client name for a new report")
@click.option("--domain", type=str, help="Client domain, e.g. example.com")
@click.option("--property", "property_id", type=str, help="Search Console property (https://site/ or sc-domain:site)")
@click.option("--ga4-property", type=str, help="GA4 property ID")
@click.option("--google-account", "google_account_id", type=int, help="ID of a connected Google account")
@click.option("--keywords", "-k", type=str, help="Comma-separated keywords to track")
@click.option(
    "--keywords-file", "-f",
    type=click.Path(exists=True, path_type=Path),
    help="Text file with one keyword per line",
)
@click.option("--priority", type=int, default=0, help="Priority for the seeded keywords")
@click.option(
    "--reset",
    is_flag=True,
    default=False,
    help="Drop all tables before creating them",
)
def cli(
    client_name: str | None,
    domain: str | None,
    property_id: str | None,
    ga4_property: str | None,
    google_account_id: int | None,
    keywords: str | None,
    keywords_file: Path | None,
    priority: int,
    reset: bool,
) -> None:
    """Create tables and seed a client report with tracked keywords."""
    setup_logging("WARNING")

    repo = Repository()
    if reset:
        click.confirm("Drop all tables and their data?", abort=True)
        repo.drop_tables()
        console.print("[yellow]Dropped existing tables[/yellow]")

    repo.create_tables()
    console.print(f"[green]✓ Tables ready at {repo.database_url.split('@')[-1]}[/green]")

    if not client_name:
        if keywords or keywords_file:
            console.print("[red]Error: --client is required to seed keywords[/red]")
            raise SystemExit(1)
        return

    keyword_list: list[str] = []
    if keywords:
        keyword_list.extend(k.strip() for k in keywords.split(","))
    if keywords_file:
        keyword_list.extend(load_keywords_from_text(keywords_file))

    report = repo.create_client_report(
        client_name=client_name,
        domain=domain,
        search_console_property_id=property_id,
        ga4_property_id=ga4_property,
        google_account_id=google_account_id,
    )
    added = repo.add_keywords(report.id, keyword_list, priority=priority)

    table = Table(title="Seeded Client Report")
    table.add_column("Report ID", justify="right", style="cyan")
    table.add_column("Client")
    table.add_column("Property")
    table.add_column("Keywords", justify="right", style="green")
    table.add_row(str(report.id), client_name, property_id or domain or "-", str(added))
    console.print(table)


if __name__ == "__main__":
    cli()
