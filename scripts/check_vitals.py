#!/usr/bin/env python3
"""
CLI to check PageSpeed scores and Core Web Vitals for a list of URLs.

Usage:
    python scripts/check_vitals.py --url https://example.com --url https://example.com/pricing
    python scripts/check_vitals.py --input data/urls.txt --strategy desktop
"""

import asyncio
import logging
from pathlib import Path

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from search_insights.config import get_settings
from search_insights.db.repository import Repository
from search_insights.models.performance import CoreWebVitals, PageSpeedOutcome, Strategy
from search_insights.services.crux_service import CrUXService
from search_insights.services.pagespeed_service import PageSpeedService
from search_insights.utils.logging import setup_logging

console = Console()
logger = logging.getLogger(__name__)


def load_urls_from_text(file_path: Path) -> list[str]:
    """Load URLs from a plain text file (one per line)."""
    with open(file_path, encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]


@click.command()
@click.option("--url", "-u", "urls", multiple=True, help="URL to check (repeatable)")
@click.option(
    "--input", "-i",
    "input_file",
    type=click.Path(exists=True, path_type=Path),
    help="Text file with one URL per line",
)
@click.option(
    "--strategy", "-s",
    type=click.Choice([s.value for s in Strategy]),
    default=Strategy.MOBILE.value,
    help="PageSpeed strategy",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="WARNING",
    help="Logging level",
)
def cli(urls: tuple[str, ...], input_file: Path | None, strategy: str, log_level: str) -> None:
    """Run PageSpeed Insights and CrUX for each URL."""
    setup_logging(log_level)

    url_list = list(urls)
    if input_file:
        url_list.extend(load_urls_from_text(input_file))
    url_list = list(dict.fromkeys(url_list))

    if not url_list:
        console.print("[red]Error: Must provide --url or --input[/red]")
        raise SystemExit(1)

    settings = get_settings()
    if not settings.psi_configured:
        console.print("[yellow]Warning: PageSpeed API key not configured, only cached data is available[/yellow]")

    asyncio.run(run_checks(url_list, Strategy(strategy)))


async def run_checks(urls: list[str], strategy: Strategy) -> None:
    repo = Repository()
    repo.create_tables()

    async with PageSpeedService(repo) as pagespeed, CrUXService(repo) as crux:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task(f"Running PageSpeed for {len(urls)} URLs...", total=None)
            outcomes = await pagespeed.batch_fetch(urls, strategy)
            field_data = {}
            for url in urls:
                field_data[url] = await crux.get_core_web_vitals(url)

    display_pagespeed(outcomes)
    display_field_data(field_data)


def display_pagespeed(outcomes: list[PageSpeedOutcome]) -> None:
    table = Table(title="PageSpeed Insights")
    table.add_column("URL", style="cyan")
    table.add_column("Perf", justify="right", style="green")
    table.add_column("A11y", justify="right")
    table.add_column("BP", justify="right")
    table.add_column("SEO", justify="right")
    table.add_column("LCP", justify="right")
    table.add_column("Source", style="magenta")

    for outcome in outcomes:
        if outcome.result is None:
            table.add_row(outcome.url[:50], "-", "-", "-", "-", "-", f"[red]{outcome.error}[/red]")
            continue
        scores = outcome.result.scores
        source = "cache" if outcome.from_cache else "api"
        if outcome.warning:
            source = "stale cache"
        table.add_row(
            outcome.url[:50],
            str(scores.performance),
            str(scores.accessibility),
            str(scores.best_practices),
            str(scores.seo),
            f"{outcome.result.metrics.lcp / 1000:.1f}s",
            source,
        )

    console.print(table)


def display_field_data(field_data: dict[str, dict[str, CoreWebVitals | None]]) -> None:
    table = Table(title="Core Web Vitals (p75, real users)")
    table.add_column("URL", style="cyan")
    table.add_column("Device")
    table.add_column("LCP", justify="right")
    table.add_column("INP", justify="right")
    table.add_column("CLS", justify="right")
    table.add_column("Grade", justify="center", style="bold")

    for url, sides in field_data.items():
        for device, vitals in sides.items():
            if vitals is None:
                table.add_row(url[:50], device, "-", "-", "-", "[dim]no data[/dim]")
                continue
            table.add_row(
                url[:50],
                device,
                f"{vitals.metrics.lcp:.0f}ms",
                f"{vitals.metrics.inp:.0f}ms",
                f"{vitals.metrics.cls:.2f}",
                vitals.grade,
            )

    console.print(table)


if __name__ == "__main__":
    cli()
