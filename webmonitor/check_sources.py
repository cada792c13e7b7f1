#!/usr/bin/env python3
"""Source statistics report."""

import asyncio
import sys
from pathlib import Path

import click
import orjson
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .config import get_settings
from .schemas import Source
from .storage import MonitorStore, SQLiteStore

console = Console()


def health_status(source: Source) -> str:
    """Coarse status from a source's crawl history."""
    stats = source.statistics
    if not source.is_active:
        return "inactive"
    if stats.total_crawls == 0:
        return "unknown"
    if stats.last_error is None and stats.success_rate >= 80:
        return "healthy"
    if stats.success_rate >= 50:
        return "degraded"
    return "unhealthy"


async def collect_report(store: MonitorStore) -> dict:
    """Per-source statistics and stored record counts."""
    sources = await store.list_sources()
    report = {"summary": {}, "sources": []}

    for source in sources:
        report["sources"].append({
            "id": source.id,
            "name": source.name,
            "url": source.url,
            "status": health_status(source),
            "records": await store.count_records(source.id),
            "last_crawled": source.last_crawled,
            "next_crawl": source.next_crawl,
            "crawl_in_progress": source.crawl_in_progress,
            **source.statistics.model_dump(),
        })

    statuses = [entry["status"] for entry in report["sources"]]
    report["summary"] = {
        status: statuses.count(status)
        for status in ("healthy", "degraded", "unhealthy", "unknown", "inactive")
    }
    report["summary"]["total"] = len(statuses)
    return report


def display_report(report: dict) -> None:
    """Render the report as a summary panel and a table."""
    summary = report["summary"]
    console.print(Panel(
        f"[green]Healthy: {summary['healthy']}[/green] | "
        f"[yellow]Degraded: {summary['degraded']}[/yellow] | "
        f"[red]Unhealthy: {summary['unhealthy']}[/red] | "
        f"Total: {summary['total']}",
        title="[bold]Source Summary[/bold]",
        border_style="cyan"
    ))

    if not report["sources"]:
        console.print("[yellow]No sources loaded[/yellow]")
        return

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold cyan")
    table.add_column("Source", overflow="fold")
    table.add_column("Status", justify="center")
    table.add_column("Crawls", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Articles", justify="right")
    table.add_column("Next crawl")
    table.add_column("Last Error", overflow="fold")

    colors = {"healthy": "green", "degraded": "yellow", "unhealthy": "red"}
    for entry in report["sources"]:
        color = colors.get(entry["status"], "dim")
        last_error = entry["last_error"] or "-"
        if len(last_error) > 50:
            last_error = last_error[:47] + "..."
        next_crawl = entry["next_crawl"].strftime("%Y-%m-%d %H:%M") if entry["next_crawl"] else "-"

        table.add_row(
            entry["name"],
            f"[{color}]{entry['status'].upper()}[/{color}]",
            str(entry["total_crawls"]),
            f"{entry['success_rate']:.0f}%",
            str(entry["records"]),
            next_crawl,
            last_error,
        )

    console.print(table)


async def _load_report(database: Path) -> dict:
    async with SQLiteStore(database) as store:
        return await collect_report(store)


@click.command()
@click.option("--database", type=click.Path(dir_okay=False, path_type=Path), help="SQLite database file")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def main(database: Path | None, output_json: bool):
    """Show crawl statistics for every stored source."""
    try:
        report = asyncio.run(_load_report(database or get_settings().database_path))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)

    if output_json:
        click.echo(orjson.dumps(report, option=orjson.OPT_INDENT_2).decode())
    else:
        display_report(report)


if __name__ == "__main__":
    main()
