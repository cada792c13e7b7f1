"""Command-line entry point for the monitoring pipeline."""

import asyncio
import logging
import sys
from collections.abc import Callable
from pathlib import Path

import click
import orjson

from .config import Settings, SourceCatalog, get_settings, validate_config
from .crawler import CrawlResult, SourceCrawler
from .errors import ConfigurationError, DuplicateRecordError, SourceNotFoundError
from .logging import get_logger, setup_logging
from .models.sentiment_client import create_sentiment_classifier
from .processing.sentiment import analyze_text
from .scheduler import BatchResult, BatchScheduler
from .storage import MonitorStore, SQLiteStore

logger = get_logger(__name__)


def build_scheduler(settings: Settings, store: MonitorStore) -> BatchScheduler:
    """Wire crawler and scheduler over a store."""
    crawler = SourceCrawler(
        store,
        classifier=create_sentiment_classifier(settings),
        settings=settings,
    )
    return BatchScheduler(store, crawler)


async def run_batch(
    settings: Settings,
    forever: bool = False,
    on_batch: Callable[[BatchResult], None] | None = None,
) -> BatchResult | None:
    async with SQLiteStore(settings.database_path) as store:
        scheduler = build_scheduler(settings, store)
        if forever:
            return await scheduler.run_forever(settings.scheduler_interval_seconds, on_batch=on_batch)
        result = await scheduler.run_due_sources()
        if on_batch is not None:
            on_batch(result)
        return result


async def set_source_active(settings: Settings, source_id: str, is_active: bool) -> None:
    async with SQLiteStore(settings.database_path) as store:
        await store.set_source_active(source_id, is_active)


async def run_single_source(settings: Settings, source_id: str) -> CrawlResult:
    async with SQLiteStore(settings.database_path) as store:
        scheduler = build_scheduler(settings, store)
        return await scheduler.crawler.crawl_source_id(source_id)


async def load_sources(settings: Settings, catalog_path: Path) -> tuple[int, int]:
    """Insert catalog sources into the store, skipping URLs already present.

    Returns:
        (inserted, skipped) counts
    """
    sources = SourceCatalog(catalog_path).get_sources()
    inserted = skipped = 0

    async with SQLiteStore(settings.database_path) as store:
        for source in sources:
            try:
                await store.insert_source(source)
                inserted += 1
            except DuplicateRecordError:
                logger.info("Source already loaded", url=source.url)
                skipped += 1

    return inserted, skipped


def _echo_batch(result: BatchResult) -> None:
    click.echo(
        f"✓ {result.succeeded} succeeded, {result.failed} failed, {result.skipped} skipped, "
        f"{result.total_articles} new articles in {result.duration:.1f}s"
    )


@click.group()
@click.option("--log-level", default=None, help="Log level")
@click.option("--verbose", is_flag=True, help="Show detailed progress information")
@click.option(
    "--database",
    type=click.Path(dir_okay=False, path_type=Path),
    help="SQLite database file (overrides DATABASE_PATH)",
)
@click.pass_context
def cli(ctx, log_level, verbose, database):
    """Web monitor - crawl sources, keep matching articles, classify sentiment."""
    settings = get_settings()
    if database:
        settings = settings.model_copy(update={"database_path": database})

    setup_logging(log_level=("DEBUG" if verbose else log_level or settings.log_level), json_logging=False)
    if not verbose:
        logging.getLogger("aiohttp").setLevel(logging.ERROR)
        logging.getLogger("httpx").setLevel(logging.ERROR)
        logging.getLogger("httpcore").setLevel(logging.ERROR)

    ctx.obj = settings


@cli.command()
@click.option("--forever", is_flag=True, help="Keep running batches until interrupted")
@click.pass_obj
def crawl(settings: Settings, forever: bool):
    """Crawl every source that is due."""
    try:
        asyncio.run(run_batch(settings, forever=forever, on_batch=_echo_batch))
    except KeyboardInterrupt:
        click.echo("Interrupted by user", err=True)
        sys.exit(1)


@cli.command("crawl-source")
@click.argument("source_id")
@click.pass_obj
def crawl_source(settings: Settings, source_id: str):
    """Crawl one source now, whether due or not."""
    result = asyncio.run(run_single_source(settings, source_id))

    if result.skipped:
        click.echo(f"Source {source_id} skipped (inactive or already being crawled)")
        return

    if not result.success:
        for error in result.errors:
            click.echo(f"❌ {error}", err=True)
        sys.exit(1)

    click.echo(f"✓ {result.articles_found} new articles from {source_id}")
    for error in result.errors:
        click.echo(f"  ⚠ {error}", err=True)


@cli.command("set-active")
@click.argument("source_id")
@click.option("--enable/--disable", default=True, help="Whether the source should be crawled")
@click.pass_obj
def set_active(settings: Settings, source_id: str, enable: bool):
    """Enable or disable crawling of a stored source."""
    try:
        asyncio.run(set_source_active(settings, source_id, enable))
    except SourceNotFoundError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Source {source_id} {'enabled' if enable else 'disabled'}")


@cli.command("load-sources")
@click.argument("catalog", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def load_sources_command(settings: Settings, catalog: Path):
    """Load sources and projects from a YAML catalog."""
    try:
        inserted, skipped = asyncio.run(load_sources(settings, catalog))
    except ConfigurationError as e:
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ Loaded {inserted} sources ({skipped} already present)")


@cli.command()
@click.argument("text")
@click.pass_obj
def analyze(settings: Settings, text: str):
    """Classify the sentiment of TEXT and print it as JSON."""
    classifier = create_sentiment_classifier(settings)
    result = asyncio.run(analyze_text(classifier, text, settings.sentiment_max_text_length))
    click.echo(orjson.dumps(result.model_dump(mode="json")).decode())


@cli.command("validate-config")
@click.pass_obj
def validate_config_command(settings: Settings):
    """Check settings and the source catalog."""
    problems = validate_config(settings)
    if problems:
        for problem in problems:
            click.echo(f"❌ {problem}", err=True)
        sys.exit(1)
    click.echo("✓ Configuration is valid")


if __name__ == "__main__":
    cli()
