"""Sequential batch crawling of due sources."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from .crawler import CrawlResult, SourceCrawler
from .logging import get_logger, log_error
from .storage.base import MonitorStore

logger = get_logger(__name__)


@dataclass
class BatchResult:
    """Counts for one pass over due sources."""
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    total_articles: int = 0
    duration: float = 0.0

    @property
    def sources(self) -> int:
        return self.succeeded + self.failed + self.skipped


class BatchScheduler:
    """Crawls every due source, one after another."""

    def __init__(
        self,
        store: MonitorStore,
        crawler: SourceCrawler,
        clock: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.crawler = crawler
        self.clock = clock or (lambda: datetime.now(UTC))
        self.sleep = sleep
        self._stop = asyncio.Event()

    async def run_due_sources(self) -> BatchResult:
        """Crawl due sources sequentially.

        The source's configured delay is awaited between consecutive sources.
        An exception from one source counts it as failed and the batch moves on.

        Returns:
            BatchResult
        """
        start = time.monotonic()
        batch = BatchResult()
        sources = await self.store.find_due_sources(self.clock())

        logger.info("Starting crawl batch", due_sources=len(sources))

        for index, source in enumerate(sources):
            try:
                result: CrawlResult = await self.crawler.crawl_source(source, due_only=True)
            except Exception as e:
                batch.failed += 1
                logger.error(**log_error(e, context="source crawl raised", source=source.name))
            else:
                if result.skipped:
                    batch.skipped += 1
                elif result.success:
                    batch.succeeded += 1
                    batch.total_articles += result.articles_found
                else:
                    batch.failed += 1

            if index < len(sources) - 1:
                await self.sleep(source.crawl_settings.delay / 1000)

        batch.duration = time.monotonic() - start
        logger.info(
            "Crawl batch completed",
            succeeded=batch.succeeded,
            failed=batch.failed,
            skipped=batch.skipped,
            total_articles=batch.total_articles,
            duration=batch.duration,
        )
        return batch

    async def run_forever(
        self,
        interval_seconds: float,
        max_batches: int | None = None,
        on_batch: Callable[[BatchResult], None] | None = None,
    ) -> BatchResult | None:
        """Run batches until stopped, pausing interval_seconds between them.

        Args:
            interval_seconds: Pause after each batch
            max_batches: Stop after this many batches
            on_batch: Called with each batch result as it completes

        Returns:
            The last batch result, or None if no batch ran
        """
        last: BatchResult | None = None
        batches = 0
        while not self._stop.is_set():
            last = await self.run_due_sources()
            batches += 1
            if on_batch is not None:
                on_batch(last)
            if max_batches is not None and batches >= max_batches:
                break
            await self._pause(interval_seconds)
        return last

    async def _pause(self, seconds: float) -> None:
        """Sleep, returning early when stop() is called."""
        sleeper = asyncio.ensure_future(self.sleep(seconds))
        stopper = asyncio.ensure_future(self._stop.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            stopper.cancel()

    def stop(self) -> None:
        """Make run_forever return after the current batch or pause."""
        self._stop.set()
