"""
Single-source crawl: fetch, extract, dedupe, match, classify and persist.

A crawl never raises for page or candidate problems. Page-level failures
mark the crawl unsuccessful and are recorded in the source statistics;
candidate-level failures are collected in the result and processing moves
on to the next candidate.
"""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from .config import Settings, get_settings
from .errors import DuplicateRecordError, FetchError, SourceNotFoundError
from .ingest.extractor import ContentExtractor
from .ingest.fetcher import FetchResult, PageFetcher
from .logging import PerformanceLogger, get_logger, log_error, log_processing_stage
from .processing.dedupe import DeduplicationGate
from .processing.matching import KeywordMatcher
from .processing.sentiment import LexiconSentimentClassifier, SentimentClassifier, analyze_text
from .schemas import ExtractedContent, PersistedRecord, Source, SourceStatistics
from .storage.base import MonitorStore

logger = get_logger(__name__)


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResult: ...

    async def is_allowed(self, url: str) -> bool: ...


FetcherFactory = Callable[[Source], AbstractAsyncContextManager[Fetcher]]


@dataclass
class CrawlResult:
    """Outcome of one source crawl."""
    source_id: str
    success: bool
    articles_found: int = 0
    errors: list[str] = field(default_factory=list)
    records: list[PersistedRecord] = field(default_factory=list)
    skipped: bool = False
    duplicates: int = 0
    filtered: int = 0
    duration: float | None = None


def _utcnow() -> datetime:
    return datetime.now(UTC)


def updated_statistics(
    statistics: SourceStatistics,
    result: CrawlResult,
    now: datetime,
) -> SourceStatistics:
    """Source statistics after a crawl attempt."""
    stats = statistics.model_copy()
    stats.total_crawls += 1

    if result.success:
        stats.total_articles += result.articles_found
        stats.last_crawl_articles = result.articles_found
        stats.last_error = None
        stats.last_error_date = None
    else:
        stats.failed_crawls += 1
        stats.last_crawl_articles = 0
        stats.last_error = "; ".join(result.errors)
        stats.last_error_date = now

    succeeded = stats.total_crawls - stats.failed_crawls
    stats.success_rate = round(100.0 * succeeded / stats.total_crawls, 2)
    return stats


class SourceCrawler:
    """Runs the crawl pipeline for one source at a time."""

    def __init__(
        self,
        store: MonitorStore,
        classifier: SentimentClassifier | None = None,
        settings: Settings | None = None,
        extractor: ContentExtractor | None = None,
        matcher: KeywordMatcher | None = None,
        fetcher_factory: FetcherFactory | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.classifier = classifier or LexiconSentimentClassifier()
        self.extractor = extractor or ContentExtractor(self.settings)
        self.matcher = matcher or KeywordMatcher()
        self.dedup = DeduplicationGate(store, self.settings.content_hash_algorithm)
        self.fetcher_factory = fetcher_factory or self._default_fetcher
        self.clock = clock

    def _default_fetcher(self, source: Source) -> PageFetcher:
        return PageFetcher(
            self.settings,
            user_agent=source.user_agent,
            headers=source.headers,
            encoding=source.encoding,
        )

    async def crawl_source_id(self, source_id: str) -> CrawlResult:
        """Crawl a stored source by id."""
        try:
            source = await self.store.get_source(source_id)
        except SourceNotFoundError as e:
            return CrawlResult(source_id=source_id, success=False, errors=[str(e)])
        return await self.crawl_source(source)

    async def crawl_source(self, source: Source, due_only: bool = False) -> CrawlResult:
        """Crawl one source and persist its statistics.

        The source is re-read once the crawl lock is held, so a snapshot taken
        before another run finished never overwrites that run's statistics.

        Args:
            source: Source to crawl
            due_only: Skip the source if it is no longer due once locked

        Returns:
            CrawlResult; skipped for inactive sources, sources locked by another
            run and, with due_only, sources another run has already crawled
        """
        if not source.is_active:
            logger.info("Skipping inactive source", source_id=source.id, source=source.name)
            return CrawlResult(source_id=source.id, success=True, skipped=True)

        now = self.clock()
        stale_after = timedelta(seconds=self.settings.crawl_lock_timeout_seconds)
        if not await self.store.acquire_crawl_lock(source.id, now, stale_after):
            logger.info("Crawl already in progress, skipping", source_id=source.id, source=source.name)
            return CrawlResult(source_id=source.id, success=True, skipped=True)

        try:
            source = await self.store.get_source(source.id)
            if not source.is_active or (due_only and not source.is_due(now)):
                logger.info("Source no longer due, skipping", source_id=source.id, source=source.name)
                return CrawlResult(source_id=source.id, success=True, skipped=True)

            with PerformanceLogger("crawl_source", logger, source=source.name) as perf:
                result = await self._perform_crawl(source, now)

            result.duration = perf.duration
            statistics = updated_statistics(source.statistics, result, now)
            await self.store.update_source_crawl(
                source.id,
                last_crawled=now,
                next_crawl=now + timedelta(minutes=source.crawl_frequency),
                statistics=statistics,
            )
        finally:
            await self.store.release_crawl_lock(source.id)

        logger.info(
            **log_processing_stage(
                "crawl",
                input_count=result.articles_found + result.duplicates + result.filtered,
                output_count=result.articles_found,
                duration=result.duration,
                source=source.name,
                success=result.success,
                duplicates=result.duplicates,
                filtered=result.filtered,
                errors=len(result.errors),
            )
        )
        return result

    async def _perform_crawl(self, source: Source, now: datetime) -> CrawlResult:
        result = CrawlResult(source_id=source.id, success=True)

        try:
            candidates = await self._fetch_candidates(source)
        except Exception as e:
            logger.warning(**log_error(e, context="source fetch failed", source=source.name, url=source.url))
            result.success = False
            message = str(e) if isinstance(e, FetchError) else f"Failed to fetch {source.url}: {e}"
            result.errors.append(message)
            return result

        for candidate in candidates:
            try:
                record = await self._process_candidate(candidate, source, now, result)
            except DuplicateRecordError as e:
                logger.debug("Duplicate record rejected by store", source=source.name, field=e.field)
                result.duplicates += 1
                continue
            except Exception as e:
                logger.warning(**log_error(e, context="candidate processing failed", url=candidate.url))
                result.errors.append(f"Failed to process {candidate.url}: {e}")
                continue

            if record is not None:
                result.records.append(record)
                result.articles_found += 1

        return result

    async def _fetch_candidates(self, source: Source) -> list[ExtractedContent]:
        async with self.fetcher_factory(source) as fetcher:
            if source.crawl_settings.respect_robots_txt and not await fetcher.is_allowed(source.url):
                raise FetchError(source.url, "disallowed by robots.txt")
            page = await fetcher.fetch(source.url)

        return self.extractor.extract(page.text, page.url or source.url, source.selectors)

    async def _process_candidate(
        self,
        candidate: ExtractedContent,
        source: Source,
        now: datetime,
        result: CrawlResult,
    ) -> PersistedRecord | None:
        dedup = await self.dedup.check(candidate.content)
        if not dedup.is_new:
            result.duplicates += 1
            return None

        match = self.matcher.match(
            candidate.content,
            source.keywords,
            source.exclude_keywords,
            source.hashtags,
        )
        if not match.accepted:
            result.filtered += 1
            return None

        sentiment = await analyze_text(
            self.classifier,
            candidate.content,
            self.settings.sentiment_max_text_length,
        )

        record = PersistedRecord(
            source_id=source.id,
            source_name=source.name,
            source_url=source.url,
            title=candidate.title,
            content=candidate.content,
            author=candidate.author,
            published_at=candidate.published_at or now,
            scraped_at=now,
            url=candidate.url,
            image_url=candidate.image_url,
            tags=candidate.tags,
            matched_keywords=match.matched_keywords,
            matched_hashtags=match.matched_hashtags,
            category=source.category,
            language=source.language,
            word_count=candidate.word_count,
            reading_time=candidate.reading_time,
            sentiment=sentiment,
            links=candidate.links,
            crawl_depth=1,
            content_hash=dedup.content_hash,
            metadata={
                "scraped_from": source.url,
                "user_agent": source.user_agent or self.settings.user_agent,
                "match_outcome": match.outcome.value,
                "classifier": self.classifier.name,
            },
        )
        return await self.store.insert_record(record)
