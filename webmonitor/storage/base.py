"""Storage interface shared by the crawler, the scheduler and the CLI."""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from ..schemas import Engagement, PersistedRecord, Source, SourceStatistics


class MonitorStore(ABC):
    """Persistence for sources and records.

    Implementations must enforce uniqueness of record URL and content hash,
    raising DuplicateRecordError on violation, and must make
    acquire_crawl_lock an atomic compare-and-set.
    """

    async def __aenter__(self) -> "MonitorStore":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Prepare the backend for use."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        pass

    # ── Sources ────────────────────────────────────────────────────────────

    @abstractmethod
    async def insert_source(self, source: Source) -> Source:
        pass

    @abstractmethod
    async def get_source(self, source_id: str) -> Source:
        """Raises SourceNotFoundError for unknown ids."""
        pass

    @abstractmethod
    async def list_sources(self, active_only: bool = False) -> list[Source]:
        pass

    @abstractmethod
    async def set_source_active(self, source_id: str, is_active: bool) -> None:
        pass

    @abstractmethod
    async def find_due_sources(self, now: datetime) -> list[Source]:
        """Active sources whose next_crawl is unset or not after now.

        Ordered by next_crawl, never-crawled sources first.
        """
        pass

    @abstractmethod
    async def update_source_crawl(
        self,
        source_id: str,
        last_crawled: datetime,
        next_crawl: datetime,
        statistics: SourceStatistics,
    ) -> None:
        """Persist the outcome of one crawl."""
        pass

    @abstractmethod
    async def acquire_crawl_lock(self, source_id: str, now: datetime, stale_after: timedelta) -> bool:
        """Mark a source as being crawled.

        Succeeds when no crawl is in progress, or when the running crawl
        started more than stale_after before now.

        Returns:
            True if the caller now holds the lock
        """
        pass

    @abstractmethod
    async def release_crawl_lock(self, source_id: str) -> None:
        pass

    # ── Records ────────────────────────────────────────────────────────────

    @abstractmethod
    async def find_record_by_hash(self, content_hash: str) -> PersistedRecord | None:
        pass

    @abstractmethod
    async def find_record_by_url(self, url: str) -> PersistedRecord | None:
        pass

    @abstractmethod
    async def insert_record(self, record: PersistedRecord) -> PersistedRecord:
        """Store a record; raises DuplicateRecordError on URL or hash collision."""
        pass

    @abstractmethod
    async def update_record_engagement(self, record_id: str, engagement: Engagement) -> None:
        pass

    @abstractmethod
    async def list_records(self, source_id: str | None = None, limit: int = 100) -> list[PersistedRecord]:
        """Most recently scraped records first."""
        pass

    @abstractmethod
    async def count_records(self, source_id: str | None = None) -> int:
        pass
