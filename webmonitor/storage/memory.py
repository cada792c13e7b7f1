"""In-process store used by tests and dry runs."""

import asyncio
from datetime import datetime, timedelta

from ..errors import DuplicateRecordError, SourceNotFoundError, StorageError
from ..schemas import Engagement, PersistedRecord, Source, SourceStatistics
from .base import MonitorStore


class MemoryStore(MonitorStore):
    """Dictionary-backed MonitorStore."""

    def __init__(self):
        self._sources: dict[str, Source] = {}
        self._records: dict[str, PersistedRecord] = {}
        self._lock = asyncio.Lock()

    def _require_source(self, source_id: str) -> Source:
        source = self._sources.get(source_id)
        if source is None:
            raise SourceNotFoundError(source_id)
        return source

    async def insert_source(self, source: Source) -> Source:
        if source.id in self._sources:
            raise DuplicateRecordError("id", source.id)
        if any(existing.url == source.url for existing in self._sources.values()):
            raise DuplicateRecordError("url", source.url)
        self._sources[source.id] = source.model_copy(deep=True)
        return source

    async def get_source(self, source_id: str) -> Source:
        return self._require_source(source_id).model_copy(deep=True)

    async def list_sources(self, active_only: bool = False) -> list[Source]:
        return [
            source.model_copy(deep=True)
            for source in self._sources.values()
            if source.is_active or not active_only
        ]

    async def set_source_active(self, source_id: str, is_active: bool) -> None:
        source = self._require_source(source_id)
        self._sources[source_id] = source.model_copy(update={"is_active": is_active})

    async def find_due_sources(self, now: datetime) -> list[Source]:
        due = [
            source for source in self._sources.values()
            if source.is_due(now)
        ]
        due.sort(key=lambda s: (s.next_crawl is not None, s.next_crawl or now))
        return [source.model_copy(deep=True) for source in due]

    async def update_source_crawl(
        self,
        source_id: str,
        last_crawled: datetime,
        next_crawl: datetime,
        statistics: SourceStatistics,
    ) -> None:
        source = self._require_source(source_id)
        self._sources[source_id] = source.model_copy(update={
            "last_crawled": last_crawled,
            "next_crawl": next_crawl,
            "statistics": statistics.model_copy(),
        })

    async def acquire_crawl_lock(self, source_id: str, now: datetime, stale_after: timedelta) -> bool:
        async with self._lock:
            source = self._require_source(source_id)
            if source.crawl_in_progress:
                started = source.crawl_started_at
                if started is not None and now - started < stale_after:
                    return False
            self._sources[source_id] = source.model_copy(
                update={"crawl_in_progress": True, "crawl_started_at": now}
            )
            return True

    async def release_crawl_lock(self, source_id: str) -> None:
        async with self._lock:
            source = self._require_source(source_id)
            self._sources[source_id] = source.model_copy(
                update={"crawl_in_progress": False, "crawl_started_at": None}
            )

    async def find_record_by_hash(self, content_hash: str) -> PersistedRecord | None:
        for record in self._records.values():
            if record.content_hash == content_hash:
                return record.model_copy(deep=True)
        return None

    async def find_record_by_url(self, url: str) -> PersistedRecord | None:
        for record in self._records.values():
            if record.url == url:
                return record.model_copy(deep=True)
        return None

    async def insert_record(self, record: PersistedRecord) -> PersistedRecord:
        async with self._lock:
            for existing in self._records.values():
                if existing.url == record.url:
                    raise DuplicateRecordError("url", record.url)
                if existing.content_hash == record.content_hash:
                    raise DuplicateRecordError("content_hash", record.content_hash)
            self._records[record.id] = record.model_copy(deep=True)
        return record

    async def update_record_engagement(self, record_id: str, engagement: Engagement) -> None:
        record = self._records.get(record_id)
        if record is None:
            raise StorageError(f"Record not found: {record_id}")
        self._records[record_id] = record.model_copy(update={"engagement": engagement.model_copy()})

    async def list_records(self, source_id: str | None = None, limit: int = 100) -> list[PersistedRecord]:
        records = [
            record for record in self._records.values()
            if source_id is None or record.source_id == source_id
        ]
        records.sort(key=lambda r: r.scraped_at, reverse=True)
        return [record.model_copy(deep=True) for record in records[:limit]]

    async def count_records(self, source_id: str | None = None) -> int:
        return sum(
            1 for record in self._records.values()
            if source_id is None or record.source_id == source_id
        )
