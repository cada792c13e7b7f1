"""SQLite-backed store.

Sources and records are stored as orjson documents next to the handful of
columns the pipeline queries on. Timestamps are kept as UTC ISO strings with
fixed microsecond precision so that text comparison orders them correctly.
"""

from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import orjson

from ..errors import DuplicateRecordError, SourceNotFoundError, StorageError
from ..logging import get_logger
from ..schemas import Engagement, PersistedRecord, Source, SourceStatistics
from .base import MonitorStore

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sources (
    id TEXT PRIMARY KEY,
    url TEXT NOT NULL UNIQUE,
    is_active INTEGER NOT NULL,
    next_crawl TEXT,
    crawl_in_progress INTEGER NOT NULL DEFAULT 0,
    crawl_started_at TEXT,
    data BLOB NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_sources_due ON sources (is_active, next_crawl);

CREATE TABLE IF NOT EXISTS records (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    url TEXT NOT NULL UNIQUE,
    content_hash TEXT NOT NULL UNIQUE,
    scraped_at TEXT NOT NULL,
    data BLOB NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_records_source ON records (source_id, scraped_at);
"""


def _timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _dump(model) -> bytes:
    return orjson.dumps(model.model_dump(mode="json"))


class SQLiteStore(MonitorStore):
    """aiosqlite implementation of MonitorStore."""

    def __init__(self, database_path: str | Path):
        self.database_path = str(database_path)
        self._db: aiosqlite.Connection | None = None

    async def open(self) -> None:
        if self._db is not None:
            return
        if self.database_path != ":memory:":
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self.database_path)
        await self._db.executescript(SCHEMA)
        await self._db.commit()
        logger.debug("store_opened", database_path=self.database_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError("Store is not open")
        return self._db

    # ── Sources ────────────────────────────────────────────────────────────

    async def _write_source(self, source: Source) -> None:
        await self.db.execute(
            "UPDATE sources SET url = ?, is_active = ?, next_crawl = ?, crawl_in_progress = ?, "
            "crawl_started_at = ?, data = ? WHERE id = ?",
            (
                source.url,
                int(source.is_active),
                _timestamp(source.next_crawl),
                int(source.crawl_in_progress),
                _timestamp(source.crawl_started_at),
                _dump(source),
                source.id,
            ),
        )

    async def insert_source(self, source: Source) -> Source:
        try:
            await self.db.execute(
                "INSERT INTO sources (id, url, is_active, next_crawl, crawl_in_progress, crawl_started_at, data) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    source.id,
                    source.url,
                    int(source.is_active),
                    _timestamp(source.next_crawl),
                    int(source.crawl_in_progress),
                    _timestamp(source.crawl_started_at),
                    _dump(source),
                ),
            )
        except aiosqlite.IntegrityError as e:
            await self.db.rollback()
            if "sources.url" in str(e):
                raise DuplicateRecordError("url", source.url) from e
            raise DuplicateRecordError("id", source.id) from e
        await self.db.commit()
        return source

    async def get_source(self, source_id: str) -> Source:
        async with self.db.execute("SELECT data FROM sources WHERE id = ?", (source_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise SourceNotFoundError(source_id)
        return Source.model_validate(orjson.loads(row[0]))

    async def list_sources(self, active_only: bool = False) -> list[Source]:
        query = "SELECT data FROM sources"
        if active_only:
            query += " WHERE is_active = 1"
        query += " ORDER BY rowid"
        async with self.db.execute(query) as cursor:
            rows = await cursor.fetchall()
        return [Source.model_validate(orjson.loads(row[0])) for row in rows]

    async def set_source_active(self, source_id: str, is_active: bool) -> None:
        source = await self.get_source(source_id)
        await self._write_source(source.model_copy(update={"is_active": is_active}))
        await self.db.commit()

    async def find_due_sources(self, now: datetime) -> list[Source]:
        async with self.db.execute(
            "SELECT data FROM sources WHERE is_active = 1 AND (next_crawl IS NULL OR next_crawl <= ?) "
            "ORDER BY next_crawl IS NOT NULL, next_crawl, rowid",
            (_timestamp(now),),
        ) as cursor:
            rows = await cursor.fetchall()
        return [Source.model_validate(orjson.loads(row[0])) for row in rows]

    async def update_source_crawl(
        self,
        source_id: str,
        last_crawled: datetime,
        next_crawl: datetime,
        statistics: SourceStatistics,
    ) -> None:
        source = await self.get_source(source_id)
        source = source.model_copy(update={
            "last_crawled": last_crawled,
            "next_crawl": next_crawl,
            "statistics": statistics,
        })
        await self._write_source(source)
        await self.db.commit()

    async def acquire_crawl_lock(self, source_id: str, now: datetime, stale_after: timedelta) -> bool:
        # Single conditional UPDATE so two processes cannot both win
        cursor = await self.db.execute(
            "UPDATE sources SET crawl_in_progress = 1, crawl_started_at = ? "
            "WHERE id = ? AND (crawl_in_progress = 0 OR crawl_started_at IS NULL OR crawl_started_at < ?)",
            (_timestamp(now), source_id, _timestamp(now - stale_after)),
        )
        acquired = cursor.rowcount == 1
        await cursor.close()
        await self.db.commit()

        if not acquired:
            await self.get_source(source_id)
            return False

        source = await self.get_source(source_id)
        source = source.model_copy(update={"crawl_in_progress": True, "crawl_started_at": now})
        await self._write_source(source)
        await self.db.commit()
        return True

    async def release_crawl_lock(self, source_id: str) -> None:
        source = await self.get_source(source_id)
        source = source.model_copy(update={"crawl_in_progress": False, "crawl_started_at": None})
        await self._write_source(source)
        await self.db.commit()

    # ── Records ────────────────────────────────────────────────────────────

    async def _find_record(self, column: str, value: str) -> PersistedRecord | None:
        async with self.db.execute(f"SELECT data FROM records WHERE {column} = ?", (value,)) as cursor:
            row = await cursor.fetchone()
        return PersistedRecord.model_validate(orjson.loads(row[0])) if row else None

    async def find_record_by_hash(self, content_hash: str) -> PersistedRecord | None:
        return await self._find_record("content_hash", content_hash)

    async def find_record_by_url(self, url: str) -> PersistedRecord | None:
        return await self._find_record("url", url)

    async def insert_record(self, record: PersistedRecord) -> PersistedRecord:
        try:
            await self.db.execute(
                "INSERT INTO records (id, source_id, url, content_hash, scraped_at, data) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.source_id,
                    record.url,
                    record.content_hash,
                    _timestamp(record.scraped_at),
                    _dump(record),
                ),
            )
        except aiosqlite.IntegrityError as e:
            await self.db.rollback()
            message = str(e)
            if "records.url" in message:
                raise DuplicateRecordError("url", record.url) from e
            if "records.content_hash" in message:
                raise DuplicateRecordError("content_hash", record.content_hash) from e
            raise StorageError(message) from e
        await self.db.commit()
        return record

    async def update_record_engagement(self, record_id: str, engagement: Engagement) -> None:
        async with self.db.execute("SELECT data FROM records WHERE id = ?", (record_id,)) as cursor:
            row = await cursor.fetchone()
        if row is None:
            raise StorageError(f"Record not found: {record_id}")

        record = PersistedRecord.model_validate(orjson.loads(row[0]))
        record = record.model_copy(update={"engagement": engagement})
        await self.db.execute("UPDATE records SET data = ? WHERE id = ?", (_dump(record), record_id))
        await self.db.commit()

    async def list_records(self, source_id: str | None = None, limit: int = 100) -> list[PersistedRecord]:
        if source_id is None:
            query, params = "SELECT data FROM records ORDER BY scraped_at DESC LIMIT ?", (limit,)
        else:
            query = "SELECT data FROM records WHERE source_id = ? ORDER BY scraped_at DESC LIMIT ?"
            params = (source_id, limit)
        async with self.db.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [PersistedRecord.model_validate(orjson.loads(row[0])) for row in rows]

    async def count_records(self, source_id: str | None = None) -> int:
        if source_id is None:
            query, params = "SELECT COUNT(*) FROM records", ()
        else:
            query, params = "SELECT COUNT(*) FROM records WHERE source_id = ?", (source_id,)
        async with self.db.execute(query, params) as cursor:
            row = await cursor.fetchone()
        return row[0]
