"""Data model for monitored sources, extracted content and stored records."""

import math
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _normalize_terms(values: list[str]) -> list[str]:
    """Trim and lowercase keyword lists, dropping blanks."""
    terms = []
    for value in values:
        term = value.strip().lower()
        if term:
            terms.append(term)
    return terms


class SourceType(str, Enum):
    """Kind of monitored origin."""
    NEWS = "news"
    BLOG = "blog"
    WEBSITE = "website"
    FORUM = "forum"


class SentimentLabel(str, Enum):
    """Sentiment polarity."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class SourceSelectors(BaseModel):
    """Per-source CSS selector overrides."""
    title: str | None = None
    content: str | None = None
    author: str | None = None
    publish_date: str | None = None
    image: str | None = None
    links: str | None = None


class CrawlSettings(BaseModel):
    """Crawl politeness settings."""
    max_depth: int = Field(2, ge=1, le=5)
    follow_external_links: bool = False
    respect_robots_txt: bool = True
    delay: int = Field(1000, ge=500, description="Delay after this source, in ms")


class SourceStatistics(BaseModel):
    """Crawl health counters, written only by the crawler."""
    total_articles: int = 0
    total_crawls: int = 0
    failed_crawls: int = 0
    success_rate: float = Field(100.0, ge=0, le=100)
    last_crawl_articles: int = 0
    last_error: str | None = None
    last_error_date: datetime | None = None


class Source(BaseModel):
    """A monitored web origin."""
    id: str = Field(default_factory=_new_id)
    name: str = Field(..., max_length=200)
    url: str
    type: SourceType = SourceType.WEBSITE
    category: str = Field(..., max_length=100)
    description: str | None = Field(None, max_length=500)
    is_active: bool = True
    crawl_frequency: int = Field(60, ge=5, description="Minutes between crawls")
    last_crawled: datetime | None = None
    next_crawl: datetime | None = None
    selectors: SourceSelectors = Field(default_factory=SourceSelectors)
    keywords: list[str] = Field(default_factory=list)
    exclude_keywords: list[str] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)
    language: str = Field("pt-BR", max_length=10)
    encoding: str = "utf-8"
    user_agent: str | None = None
    headers: dict[str, str] = Field(default_factory=dict)
    crawl_settings: CrawlSettings = Field(default_factory=CrawlSettings)
    statistics: SourceStatistics = Field(default_factory=SourceStatistics)
    crawl_in_progress: bool = False
    crawl_started_at: datetime | None = None
    project_id: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v

    @field_validator("name", "category")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("keywords", "exclude_keywords")
    @classmethod
    def normalize_keywords(cls, v: list[str]) -> list[str]:
        return _normalize_terms(v)

    @field_validator("hashtags")
    @classmethod
    def normalize_hashtags(cls, v: list[str]) -> list[str]:
        return [tag.lstrip("#") for tag in _normalize_terms(v) if tag.lstrip("#")]

    def is_due(self, now: datetime) -> bool:
        """Active and never crawled, or next_crawl not after now."""
        return self.is_active and (self.next_crawl is None or self.next_crawl <= now)


class Project(BaseModel):
    """A named grouping of sources sharing keywords and hashtags."""
    id: str = Field(default_factory=_new_id)
    name: str
    description: str | None = None
    keywords: list[str] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)
    source_ids: list[str] = Field(default_factory=list)
    is_active: bool = True

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, v: list[str]) -> list[str]:
        return _normalize_terms(v)

    @field_validator("hashtags")
    @classmethod
    def normalize_hashtags(cls, v: list[str]) -> list[str]:
        return [tag.lstrip("#") for tag in _normalize_terms(v) if tag.lstrip("#")]


class LinkSet(BaseModel):
    """Links found inside an article container."""
    internal: list[str] = Field(default_factory=list)
    external: list[str] = Field(default_factory=list)


class ExtractedContent(BaseModel):
    """An article candidate produced by one extraction pass."""
    title: str
    content: str
    url: str
    author: str | None = None
    published_at: datetime | None = None
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    links: LinkSet = Field(default_factory=LinkSet)

    @property
    def word_count(self) -> int:
        return len(self.content.split())

    @property
    def reading_time(self) -> int:
        """Reading time in minutes at 200 words per minute."""
        return math.ceil(self.word_count / 200)


class SentimentResult(BaseModel):
    """Sentiment label with a signed score and a confidence."""
    label: SentimentLabel = SentimentLabel.NEUTRAL
    score: float = Field(0.0, ge=-1.0, le=1.0)
    confidence: float = Field(0.1, ge=0.0, le=1.0)

    @classmethod
    def neutral(cls) -> "SentimentResult":
        return cls(label=SentimentLabel.NEUTRAL, score=0.0, confidence=0.1)


class Engagement(BaseModel):
    """Engagement counters refreshed after creation."""
    views: int | None = Field(None, ge=0)
    shares: int | None = Field(None, ge=0)
    comments: int | None = Field(None, ge=0)
    likes: int | None = Field(None, ge=0)


class PersistedRecord(BaseModel):
    """Stored, deduplicated, matched and classified article."""
    id: str = Field(default_factory=_new_id)
    source_id: str
    source_name: str
    source_url: str
    title: str = Field(..., max_length=500)
    content: str
    author: str | None = None
    published_at: datetime | None = None
    scraped_at: datetime = Field(default_factory=_utcnow)
    url: str
    image_url: str | None = None
    tags: list[str] = Field(default_factory=list)
    matched_keywords: list[str] = Field(default_factory=list)
    matched_hashtags: list[str] = Field(default_factory=list)
    category: str
    language: str = "pt-BR"
    word_count: int = Field(..., ge=0)
    reading_time: int = Field(..., ge=0)
    sentiment: SentimentResult = Field(default_factory=SentimentResult.neutral)
    engagement: Engagement = Field(default_factory=Engagement)
    links: LinkSet = Field(default_factory=LinkSet)
    is_active: bool = True
    is_duplicate: bool = False
    crawl_depth: int = Field(1, ge=0)
    content_hash: str
    metadata: dict[str, Any] = Field(default_factory=dict)
