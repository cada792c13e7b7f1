"""Configuration management for the web monitoring pipeline."""

import hashlib
import uuid
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError
from .schemas import Project, Source


class Settings(BaseSettings):
    """Main application settings."""

    # ── HTTP Fetching ──────────────────────────────────────────────────────
    user_agent: str = Field(
        "MonitoringPlatform/1.0 (Web Scraper)",
        description="Default user agent for source requests"
    )
    request_timeout_seconds: float = Field(30.0, description="Per-fetch timeout")
    max_redirects: int = Field(5, description="Maximum redirects followed per fetch")
    robots_timeout_seconds: float = Field(10.0, description="Timeout for robots.txt lookups")

    # ── Extraction Limits ──────────────────────────────────────────────────
    max_containers_per_page: int = Field(20, description="Article containers inspected per page")
    max_title_length: int = Field(500, description="Title truncation length")
    max_content_length: int = Field(10000, description="Body truncation length")
    fallback_text_length: int = Field(1000, description="Container text used when a selector misses")
    max_internal_links: int = Field(10, description="Internal links kept per article")
    max_external_links: int = Field(5, description="External links kept per article")

    # ── Deduplication ──────────────────────────────────────────────────────
    content_hash_algorithm: str = Field("md5", description="hashlib algorithm for body digests")

    # ── Sentiment Classification ───────────────────────────────────────────
    openai_api_key: str | None = Field(None, description="OpenAI API key for the LLM classifier")
    openai_model: str = Field("gpt-4o-mini", description="OpenAI model used for sentiment")
    huggingface_api_key: str | None = Field(None, description="Hugging Face inference API key")
    huggingface_model: str = Field(
        "cardiffnlp/twitter-xlm-roberta-base-sentiment",
        description="Hugging Face sentiment model"
    )
    classifier_timeout_seconds: float = Field(15.0, description="External classifier timeout")
    sentiment_batch_size: int = Field(10, description="Texts per classification chunk")
    sentiment_batch_pause: float = Field(1.0, description="Seconds between classification chunks")
    sentiment_max_text_length: int = Field(5000, description="Characters sent to the classifier")

    # ── Scheduling ─────────────────────────────────────────────────────────
    crawl_lock_timeout_seconds: int = Field(1800, description="Age after which a crawl lock is stale")
    scheduler_interval_seconds: int = Field(300, description="Pause between batches in --forever mode")

    # ── Storage ────────────────────────────────────────────────────────────
    database_path: Path = Field(Path("./data/monitor.db"), description="SQLite database file")
    sources_file: Path = Field(Path("./sources.yaml"), description="Source catalog file")

    # ── Logging ────────────────────────────────────────────────────────────
    log_level: str = Field("INFO", description="Log level")
    json_logging: bool = Field(True, description="Enable JSON logging")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("content_hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        """Only accept digests hashlib can build."""
        v = v.lower()
        if v not in hashlib.algorithms_available:
            raise ValueError(f"Unsupported hash algorithm: {v}")
        return v

    @field_validator(
        "max_containers_per_page", "max_title_length", "max_content_length",
        "fallback_text_length", "sentiment_batch_size", "sentiment_max_text_length",
        "max_redirects",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("max_internal_links", "max_external_links")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("Link cap must not be negative")
        return v

    @field_validator("request_timeout_seconds", "classifier_timeout_seconds", "robots_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be greater than 0")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return v


class SourceCatalog:
    """Source and project catalog loaded from YAML."""

    def __init__(self, config_path: str | Path):
        self.config_path = Path(config_path)
        self._config: dict[str, Any] = {}
        self._projects: list[Project] | None = None
        self.load_config()

    def load_config(self) -> None:
        """Load catalog from YAML file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Source catalog not found: {self.config_path}")

        with open(self.config_path, encoding="utf-8") as f:
            self._config = yaml.safe_load(f) or {}
        self._projects = None

    def get_projects(self) -> list[Project]:
        """Get configured projects, parsed once per load."""
        if self._projects is None:
            self._projects = [Project(**project) for project in self._config.get("projects", [])]
        return self._projects

    def get_sources(self) -> list[Source]:
        """Get configured sources with their project's keywords merged in."""
        projects = {project.name: project for project in self.get_projects()}
        sources = []

        for source_data in self._config.get("sources", []):
            source_data = dict(source_data)
            project_name = source_data.pop("project", None)
            if isinstance(source_data.get("url"), str) and not source_data.get("id"):
                source_data["id"] = catalog_source_id(source_data["url"])
            try:
                source = Source(**source_data)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid source {source_data.get('name', '?')!r}: {e}"
                ) from e

            if project_name:
                project = projects.get(project_name)
                if project is None:
                    raise ConfigurationError(f"Unknown project {project_name!r} for source {source.name!r}")
                source = merge_project_terms(source, project)
                if source.id not in project.source_ids:
                    project.source_ids.append(source.id)

            sources.append(source)

        return sources


def catalog_source_id(url: str) -> str:
    """Id derived from the source URL, identical across catalog loads."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, url.strip()))


def merge_project_terms(source: Source, project: Project) -> Source:
    """Return a copy of source carrying the project's keywords and hashtags."""
    keywords = list(dict.fromkeys(source.keywords + project.keywords))
    hashtags = list(dict.fromkeys(source.hashtags + project.hashtags))
    return source.model_copy(
        update={"keywords": keywords, "hashtags": hashtags, "project_id": project.id}
    )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get application settings."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None


def validate_config(settings: Settings) -> list[str]:
    """Validate configuration completeness.

    Returns:
        List of problems, empty when the configuration is usable
    """
    problems = []

    if settings.sentiment_batch_pause < 0:
        problems.append("sentiment_batch_pause must not be negative")

    if settings.crawl_lock_timeout_seconds < settings.request_timeout_seconds:
        problems.append("crawl_lock_timeout_seconds is shorter than a single fetch timeout")

    if not Path(settings.sources_file).exists():
        problems.append(f"Source catalog not found: {settings.sources_file}")
    else:
        try:
            SourceCatalog(settings.sources_file).get_sources()
        except (ConfigurationError, ValidationError, yaml.YAMLError) as e:
            problems.append(str(e))

    return problems
