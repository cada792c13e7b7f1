"""Utility functions for the web monitoring pipeline."""

import asyncio
import hashlib
import re
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Any, TypeVar
from urllib.parse import urljoin, urlparse

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar('T')

_BR_DATE = re.compile(r'(\d{1,2})/(\d{1,2})/(\d{4})')
_RELATIVE_DATE = re.compile(
    r"(?:h[aá]\s+)?(\d+)\s+(minuto|hora|dia|minute|hour|day)s?(?:\s+atr[aá]s|\s+ago)?"
)
_RELATIVE_UNITS = {
    "minuto": "minutes", "minute": "minutes",
    "hora": "hours", "hour": "hours",
    "dia": "days", "day": "days",
}


def extract_domain(url: str) -> str:
    """Extract hostname from URL.

    Args:
        url: URL string

    Returns:
        Lowercased hostname, empty when the URL has none
    """
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def is_valid_url(url: str) -> bool:
    """Check if URL is an absolute http(s) URL."""
    try:
        result = urlparse(url)
        return result.scheme in ("http", "https") and bool(result.netloc)
    except ValueError:
        return False


def resolve_url(href: str, base_url: str) -> str | None:
    """Resolve href against base_url.

    Args:
        href: Raw attribute value
        base_url: Page URL

    Returns:
        Absolute http(s) URL, or None when href cannot be resolved
    """
    href = (href or "").strip()
    if not href or href.startswith(("javascript:", "mailto:", "tel:", "data:", "#")):
        return None

    try:
        resolved = urljoin(base_url, href)
    except ValueError:
        return None

    return resolved if is_valid_url(resolved) else None


def generate_content_hash(content: str, algorithm: str = "md5") -> str:
    """Digest content with a hashlib algorithm.

    Args:
        content: Text to hash, used as-is
        algorithm: hashlib algorithm name

    Returns:
        Hexadecimal digest
    """
    return hashlib.new(algorithm, content.encode('utf-8')).hexdigest()


def parse_date_string(date_str: str, now: datetime | None = None) -> datetime | None:
    """Parse the date formats commonly found on news pages.

    Args:
        date_str: Date string to parse
        now: Reference time for relative dates ("há 3 horas")

    Returns:
        Timezone-aware datetime or None if parsing fails
    """
    if not date_str:
        return None

    date_str = date_str.strip()
    if not date_str:
        return None

    # ISO 8601, including offsets and a trailing Z
    try:
        parsed = datetime.fromisoformat(date_str.replace("Z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except ValueError:
        pass

    # RFC 2822 (RSS style)
    try:
        parsed = parsedate_to_datetime(date_str)
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    except (ValueError, TypeError, IndexError):
        pass

    formats = [
        "%Y-%m-%d %H:%M:%S",
        "%d/%m/%Y %H:%M",
        "%d/%m/%Y %Hh%M",
        "%B %d, %Y",
        "%b %d, %Y",
        "%d %B %Y",
        "%d %b %Y",
    ]

    for fmt in formats:
        try:
            return datetime.strptime(date_str, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue

    # Brazilian day-first dates embedded in text
    match = _BR_DATE.search(date_str)
    if match:
        day, month, year = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, tzinfo=UTC)
        except ValueError:
            return None

    relative = _RELATIVE_DATE.fullmatch(date_str.lower())
    if relative:
        reference = now or datetime.now(UTC)
        unit = _RELATIVE_UNITS[relative.group(2)]
        return reference - timedelta(**{unit: int(relative.group(1))})

    logger.debug("date_parse_failed", date_string=date_str)
    return None


def clean_text(text: str) -> str:
    """Collapse whitespace and decode the common HTML entities.

    Args:
        text: Raw text

    Returns:
        Cleaned text
    """
    if not text:
        return ""

    text = re.sub(r'\s+', ' ', text.strip())

    html_entities = {
        '&amp;': '&',
        '&lt;': '<',
        '&gt;': '>',
        '&quot;': '"',
        '&#39;': "'",
        '&nbsp;': ' ',
    }

    for entity, replacement in html_entities.items():
        text = text.replace(entity, replacement)

    return text


def chunk_list(items: list[T], chunk_size: int) -> list[list[T]]:
    """Split list into chunks of specified size.

    Args:
        items: List to chunk
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    return [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]


async def retry_async(
    func: Callable[[], Awaitable[Any]],
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    exceptions: tuple = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    """Retry async function with exponential backoff.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retries
        backoff_factor: Backoff multiplier
        exceptions: Exceptions to catch and retry
        sleep: Awaitable sleep, replaceable in tests

    Returns:
        Function result

    Raises:
        Last exception if all retries fail
    """
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except exceptions as e:
            if attempt >= max_retries:
                logger.error("All retry attempts failed", max_retries=max_retries, error=str(e))
                raise
            delay = backoff_factor ** attempt
            logger.warning(
                "Retry attempt failed",
                attempt=attempt + 1,
                max_retries=max_retries,
                delay=delay,
                error=str(e)
            )
            await sleep(delay)
