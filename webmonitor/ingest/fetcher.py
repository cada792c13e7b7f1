"""HTTP page fetching with robots.txt support."""

import asyncio
from dataclasses import dataclass
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import aiohttp

from ..config import Settings, get_settings
from ..errors import FetchError
from ..logging import get_logger
from ..utils import retry_async

logger = get_logger(__name__)


@dataclass
class FetchResult:
    """A fetched page."""
    text: str
    url: str
    status: int


class PageFetcher:
    """Fetches source pages over one aiohttp session.

    Use as an async context manager.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        user_agent: str | None = None,
        headers: dict[str, str] | None = None,
        encoding: str | None = None,
        retries: int = 0,
    ):
        self.settings = settings or get_settings()
        self.user_agent = user_agent or self.settings.user_agent
        self.headers = {**(headers or {}), 'User-Agent': self.user_agent}
        self.encoding = encoding
        self.retries = retries
        self.session: aiohttp.ClientSession | None = None
        self._robots_cache: dict[str, RobotFileParser | None] = {}

    async def __aenter__(self) -> "PageFetcher":
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout_seconds)
        connector = aiohttp.TCPConnector(limit=10, limit_per_host=5)

        self.session = aiohttp.ClientSession(
            timeout=timeout,
            connector=connector,
            headers=self.headers,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.session:
            await self.session.close()
            self.session = None

    async def fetch(self, url: str) -> FetchResult:
        """Fetch a page body.

        Args:
            url: Page URL

        Returns:
            FetchResult with the decoded body and the final URL

        Raises:
            FetchError: On network failure, timeout, too many redirects or a non-2xx status
        """
        if not self.session:
            raise RuntimeError("Session not initialized. Use async context manager.")

        logger.debug("Fetching URL", url=url)

        async def fetch_with_session() -> FetchResult:
            async with self.session.get(url, max_redirects=self.settings.max_redirects) as response:
                if response.status >= 400:
                    raise FetchError(url, f"HTTP {response.status}", status=response.status)
                text = await response.text(
                    encoding=response.charset or self.encoding, errors="replace"
                )
                logger.debug(
                    "URL fetched successfully",
                    url=url,
                    status=response.status,
                    content_length=len(text)
                )
                return FetchResult(text=text, url=str(response.url), status=response.status)

        try:
            return await retry_async(
                fetch_with_session,
                max_retries=self.retries,
                exceptions=(aiohttp.ClientConnectionError, asyncio.TimeoutError),
            )
        except FetchError:
            raise
        except aiohttp.TooManyRedirects as e:
            raise FetchError(url, f"more than {self.settings.max_redirects} redirects") from e
        except asyncio.TimeoutError as e:
            raise FetchError(url, f"timed out after {self.settings.request_timeout_seconds}s") from e
        except aiohttp.ClientError as e:
            raise FetchError(url, str(e) or e.__class__.__name__) from e

    async def is_allowed(self, url: str) -> bool:
        """Check robots.txt for url under this fetcher's user agent.

        A missing or unreachable robots.txt allows everything.
        """
        if not self.session:
            raise RuntimeError("Session not initialized. Use async context manager.")

        parsed = urlparse(url)
        base = f"{parsed.scheme}://{parsed.netloc}"

        if base not in self._robots_cache:
            self._robots_cache[base] = await self._load_robots(base)

        parser = self._robots_cache[base]
        if parser is None:
            return True
        return parser.can_fetch(self.user_agent, url)

    async def _load_robots(self, base: str) -> RobotFileParser | None:
        robots_url = urljoin(base, "/robots.txt")
        timeout = aiohttp.ClientTimeout(total=self.settings.robots_timeout_seconds)
        try:
            async with self.session.get(robots_url, timeout=timeout) as response:
                if response.status != 200:
                    return None
                body = await response.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("robots.txt unavailable", url=robots_url, error=str(e))
            return None

        parser = RobotFileParser()
        parser.parse(body.splitlines())
        return parser
