"""Article candidate extraction from listing pages."""

from datetime import datetime

from selectolax.lexbor import LexborHTMLParser, LexborNode

from ..config import Settings, get_settings
from ..logging import get_logger
from ..processing.text_utils import extract_tags, truncate
from ..schemas import ExtractedContent, LinkSet, SourceSelectors
from ..utils import clean_text, extract_domain, parse_date_string, resolve_url

logger = get_logger(__name__)

CONTAINER_SELECTOR = 'article, .post, .news-item, [class*="article"], [class*="post"]'

DEFAULT_SELECTORS = {
    'title': 'h1, h2, .title, .headline, [class*="title"]',
    'content': 'article, .content, .post-content, .entry-content, main',
    'author': '.author, .by-author, [class*="author"]',
    'publish_date': 'time, .date, .publish-date, [class*="date"]',
    'image': 'img[src], .featured-image img',
    'links': 'a[href]',
}


def resolve_selectors(selectors: SourceSelectors | None) -> dict[str, str]:
    """Per-source selectors over the generic defaults."""
    resolved = dict(DEFAULT_SELECTORS)
    if selectors:
        for name, value in selectors.model_dump().items():
            if value and value.strip():
                resolved[name] = value
    return resolved


def unique_nodes(nodes: list[LexborNode]) -> list[LexborNode]:
    """Drop nodes matched by more than one selector of a group, keeping first-seen order."""
    seen: set[int] = set()
    unique = []
    for node in nodes:
        if node.mem_id not in seen:
            seen.add(node.mem_id)
            unique.append(node)
    return unique


class ContentExtractor:
    """Turns a listing page into article candidates."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    def extract(
        self,
        html: str,
        base_url: str,
        selectors: SourceSelectors | None = None,
    ) -> list[ExtractedContent]:
        """Extract article candidates from HTML.

        Args:
            html: Page body
            base_url: Page URL, used to resolve relative links
            selectors: Per-source selector overrides

        Returns:
            Candidates in document order, at most one per container
        """
        if not html or not html.strip():
            return []

        resolved = resolve_selectors(selectors)
        parser = LexborHTMLParser(html)
        containers = unique_nodes(parser.css(CONTAINER_SELECTOR))[:self.settings.max_containers_per_page]

        candidates = []
        for container in containers:
            try:
                candidate = self._extract_container(container, base_url, resolved)
            except Exception as e:
                logger.warning("Failed to parse article container", url=base_url, error=str(e))
                continue
            if candidate:
                candidates.append(candidate)

        logger.debug(
            "Article candidates extracted",
            url=base_url,
            containers=len(containers),
            candidates=len(candidates)
        )
        return candidates

    def _extract_container(
        self,
        container: LexborNode,
        base_url: str,
        selectors: dict[str, str],
    ) -> ExtractedContent | None:
        title = self._text_or_fallback(container, selectors['title'])
        content = self._text_or_fallback(container, selectors['content'])
        url = self._permalink(container, base_url)

        if not title or not content or not url:
            return None

        content = truncate(content, self.settings.max_content_length)

        author_node = self._first(container, selectors['author'])
        author = clean_text(author_node.text(separator=' ', strip=True)) if author_node else None

        return ExtractedContent(
            title=truncate(title, self.settings.max_title_length),
            content=content,
            url=url,
            author=author or None,
            published_at=self._published_at(container, selectors['publish_date']),
            image_url=self._image_url(container, selectors['image'], base_url),
            tags=extract_tags(content),
            links=self._links(container, selectors['links'], base_url),
        )

    @staticmethod
    def _matches(container: LexborNode, selector: str) -> list[LexborNode]:
        """Descendants of container matching selector, excluding container itself."""
        return [node for node in unique_nodes(container.css(selector)) if node.mem_id != container.mem_id]

    def _first(self, container: LexborNode, selector: str) -> LexborNode | None:
        matches = self._matches(container, selector)
        return matches[0] if matches else None

    def _text_or_fallback(self, container: LexborNode, selector: str) -> str:
        node = self._first(container, selector)
        text = clean_text(node.text(separator=' ', strip=True)) if node else ""
        if text:
            return text
        full_text = clean_text(container.text(separator=' ', strip=True))
        return truncate(full_text, self.settings.fallback_text_length)

    def _published_at(self, container: LexborNode, selector: str) -> datetime | None:
        node = self._first(container, selector)
        if node is None:
            return None
        date_text = node.attributes.get('datetime') or node.text(strip=True)
        return parse_date_string(date_text) if date_text else None

    def _image_url(self, container: LexborNode, selector: str, base_url: str) -> str | None:
        node = self._first(container, selector)
        if node is None:
            return None
        src = node.attributes.get('src')
        return resolve_url(src, base_url) if src else None

    def _permalink(self, container: LexborNode, base_url: str) -> str:
        anchor = self._first(container, 'a[href]')
        href = anchor.attributes.get('href') if anchor else None

        if not href:
            parent = container.parent
            while parent is not None and parent.tag not in ('a', 'html', '-document'):
                parent = parent.parent
            if parent is not None and parent.tag == 'a':
                href = parent.attributes.get('href')

        if href:
            return resolve_url(href, base_url) or base_url
        return base_url

    def _links(self, container: LexborNode, selector: str, base_url: str) -> LinkSet:
        base_domain = extract_domain(base_url)
        internal: list[str] = []
        external: list[str] = []

        for node in self._matches(container, selector):
            href = node.attributes.get('href')
            if not href:
                continue
            full_url = resolve_url(href, base_url)
            if not full_url:
                continue
            if extract_domain(full_url) == base_domain:
                internal.append(full_url)
            else:
                external.append(full_url)

        return LinkSet(
            internal=internal[:self.settings.max_internal_links],
            external=external[:self.settings.max_external_links],
        )
