"""Best-effort page metadata fetching for bookmark enrichment."""

import asyncio
import logging
from typing import List, Optional, Protocol, Tuple
from urllib.parse import urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from ..models.bookmark import PageMetadata

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; linknotes/0.1)"

# (attribute, value) pairs for <meta> tags, in order of preference
DESCRIPTION_META: List[Tuple[str, str]] = [
    ("name", "description"),
    ("property", "og:description"),
    ("name", "twitter:description"),
]
PREVIEW_IMAGE_META: List[Tuple[str, str]] = [
    ("property", "og:image"),
    ("name", "twitter:image"),
]
FAVICON_RELS = [
    "icon",
    "shortcut icon",
    "apple-touch-icon",
    "apple-touch-icon-precomposed",
]


class FetchError(Exception):
    """Metadata fetch error."""

    pass


class FetchTimeoutError(FetchError):
    """Request timeout error."""

    pass


class FetchNetworkError(FetchError):
    """Network connection error."""

    pass


class PageMetadataProvider(Protocol):
    """Anything that can describe a page by reference."""

    async def get_page_metadata(self, url: str) -> PageMetadata:
        ...


class MetadataFetcher:
    """Fetches a page and extracts description, favicon and preview image.

    ``fetch`` never raises: every failure degrades to empty metadata.
    """

    def __init__(
        self,
        timeout: float = 8.0,
        max_response_size: int = 10 * 1024 * 1024,
        user_agent: str = DEFAULT_USER_AGENT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize metadata fetcher.

        Args:
            timeout: Upper bound for the whole request in seconds
            max_response_size: Largest body that will be parsed
            user_agent: User-Agent header value
            transport: Optional httpx transport (tests inject a mock)
        """
        self.timeout = timeout
        self.max_response_size = max_response_size
        self.user_agent = user_agent
        self._transport = transport

    async def fetch(self, url: str) -> PageMetadata:
        """Fetch URL and extract its metadata.

        Args:
            url: Page URL

        Returns:
            PageMetadata, all-empty on any failure
        """
        try:
            html_content, final_url = await self.fetch_html(url)
        except FetchError as e:
            logger.warning(f"Failed to fetch metadata for {url}: {e}")
            return PageMetadata()

        try:
            return self.parse_metadata(html_content, final_url)
        except Exception as e:
            logger.warning(f"Failed to parse metadata from {url}: {e}")
            return PageMetadata()

    async def get_page_metadata(self, url: str) -> PageMetadata:
        return await self.fetch(url)

    async def fetch_html(self, url: str) -> Tuple[str, str]:
        """Fetch URL content with timeout and validation.

        Returns:
            (HTML text, final URL after redirects)

        Raises:
            FetchTimeoutError: If request times out
            FetchNetworkError: If connection fails
            FetchError: If response is unusable
        """
        try:
            response = await asyncio.wait_for(self._get(url), timeout=self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise FetchTimeoutError(f"Request timed out after {self.timeout}s: {url}") from e
        except httpx.NetworkError as e:
            raise FetchNetworkError(f"Network error: {e}") from e
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise FetchError(f"Failed to fetch URL: {e}") from e

        if not response.is_success:
            raise FetchError(f"HTTP {response.status_code}: {url}")

        content_length = len(response.content)
        if content_length > self.max_response_size:
            raise FetchError(
                f"Response too large: {content_length} bytes (max {self.max_response_size})"
            )

        content_type = response.headers.get("content-type", "").lower()
        if content_type and "html" not in content_type and "text/plain" not in content_type:
            logger.debug(f"Non-HTML content-type for {url}: {content_type}")

        return response.text, str(response.url)

    async def _get(self, url: str) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
            transport=self._transport,
        ) as client:
            return await client.get(url)

    def parse_metadata(self, html_content: str, base_url: str) -> PageMetadata:
        """Extract metadata from an HTML document.

        Relative URLs are resolved against ``base_url``; a field whose URL
        cannot be resolved is left empty.
        """
        soup = BeautifulSoup(html_content, "html.parser")

        return PageMetadata(
            title=self._extract_title(soup),
            description=self._first_meta(soup, DESCRIPTION_META),
            favicon=self._extract_favicon(soup, base_url),
            preview_image=self._resolve(self._first_meta(soup, PREVIEW_IMAGE_META), base_url),
        )

    def _extract_title(self, soup: BeautifulSoup) -> str:
        if soup.title and soup.title.string:
            title = soup.title.string.strip()
            if title:
                return title

        return self._first_meta(soup, [("property", "og:title")])

    def _first_meta(self, soup: BeautifulSoup, candidates: List[Tuple[str, str]]) -> str:
        for attribute, value in candidates:
            tag = soup.find("meta", attrs={attribute: value})
            if tag and tag.get("content"):
                content = tag["content"].strip()
                if content:
                    return content
        return ""

    def _extract_favicon(self, soup: BeautifulSoup, base_url: str) -> str:
        links = soup.find_all("link", href=True)

        for rel_value in FAVICON_RELS:
            for link in links:
                rel = link.get("rel") or []
                if isinstance(rel, str):
                    rel = rel.split()
                if " ".join(r.lower() for r in rel) == rel_value:
                    href = link["href"].strip()
                    if href:
                        return self._resolve(href, base_url)

        return self._resolve("/favicon.ico", base_url)

    def _resolve(self, href: str, base_url: str) -> str:
        """Resolve ``href`` to an absolute http(s) URL, or empty on failure."""
        if not href:
            return ""

        try:
            absolute = urljoin(base_url, href)
            parsed = urlparse(absolute)
        except ValueError:
            return ""

        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            return ""

        return absolute
