"""Web scraper — URL → normalised page text → web chunks.

Fetch pipeline per URL:
  1. Scheme check (http/https only) and SSRF guard: the hostname must not
     resolve to a private/loopback/link-local/reserved address. A failure
     here is final.
  2. Static fetch with httpx (timeout, 5 MB body cap). Redirects are
     followed by hand, at most 3, and every target passes the same guard.
  3. Only if the static fetch fails (network error, non-2xx, unreadable
     body): rendered fetch in headless Chromium via Playwright, bounded by
     a hard navigation deadline. Browser requests to blocked hosts are
     aborted.
  4. The same BeautifulSoup extraction runs on either HTML.

Batches are processed sequentially with a fixed delay between URLs.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import socket
import urllib.parse
from dataclasses import dataclass
from typing import Awaitable, Callable, Protocol, Union

import httpx
from bs4 import BeautifulSoup
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Route, async_playwright

from docquery.config import ScraperCfg
from docquery.db.models import (
    Chunk,
    PageMetadata,
    ScrapedContent,
    WebMetadata,
    utc_now_iso,
)
from docquery.errors import IngestionFailed, ScrapeFailed
from docquery.ingest.base import BaseChunker
from docquery.ingest.plaintext import PlainTextChunker

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
_MAX_REDIRECTS = 3
_ALLOWED_SCHEMES = {"https", "http"}
_HTML_CONTENT_TYPES = {"text/html", "application/xhtml+xml"}

_NOISE_SELECTOR = "script, style, nav, header, footer, .nav, .header, .footer, .sidebar, .menu"
_MAIN_SELECTORS = (
    "main",
    "article",
    ".content",
    ".post-content",
    ".entry-content",
    "#content",
    ".main-content",
)
_WS_RE = re.compile(r"\s+")


class SsrfError(ValueError):
    """Raised when a URL resolves to a private or reserved address."""


# ---------------------------------------------------------------------------
# URL guards
# ---------------------------------------------------------------------------


def validate_scheme(url: str) -> None:
    scheme = urllib.parse.urlparse(url).scheme
    if scheme not in _ALLOWED_SCHEMES:
        raise ValueError(
            f"Unsupported URL scheme '{scheme}'. Only https:// and http:// are allowed."
        )


async def _resolve(hostname: str) -> list[str]:
    """Addresses *hostname* resolves to, via the event loop's resolver."""
    infos = await asyncio.get_running_loop().getaddrinfo(hostname, None)
    return [info[4][0] for info in infos]


def _is_internal(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


async def check_public_host(url: str) -> None:
    """Reject *url* unless every address its host resolves to is public.

    Raises:
        SsrfError: Some address is private, loopback, link-local, reserved,
            multicast or unspecified.
        ValueError: No hostname, or the name does not resolve.
    """
    hostname = urllib.parse.urlparse(url).hostname
    if not hostname:
        raise ValueError(f"URL has no hostname: {url}")

    try:
        addresses = await _resolve(hostname)
    except socket.gaierror as exc:
        raise ValueError(f"DNS resolution failed for '{hostname}': {exc}") from exc

    for address in addresses:
        try:
            ip = ipaddress.ip_address(address.split("%")[0])
        except ValueError:
            continue
        if _is_internal(ip):
            raise SsrfError(
                f"URL resolves to private address ({ip}). "
                "Access to internal network addresses is not allowed."
            )


UrlGuard = Callable[[str], Awaitable[None]]


# ---------------------------------------------------------------------------
# Fetch results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FetchedPage:
    url: str
    body: str
    content_type: str = "text/html"


@dataclass(frozen=True)
class FetchError:
    url: str
    reason: str


FetchResult = Union[FetchedPage, FetchError]


class PageRenderer(Protocol):
    async def render(self, url: str) -> FetchResult: ...


class PlaywrightRenderer:
    """Render a page in headless Chromium and return the resulting DOM as HTML.

    ``navigation_timeout_ms`` bounds navigation; the whole render is also
    wrapped in a hard asyncio deadline so a stuck browser cannot stall a
    batch. A timeout is reported like any other fetch failure. Every
    http(s) request the page makes, redirects included, must pass
    *url_guard* or it is aborted.
    """

    def __init__(
        self,
        navigation_timeout_ms: int = 30_000,
        grace_s: float = 5.0,
        url_guard: UrlGuard = check_public_host,
    ) -> None:
        self.navigation_timeout_ms = navigation_timeout_ms
        self.grace_s = grace_s
        self._url_guard = url_guard

    async def render(self, url: str) -> FetchResult:
        deadline = self.navigation_timeout_ms / 1000 + self.grace_s
        try:
            return await asyncio.wait_for(self._render(url), timeout=deadline)
        except asyncio.TimeoutError:
            return FetchError(url, f"rendering exceeded {deadline:.0f}s deadline")
        except PlaywrightError as exc:
            return FetchError(url, f"headless browser failed: {exc}")

    async def _render(self, url: str) -> FetchResult:
        async with async_playwright() as p:
            browser = await p.chromium.launch(
                headless=True, args=["--no-sandbox", "--disable-setuid-sandbox"]
            )
            try:
                page = await browser.new_page(user_agent=USER_AGENT)
                await page.route("**/*", self._guard_route)
                await page.goto(
                    url, wait_until="networkidle", timeout=self.navigation_timeout_ms
                )
                return FetchedPage(url, await page.content())
            finally:
                await browser.close()

    async def _guard_route(self, route: Route) -> None:
        request_url = route.request.url
        if urllib.parse.urlparse(request_url).scheme in _ALLOWED_SCHEMES:
            try:
                await self._url_guard(request_url)
            except ValueError as exc:
                logger.warning("Blocked browser request to %s: %s", request_url, exc)
                await route.abort()
                return
        await route.continue_()


# ---------------------------------------------------------------------------
# Scraper
# ---------------------------------------------------------------------------


class WebScraper:
    """Scrape pages to ``ScrapedContent`` and chunk them into web chunks.

    Args:
        config: Scraper limits and timing (delay, timeouts, size cap).
        chunker: Chunker for page text. Defaults to PlainTextChunker.
        renderer: Headless-browser fallback. Defaults to PlaywrightRenderer.
        client: Shared httpx client; one is created per fetch when omitted.
    """

    def __init__(
        self,
        config: ScraperCfg | None = None,
        chunker: BaseChunker | None = None,
        renderer: PageRenderer | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config or ScraperCfg()
        self._chunker = chunker or PlainTextChunker()
        self._renderer = renderer or PlaywrightRenderer(self._config.navigation_timeout_ms)
        self._client = client

    async def scrape_one(self, url: str) -> ScrapedContent:
        """Scrape *url*, falling back to a rendered fetch if the plain one fails.

        Raises:
            ValueError / SsrfError: URL or a redirect target rejected.
            ScrapeFailed: Both fetch strategies failed.
        """
        validate_scheme(url)
        await check_public_host(url)

        result = await self._try_static_fetch(url)
        if isinstance(result, FetchError):
            logger.warning("Static fetch failed for %s (%s); trying headless browser", url, result.reason)
            result = await self._renderer.render(url)
        if isinstance(result, FetchError):
            raise ScrapeFailed(url, result.reason)

        return extract_content(result.url, result.body, result.content_type)

    async def scrape_many(self, urls: list[str]) -> list[ScrapedContent]:
        """Scrape *urls* one after another, in order, skipping failures."""
        results: list[ScrapedContent] = []
        for i, url in enumerate(urls):
            if i > 0 and self._config.request_delay > 0:
                await asyncio.sleep(self._config.request_delay)
            logger.info("Scraping: %s", url)
            try:
                results.append(await self.scrape_one(url))
            except (ValueError, ScrapeFailed) as exc:
                logger.error("Failed to scrape %s: %s", url, exc)
        return results

    def process_many(self, scraped: list[ScrapedContent]) -> list[Chunk]:
        """Chunk every scraped page, tagging chunks with web metadata."""
        chunks: list[Chunk] = []
        for page in scraped:
            scraped_at = utc_now_iso()
            chunks.extend(
                self._chunker.chunk(
                    page.url,
                    page.content,
                    lambda i, page=page: WebMetadata(
                        url=page.url,
                        title=page.title,
                        chunk_index=i,
                        scraped_at=scraped_at,
                    ),
                )
            )
        return chunks

    # ------------------------------------------------------------------
    # Static fetch
    # ------------------------------------------------------------------

    async def _try_static_fetch(self, url: str) -> FetchResult:
        if self._client is not None:
            return await self._fetch(self._client, url)
        async with httpx.AsyncClient(
            headers={"User-Agent": USER_AGENT},
            timeout=self._config.fetch_timeout,
        ) as client:
            return await self._fetch(client, url)

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> FetchResult:
        """GET *url* with the size cap and Content-Type check applied.

        Redirect targets are checked before they are requested; a blocked
        target raises instead of returning a FetchError.
        """
        target = url
        try:
            for _ in range(_MAX_REDIRECTS + 1):
                async with client.stream("GET", target, follow_redirects=False) as response:
                    if response.is_redirect:
                        target = urllib.parse.urljoin(target, response.headers["Location"])
                        validate_scheme(target)
                        await check_public_host(target)
                        logger.debug("Redirect %s -> %s", url, target)
                        continue
                    return await self._read(response, url)
        except httpx.HTTPError as exc:
            return FetchError(url, f"{type(exc).__name__}: {exc}")
        return FetchError(url, f"more than {_MAX_REDIRECTS} redirects")

    async def _read(self, response: httpx.Response, url: str) -> FetchResult:
        if not response.is_success:
            return FetchError(url, f"HTTP error! status: {response.status_code}")

        raw_ct = response.headers.get("Content-Type", "text/html")
        ct = raw_ct.split(";")[0].strip().lower()
        if ct not in _HTML_CONTENT_TYPES and not ct.startswith("text/"):
            return FetchError(url, f"unsupported Content-Type '{ct}'")
        if ct not in _HTML_CONTENT_TYPES:
            ct = "text/plain"

        body = bytearray()
        async for part in response.aiter_bytes():
            body.extend(part)
            if len(body) > self._config.max_bytes:
                return FetchError(
                    url,
                    f"response body exceeds {self._config.max_bytes // (1024 * 1024)} MB limit",
                )
        encoding = response.encoding or "utf-8"
        return FetchedPage(url, bytes(body).decode(encoding, errors="replace"), ct)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def extract_content(url: str, body: str, content_type: str = "text/html") -> ScrapedContent:
    """Pull title, main text and page metadata out of a fetched document."""
    if content_type == "text/plain":
        content = collapse_whitespace(body)
        return ScrapedContent(
            url=url,
            title="Untitled",
            content=content,
            metadata=PageMetadata(word_count=len(content.split())),
        )

    soup = BeautifulSoup(body, "html.parser")

    # Title first: the first <h1> may sit inside a header that is removed below.
    title = _text_of(soup.title) or _text_of(soup.find("h1")) or "Untitled"

    for tag in soup.select(_NOISE_SELECTOR):
        tag.decompose()

    content = ""
    for selector in _MAIN_SELECTORS:
        element = soup.select_one(selector)
        if element is not None:
            content = element.get_text(" ")
            break
    if not content.strip():
        root = soup.body or soup
        content = root.get_text(" ")
    content = collapse_whitespace(content)

    description = _meta(soup, name="description") or _meta(soup, prop="og:description")
    author = _meta(soup, name="author") or _meta(soup, prop="article:author")
    published = _meta(soup, prop="article:published_time")
    if not published:
        time_tag = soup.find("time", attrs={"datetime": True})
        published = str(time_tag["datetime"]) if time_tag else ""

    links = [
        str(a["href"])
        for a in soup.find_all("a", href=True)
        if str(a["href"]).startswith("http")
    ]

    return ScrapedContent(
        url=url,
        title=title,
        content=content,
        metadata=PageMetadata(
            description=description,
            author=author,
            published_date=published,
            word_count=len(content.split()),
            links=links,
        ),
    )


def _text_of(tag) -> str:
    return tag.get_text(strip=True) if tag is not None else ""


def _meta(soup: BeautifulSoup, name: str | None = None, prop: str | None = None) -> str:
    attrs = {"name": name} if name else {"property": prop}
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return ""
    return str(tag.get("content", "")).strip()


# ---------------------------------------------------------------------------
# Batch validation
# ---------------------------------------------------------------------------


def validate_urls(urls: list[str], max_urls: int = 10) -> list[str]:
    """Keep parsable http(s) URLs; reject an empty or oversized batch.

    Raises:
        IngestionFailed: No valid URLs remain, or more than *max_urls* do.
    """
    valid: list[str] = []
    for url in urls:
        parsed = urllib.parse.urlparse(url.strip())
        if parsed.scheme in _ALLOWED_SCHEMES and parsed.netloc:
            valid.append(url.strip())
        else:
            logger.warning("Ignoring invalid URL: %r", url)

    if not valid:
        raise IngestionFailed("No valid URLs provided")
    if len(valid) > max_urls:
        raise IngestionFailed(f"Maximum {max_urls} URLs allowed per request")
    return valid
