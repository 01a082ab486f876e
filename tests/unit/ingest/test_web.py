"""Tests for WebScraper — URL guards, fetch pipeline, extraction, batching."""

from __future__ import annotations

import asyncio
import socket
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from docquery.config import ScraperCfg
from docquery.db.models import WebMetadata
from docquery.errors import IngestionFailed, ScrapeFailed
from docquery.ingest.plaintext import PlainTextChunker
from docquery.ingest.web import (
    FetchedPage,
    FetchError,
    PlaywrightRenderer,
    SsrfError,
    WebScraper,
    _resolve,
    check_public_host,
    extract_content,
    validate_scheme,
    validate_urls,
)

PAGE = """
<html>
  <head>
    <title>Pet Guide</title>
    <meta name="description" content="All about cats">
    <meta name="author" content="Ada">
    <meta property="article:published_time" content="2024-05-01">
  </head>
  <body>
    <nav>Home | About</nav>
    <header><h1>Site header</h1></header>
    <main>
      <p>Cats   sleep a lot.</p>
      <script>track()</script>
      <a href="https://example.org/cats">more</a>
      <a href="/relative">rel</a>
      <a href="mailto:x@example.com">mail</a>
    </main>
    <footer>Copyright</footer>
  </body>
</html>
"""


# ------------------------------------------------------------------
# Scheme validation
# ------------------------------------------------------------------


def test_scheme_https_ok():
    validate_scheme("https://example.com/page")


def test_scheme_http_ok():
    validate_scheme("http://example.com/page")


def test_scheme_ftp_raises():
    with pytest.raises(ValueError, match="scheme"):
        validate_scheme("ftp://example.com")


def test_scheme_file_raises():
    with pytest.raises(ValueError, match="scheme"):
        validate_scheme("file:///etc/passwd")


# ------------------------------------------------------------------
# SSRF guard
# ------------------------------------------------------------------

PUBLIC_IP = "93.184.216.34"


def _patch_resolver(addresses: str | dict[str, str]):
    """Make host resolution return *addresses* (one IP, or a host → IP map)."""

    def resolve(hostname: str) -> list[str]:
        if isinstance(addresses, str):
            return [addresses]
        return [addresses[hostname]]

    return patch("docquery.ingest.web._resolve", new=AsyncMock(side_effect=resolve))


@pytest.mark.asyncio
async def test_check_public_host_no_hostname_raises():
    with pytest.raises(ValueError, match="hostname"):
        await check_public_host("https://")


@pytest.mark.asyncio
async def test_ssrf_public_ip_ok():
    with _patch_resolver(PUBLIC_IP):
        await check_public_host("https://example.com")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "ip",
    ["127.0.0.1", "10.0.0.1", "172.16.0.1", "192.168.1.1", "169.254.169.254", "::1", "0.0.0.0"],
)
async def test_ssrf_private_ranges_blocked(ip):
    with _patch_resolver(ip):
        with pytest.raises(SsrfError, match="private address"):
            await check_public_host("http://internal.example/")


@pytest.mark.asyncio
async def test_ssrf_dns_failure_is_value_error():
    failing = AsyncMock(side_effect=socket.gaierror("nope"))
    with patch("docquery.ingest.web._resolve", new=failing):
        with pytest.raises(ValueError, match="DNS resolution failed"):
            await check_public_host("https://no-such-host.invalid/")


@pytest.mark.asyncio
async def test_resolve_uses_event_loop_resolver():
    loop = asyncio.get_running_loop()
    infos = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (PUBLIC_IP, 0))]
    with patch.object(loop, "getaddrinfo", new=AsyncMock(return_value=infos)) as lookup:
        assert await _resolve("example.com") == [PUBLIC_IP]
    lookup.assert_awaited_once_with("example.com", None)


# ------------------------------------------------------------------
# extract_content()
# ------------------------------------------------------------------


def test_extract_title_and_main_content():
    page = extract_content("https://example.com/a", PAGE)
    assert page.title == "Pet Guide"
    assert page.content.startswith("Cats sleep a lot.")
    assert "Home" not in page.content
    assert "Copyright" not in page.content
    assert "track()" not in page.content


def test_extract_metadata():
    meta = extract_content("https://example.com/a", PAGE).metadata
    assert meta.description == "All about cats"
    assert meta.author == "Ada"
    assert meta.published_date == "2024-05-01"
    assert meta.links == ["https://example.org/cats"]


def test_extract_word_count_matches_content():
    page = extract_content("https://example.com/a", PAGE)
    assert page.metadata.word_count == len(page.content.split())


def test_extract_title_falls_back_to_h1():
    html = "<html><body><h1>Dogs</h1><p>Woof.</p></body></html>"
    assert extract_content("https://e.com", html).title == "Dogs"


def test_extract_title_untitled_when_missing():
    html = "<html><body><p>No heading here.</p></body></html>"
    assert extract_content("https://e.com", html).title == "Untitled"


def test_extract_prefers_article_over_body():
    html = "<body><div>sidebar text</div><article>The story.</article></body>"
    assert extract_content("https://e.com", html).content == "The story."


def test_extract_falls_back_to_body():
    html = "<html><body><div>Just <b>body</b>\n\n text.</div></body></html>"
    assert extract_content("https://e.com", html).content == "Just body text."


def test_extract_og_description_and_time_tag():
    html = (
        '<html><head><meta property="og:description" content="OG desc"></head>'
        '<body><p>x</p><time datetime="2023-01-02">Jan 2</time></body></html>'
    )
    meta = extract_content("https://e.com", html).metadata
    assert meta.description == "OG desc"
    assert meta.published_date == "2023-01-02"


def test_extract_plain_text():
    page = extract_content("https://e.com/notes.txt", "line one\n\nline   two", "text/plain")
    assert page.title == "Untitled"
    assert page.content == "line one line two"
    assert page.metadata.word_count == 4


# ------------------------------------------------------------------
# validate_urls()
# ------------------------------------------------------------------


def test_validate_urls_keeps_http_and_https():
    urls = ["https://a.com", " http://b.com/x ", "ftp://c.com", "not a url"]
    assert validate_urls(urls) == ["https://a.com", "http://b.com/x"]


def test_validate_urls_none_valid_raises():
    with pytest.raises(IngestionFailed, match="No valid URLs provided"):
        validate_urls(["ftp://c.com", ""])


def test_validate_urls_over_limit_raises():
    urls = [f"https://site{i}.com" for i in range(11)]
    with pytest.raises(IngestionFailed, match="Maximum 10 URLs allowed per request"):
        validate_urls(urls)


def test_validate_urls_custom_limit():
    assert len(validate_urls(["https://a.com", "https://b.com"], max_urls=2)) == 2
    with pytest.raises(IngestionFailed, match="Maximum 1 URLs"):
        validate_urls(["https://a.com", "https://b.com"], max_urls=1)


# ------------------------------------------------------------------
# scrape_one(): static fetch with rendered fallback
# ------------------------------------------------------------------


class FakeRenderer:
    def __init__(self, result=None) -> None:
        self.result = result
        self.calls: list[str] = []

    async def render(self, url: str):
        self.calls.append(url)
        if self.result is None:
            return FetchError(url, "browser unavailable")
        return self.result


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _html_response(body: str, status: int = 200, content_type: str = "text/html") -> httpx.Response:
    return httpx.Response(status, headers={"Content-Type": content_type}, text=body)


@pytest.mark.asyncio
async def test_scrape_one_static_success_skips_renderer():
    renderer = FakeRenderer()
    scraper = WebScraper(renderer=renderer, client=_client(lambda req: _html_response(PAGE)))
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/a")
    assert page.title == "Pet Guide"
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_scrape_one_non_2xx_falls_back_to_renderer():
    rendered = FetchedPage("https://example.com/a", "<title>Rendered</title><main>JS page</main>")
    renderer = FakeRenderer(rendered)
    scraper = WebScraper(
        renderer=renderer, client=_client(lambda req: _html_response("denied", status=403))
    )
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/a")
    assert renderer.calls == ["https://example.com/a"]
    assert page.title == "Rendered"
    assert page.content == "JS page"


@pytest.mark.asyncio
async def test_scrape_one_network_error_falls_back():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    renderer = FakeRenderer(FetchedPage("https://example.com/", "<p>ok</p>"))
    scraper = WebScraper(renderer=renderer, client=_client(handler))
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/")
    assert page.content == "ok"


@pytest.mark.asyncio
async def test_scrape_one_oversized_body_falls_back():
    cfg = ScraperCfg(max_bytes=100)
    renderer = FakeRenderer(FetchedPage("https://example.com/", "<p>small</p>"))
    scraper = WebScraper(
        cfg, renderer=renderer, client=_client(lambda req: _html_response("x" * 500))
    )
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/")
    assert renderer.calls == ["https://example.com/"]
    assert page.content == "small"


@pytest.mark.asyncio
async def test_scrape_one_both_strategies_fail_raises():
    scraper = WebScraper(
        renderer=FakeRenderer(), client=_client(lambda req: _html_response("", status=500))
    )
    with _patch_resolver(PUBLIC_IP):
        with pytest.raises(ScrapeFailed, match="browser unavailable") as exc_info:
            await scraper.scrape_one("https://example.com/")
    assert exc_info.value.url == "https://example.com/"


@pytest.mark.asyncio
async def test_scrape_one_ssrf_is_final():
    renderer = FakeRenderer(FetchedPage("http://internal/", "<p>secret</p>"))
    client = _client(lambda req: pytest.fail("no request expected"))
    scraper = WebScraper(renderer=renderer, client=client)
    with _patch_resolver("10.0.0.5"):
        with pytest.raises(SsrfError):
            await scraper.scrape_one("http://internal/")
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_scrape_one_plain_text_response():
    scraper = WebScraper(
        renderer=FakeRenderer(),
        client=_client(lambda req: _html_response("cats\n and dogs", content_type="text/plain")),
    )
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/notes.txt")
    assert page.content == "cats and dogs"
    assert page.title == "Untitled"


@pytest.mark.asyncio
async def test_scrape_one_binary_content_type_falls_back():
    renderer = FakeRenderer()
    scraper = WebScraper(
        renderer=renderer,
        client=_client(lambda req: _html_response("%PDF", content_type="application/pdf")),
    )
    with _patch_resolver(PUBLIC_IP):
        with pytest.raises(ScrapeFailed):
            await scraper.scrape_one("https://example.com/file.pdf")
    assert renderer.calls == ["https://example.com/file.pdf"]


@pytest.mark.asyncio
async def test_scrape_one_redirect_to_loopback_is_blocked():
    requested: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.host == "example.com":
            return httpx.Response(302, headers={"Location": "http://127.0.0.1/admin"})
        return _html_response("<p>internal admin</p>")

    renderer = FakeRenderer(FetchedPage("https://example.com/", "<p>rendered</p>"))
    scraper = WebScraper(renderer=renderer, client=_client(handler))
    resolver = {"example.com": PUBLIC_IP, "127.0.0.1": "127.0.0.1"}
    with _patch_resolver(resolver):
        with pytest.raises(SsrfError, match="127.0.0.1"):
            await scraper.scrape_one("https://example.com/")
    assert requested == ["https://example.com/"]
    assert renderer.calls == []


@pytest.mark.asyncio
async def test_scrape_one_follows_public_redirect():
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "/new"})
        return _html_response("<title>Moved</title><main>new home</main>")

    scraper = WebScraper(renderer=FakeRenderer(), client=_client(handler))
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/old")
    assert page.url == "https://example.com/old"
    assert page.title == "Moved"


@pytest.mark.asyncio
async def test_scrape_one_redirect_loop_falls_back():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(302, headers={"Location": "/again"})

    renderer = FakeRenderer(FetchedPage("https://example.com/", "<p>rendered</p>"))
    scraper = WebScraper(renderer=renderer, client=_client(handler))
    with _patch_resolver(PUBLIC_IP):
        page = await scraper.scrape_one("https://example.com/")
    assert renderer.calls == ["https://example.com/"]
    assert page.content == "rendered"


@pytest.mark.asyncio
async def test_scrape_one_redirect_to_other_scheme_is_rejected():
    client = _client(lambda req: httpx.Response(302, headers={"Location": "file:///etc/passwd"}))
    renderer = FakeRenderer()
    scraper = WebScraper(renderer=renderer, client=client)
    with _patch_resolver(PUBLIC_IP):
        with pytest.raises(ValueError, match="scheme"):
            await scraper.scrape_one("https://example.com/")
    assert renderer.calls == []


# ------------------------------------------------------------------
# scrape_many() / process_many()
# ------------------------------------------------------------------


def _routing_client() -> httpx.AsyncClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/broken":
            return _html_response("", status=404)
        name = request.url.path.strip("/")
        return _html_response(f"<title>{name}</title><main>{name} body</main>")

    return _client(handler)


@pytest.mark.asyncio
async def test_scrape_many_preserves_order_and_skips_failures():
    scraper = WebScraper(
        ScraperCfg(request_delay=0), renderer=FakeRenderer(), client=_routing_client()
    )
    urls = ["https://e.com/one", "https://e.com/broken", "ftp://e.com/x", "https://e.com/two"]
    with _patch_resolver(PUBLIC_IP):
        pages = await scraper.scrape_many(urls)
    assert [p.title for p in pages] == ["one", "two"]


@pytest.mark.asyncio
async def test_scrape_many_sleeps_between_urls():
    scraper = WebScraper(
        ScraperCfg(request_delay=1.5), renderer=FakeRenderer(), client=_routing_client()
    )
    sleep = AsyncMock()
    with _patch_resolver(PUBLIC_IP), patch("docquery.ingest.web.asyncio.sleep", sleep):
        await scraper.scrape_many(["https://e.com/a", "https://e.com/b", "https://e.com/c"])
    assert sleep.await_count == 2
    sleep.assert_awaited_with(1.5)


def test_process_many_tags_web_metadata():
    scraper = WebScraper(renderer=FakeRenderer(), chunker=PlainTextChunker(chunk_size=20, overlap=0))
    page = extract_content("https://e.com/p", "<title>T</title><main>" + "word " * 20 + "</main>")
    chunks = scraper.process_many([page])

    assert len(chunks) > 1
    for i, chunk in enumerate(chunks):
        assert isinstance(chunk.metadata, WebMetadata)
        assert chunk.metadata.url == "https://e.com/p"
        assert chunk.metadata.title == "T"
        assert chunk.metadata.chunk_index == i
        assert chunk.id == f"https://e.com/p-chunk-{i}"
    assert len({c.metadata.scraped_at for c in chunks}) == 1


def test_process_many_empty():
    assert WebScraper(renderer=FakeRenderer()).process_many([]) == []


# ------------------------------------------------------------------
# PlaywrightRenderer deadline
# ------------------------------------------------------------------


@pytest.mark.asyncio
async def test_renderer_deadline_returns_fetch_error():
    renderer = PlaywrightRenderer(navigation_timeout_ms=10, grace_s=0)

    async def stuck(url):
        await asyncio.sleep(5)

    with patch.object(renderer, "_render", new=stuck):
        result = await renderer.render("https://slow.example/")
    assert isinstance(result, FetchError)
    assert "deadline" in result.reason


# ------------------------------------------------------------------
# PlaywrightRenderer request guard
# ------------------------------------------------------------------


def _route(url: str) -> SimpleNamespace:
    return SimpleNamespace(
        request=SimpleNamespace(url=url), abort=AsyncMock(), continue_=AsyncMock()
    )


@pytest.mark.asyncio
async def test_renderer_aborts_requests_to_private_hosts():
    renderer = PlaywrightRenderer()
    route = _route("http://169.254.169.254/latest/meta-data/")
    with _patch_resolver("169.254.169.254"):
        await renderer._guard_route(route)
    route.abort.assert_awaited_once()
    route.continue_.assert_not_awaited()


@pytest.mark.asyncio
async def test_renderer_continues_public_requests():
    renderer = PlaywrightRenderer()
    route = _route("https://cdn.example.com/app.js")
    with _patch_resolver(PUBLIC_IP):
        await renderer._guard_route(route)
    route.continue_.assert_awaited_once()
    route.abort.assert_not_awaited()


@pytest.mark.asyncio
async def test_renderer_passes_non_http_requests_through():
    guard = AsyncMock()
    renderer = PlaywrightRenderer(url_guard=guard)
    route = _route("data:image/png;base64,AAAA")
    await renderer._guard_route(route)
    guard.assert_not_awaited()
    route.continue_.assert_awaited_once()


@pytest.mark.asyncio
async def test_renderer_uses_injected_url_guard():
    guard = AsyncMock(side_effect=SsrfError("blocked"))
    renderer = PlaywrightRenderer(url_guard=guard)
    route = _route("https://example.com/")
    await renderer._guard_route(route)
    guard.assert_awaited_once_with("https://example.com/")
    route.abort.assert_awaited_once()
