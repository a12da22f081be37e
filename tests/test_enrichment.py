"""
Tests for best-effort metadata enrichment.
HTTP is served by httpx.MockTransport; nothing leaves the process.
"""
import asyncio
import socket

import httpx
import pytest

from smartshort_app.cache.strategies import InMemoryCache
from smartshort_app.enrichment.analyzer import (
    BlockedTarget,
    MetadataAnalyzer,
    UrlMetadata,
    categorize,
    enrich_or_default,
    ensure_public_host,
    extract_keywords,
    suggest_alias,
    title_from_url,
)
from smartshort_app.services.validation import validate_custom_alias

PAGE = """
<html>
<head>
  <title>Learn Python Programming &amp; Tools</title>
  <meta name="description" content="A tutorial about Python programming for developers">
  <meta property="og:image" content="https://example.com/cover.png">
  <script>var ignored = "javascript javascript javascript";</script>
</head>
<body><p>Python programming with python tooling and python software.</p></body>
</html>
"""


def mock_analyzer(handler, cache=None, **options) -> MetadataAnalyzer:
    """Analyzer over a mock transport. Address checks are off unless asked for."""
    options.setdefault("block_private", False)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return MetadataAnalyzer(cache=cache, client=client, **options)


def html_response(request):
    return httpx.Response(200, text=PAGE, headers={"content-type": "text/html; charset=utf-8"})


class SlowAnalyzer(MetadataAnalyzer):
    async def analyze(self, url):
        await asyncio.sleep(5)
        return UrlMetadata(title="too late")


class BrokenAnalyzer(MetadataAnalyzer):
    async def analyze(self, url):
        raise RuntimeError("parser exploded")


class TestHelpers:
    def test_title_from_url(self):
        assert title_from_url("https://www.example.com/") == "example.com"
        assert title_from_url("https://docs.python.org/3/library/asyncio.html") == \
            "docs.python.org - 3 library asyncio.html"

    def test_suggest_alias_from_title(self):
        assert suggest_alias("Hello, World! Python", "https://example.com") == "hello-world-python"

    def test_suggested_alias_is_a_valid_custom_alias(self):
        alias = suggest_alias("An extremely long page title that keeps going", "https://example.com")
        assert validate_custom_alias(alias) == alias
        assert len(alias) <= 20

    def test_suggest_alias_falls_back_to_url(self):
        assert suggest_alias("", "https://www.example.com/docs/intro") == "example-com-docs-int"

    def test_extract_keywords_skips_short_words(self):
        keywords = extract_keywords("the cat sat on python python python tooling tooling async")
        assert keywords[:2] == ["python", "tooling"]
        assert "cat" not in keywords

    def test_categorize(self):
        assert categorize("A python programming tutorial for software developers") == "tech"
        assert categorize("Breaking news report") == "news"
        assert categorize("Grandma's cookie recipe") == "general"


class TestMetadataAnalyzer:
    @pytest.mark.asyncio
    async def test_analyze_html_page(self):
        analyzer = mock_analyzer(html_response)

        metadata = await analyzer.analyze("https://example.com/learn")
        await analyzer.close()

        assert metadata.title == "Learn Python Programming & Tools"
        assert metadata.description == "A tutorial about Python programming for developers"
        assert metadata.preview_image == "https://example.com/cover.png"
        assert metadata.keywords[0] == "python"
        assert "javascript" not in metadata.keywords
        assert metadata.category == "tech"
        assert metadata.suggested_alias == "learn-python-program"

    @pytest.mark.asyncio
    async def test_results_are_cached(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return html_response(request)

        analyzer = mock_analyzer(handler, cache=InMemoryCache())

        first = await analyzer.analyze("https://example.com/learn")
        second = await analyzer.analyze("https://example.com/learn")

        assert first == second
        assert len(calls) == 1

    def test_empty_cache_is_kept(self):
        """An empty cache is still the cache to use"""
        cache = InMemoryCache()

        assert len(cache) == 0
        assert MetadataAnalyzer(cache=cache).cache is cache

    @pytest.mark.asyncio
    async def test_fetch_failure_falls_back_to_url_metadata(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        metadata = await mock_analyzer(handler).analyze("https://example.com/docs")

        assert metadata.title == "example.com - docs"
        assert metadata.category == "general"
        assert metadata.keywords == []

    @pytest.mark.asyncio
    async def test_http_error_status_falls_back(self):
        metadata = await mock_analyzer(lambda request: httpx.Response(500)).analyze("https://example.com/")

        assert metadata.title == "example.com"

    @pytest.mark.asyncio
    async def test_non_html_content_is_not_parsed(self):
        def handler(request):
            return httpx.Response(200, content=b"%PDF-1.7", headers={"content-type": "application/pdf"})

        metadata = await mock_analyzer(handler).analyze("https://example.com/paper.pdf")

        assert metadata.title == "example.com - paper.pdf"
        assert metadata.preview_image is None


def fake_getaddrinfo(address):
    def getaddrinfo(host, port, *args, **kwargs):
        return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0))]
    return getaddrinfo


class TestFetchSafety:
    """Only public hosts are fetched, and only a bounded part of the body"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", [
        "http://127.0.0.1/admin",
        "http://10.0.0.5/",
        "http://[::1]:8080/",
        "http://169.254.169.254/latest/meta-data/",
    ])
    async def test_private_addresses_are_not_fetched(self, url):
        calls = []

        def handler(request):
            calls.append(request.url)
            return html_response(request)

        metadata = await mock_analyzer(handler, block_private=True).analyze(url)

        assert calls == []
        assert metadata.keywords == []
        assert metadata.category == "general"

    @pytest.mark.asyncio
    async def test_redirect_to_private_address_is_blocked(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            if request.url.path == "/start":
                return httpx.Response(302, headers={"location": "http://127.0.0.1/secret"})
            return html_response(request)

        metadata = await mock_analyzer(handler, block_private=True).analyze("http://93.184.216.34/start")

        assert paths == ["/start"]
        assert metadata.title == "93.184.216.34 - start"

    @pytest.mark.asyncio
    async def test_redirects_are_followed(self):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(301, headers={"location": "/learn"})
            return html_response(request)

        metadata = await mock_analyzer(handler).analyze("https://example.com/old")

        assert metadata.title == "Learn Python Programming & Tools"

    @pytest.mark.asyncio
    async def test_redirect_loop_falls_back(self):
        calls = []

        def handler(request):
            calls.append(request.url)
            return httpx.Response(302, headers={"location": "/loop"})

        metadata = await mock_analyzer(handler, max_redirects=2).analyze("https://example.com/loop")

        assert len(calls) == 3
        assert metadata.title == "example.com - loop"

    @pytest.mark.asyncio
    async def test_body_read_stops_at_limit(self):
        sent = []

        async def body():
            yield b"<html><head><title>Big page</title></head><body>"
            for _ in range(1000):
                sent.append(1)
                yield b"x" * 10_000

        def handler(request):
            return httpx.Response(200, headers={"content-type": "text/html"}, content=body())

        analyzer = mock_analyzer(handler, max_bytes=50_000)
        page = await analyzer.fetch("https://example.com/big")

        assert len(page) == 50_000
        assert page.startswith("<html><head><title>Big page</title>")
        assert len(sent) <= 6

    @pytest.mark.asyncio
    async def test_hostname_resolving_to_private_address(self, monkeypatch):
        monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo("10.1.2.3"))

        with pytest.raises(BlockedTarget):
            await ensure_public_host("https://intranet.example/")

    @pytest.mark.asyncio
    async def test_hostname_resolving_to_public_address(self, monkeypatch):
        monkeypatch.setattr(socket, "getaddrinfo", fake_getaddrinfo("93.184.216.34"))

        await ensure_public_host("https://public.example/page")

    @pytest.mark.asyncio
    async def test_unresolvable_host_is_blocked(self, monkeypatch):
        def getaddrinfo(*args, **kwargs):
            raise socket.gaierror("Name or service not known")

        monkeypatch.setattr(socket, "getaddrinfo", getaddrinfo)

        with pytest.raises(BlockedTarget):
            await ensure_public_host("https://nowhere.invalid/")


class TestEnrichOrDefault:
    @pytest.mark.asyncio
    async def test_no_analyzer(self):
        metadata = await enrich_or_default(None, "https://example.com/a")
        assert metadata.title == "example.com - a"

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self):
        metadata = await enrich_or_default(SlowAnalyzer(), "https://example.com/a", title="Mine", timeout=0.05)

        assert metadata.title == "Mine"
        assert metadata.category == "general"

    @pytest.mark.asyncio
    async def test_unexpected_error_falls_back(self):
        metadata = await enrich_or_default(BrokenAnalyzer(), "https://example.com/a", description="Desc")

        assert metadata.title == "example.com - a"
        assert metadata.description == "Desc"

    @pytest.mark.asyncio
    async def test_caller_fields_win(self):
        analyzer = mock_analyzer(html_response)

        metadata = await enrich_or_default(analyzer, "https://example.com/learn", title="My title")

        assert metadata.title == "My title"
        assert metadata.description == "A tutorial about Python programming for developers"
        assert metadata.category == "tech"
