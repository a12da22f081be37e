"""
Best-effort page metadata for new links.

The analyzer fetches the target page and derives a title, description,
keywords, a category and an alias suggestion. Every failure degrades to
metadata derived from the URL alone; link creation never waits longer
than settings.enrichment_timeout_seconds for it.
"""

import asyncio
import html
import ipaddress
import logging
import re
import socket
from collections import Counter
from typing import List, Optional
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, Field, ValidationError

from smartshort_app.cache.strategies import CacheStrategy, NullCache
from smartshort_app.config import settings

logger = logging.getLogger(__name__)

MAX_ALIAS_SUGGESTION = 20

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_META_DESC_RE = re.compile(
    r"<meta[^>]*name=[\"']description[\"'][^>]*content=[\"']([^\"']+)[\"']", re.IGNORECASE
)
_OG_IMAGE_RE = re.compile(
    r"<meta[^>]*property=[\"']og:image[\"'][^>]*content=[\"']([^\"']+)[\"']", re.IGNORECASE
)
_SCRIPT_STYLE_RE = re.compile(r"<(script|style)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WORD_RE = re.compile(r"\b[a-z][a-z0-9]+\b")

CATEGORY_TERMS = {
    "tech": {"technology", "programming", "software", "tech", "developer", "code", "python"},
    "news": {"news", "article", "breaking", "report"},
    "blog": {"blog", "post", "thoughts"},
    "education": {"tutorial", "learning", "course", "lesson", "guide"},
}
STOPWORDS = {"this", "that", "with", "from", "your", "have", "will", "were", "what", "when", "about"}


class UrlMetadata(BaseModel):
    title: str = ""
    description: str = ""
    keywords: List[str] = Field(default_factory=list)
    suggested_alias: Optional[str] = None
    category: str = "general"
    preview_image: Optional[str] = None


def extract_title(page: str) -> str:
    match = _TITLE_RE.search(page)
    return html.unescape(match.group(1)).strip() if match else ""


def extract_description(page: str) -> str:
    match = _META_DESC_RE.search(page)
    return html.unescape(match.group(1)).strip() if match else ""


def extract_preview_image(page: str) -> Optional[str]:
    match = _OG_IMAGE_RE.search(page)
    return match.group(1).strip() if match else None


def extract_text(page: str) -> str:
    text = _SCRIPT_STYLE_RE.sub(" ", page)
    text = _TAG_RE.sub(" ", text)
    return re.sub(r"\s+", " ", html.unescape(text)).strip()


def title_from_url(url: str) -> str:
    """'docs.python.org - 3 library asyncio' style fallback title."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return "Untitled"
    hostname = (parts.hostname or "").removeprefix("www.")
    if not hostname:
        return "Untitled"
    segments = [s for s in parts.path.split("/") if s]
    if segments:
        return f"{hostname} - {' '.join(segments[:3])}"
    return hostname


def suggest_alias(title: str, url: str) -> str:
    if title:
        slug = re.sub(r"[^a-z0-9\s]", "", title.lower())
        slug = re.sub(r"\s+", "-", slug.strip())
        slug = slug[:MAX_ALIAS_SUGGESTION].strip("-")
        if slug:
            return slug
    try:
        parts = urlsplit(url)
    except ValueError:
        return "link"
    hostname = (parts.hostname or "").removeprefix("www.")
    path = parts.path.replace("/", "-").strip("-")
    candidate = f"{hostname}-{path}" if path else hostname
    candidate = re.sub(r"[^A-Za-z0-9-]", "-", candidate)[:MAX_ALIAS_SUGGESTION].strip("-")
    return candidate or "link"


def extract_keywords(text: str, limit: int = 5) -> List[str]:
    words = [w for w in _WORD_RE.findall(text.lower()) if len(w) > 3 and w not in STOPWORDS]
    return [word for word, _ in Counter(words).most_common(limit)]


def categorize(text: str) -> str:
    words = set(_WORD_RE.findall(text.lower()))
    scores = {category: len(words & terms) for category, terms in CATEGORY_TERMS.items()}
    best = max(scores, key=scores.get)
    return best if scores[best] else "general"


def basic_metadata(url: str, title: str = None, description: str = None) -> UrlMetadata:
    """Metadata that needs nothing but the URL (and caller-supplied text)."""
    title = title or title_from_url(url)
    return UrlMetadata(
        title=title,
        description=description or "",
        keywords=[],
        suggested_alias=suggest_alias(title, url),
        category="general",
    )


class BlockedTarget(Exception):
    """The page (or a redirect hop) points at an address we do not fetch."""


async def ensure_public_host(url: str) -> None:
    """
    Raise BlockedTarget unless every address the host resolves to is public.

    Loopback, private, link-local and reserved ranges are refused so that
    shortening a URL cannot reach into the service's own network.
    """
    try:
        host = httpx.URL(url).host
    except httpx.InvalidURL as e:
        raise BlockedTarget(f"Unparseable URL {url}: {e}") from e
    if not host:
        raise BlockedTarget(f"No host in {url}")
    try:
        addresses = [ipaddress.ip_address(host)]
    except ValueError:
        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except socket.gaierror as e:
            raise BlockedTarget(f"Cannot resolve {host}: {e}") from e
        # Scoped IPv6 results carry a "%iface" suffix
        addresses = [ipaddress.ip_address(info[4][0].split("%")[0]) for info in infos]
    for address in addresses:
        if not address.is_global:
            raise BlockedTarget(f"{host} resolves to non-public address {address}")


class MetadataAnalyzer:
    """Fetch a page and turn it into UrlMetadata, caching the result."""

    def __init__(
        self,
        cache: CacheStrategy = None,
        client: httpx.AsyncClient = None,
        fetch_timeout: float = None,
        max_bytes: int = None,
        max_redirects: int = None,
        block_private: bool = None,
    ):
        self.cache = cache if cache is not None else NullCache()
        self._client = client
        self.fetch_timeout = fetch_timeout or settings.enrichment_fetch_timeout_seconds
        self.max_bytes = max_bytes or settings.enrichment_max_bytes
        self.max_redirects = max_redirects if max_redirects is not None else settings.enrichment_max_redirects
        self.block_private = (
            block_private if block_private is not None else settings.enrichment_block_private_addresses
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.fetch_timeout,
                headers={"User-Agent": settings.enrichment_user_agent},
            )
        return self._client

    async def fetch(self, url: str) -> str:
        """
        GET the page, following redirects by hand so every hop is checked.
        Returns "" for non-HTML responses.
        """
        for _ in range(self.max_redirects + 1):
            if self.block_private:
                await ensure_public_host(url)
            async with self.client.stream("GET", url, follow_redirects=False) as response:
                if response.is_redirect:
                    url = str(response.url.join(response.headers["location"]))
                    continue
                response.raise_for_status()
                if "html" not in response.headers.get("content-type", ""):
                    return ""
                return await self._read_limited(response)
        raise httpx.TooManyRedirects(f"More than {self.max_redirects} redirects", request=response.request)

    async def _read_limited(self, response: httpx.Response) -> str:
        """Read at most max_bytes of the body; the rest is never downloaded."""
        chunks = []
        size = 0
        async for chunk in response.aiter_bytes():
            chunks.append(chunk)
            size += len(chunk)
            if size >= self.max_bytes:
                break
        body = b"".join(chunks)[:self.max_bytes]
        try:
            return body.decode(response.encoding or "utf-8", errors="replace")
        except LookupError:
            return body.decode("utf-8", errors="replace")

    def from_html(self, url: str, page: str) -> UrlMetadata:
        title = extract_title(page) or title_from_url(url)
        description = extract_description(page)
        text = extract_text(page)
        return UrlMetadata(
            title=title,
            description=description,
            keywords=extract_keywords(text),
            suggested_alias=suggest_alias(title, url),
            category=categorize(f"{title} {description} {text}"),
            preview_image=extract_preview_image(page),
        )

    async def analyze(self, url: str) -> UrlMetadata:
        """
        Analyze a URL. Fetch failures fall back to URL-derived metadata;
        other errors propagate to the caller.
        """
        cache_key = f"meta:{url}"
        cached = await self.cache.get(cache_key)
        if cached:
            try:
                return UrlMetadata.model_validate_json(cached)
            except ValidationError:
                await self.cache.delete(cache_key)

        try:
            page = await self.fetch(url)
        except BlockedTarget as e:
            logger.warning("🚫 Not fetching %s for metadata: %s", url, e)
            return basic_metadata(url)
        except httpx.HTTPError as e:
            logger.warning("⚠️  Failed to fetch %s for metadata: %s", url, e)
            return basic_metadata(url)

        metadata = self.from_html(url, page) if page else basic_metadata(url)
        await self.cache.set(cache_key, metadata.model_dump_json(), ttl=settings.cache_ttl)
        return metadata

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


async def enrich_or_default(
    analyzer: Optional[MetadataAnalyzer],
    url: str,
    title: str = None,
    description: str = None,
    timeout: float = None,
) -> UrlMetadata:
    """
    Time-bounded enrichment that never raises.

    Caller-supplied title/description always win over analyzed ones.
    """
    fallback = basic_metadata(url, title, description)
    if analyzer is None or not settings.enrichment_enabled:
        return fallback

    timeout = timeout if timeout is not None else settings.enrichment_timeout_seconds
    try:
        metadata = await asyncio.wait_for(analyzer.analyze(url), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning("⚠️  Metadata analysis timed out after %ss for %s", timeout, url)
        return fallback
    except Exception as e:
        logger.warning("⚠️  Metadata analysis failed for %s, continuing without it: %s", url, e)
        return fallback

    return metadata.model_copy(update={
        "title": title or metadata.title or fallback.title,
        "description": description or metadata.description,
    })
