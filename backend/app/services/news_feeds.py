"""
Article sources: the global headline index (GDELT DOC 2.0) and generic
RSS/Atom feeds.

Any network error or timeout in either reader, as well as a non-2xx response
or a malformed body, yields an empty list and a warning instead of an exception.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

import feedparser
import httpx

from .http_client import host_of, open_client, safe_http_url

logger = logging.getLogger(__name__)

MAX_FEED_BYTES = 500_000


@dataclass
class SourceArticle:
    """A candidate news item; never persisted by the arbiter itself."""
    title: str
    url: str
    published_at: datetime | None = None
    source_country: str | None = None
    source_name: str | None = None
    provider: str = "gdelt"
    image_urls: list[str] = field(default_factory=list)

    def to_meta(self) -> dict:
        return {
            "provider": self.provider,
            "title": self.title,
            "url": self.url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "source_country": self.source_country,
            "source_name": self.source_name,
        }


@dataclass(frozen=True)
class FeedSource:
    name: str
    url: str


def parse_seendate(value: str | None) -> datetime | None:
    """Parse the index timestamp format ``20260115T143000Z``."""
    text = (value or "").strip()
    if not text:
        return None
    for fmt in ("%Y%m%dT%H%M%SZ", "%Y%m%d%H%M%S"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return None


def parse_index_payload(data: object) -> list[SourceArticle]:
    if not isinstance(data, dict):
        return []
    raw_articles = data.get("articles")
    if not isinstance(raw_articles, list):
        return []

    articles: list[SourceArticle] = []
    for raw in raw_articles:
        if not isinstance(raw, dict):
            continue
        title = str(raw.get("title") or "").strip()
        url = safe_http_url(str(raw.get("url") or ""))
        if not title or not url:
            continue
        country = raw.get("sourcecountry") or raw.get("sourceCountry")
        articles.append(
            SourceArticle(
                title=title[:300],
                url=url,
                published_at=parse_seendate(raw.get("seendate")),
                source_country=str(country).strip() if country else None,
                source_name=str(raw.get("domain") or "").strip() or host_of(url),
                provider="gdelt",
            )
        )
    return articles


class HeadlineIndexClient:
    """Query client for the GDELT DOC API (``mode=ArtList``)."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 8.0,
        user_agent: str | None = None,
        max_records: int = 25,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.max_records = max_records
        self._client = client

    async def search(self, query: str) -> list[SourceArticle]:
        params = {
            "query": query,
            "mode": "ArtList",
            "format": "json",
            "maxrecords": str(self.max_records),
            "sort": "HybridRel",
        }
        headers = {"user-agent": self.user_agent} if self.user_agent else None
        try:
            async with open_client(self._client, timeout=self.timeout) as client:
                resp = await client.get(self.base_url, params=params, headers=headers, timeout=self.timeout)
            if resp.status_code != 200:
                logger.warning(f"[news] index HTTP {resp.status_code} for query={query!r}")
                return []
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"[news] index request failed for query={query!r}: {type(exc).__name__}")
            return []
        return parse_index_payload(data)[: self.max_records]


def _struct_to_datetime(value) -> datetime | None:
    if not value:
        return None
    try:
        return datetime(*value[:6], tzinfo=timezone.utc)
    except (TypeError, ValueError):
        return None


def parse_feed(content: bytes | str, source: FeedSource, limit: int = 12) -> list[SourceArticle]:
    """Parse RSS 2.0 or Atom content into articles."""
    feed = feedparser.parse(content)
    items: list[SourceArticle] = []
    for entry in getattr(feed, "entries", []):
        title = " ".join(str(entry.get("title") or "").split())[:220]
        url = safe_http_url(entry.get("link"), source.url)
        if not title or not url:
            continue
        published = _struct_to_datetime(entry.get("published_parsed") or entry.get("updated_parsed"))

        media: list[str] = []
        for key in ("media_content", "media_thumbnail"):
            for item in entry.get(key) or []:
                media.append(item.get("url") if isinstance(item, dict) else None)
        for enclosure in entry.get("enclosures") or []:
            if not isinstance(enclosure, dict):
                continue
            # podcasts attach audio enclosures
            kind = str(enclosure.get("type") or "image/")
            if kind.startswith("image/"):
                media.append(enclosure.get("href"))
        image_urls: list[str] = []
        for candidate in media:
            resolved = safe_http_url(candidate, source.url)
            if resolved and resolved not in image_urls:
                image_urls.append(resolved)

        items.append(
            SourceArticle(
                title=title,
                url=url,
                published_at=published,
                source_name=source.name,
                provider="rss",
                image_urls=image_urls[:6],
            )
        )
        if len(items) >= limit:
            break
    return items


class FeedReader:
    """Fetches one RSS/Atom feed with a bounded timeout and body size."""

    def __init__(
        self,
        *,
        timeout: float = 8.0,
        user_agent: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout = timeout
        self.user_agent = user_agent
        self._client = client

    async def fetch(self, source: FeedSource, limit: int = 12) -> list[SourceArticle]:
        headers = {"user-agent": self.user_agent} if self.user_agent else None
        try:
            async with open_client(self._client, timeout=self.timeout) as client:
                resp = await client.get(source.url, headers=headers, timeout=self.timeout)
            if resp.status_code != 200:
                logger.warning(f"[news] feed {source.name} HTTP {resp.status_code}")
                return []
            content = resp.content[:MAX_FEED_BYTES]
        except httpx.HTTPError as exc:
            logger.warning(f"[news] feed {source.name} failed: {type(exc).__name__}")
            return []
        return parse_feed(content, source, limit=limit)
