"""
Source arbitration: picks at most one article for a candidate.

Order of attempts:
    1. headline index, query + language/country filters
    2. headline index, bare query (strict filters often return nothing for
       small regional queries)
    3. configured RSS/Atom feeds, scored by recency and query match

Within an index pass, a region biased toward a country never yields a
foreign article while a same-country one is available; ties keep the
provider's ranking order.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Protocol

from .clock import Clock, SystemClock, as_utc
from .http_client import host_of
from .news_feeds import FeedReader, FeedSource, HeadlineIndexClient, SourceArticle
from .regional_providers import RegionalHints, news_query_for, regional_hints_for

logger = logging.getLogger(__name__)

MAX_FEEDS = 8
FEED_ITEMS_PER_SOURCE = 12

COUNTRY_NAMES: dict[str, tuple[str, ...]] = {
    "CO": ("colombia",),
    "VE": ("venezuela",),
    "EC": ("ecuador",),
    "PE": ("peru", "perú"),
    "MX": ("mexico", "méxico"),
    "US": ("united states",),
    "ES": ("spain", "españa"),
}


class CandidateLike(Protocol):
    office: str
    region: str


def _url_key(url: str | None) -> str:
    return (url or "").strip().lower()


def with_filters(query: str, *, language: str | None, country: str | None) -> str:
    """Append ``sourcelang:`` / ``sourcecountry:`` unless the query already has them."""
    q = " ".join((query or "").split())
    lower = q.lower()
    parts = [q] if q else []
    if language and "sourcelang:" not in lower:
        parts.append(f"sourcelang:{language}")
    if country and "sourcecountry:" not in lower:
        parts.append(f"sourcecountry:{country}")
    return " ".join(parts)


def matches_country(article: SourceArticle, code: str) -> bool:
    code_l = code.strip().lower()
    if not code_l:
        return False
    source_country = (article.source_country or "").strip().lower()
    if source_country and (
        source_country == code_l or source_country in COUNTRY_NAMES.get(code.upper(), ())
    ):
        return True
    host = (host_of(article.url) or "").lower()
    return host.endswith(f".{code_l}")


def matches_hint(article: SourceArticle, url_hints: Iterable[str]) -> bool:
    url = article.url.lower()
    return any(h.lower() in url for h in url_hints if h)


def pick_from_pass(
    articles: list[SourceArticle],
    hints: RegionalHints,
    exclude: set[str],
) -> SourceArticle | None:
    pool = [a for a in articles if _url_key(a.url) not in exclude]
    if not pool:
        return None
    if hints.country_code:
        same_country = [a for a in pool if matches_country(a, hints.country_code)]
        if same_country:
            pool = same_country
    hinted = [a for a in pool if matches_hint(a, hints.url_hints)]
    return (hinted or pool)[0]


def recency_score(article: SourceArticle, now) -> int:
    if not article.published_at:
        return 0
    hours_ago = (now - as_utc(article.published_at)).total_seconds() / 3600
    if hours_ago <= 6:
        return 12
    if hours_ago <= 12:
        return 9
    if hours_ago <= 24:
        return 6
    if hours_ago <= 48:
        return 3
    return 1


def query_match_score(title: str, query_terms: list[str]) -> int:
    t = title.lower()
    hits = sum(1 for term in query_terms if len(term) >= 4 and term.lower() in t)
    return min(10, hits * 2)


class SourceArbiter:
    def __init__(
        self,
        index: HeadlineIndexClient,
        *,
        feeds: list[FeedSource] | None = None,
        feed_reader: FeedReader | None = None,
        language: str | None = "spanish",
        default_country: str | None = "CO",
        clock: Clock | None = None,
    ):
        self.index = index
        self.feeds = list(feeds or [])
        self.feed_reader = feed_reader
        self.language = language
        self.default_country = default_country
        self.clock = clock or SystemClock()

    async def select_article(
        self,
        candidate: CandidateLike,
        exclude_urls: Iterable[str] = (),
        *,
        query: str | None = None,
    ) -> SourceArticle | None:
        hints = regional_hints_for(candidate.office, candidate.region)
        base_query = query or news_query_for(candidate.office, candidate.region)
        exclude = {_url_key(u) for u in exclude_urls if u}

        filtered_query = with_filters(
            base_query,
            language=self.language,
            country=hints.country_code or self.default_country,
        )
        article = pick_from_pass(await self.index.search(filtered_query), hints, exclude)
        if article:
            logger.info(f"[arbiter] filtered pass picked {host_of(article.url)} region={hints.region_key}")
            return article

        article = pick_from_pass(await self.index.search(base_query), hints, exclude)
        if article:
            logger.info(f"[arbiter] unfiltered pass picked {host_of(article.url)} region={hints.region_key}")
            return article

        article = await self._pick_from_feeds(base_query, exclude)
        if article:
            logger.info(f"[arbiter] feed fallback picked {host_of(article.url)} region={hints.region_key}")
            return article

        logger.warning(f"[arbiter] no article for region={hints.region_key}")
        return None

    async def _pick_from_feeds(self, query: str, exclude: set[str]) -> SourceArticle | None:
        if not self.feeds or self.feed_reader is None:
            return None
        sources = self.feeds[:MAX_FEEDS]
        results = await asyncio.gather(
            *(self.feed_reader.fetch(s, limit=FEED_ITEMS_PER_SOURCE) for s in sources),
            return_exceptions=True,
        )

        seen: set[str] = set()
        pool: list[SourceArticle] = []
        for result in results:
            if isinstance(result, BaseException):
                logger.warning(f"[arbiter] feed fetch raised {type(result).__name__}")
                continue
            for item in result:
                key = _url_key(item.url)
                if key in seen or key in exclude:
                    continue
                seen.add(key)
                pool.append(item)
        if not pool:
            return None

        terms = query.split()
        now = self.clock.now()
        # max() keeps the first of equal scores, i.e. feed order
        return max(pool, key=lambda a: recency_score(a, now) + query_match_score(a.title, terms))
