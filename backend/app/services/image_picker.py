"""
Image selection for drafts.

Primary path: Wikimedia Commons search restricted to the File namespace,
keeping only openly licensed photos. Secondary path: Open Graph / Twitter
Card image of the chosen article page. No image is a valid outcome.
"""
from __future__ import annotations

import logging
import random
import re
from dataclasses import asdict, dataclass
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup

from .http_client import open_client, safe_http_url

logger = logging.getLogger(__name__)

MAX_HTML_CHARS = 250_000
MAX_QUERY_CHARS = 180

ALLOWED_LICENSE_MARKERS = (
    "cc by",
    "cc-by",
    "creative commons attribution",
    "attribution-sharealike",
    "public domain",
    "pd-",
    "cc0",
)

DOCUMENT_MARKERS = (
    ".pdf", "pdf.jpg", "pdf.png", "/page1-", "/page2-", "/page3-",
    "boletin", "boletín", "gaceta", "diario oficial", "resolucion", "resolución",
    "decreto", "acta", "oficio", "manual", "juridic", "jurídic", "sentencia",
    "ley_", "ley-", "documento", "carta", "circular", "formulario",
)

_TAG_RE = re.compile(r"<[^>]*>")


@dataclass
class ImageResult:
    image_url: str
    page_url: str | None = None
    thumb_url: str | None = None
    license_short: str | None = None
    attribution: str | None = None
    author: str | None = None
    mime: str | None = None
    source: str = "wikimedia_commons"

    def to_meta(self) -> dict:
        return asdict(self)


def normalize_query(query: str) -> str:
    return " ".join((query or "").split())[:MAX_QUERY_CHARS]


def is_allowed_license(license_short: str | None) -> bool:
    if not license_short:
        return False
    text = license_short.lower()
    return any(marker in text for marker in ALLOWED_LICENSE_MARKERS)


def looks_like_document(text: str) -> bool:
    lower = (text or "").lower()
    return any(marker in lower for marker in DOCUMENT_MARKERS)


def _meta_text(extmetadata: dict, key: str) -> str | None:
    entry = extmetadata.get(key)
    value = entry.get("value") if isinstance(entry, dict) else None
    if not isinstance(value, str):
        return None
    text = _TAG_RE.sub("", value).strip()
    return text or None


def parse_commons_payload(data: object) -> list[ImageResult]:
    """Turn a Commons ``generator=search`` response into licensed image candidates."""
    query = data.get("query") if isinstance(data, dict) else None
    pages = query.get("pages") if isinstance(query, dict) else None
    if not isinstance(pages, dict):
        return []

    results: list[ImageResult] = []
    for page in pages.values():
        if not isinstance(page, dict):
            continue
        title = str(page.get("title") or "").strip()
        infos = page.get("imageinfo") if isinstance(page.get("imageinfo"), list) else []
        info = infos[0] if infos and isinstance(infos[0], dict) else {}
        image_url = safe_http_url(info.get("url"))
        mime = str(info.get("mime") or "").strip().lower() or None
        if not title or not image_url:
            continue
        # Commons search also returns PDFs and djvu scans
        if not mime or not mime.startswith("image/"):
            continue
        if looks_like_document(f"{title} {image_url}"):
            continue

        ext = info.get("extmetadata") if isinstance(info.get("extmetadata"), dict) else {}
        license_short = _meta_text(ext, "LicenseShortName")
        if not is_allowed_license(license_short):
            continue

        results.append(
            ImageResult(
                image_url=image_url,
                page_url=f"https://commons.wikimedia.org/wiki/{quote(title.replace(' ', '_'), safe=':/')}",
                thumb_url=safe_http_url(info.get("thumburl")),
                license_short=license_short,
                attribution=_meta_text(ext, "Attribution") or _meta_text(ext, "Credit"),
                author=_meta_text(ext, "Artist"),
                mime=mime,
            )
        )
    return results


def choose_image(
    candidates: list[ImageResult],
    avoid_urls: set[str],
    rng: random.Random,
) -> ImageResult | None:
    """Uniform pick, skipping recently used images unless that empties the pool."""
    fresh = [c for c in candidates if c.image_url not in avoid_urls]
    pool = fresh or candidates
    if not pool:
        return None
    return rng.choice(pool)


def extract_social_image(html: str, page_url: str) -> str | None:
    """Return the ``og:image`` (or ``twitter:image``) URL of a page prefix."""
    soup = BeautifulSoup(html[:MAX_HTML_CHARS], "html.parser")
    for key in ("og:image", "twitter:image"):
        for attr in ("property", "name"):
            tag = soup.find("meta", attrs={attr: key})
            if tag is None:
                continue
            resolved = safe_http_url(tag.get("content"), page_url)
            if resolved:
                return resolved
    return None


class ImagePicker:
    def __init__(
        self,
        *,
        api_url: str = "https://commons.wikimedia.org/w/api.php",
        timeout: float = 8.0,
        user_agent: str | None = None,
        rng: random.Random | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_url = api_url
        self.timeout = timeout
        self.user_agent = user_agent
        self.rng = rng or random.Random()
        self._client = client

    def _headers(self, accept: str) -> dict[str, str]:
        headers = {"accept": accept}
        if self.user_agent:
            headers["user-agent"] = self.user_agent
        return headers

    async def pick_image(self, query: str, avoid_urls: list[str] | None = None) -> ImageResult | None:
        q = normalize_query(query)
        if not q:
            return None
        params = {
            "action": "query",
            "format": "json",
            "origin": "*",
            "generator": "search",
            "gsrsearch": q,
            "gsrlimit": "18",
            "gsrnamespace": "6",
            "prop": "imageinfo",
            "iiprop": "url|mime|extmetadata",
            "iiurlwidth": "1400",
        }
        try:
            async with open_client(self._client, timeout=self.timeout) as client:
                resp = await client.get(
                    self.api_url, params=params, headers=self._headers("application/json"), timeout=self.timeout
                )
            if resp.status_code != 200:
                logger.warning(f"[image] commons HTTP {resp.status_code}")
                return None
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"[image] commons request failed: {type(exc).__name__}")
            return None

        avoid = {u.strip() for u in (avoid_urls or []) if isinstance(u, str) and u.strip()}
        return choose_image(parse_commons_payload(data), avoid, self.rng)

    async def from_article(self, url: str) -> ImageResult | None:
        target = safe_http_url(url)
        if not target:
            return None
        chunks: list[bytes] = []
        try:
            async with open_client(self._client, timeout=self.timeout) as client:
                async with client.stream(
                    "GET", target, headers=self._headers("text/html,application/xhtml+xml"), timeout=self.timeout
                ) as resp:
                    if resp.status_code != 200:
                        return None
                    size = 0
                    # Only the head-ish prefix of the page is needed
                    async for chunk in resp.aiter_bytes():
                        chunks.append(chunk)
                        size += len(chunk)
                        if size >= MAX_HTML_CHARS:
                            break
                    final_url = str(resp.url)
                    encoding = resp.encoding or "utf-8"
        except httpx.HTTPError as exc:
            logger.warning(f"[image] page fetch failed: {type(exc).__name__}")
            return None

        html = b"".join(chunks)[:MAX_HTML_CHARS].decode(encoding, errors="replace")
        image_url = extract_social_image(html, final_url or target)
        if not image_url:
            return None
        return ImageResult(image_url=image_url, page_url=target, source="opengraph")
