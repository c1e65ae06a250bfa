"""
Editorial pipeline: one invocation produces at most one draft for one candidate.

Steps:
    1. load candidate, honour ``auto_blog_enabled``
    2. recent drafts supply URLs to avoid (articles and images)
    3. article selection and Commons image search run concurrently
    4. no article aborts; no Commons image degrades to the feed entry's media,
       then the article's OG image, then none
    5. generation through the fallback engine (no partial drafts)
    6. per-network variants, then a stored ``draft`` row
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import EditorialError, FailureReason
from app.models import AiDraft, Candidate, ContentKind, DraftStatus
from app.settings import Settings, get_settings

from .clock import Clock, SystemClock
from .image_picker import ImagePicker, ImageResult
from .llm_provider import GenerationFallbackEngine, get_generation_engine
from .news_feeds import FeedReader, FeedSource, HeadlineIndexClient, SourceArticle
from .regional_providers import regional_hints_for
from .social_variants import clean_keywords, format_variants
from .source_arbiter import SourceArbiter

logger = logging.getLogger(__name__)

RECENT_DRAFTS_WINDOW = 15
MAX_IMAGE_KEYWORDS = 12
GENERATION_TASK = "editorial_draft"

SYSTEM_PROMPT = (
    "Eres un editor cívico. Redactas contenido informativo y pedagógico a partir de una noticia. "
    "PROHIBIDO: inventar cifras o datos, atacar personas, urgencia falsa o propaganda. "
    "Responde SOLO JSON."
)


def build_user_prompt(candidate: Candidate, article: SourceArticle) -> str:
    lines = [
        "Tarea: redacta un texto editorial cívico basado en la noticia, con coherencia y ética.",
        "Reglas editoriales:",
        "- Español (Colombia).",
        "- Informativo, propositivo, no agresivo, no propagandístico.",
        "- No inventes cifras/datos; no ataques personas; no urgencia falsa.",
        "- Máximo ~30 líneas en body.",
        "",
        f"Candidato: {candidate.name} ({candidate.office})",
        f"Partido: {candidate.party}" if candidate.party else "",
        f"Región: {candidate.region}",
        f"Número: {candidate.ballot_number}" if candidate.ballot_number else "",
        "",
        "Biografía (resumen):",
        (candidate.biography or "")[:1500],
        "",
        "Programa / Propuestas (extracto):",
        (candidate.proposals or "")[:2000],
        "",
        "Noticia seleccionada:",
        f"Titular: {article.title}",
        f"URL: {article.url}",
        f"Fecha: {article.published_at.isoformat()}" if article.published_at else "",
        "",
        "Devuelve JSON con el esquema:",
        '{ "title": string, "body": string, "seo_keywords": string[], '
        '"variants": { "facebook"?: string, "instagram"?: string, "threads"?: string, '
        '"x"?: string, "telegram"?: string, "reddit"?: string }, "image_keywords": string[] }',
        "Reglas:",
        "- seo_keywords: 8-14 keywords relevantes, sin hashtags.",
        "- x: máximo 280 caracteres.",
        "- image_keywords: 6-12 keywords para buscar imágenes.",
    ]
    return "\n".join(lines)


def image_query_for(candidate: Candidate) -> str:
    region = (candidate.region or "").strip()
    return f"{region} Colombia" if region else "Colombia"


def feed_image(article: SourceArticle, avoid_urls: list[str]) -> ImageResult | None:
    """First media URL the feed entry carried that was not used recently."""
    avoid = set(avoid_urls)
    for url in article.image_urls:
        if url not in avoid:
            return ImageResult(image_url=url, page_url=article.url, source="feed")
    return None


def _meta_url(meta: Any, *path: str) -> str | None:
    node = meta
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node.strip() if isinstance(node, str) and node.strip() else None


class EditorialPipeline:
    def __init__(
        self,
        session: AsyncSession,
        *,
        arbiter: SourceArbiter,
        images: ImagePicker,
        engine: GenerationFallbackEngine | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.arbiter = arbiter
        self.images = images
        self.engine = engine or get_generation_engine()
        self.clock = clock or SystemClock()

    @classmethod
    def from_settings(
        cls,
        session: AsyncSession,
        settings: Settings | None = None,
        **overrides: Any,
    ) -> "EditorialPipeline":
        s = settings or get_settings()
        index = HeadlineIndexClient(
            s.news_index_url,
            timeout=s.http_timeout_sec,
            user_agent=s.user_agent,
            max_records=s.news_max_records,
        )
        feeds = [FeedSource(name=f"feed-{i + 1}", url=url) for i, url in enumerate(s.news_feed_urls)]
        arbiter = SourceArbiter(
            index,
            feeds=feeds,
            feed_reader=FeedReader(timeout=s.http_timeout_sec, user_agent=s.user_agent),
            language=s.news_language,
            default_country=s.news_default_country,
        )
        images = ImagePicker(api_url=s.commons_api_url, timeout=s.http_timeout_sec, user_agent=s.user_agent)
        overrides.setdefault("arbiter", arbiter)
        overrides.setdefault("images", images)
        return cls(session, **overrides)

    async def _recent_urls(self, candidate_id: int) -> tuple[list[str], list[str]]:
        res = await self.session.execute(
            select(AiDraft.meta)
            .where(AiDraft.candidate_id == candidate_id)
            .order_by(AiDraft.id.desc())
            .limit(RECENT_DRAFTS_WINDOW)
        )
        source_urls: list[str] = []
        image_urls: list[str] = []
        for meta in res.scalars().all():
            src = _meta_url(meta, "source_url")
            img = _meta_url(meta, "media", "image_url")
            if src:
                source_urls.append(src)
            if img:
                image_urls.append(img)
        return source_urls, image_urls

    async def run(self, candidate_id: int) -> AiDraft:
        candidate = await self.session.get(Candidate, candidate_id)
        if candidate is None:
            raise EditorialError(FailureReason.candidate_not_found)
        if not candidate.auto_blog_enabled:
            raise EditorialError(FailureReason.auto_blog_disabled)

        exclude_urls, avoid_urls = await self._recent_urls(candidate.id)

        # Independent lookups; generation needs the article, so it waits for both.
        article, image = await asyncio.gather(
            self.arbiter.select_article(candidate, exclude_urls),
            self.images.pick_image(image_query_for(candidate), avoid_urls),
        )
        if article is None:
            logger.warning(f"[pipeline] candidate {candidate.id}: no source found")
            raise EditorialError(FailureReason.no_source_found)

        media_error: str | None = None
        if image is None:
            image = feed_image(article, avoid_urls)
        if image is None:
            image = await self.images.from_article(article.url)
        if image is None:
            media_error = FailureReason.image_unavailable.value
            logger.info(f"[pipeline] candidate {candidate.id}: continuing without image")

        generation = await self.engine.generate(
            GENERATION_TASK, SYSTEM_PROMPT, build_user_prompt(candidate, article)
        )
        if not generation.ok:
            logger.warning(f"[pipeline] candidate {candidate.id}: generation failed ({generation.error})")
            raise EditorialError(generation.error or FailureReason.generation_upstream_error)

        draft = self._build_draft(candidate, article, image, media_error, generation.data or {}, generation.to_meta())
        self.session.add(draft)
        await self.session.commit()
        await self.session.refresh(draft)
        logger.info(f"[pipeline] candidate {candidate.id}: draft {draft.id} stored via {generation.provider}")
        return draft

    def _build_draft(
        self,
        candidate: Candidate,
        article: SourceArticle,
        image: ImageResult | None,
        media_error: str | None,
        data: dict[str, Any],
        generation_meta: dict[str, Any],
    ) -> AiDraft:
        title = str(data.get("title") or "").strip()
        body = str(data.get("body") or "").strip()
        if not title and not body:
            raise EditorialError(FailureReason.generation_upstream_error, "empty title and body")
        generated_text = "\n\n".join(part for part in (title, body) if part)

        keywords = clean_keywords(data.get("seo_keywords"))
        variants = format_variants(
            generated_text,
            generated_text,
            data.get("variants") if isinstance(data.get("variants"), dict) else None,
            keywords,
            candidate,
        )
        hints = regional_hints_for(candidate.office, candidate.region)
        now = self.clock.now()

        meta: dict[str, Any] = {
            "source_url": article.url,
            "source": article.to_meta(),
            "media": image.to_meta() if image else None,
            "variants": variants,
            "seo_keywords": keywords,
            "regional_hints": {
                "region_key": hints.region_key,
                "preferred_sources": hints.preferred_sources,
                "country_code": hints.country_code,
            },
            "generation": generation_meta,
            "candidate": {
                "id": candidate.id,
                "slug": candidate.slug,
                "office": candidate.office,
                "region": candidate.region,
                "ballot_number": candidate.ballot_number,
            },
        }
        if media_error:
            meta["media_error"] = media_error

        return AiDraft(
            candidate_id=candidate.id,
            content_type=ContentKind.blog.value,
            topic=f"Noticias: {article.title}"[:500],
            generated_text=generated_text,
            variants=variants,
            meta=meta,
            image_keywords=clean_keywords(data.get("image_keywords"))[:MAX_IMAGE_KEYWORDS] or None,
            source="automation",
            status=DraftStatus.draft.value,
            created_at=now,
            updated_at=now,
        )
