"""
Publish gate: pairs an approved draft with the destinations it may reach
and forwards both to the workflow hook.

Eligibility is ``active AND approved`` evaluated after the expiry sweep.
``active`` is checked independently of the status so a deactivated
destination is never a target. An empty destination list only narrows the
fan-out; the hook still receives the content for the owned site.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import EditorialError, FailureReason
from app.models import AiDraft, Candidate, DraftStatus, SocialDestination

from .authorization import AuthorizationService
from .clock import Clock, SystemClock
from .publisher_adapter import PublishResult, WorkflowHookPublisher, get_publisher
from .social_variants import first_line, format_variants

logger = logging.getLogger(__name__)

PUBLISHABLE_STATUSES = {DraftStatus.approved.value, DraftStatus.edited.value}

# Human review moves; ``published`` is reachable only through ``PublishGate.publish``.
REVIEW_TRANSITIONS: dict[str, set[str]] = {
    DraftStatus.draft.value: {DraftStatus.approved.value, DraftStatus.edited.value, DraftStatus.rejected.value},
    DraftStatus.edited.value: {DraftStatus.approved.value, DraftStatus.rejected.value},
    DraftStatus.approved.value: {DraftStatus.edited.value, DraftStatus.rejected.value},
}


def review_draft(
    draft: AiDraft,
    *,
    now: datetime,
    status: str | None = None,
    generated_text: str | None = None,
    variants: dict[str, str] | None = None,
) -> AiDraft:
    """Apply a review decision and/or text edit. A bare edit moves the draft to ``edited``."""
    edits = generated_text is not None or variants is not None
    target = status or (DraftStatus.edited.value if edits else None)
    if target is None:
        return draft

    current = draft.status
    if current not in REVIEW_TRANSITIONS:
        raise EditorialError(FailureReason.invalid_transition)
    if target != current and target not in REVIEW_TRANSITIONS[current]:
        raise EditorialError(FailureReason.invalid_transition)

    if generated_text is not None:
        draft.generated_text = generated_text.strip()
    if variants is not None:
        merged = {**(draft.variants or {}), **variants}
        keywords = (draft.meta or {}).get("seo_keywords")
        draft.variants = format_variants(draft.generated_text, draft.generated_text, merged, keywords)
    draft.status = target
    draft.updated_at = now
    return draft


def token_estimate(text: str | None) -> int:
    return max(1, math.ceil(len(text or "") / 4))


def destination_ref(dest: SocialDestination) -> dict[str, Any]:
    return {
        "id": dest.id,
        "name": dest.network_name,
        "type": dest.network_type,
        "url": dest.profile_or_page_url,
    }


def candidate_ref(candidate: Candidate | None, candidate_id: int) -> dict[str, Any]:
    if candidate is None:
        return {"id": candidate_id}
    return {
        "id": candidate.id,
        "name": candidate.name,
        "office": candidate.office,
        "region": candidate.region,
        "ballot_number": candidate.ballot_number,
    }


@dataclass
class Publication:
    content: AiDraft
    eligible_destinations: list[SocialDestination] = field(default_factory=list)

    def to_payload(self, candidate: Candidate | None, created_at: str) -> dict[str, Any]:
        draft = self.content
        meta = draft.meta or {}
        text = (draft.generated_text or "").strip()
        return {
            "candidate_id": draft.candidate_id,
            "content_type": draft.content_type,
            "generated_text": text,
            "token_estimate": token_estimate(text),
            "created_at": created_at,
            "source": draft.source,
            "metadata": {
                "draft_id": draft.id,
                "title": first_line(text)[:160],
                "source_url": meta.get("source_url"),
                "variants": draft.variants or {},
                "media": meta.get("media"),
                "destinations": [destination_ref(d) for d in self.eligible_destinations],
                "candidate": candidate_ref(candidate, draft.candidate_id),
            },
        }


class PublishGate:
    def __init__(
        self,
        session: AsyncSession,
        *,
        publisher: WorkflowHookPublisher | None = None,
        authorization: AuthorizationService | None = None,
        clock: Clock | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.publisher = publisher or get_publisher()
        self.authorization = authorization or AuthorizationService(session, clock=self.clock)

    async def prepare_publication(self, candidate: Candidate, draft: AiDraft) -> Publication:
        eligible = await self.authorization.eligible_destinations(candidate.id)
        return Publication(content=draft, eligible_destinations=eligible)

    async def publish(self, draft_id: int) -> tuple[Publication, PublishResult]:
        draft = await self.session.get(AiDraft, draft_id)
        if draft is None:
            raise EditorialError(FailureReason.draft_not_found)
        if draft.status not in PUBLISHABLE_STATUSES:
            raise EditorialError(FailureReason.draft_not_approved)
        candidate = await self.session.get(Candidate, draft.candidate_id)
        if candidate is None:
            raise EditorialError(FailureReason.candidate_not_found)

        publication = await self.prepare_publication(candidate, draft)
        now = self.clock.now()
        result = await self.publisher.publish(publication.to_payload(candidate, now.isoformat()))

        meta = dict(draft.meta or {})
        if result.success:
            meta["workflow_publish"] = {
                "status": "sent",
                "sent_at": now.isoformat(),
                "destinations_count": len(publication.eligible_destinations),
                "external_id": result.external_id,
                "response": result.raw_response,
            }
            draft.status = DraftStatus.published.value
            draft.published_post_id = result.external_id
            draft.published_at = now
            logger.info(
                f"[publish] draft {draft.id} forwarded to {len(publication.eligible_destinations)} destination(s)"
            )
        else:
            meta["workflow_publish"] = {
                "status": "failed",
                "error": result.error.value if result.error else None,
                "detail": result.detail,
                "status_code": result.status_code,
                "retryable": result.retryable,
                "attempted_at": now.isoformat(),
            }
            logger.warning(f"[publish] draft {draft.id} not forwarded: {result.error}")
        draft.meta = meta
        draft.updated_at = now
        await self.session.commit()
        return publication, result
