"""
Server-to-server automation endpoints, called by the external scheduler /
workflow tool. Authenticated with the ``x-automation-token`` shared secret.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_session
from app.errors import EditorialError
from app.schemas import OrchestrateRequest, OrchestrateResponse, PublishRequest, PublishResponse
from app.services.authorization import normalize_token, secrets_match
from app.services.clock import Clock, get_clock
from app.services.editorial_pipeline import EditorialPipeline
from app.services.publish_gate import PublishGate
from app.settings import get_settings

logger = logging.getLogger(__name__)


def require_automation_token(x_automation_token: str | None = Header(default=None)) -> None:
    expected = normalize_token(get_settings().automation_token)
    if not expected:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail={"error": "not_configured"})
    if not secrets_match(normalize_token(x_automation_token), expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail={"error": "unauthorized"})


router = APIRouter(
    prefix="/api/automation",
    tags=["automation"],
    dependencies=[Depends(require_automation_token)],
)

SessionDep = Depends(get_session)


def get_editorial_pipeline(
    session: AsyncSession = SessionDep,
    clock: Clock = Depends(get_clock),
) -> EditorialPipeline:
    return EditorialPipeline.from_settings(session, clock=clock)


def get_publish_gate(
    session: AsyncSession = SessionDep,
    clock: Clock = Depends(get_clock),
) -> PublishGate:
    return PublishGate(session, clock=clock)


@router.post("/editorial-orchestrate", response_model=OrchestrateResponse)
async def editorial_orchestrate(
    payload: OrchestrateRequest,
    pipeline: EditorialPipeline = Depends(get_editorial_pipeline),
):
    try:
        draft = await pipeline.run(payload.candidate_id)
    except EditorialError as exc:
        logger.info(f"[automation] orchestrate candidate={payload.candidate_id} failed: {exc.reason.value}")
        raise exc.to_http()
    meta = draft.meta or {}
    return OrchestrateResponse(
        id=draft.id,
        status=draft.status,
        source_url=meta.get("source_url"),
        has_image=bool(meta.get("media")),
    )


@router.post("/publish", response_model=PublishResponse)
async def publish_draft(
    payload: PublishRequest,
    gate: PublishGate = Depends(get_publish_gate),
):
    try:
        publication, result = await gate.publish(payload.draft_id)
    except EditorialError as exc:
        raise exc.to_http()

    if not result.success:
        raise EditorialError(result.error).to_http()

    draft = publication.content
    return PublishResponse(
        ok=True,
        draft_id=draft.id,
        status=draft.status,
        destinations_count=len(publication.eligible_destinations),
        published_post_id=draft.published_post_id,
    )
