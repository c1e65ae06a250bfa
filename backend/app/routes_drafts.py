from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_session
from app.errors import EditorialError, FailureReason
from app.models import AiDraft
from app.routes_auth import require_auth
from app.schemas import DraftRead, DraftUpdate
from app.services.clock import Clock, get_clock
from app.services.publish_gate import review_draft

router = APIRouter(prefix="/api/admin/drafts", tags=["drafts"], dependencies=[Depends(require_auth)])

SessionDep = Depends(get_session)


async def _get_draft(session: AsyncSession, draft_id: int) -> AiDraft:
    draft = await session.get(AiDraft, draft_id)
    if draft is None:
        raise EditorialError(FailureReason.draft_not_found).to_http()
    return draft


@router.get("", response_model=list[DraftRead])
async def list_drafts(
    candidate_id: int | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = SessionDep,
):
    stmt = select(AiDraft).order_by(AiDraft.id.desc()).limit(limit)
    if candidate_id is not None:
        stmt = stmt.where(AiDraft.candidate_id == candidate_id)
    if status:
        stmt = stmt.where(AiDraft.status == status)
    res = await session.execute(stmt)
    return [DraftRead.model_validate(d) for d in res.scalars().all()]


@router.get("/{draft_id}", response_model=DraftRead)
async def get_draft(draft_id: int, session: AsyncSession = SessionDep):
    return DraftRead.model_validate(await _get_draft(session, draft_id))


@router.patch("/{draft_id}", response_model=DraftRead)
async def update_draft(
    draft_id: int,
    payload: DraftUpdate,
    session: AsyncSession = SessionDep,
    clock: Clock = Depends(get_clock),
):
    draft = await _get_draft(session, draft_id)
    if payload.generated_text is not None and not payload.generated_text.strip():
        raise HTTPException(status_code=400, detail={"error": "draft_empty"})
    try:
        review_draft(
            draft,
            now=clock.now(),
            status=payload.status.value if payload.status else None,
            generated_text=payload.generated_text,
            variants=payload.variants,
        )
    except EditorialError as exc:
        raise exc.to_http()
    await session.commit()
    await session.refresh(draft)
    return DraftRead.model_validate(draft)
