from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_session
from app.errors import EditorialError
from app.routes_auth import require_auth
from app.schemas import (
    DestinationAction,
    DestinationCreate,
    DestinationList,
    DestinationRead,
    DestinationStats,
    InviteResponse,
)
from app.services.authorization import AuthorizationService
from app.services.clock import Clock, get_clock

router = APIRouter(prefix="/api/admin/networks", tags=["networks"], dependencies=[Depends(require_auth)])

SessionDep = Depends(get_session)
ClockDep = Depends(get_clock)


@router.get("/destinations", response_model=DestinationList)
async def list_destinations(
    candidate_id: int | None = Query(default=None),
    session: AsyncSession = SessionDep,
    clock: Clock = ClockDep,
):
    rows, stats = await AuthorizationService(session, clock=clock).list_destinations(candidate_id)
    return DestinationList(
        destinations=[DestinationRead.model_validate(r) for r in rows],
        stats=DestinationStats(**stats),
    )


@router.post("/destinations", response_model=DestinationRead, status_code=status.HTTP_201_CREATED)
async def create_destination(
    payload: DestinationCreate,
    session: AsyncSession = SessionDep,
    clock: Clock = ClockDep,
):
    try:
        dest = await AuthorizationService(session, clock=clock).create_destination(**payload.model_dump())
    except EditorialError as exc:
        raise exc.to_http()
    return DestinationRead.model_validate(dest)


@router.post("/invite", response_model=InviteResponse)
async def issue_invite(
    payload: DestinationAction,
    session: AsyncSession = SessionDep,
    clock: Clock = ClockDep,
):
    try:
        issued = await AuthorizationService(session, clock=clock).issue_invite(payload.destination_id)
    except EditorialError as exc:
        raise exc.to_http()
    return InviteResponse(
        invite_url=issued.invite_url,
        whatsapp_url=issued.whatsapp_url,
        expires_at=issued.expires_at,
    )


@router.post("/revoke", response_model=DestinationRead)
async def revoke_destination(
    payload: DestinationAction,
    session: AsyncSession = SessionDep,
    clock: Clock = ClockDep,
):
    try:
        dest = await AuthorizationService(session, clock=clock).revoke(payload.destination_id)
    except EditorialError as exc:
        raise exc.to_http()
    return DestinationRead.model_validate(dest)
