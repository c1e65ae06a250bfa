"""
Public consent endpoints reached from the invite link.
No admin session: the invite token itself is the credential.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.db import get_session
from app.errors import EditorialError
from app.schemas import ConsentCandidate, ConsentDecision, ConsentDestination, ConsentResult, ConsentView
from app.services.authorization import AuthorizationService
from app.services.clock import Clock, get_clock

router = APIRouter(prefix="/api/public", tags=["consent"])

SessionDep = Depends(get_session)
ClockDep = Depends(get_clock)


def _client_ip(request: Request) -> str | None:
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip
    return request.client.host if request.client else None


@router.get("/network-authorization", response_model=ConsentView)
async def describe_invite(
    token: str = Query(default=""),
    session: AsyncSession = SessionDep,
    clock: Clock = ClockDep,
):
    try:
        view = await AuthorizationService(session, clock=clock).describe_invite(token)
    except EditorialError as exc:
        raise exc.to_http()

    dest, candidate = view.destination, view.candidate
    return ConsentView(
        expires_at=view.invite.expires_at,
        destination=ConsentDestination(
            id=dest.id,
            network_name=dest.network_name,
            network_type=dest.network_type,
            profile_or_page_url=dest.profile_or_page_url,
        ),
        candidate=ConsentCandidate(
            id=candidate.id,
            name=candidate.name,
            office=candidate.office,
            region=candidate.region,
            ballot_number=candidate.ballot_number,
        ) if candidate else None,
    )


@router.post("/network-authorization", response_model=ConsentResult)
async def record_decision(
    payload: ConsentDecision,
    request: Request,
    session: AsyncSession = SessionDep,
    clock: Clock = ClockDep,
):
    try:
        dest = await AuthorizationService(session, clock=clock).consume_invite(
            payload.token,
            payload.decision,
            authorized_by_name=(payload.authorized_by_name or "").strip() or None,
            authorized_by_email=(payload.authorized_by_email or "").strip() or None,
            authorized_by_phone=(payload.authorized_by_phone or "").strip() or None,
            ip=_client_ip(request),
            user_agent=request.headers.get("user-agent"),
        )
    except EditorialError as exc:
        raise exc.to_http()
    return ConsentResult(status=dest.authorization_status)
