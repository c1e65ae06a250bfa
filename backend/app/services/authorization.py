"""
Consent state machine for third-party social destinations.

    pending  -> approved | expired | revoked
    approved -> revoked
    (any)    -> pending       when a new invite is issued

Invite tokens are random hex handed to the owner over a messaging deep link;
only their SHA-256 hash is stored. Only the newest invite of a destination
validates. Expiry is applied lazily: every read of destinations first flips
stale ``pending`` rows to ``expired``.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any
from urllib.parse import quote

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import EditorialError, FailureReason
from app.models import (
    AuthorizationInvite,
    AuthorizationStatus,
    Candidate,
    InviteDecision,
    SocialDestination,
)
from app.settings import Settings, get_settings

from .clock import Clock, SystemClock, as_utc

logger = logging.getLogger(__name__)

TOKEN_BYTES = 24

DECISIONS = {
    "approve": InviteDecision.approved,
    "approved": InviteDecision.approved,
    "reject": InviteDecision.rejected,
    "rejected": InviteDecision.rejected,
}


@dataclass
class InviteIssued:
    invite_id: int
    invite_url: str
    whatsapp_url: str
    expires_at: datetime


@dataclass
class InviteView:
    invite: AuthorizationInvite
    destination: SocialDestination
    candidate: Candidate | None


def normalize_phone(raw: str | None, country_prefix: str = "57") -> str:
    """Digits only with country code, as the messaging deep link expects."""
    digits = "".join(ch for ch in (raw or "") if ch.isdigit())
    if digits.startswith("00"):
        digits = digits[2:]
    if len(digits) == 10:
        digits = f"{country_prefix}{digits}"
    return digits


def messaging_link(phone_digits: str, message: str, domain: str = "wa.me") -> str:
    return f"https://{domain}/{quote(phone_digits, safe='')}?text={quote(message, safe='')}"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def normalize_token(raw: Any) -> str:
    s = str(raw or "").strip()
    if len(s) >= 2 and s[0] == s[-1] and s[0] in ("'", '"'):
        return s[1:-1].strip()
    if s.endswith("\\n"):
        return s[:-2].strip()
    return s


def secrets_match(provided: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def consent_message(
    destination: SocialDestination,
    candidate: Candidate,
    invite_url: str,
    ttl_hours: int,
) -> str:
    owner = f" {destination.owner_name}" if destination.owner_name else ""
    ballot = f" (Tarjetón {candidate.ballot_number})" if candidate.ballot_number else ""
    return "\n".join([
        f"Hola{owner}.",
        f"Soy el equipo de {candidate.name}{ballot}.",
        "Queremos solicitar tu autorización para publicar contenido (cuando sea aprobado editorialmente) en esta red:",
        f"{destination.network_name}: {destination.profile_or_page_url}",
        "",
        f"Para aprobar o rechazar, usa este enlace (expira en {ttl_hours} horas):",
        invite_url,
        "",
        "Si no lo apruebas explícitamente, no se publicará nada.",
    ])


def destination_stats(destinations: list[SocialDestination]) -> dict[str, int]:
    def count(status: AuthorizationStatus) -> int:
        return sum(1 for d in destinations if d.active and d.authorization_status == status.value)

    return {
        "total": len(destinations),
        "approved": count(AuthorizationStatus.approved),
        "pending": count(AuthorizationStatus.pending),
        "expired": count(AuthorizationStatus.expired),
    }


class AuthorizationService:
    def __init__(
        self,
        session: AsyncSession,
        *,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self.session = session
        self.clock = clock or SystemClock()
        self.settings = settings or get_settings()

    # ── Destinations ─────────────────────────────────────────

    async def create_destination(
        self,
        *,
        candidate_id: int,
        network_name: str,
        profile_or_page_url: str,
        network_type: str = "official",
        owner_name: str | None = None,
        owner_contact_phone: str | None = None,
        owner_contact_email: str | None = None,
        active: bool = True,
    ) -> SocialDestination:
        if await self.session.get(Candidate, candidate_id) is None:
            raise EditorialError(FailureReason.candidate_not_found)
        now = self.clock.now()
        dest = SocialDestination(
            candidate_id=candidate_id,
            network_name=network_name.strip(),
            network_type=network_type,
            profile_or_page_url=profile_or_page_url.strip(),
            owner_name=owner_name,
            owner_contact_phone=owner_contact_phone,
            owner_contact_email=owner_contact_email,
            active=active,
            authorization_status=AuthorizationStatus.pending.value,
            created_at=now,
            updated_at=now,
        )
        self.session.add(dest)
        await self.session.commit()
        await self.session.refresh(dest)
        logger.info(f"[invite] destination {dest.id} registered for candidate {candidate_id}")
        return dest

    async def sweep(self, candidate_id: int | None = None) -> int:
        """Flip pending destinations whose newest invite lapsed unused to expired."""
        latest = (
            select(
                AuthorizationInvite.destination_id,
                func.max(AuthorizationInvite.id).label("invite_id"),
            )
            .group_by(AuthorizationInvite.destination_id)
            .subquery()
        )
        stmt = (
            select(SocialDestination, AuthorizationInvite)
            .join(latest, latest.c.destination_id == SocialDestination.id)
            .join(AuthorizationInvite, AuthorizationInvite.id == latest.c.invite_id)
            .where(SocialDestination.authorization_status == AuthorizationStatus.pending.value)
        )
        if candidate_id is not None:
            stmt = stmt.where(SocialDestination.candidate_id == candidate_id)

        now = self.clock.now()
        expired = 0
        for dest, invite in (await self.session.execute(stmt)).all():
            if invite.used_at is None and as_utc(invite.expires_at) <= now:
                dest.authorization_status = AuthorizationStatus.expired.value
                dest.updated_at = now
                expired += 1
        if expired:
            await self.session.commit()
            logger.info(f"[invite] expired {expired} pending destination(s)")
        return expired

    async def list_destinations(
        self, candidate_id: int | None = None
    ) -> tuple[list[SocialDestination], dict[str, int]]:
        await self.sweep(candidate_id)
        stmt = select(SocialDestination).order_by(SocialDestination.id.desc())
        if candidate_id is not None:
            stmt = stmt.where(SocialDestination.candidate_id == candidate_id)
        rows = list((await self.session.execute(stmt)).scalars().all())
        return rows, destination_stats(rows)

    async def get_destination(self, destination_id: int) -> SocialDestination:
        dest = await self.session.get(SocialDestination, destination_id)
        if dest is None:
            raise EditorialError(FailureReason.destination_not_found)
        await self.sweep(dest.candidate_id)
        return dest

    async def eligible_destinations(self, candidate_id: int) -> list[SocialDestination]:
        """Destinations content may be forwarded to: active and approved."""
        await self.sweep(candidate_id)
        stmt = (
            select(SocialDestination)
            .where(
                SocialDestination.candidate_id == candidate_id,
                SocialDestination.active.is_(True),
                SocialDestination.authorization_status == AuthorizationStatus.approved.value,
            )
            .order_by(SocialDestination.id)
        )
        return list((await self.session.execute(stmt)).scalars().all())

    async def revoke(self, destination_id: int) -> SocialDestination:
        dest = await self.session.get(SocialDestination, destination_id)
        if dest is None:
            raise EditorialError(FailureReason.destination_not_found)
        now = self.clock.now()
        dest.active = False
        dest.authorization_status = AuthorizationStatus.revoked.value
        if dest.revoked_at is None:
            dest.revoked_at = now
        dest.updated_at = now
        await self.session.commit()
        logger.info(f"[invite] destination {dest.id} revoked")
        return dest

    # ── Invites ──────────────────────────────────────────────

    async def issue_invite(self, destination_id: int) -> InviteIssued:
        dest = await self.session.get(SocialDestination, destination_id)
        if dest is None:
            raise EditorialError(FailureReason.destination_not_found)
        candidate = await self.session.get(Candidate, dest.candidate_id)
        if candidate is None:
            raise EditorialError(FailureReason.candidate_not_found)
        phone = normalize_phone(dest.owner_contact_phone, self.settings.phone_country_prefix)
        if not phone:
            raise EditorialError(FailureReason.contact_phone_required)

        token = secrets.token_hex(TOKEN_BYTES)
        now = self.clock.now()
        ttl_hours = self.settings.invite_ttl_hours
        expires_at = now + timedelta(hours=ttl_hours)

        invite = AuthorizationInvite(
            destination_id=dest.id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            created_at=now,
        )
        self.session.add(invite)

        dest.authorization_status = AuthorizationStatus.pending.value
        dest.active = True
        dest.last_invite_sent_at = now
        dest.revoked_at = None
        dest.updated_at = now
        await self.session.commit()

        invite_url = f"{self.settings.public_site_url}/consent?token={quote(token, safe='')}"
        message = consent_message(dest, candidate, invite_url, ttl_hours)
        logger.info(f"[invite] issued invite {invite.id} for destination {dest.id}")
        return InviteIssued(
            invite_id=invite.id,
            invite_url=invite_url,
            whatsapp_url=messaging_link(phone, message, self.settings.messaging_domain),
            expires_at=expires_at,
        )

    async def _resolve(self, raw_token: Any) -> tuple[AuthorizationInvite, SocialDestination]:
        token = normalize_token(raw_token)
        if not token:
            raise EditorialError(FailureReason.invite_not_found)
        res = await self.session.execute(
            select(AuthorizationInvite).where(AuthorizationInvite.token_hash == hash_token(token))
        )
        invite = res.scalar_one_or_none()
        if invite is None:
            raise EditorialError(FailureReason.invite_not_found)
        if invite.used_at is not None:
            raise EditorialError(FailureReason.invite_already_used)
        if as_utc(invite.expires_at) <= self.clock.now():
            raise EditorialError(FailureReason.invite_expired)

        newer = await self.session.execute(
            select(AuthorizationInvite.id)
            .where(
                AuthorizationInvite.destination_id == invite.destination_id,
                AuthorizationInvite.id > invite.id,
            )
            .limit(1)
        )
        if newer.scalar_one_or_none() is not None:
            raise EditorialError(FailureReason.invite_expired, "superseded by a newer invite")

        dest = await self.session.get(SocialDestination, invite.destination_id)
        if dest is None or dest.authorization_status != AuthorizationStatus.pending.value:
            raise EditorialError(FailureReason.destination_not_eligible)
        return invite, dest

    async def describe_invite(self, raw_token: Any) -> InviteView:
        invite, dest = await self._resolve(raw_token)
        candidate = await self.session.get(Candidate, dest.candidate_id)
        return InviteView(invite=invite, destination=dest, candidate=candidate)

    async def consume_invite(
        self,
        raw_token: Any,
        decision: str | InviteDecision,
        *,
        authorized_by_name: str | None = None,
        authorized_by_email: str | None = None,
        authorized_by_phone: str | None = None,
        ip: str | None = None,
        user_agent: str | None = None,
    ) -> SocialDestination:
        key = decision.value if isinstance(decision, InviteDecision) else str(decision or "").strip().lower()
        if key not in DECISIONS:
            raise ValueError(f"unknown decision: {decision!r}")
        outcome = DECISIONS[key]

        invite, dest = await self._resolve(raw_token)
        now = self.clock.now()

        # claim the invite in the database; a concurrent decision finds it used
        claimed = await self.session.execute(
            update(AuthorizationInvite)
            .where(AuthorizationInvite.id == invite.id, AuthorizationInvite.used_at.is_(None))
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            await self.session.rollback()
            raise EditorialError(FailureReason.invite_already_used)

        invite.used_at = now
        invite.decision = outcome.value
        invite.authorized_by_name = authorized_by_name or None
        invite.authorized_by_email = authorized_by_email or None
        invite.authorized_by_phone = authorized_by_phone or None
        invite.authorized_ip = ip or None
        invite.authorized_user_agent = user_agent or None

        if outcome is InviteDecision.approved:
            dest.authorization_status = AuthorizationStatus.approved.value
            dest.active = True
            dest.authorized_at = now
            dest.authorized_by_name = authorized_by_name or None
            dest.authorized_by_email = authorized_by_email or None
            dest.authorized_by_phone = authorized_by_phone or None
        else:
            dest.authorization_status = AuthorizationStatus.revoked.value
            dest.active = False
            dest.revoked_at = now
        dest.updated_at = now

        await self.session.commit()
        logger.info(f"[invite] destination {dest.id} {outcome.value} via invite {invite.id}")
        return dest
