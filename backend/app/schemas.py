from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, field_validator

from .models import DraftStatus

NETWORK_TYPES = {"official", "ally", "follower", "community", "media"}


class DestinationBase(BaseModel):
    network_name: str
    network_type: str = "official"
    profile_or_page_url: str
    owner_name: str | None = None
    owner_contact_phone: str | None = None
    owner_contact_email: str | None = None

    @field_validator("network_name")
    @classmethod
    def normalize_network_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("network_name_required")
        return value

    @field_validator("network_type")
    @classmethod
    def check_network_type(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in NETWORK_TYPES:
            raise ValueError("network_type_invalid")
        return value

    @field_validator("profile_or_page_url")
    @classmethod
    def check_url(cls, value: str) -> str:
        value = value.strip()
        if not value.lower().startswith(("http://", "https://")):
            raise ValueError("url_invalid")
        return value


class DestinationCreate(DestinationBase):
    candidate_id: int
    active: bool = True


class DestinationRead(DestinationBase):
    id: int
    candidate_id: int
    active: bool
    authorization_status: str
    last_invite_sent_at: datetime | None = None
    authorized_at: datetime | None = None
    authorized_by_name: str | None = None
    authorized_by_email: str | None = None
    authorized_by_phone: str | None = None
    revoked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class DestinationStats(BaseModel):
    total: int
    approved: int
    pending: int
    expired: int


class DestinationList(BaseModel):
    destinations: list[DestinationRead]
    stats: DestinationStats


class DestinationAction(BaseModel):
    destination_id: int


class InviteResponse(BaseModel):
    ok: bool = True
    invite_url: str
    whatsapp_url: str
    expires_at: datetime


class ConsentCandidate(BaseModel):
    id: int
    name: str
    office: str
    region: str
    ballot_number: str | None = None


class ConsentDestination(BaseModel):
    id: int
    network_name: str
    network_type: str
    profile_or_page_url: str


class ConsentView(BaseModel):
    ok: bool = True
    expires_at: datetime
    destination: ConsentDestination
    candidate: ConsentCandidate | None = None


class ConsentDecision(BaseModel):
    token: str
    decision: Literal["approve", "reject"]
    authorized_by_name: str | None = None
    authorized_by_email: str | None = None
    authorized_by_phone: str | None = None


class ConsentResult(BaseModel):
    ok: bool = True
    status: str


class DraftRead(BaseModel):
    id: int
    candidate_id: int
    content_type: str
    topic: str | None = None
    generated_text: str
    variants: dict[str, Any] | None = None
    meta: dict[str, Any] | None = None
    image_keywords: list[str] | None = None
    source: str
    status: str
    published_post_id: str | None = None
    published_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class DraftUpdate(BaseModel):
    status: DraftStatus | None = None
    generated_text: str | None = None
    variants: dict[str, str] | None = None


class OrchestrateRequest(BaseModel):
    candidate_id: int


class OrchestrateResponse(BaseModel):
    ok: bool = True
    id: int
    status: str
    source_url: str | None = None
    has_image: bool


class PublishRequest(BaseModel):
    draft_id: int


class PublishResponse(BaseModel):
    ok: bool
    draft_id: int
    status: str
    destinations_count: int
    published_post_id: str | None = None
    error: str | None = None
