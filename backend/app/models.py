from __future__ import annotations

from datetime import datetime
from enum import Enum

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship as sa_relationship

from .db import Base


def relationship(*args, **kwargs):
    """Wrap SQLAlchemy relationship to forbid lazy loading by default."""
    kwargs.setdefault("lazy", "raise")
    return sa_relationship(*args, **kwargs)


class ContentKind(str, Enum):
    blog = "blog"
    social = "social"


class DraftStatus(str, Enum):
    draft = "draft"
    approved = "approved"
    edited = "edited"
    published = "published"
    rejected = "rejected"


class AuthorizationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    expired = "expired"
    revoked = "revoked"


class InviteDecision(str, Enum):
    approved = "approved"
    rejected = "rejected"


class Candidate(Base):
    __tablename__ = "candidates"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(sa.String(128), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    office: Mapped[str] = mapped_column(sa.String(128), nullable=False)
    region: Mapped[str] = mapped_column(sa.String(128), nullable=False, server_default="")
    party: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    ballot_number: Mapped[str | None] = mapped_column(sa.String(16), nullable=True)
    biography: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    proposals: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    auto_blog_enabled: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, server_default=sa.true())
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    destinations: Mapped[list["SocialDestination"]] = relationship(
        back_populates="candidate", cascade="all, delete-orphan", passive_deletes=True
    )
    drafts: Mapped[list["AiDraft"]] = relationship(
        back_populates="candidate", cascade="all, delete-orphan", passive_deletes=True
    )


class AiDraft(Base):
    __tablename__ = "ai_drafts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(
        sa.ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    content_type: Mapped[str] = mapped_column(sa.String(16), nullable=False, server_default=ContentKind.blog.value)
    topic: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    generated_text: Mapped[str] = mapped_column(sa.Text(), nullable=False)
    variants: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    meta: Mapped[dict | None] = mapped_column(sa.JSON(), nullable=True)
    image_keywords: Mapped[list | None] = mapped_column(sa.JSON(), nullable=True)
    source: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="automation")
    status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, server_default=DraftStatus.draft.value, index=True
    )
    published_post_id: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    candidate: Mapped[Candidate] = relationship(back_populates="drafts")


class SocialDestination(Base):
    __tablename__ = "social_destinations"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    candidate_id: Mapped[int] = mapped_column(
        sa.ForeignKey("candidates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    network_name: Mapped[str] = mapped_column(sa.String(64), nullable=False)
    network_type: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default="official")
    profile_or_page_url: Mapped[str] = mapped_column(sa.String(512), nullable=False)
    owner_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    owner_contact_phone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    owner_contact_email: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    active: Mapped[bool] = mapped_column(sa.Boolean(), nullable=False, server_default=sa.true())
    authorization_status: Mapped[str] = mapped_column(
        sa.String(16), nullable=False, server_default=AuthorizationStatus.pending.value, index=True
    )
    last_invite_sent_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    authorized_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    authorized_by_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    authorized_by_email: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    authorized_by_phone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), onupdate=sa.func.now(), nullable=False
    )

    candidate: Mapped[Candidate] = relationship(back_populates="destinations")
    invites: Mapped[list["AuthorizationInvite"]] = relationship(
        back_populates="destination", cascade="all, delete-orphan", passive_deletes=True
    )


class AuthorizationInvite(Base):
    __tablename__ = "social_auth_invites"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    destination_id: Mapped[int] = mapped_column(
        sa.ForeignKey("social_destinations.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # SHA-256 hex of the invite token; the plaintext is never stored
    token_hash: Mapped[str] = mapped_column(sa.String(64), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    decision: Mapped[str | None] = mapped_column(sa.String(16), nullable=True)
    authorized_by_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    authorized_by_email: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    authorized_by_phone: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    authorized_ip: Mapped[str | None] = mapped_column(sa.String(64), nullable=True)
    authorized_user_agent: Mapped[str | None] = mapped_column(sa.Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
    )

    destination: Mapped[SocialDestination] = relationship(back_populates="invites")
