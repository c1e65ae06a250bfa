"""create candidates, drafts, destinations and invites tables

Revision ID: 0001_create_editorial_tables
Revises:
Create Date: 2026-02-02 10:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_editorial_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "candidates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("slug", sa.String(length=128), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("office", sa.String(length=128), nullable=False),
        sa.Column("region", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("party", sa.String(length=255), nullable=True),
        sa.Column("ballot_number", sa.String(length=16), nullable=True),
        sa.Column("biography", sa.Text(), nullable=True),
        sa.Column("proposals", sa.Text(), nullable=True),
        sa.Column("auto_blog_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        "ai_drafts",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "candidate_id",
            sa.Integer(),
            sa.ForeignKey("candidates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("content_type", sa.String(length=16), nullable=False, server_default="blog"),
        sa.Column("topic", sa.Text(), nullable=True),
        sa.Column("generated_text", sa.Text(), nullable=False),
        sa.Column("variants", sa.JSON(), nullable=True),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("image_keywords", sa.JSON(), nullable=True),
        sa.Column("source", sa.String(length=32), nullable=False, server_default="automation"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="draft"),
        sa.Column("published_post_id", sa.String(length=255), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_ai_drafts_candidate_id", "ai_drafts", ["candidate_id"])
    op.create_index("ix_ai_drafts_status", "ai_drafts", ["status"])

    op.create_table(
        "social_destinations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "candidate_id",
            sa.Integer(),
            sa.ForeignKey("candidates.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("network_name", sa.String(length=64), nullable=False),
        sa.Column("network_type", sa.String(length=32), nullable=False, server_default="official"),
        sa.Column("profile_or_page_url", sa.String(length=512), nullable=False),
        sa.Column("owner_name", sa.String(length=255), nullable=True),
        sa.Column("owner_contact_phone", sa.String(length=64), nullable=True),
        sa.Column("owner_contact_email", sa.String(length=255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("authorization_status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("last_invite_sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("authorized_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("authorized_by_name", sa.String(length=255), nullable=True),
        sa.Column("authorized_by_email", sa.String(length=255), nullable=True),
        sa.Column("authorized_by_phone", sa.String(length=64), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_social_destinations_candidate_id", "social_destinations", ["candidate_id"])
    op.create_index("ix_social_destinations_authorization_status", "social_destinations", ["authorization_status"])

    op.create_table(
        "social_auth_invites",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "destination_id",
            sa.Integer(),
            sa.ForeignKey("social_destinations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("token_hash", sa.String(length=64), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("decision", sa.String(length=16), nullable=True),
        sa.Column("authorized_by_name", sa.String(length=255), nullable=True),
        sa.Column("authorized_by_email", sa.String(length=255), nullable=True),
        sa.Column("authorized_by_phone", sa.String(length=64), nullable=True),
        sa.Column("authorized_ip", sa.String(length=64), nullable=True),
        sa.Column("authorized_user_agent", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_social_auth_invites_destination_id", "social_auth_invites", ["destination_id"])
    op.create_index("ix_social_auth_invites_token_hash", "social_auth_invites", ["token_hash"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_social_auth_invites_token_hash", table_name="social_auth_invites")
    op.drop_index("ix_social_auth_invites_destination_id", table_name="social_auth_invites")
    op.drop_table("social_auth_invites")
    op.drop_index("ix_social_destinations_authorization_status", table_name="social_destinations")
    op.drop_index("ix_social_destinations_candidate_id", table_name="social_destinations")
    op.drop_table("social_destinations")
    op.drop_index("ix_ai_drafts_status", table_name="ai_drafts")
    op.drop_index("ix_ai_drafts_candidate_id", table_name="ai_drafts")
    op.drop_table("ai_drafts")
    op.drop_table("candidates")
