"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the bounty marketplace tables:
users, bounties, bounty_applicants, contributions, webhooks, webhook_events.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BOUNTY_STATUSES = ("active", "settling", "completed", "cancelled", "payment_failed", "escrow_failed")
ESCROW_STATUSES = ("pending", "pending_deposit", "active", "released", "release_failed", "failed")


def upgrade() -> None:
    # --- users ---
    op.create_table(
        "users",
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("username", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.String(500), nullable=True),
        sa.Column("github_username", sa.String(100), nullable=True),
        sa.Column("payout_address", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_github_username", "users", ["github_username"])

    # --- bounties ---
    op.create_table(
        "bounties",
        sa.Column("bounty_id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("amount", sa.String(80), nullable=False),
        sa.Column("currency", sa.String(16), nullable=False, server_default="GTK"),
        sa.Column("repository_full_name", sa.String(255), nullable=False),
        sa.Column("owner", sa.String(100), nullable=False),
        sa.Column("repo_name", sa.String(100), nullable=False),
        sa.Column("requirements", sa.JSON, nullable=False),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("status", sa.Enum(*BOUNTY_STATUSES, name="bountystatus"), nullable=False),
        sa.Column("escrow_status", sa.Enum(*ESCROW_STATUSES, name="escrowstatus"), nullable=False),
        sa.Column("completed_by", sa.String(100), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("contribution_id", sa.String(36), nullable=True),
        sa.Column("escrow_created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("funded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("escrow_tx_hash", sa.String(80), nullable=True),
        sa.Column("payment_error", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_bounties_repository_full_name", "bounties", ["repository_full_name"])
    op.create_index("ix_bounties_created_by", "bounties", ["created_by"])

    # --- bounty_applicants ---
    op.create_table(
        "bounty_applicants",
        sa.Column(
            "bounty_id", sa.String(36),
            sa.ForeignKey("bounties.bounty_id", ondelete="CASCADE"), primary_key=True,
        ),
        sa.Column("user_id", sa.String(64), primary_key=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.Enum("pending", "accepted", "rejected", name="applicantstatus"), nullable=False),
    )

    # --- contributions ---
    op.create_table(
        "contributions",
        sa.Column("contribution_id", sa.String(36), primary_key=True),
        sa.Column("bounty_id", sa.String(36), sa.ForeignKey("bounties.bounty_id"), nullable=False),
        sa.Column("contributor_username", sa.String(100), nullable=False),
        sa.Column("contributor_id", sa.Integer, nullable=True),
        sa.Column("contributor_avatar", sa.String(500), nullable=True),
        sa.Column("contributor_email", sa.String(255), nullable=True),
        sa.Column("payout_address", sa.String(64), nullable=False),
        sa.Column("used_default_address", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("pr_number", sa.Integer, nullable=False),
        sa.Column("pr_title", sa.String(500), nullable=True),
        sa.Column("pr_url", sa.String(500), nullable=True),
        sa.Column("pr_additions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("pr_deletions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("pr_commits", sa.Integer, nullable=False, server_default="1"),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("merged_by", sa.String(100), nullable=True),
        sa.Column("repository_full_name", sa.String(255), nullable=False),
        sa.Column("repository_url", sa.String(500), nullable=True),
        sa.Column(
            "payment_status", sa.Enum("pending", "completed", "failed", name="paymentstatus"), nullable=False,
        ),
        sa.Column("transaction_hash", sa.String(80), nullable=True),
        sa.Column("paid_amount", sa.String(80), nullable=True),
        sa.Column("block_number", sa.Integer, nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_error", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_contributions_bounty_id", "contributions", ["bounty_id"])

    # --- webhooks ---
    op.create_table(
        "webhooks",
        sa.Column("webhook_record_id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("repository_id", sa.String(255), nullable=False),
        sa.Column("owner", sa.String(100), nullable=False),
        sa.Column("repo", sa.String(100), nullable=False),
        sa.Column("remote_hook_id", sa.BigInteger, nullable=False),
        sa.Column("webhook_url", sa.String(500), nullable=False),
        sa.Column("events", sa.JSON, nullable=False),
        sa.Column("active", sa.Boolean, nullable=False, server_default="1"),
        sa.Column("is_existing", sa.Boolean, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "remote_hook_id", "repository_id", name="uq_webhook_owner_hook_repo"),
    )
    op.create_index("ix_webhooks_user_id", "webhooks", ["user_id"])

    # --- webhook_events ---
    op.create_table(
        "webhook_events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("delivery_id", sa.String(64), nullable=True),
        sa.Column("repository_full_name", sa.String(255), nullable=True),
        sa.Column("payload", sa.JSON, nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_webhook_events_event_type", "webhook_events", ["event_type"])
    op.create_index("ix_webhook_events_repository_full_name", "webhook_events", ["repository_full_name"])


def downgrade() -> None:
    op.drop_table("webhook_events")
    op.drop_table("webhooks")
    op.drop_table("contributions")
    op.drop_table("bounty_applicants")
    op.drop_table("bounties")
    op.drop_table("users")
