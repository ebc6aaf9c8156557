"""Contribution ORM model: one merged pull request matched to a bounty."""
import uuid
from datetime import datetime, timezone
import enum
from sqlalchemy import Column, String, Text, Boolean, DateTime, Integer, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from bountyhub.database import Base, DecimalAmount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class Contribution(Base):
    __tablename__ = "contributions"

    contribution_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    bounty_id = Column(String(36), ForeignKey("bounties.bounty_id"), nullable=False, index=True)

    contributor_username = Column(String(100), nullable=False)
    contributor_id = Column(Integer, nullable=True)
    contributor_avatar = Column(String(500), nullable=True)
    contributor_email = Column(String(255), nullable=True)
    payout_address = Column(String(64), nullable=False)
    used_default_address = Column(Boolean, nullable=False, default=False)

    pr_number = Column(Integer, nullable=False)
    pr_title = Column(String(500), nullable=True)
    pr_url = Column(String(500), nullable=True)
    pr_additions = Column(Integer, nullable=False, default=0)
    pr_deletions = Column(Integer, nullable=False, default=0)
    pr_commits = Column(Integer, nullable=False, default=1)
    merged_at = Column(DateTime(timezone=True), nullable=True)
    merged_by = Column(String(100), nullable=True)
    repository_full_name = Column(String(255), nullable=False)
    repository_url = Column(String(500), nullable=True)

    payment_status = Column(SAEnum(PaymentStatus), nullable=False, default=PaymentStatus.pending)
    transaction_hash = Column(String(80), nullable=True)
    paid_amount = Column(DecimalAmount, nullable=True)
    block_number = Column(Integer, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    payment_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
