"""Bounty and BountyApplicant ORM models."""
import uuid
from datetime import datetime, timezone
import enum
from sqlalchemy import Column, String, Text, DateTime, Integer, JSON, ForeignKey, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from bountyhub.database import Base, DecimalAmount


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BountyStatus(str, enum.Enum):
    active = "active"
    settling = "settling"
    completed = "completed"
    cancelled = "cancelled"
    payment_failed = "payment_failed"
    escrow_failed = "escrow_failed"


class EscrowStatus(str, enum.Enum):
    pending = "pending"
    pending_deposit = "pending_deposit"
    active = "active"
    released = "released"
    release_failed = "release_failed"
    failed = "failed"


class ApplicantStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"


class Bounty(Base):
    __tablename__ = "bounties"

    bounty_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    amount = Column(DecimalAmount, nullable=False)
    currency = Column(String(16), nullable=False, default="GTK")
    repository_full_name = Column(String(255), nullable=False, index=True)
    owner = Column(String(100), nullable=False)
    repo_name = Column(String(100), nullable=False)
    requirements = Column(JSON, nullable=False, default=list)
    created_by = Column(String(64), nullable=False, index=True)
    status = Column(SAEnum(BountyStatus), nullable=False, default=BountyStatus.active)
    escrow_status = Column(SAEnum(EscrowStatus), nullable=False, default=EscrowStatus.pending)
    completed_by = Column(String(100), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    contribution_id = Column(String(36), nullable=True)
    escrow_created_at = Column(DateTime(timezone=True), nullable=True)
    funded_at = Column(DateTime(timezone=True), nullable=True)
    escrow_tx_hash = Column(String(80), nullable=True)
    payment_error = Column(Text, nullable=True)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    applicants = relationship(
        "BountyApplicant",
        back_populates="bounty",
        cascade="all, delete-orphan",
        order_by="BountyApplicant.applied_at",
    )


class BountyApplicant(Base):
    __tablename__ = "bounty_applicants"

    bounty_id = Column(String(36), ForeignKey("bounties.bounty_id", ondelete="CASCADE"), primary_key=True)
    user_id = Column(String(64), primary_key=True)
    applied_at = Column(DateTime(timezone=True), nullable=False)
    status = Column(SAEnum(ApplicantStatus), nullable=False, default=ApplicantStatus.pending)

    bounty = relationship("Bounty", back_populates="applicants")
