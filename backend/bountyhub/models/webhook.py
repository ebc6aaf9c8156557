"""Webhook registration records and the append-only delivery audit log."""
import uuid
from sqlalchemy import Column, String, Boolean, DateTime, BigInteger, JSON, UniqueConstraint
from sqlalchemy.sql import func
from bountyhub.database import Base


class Webhook(Base):
    __tablename__ = "webhooks"
    __table_args__ = (
        UniqueConstraint("user_id", "remote_hook_id", "repository_id", name="uq_webhook_owner_hook_repo"),
    )

    webhook_record_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(64), nullable=False, index=True)
    repository_id = Column(String(255), nullable=False)  # owner/repo
    owner = Column(String(100), nullable=False)
    repo = Column(String(100), nullable=False)
    remote_hook_id = Column(BigInteger, nullable=False)
    webhook_url = Column(String(500), nullable=False)
    events = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)
    is_existing = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class WebhookEvent(Base):
    __tablename__ = "webhook_events"

    event_id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    event_type = Column(String(64), nullable=False, index=True)
    delivery_id = Column(String(64), nullable=True)
    repository_full_name = Column(String(255), nullable=True, index=True)
    payload = Column(JSON, nullable=False)
    received_at = Column(DateTime(timezone=True), server_default=func.now())
