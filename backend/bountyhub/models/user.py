"""User ORM model, mirrored from the identity provider."""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from bountyhub.database import Base


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(64), primary_key=True)  # identity provider id
    email = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    username = Column(String(100), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    github_username = Column(String(100), nullable=True, index=True)
    payout_address = Column(String(64), nullable=True)  # "" means not set
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
