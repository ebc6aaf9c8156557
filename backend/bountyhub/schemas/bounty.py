"""Pydantic schemas for Bounties."""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field, field_validator

REPOSITORY_PATTERN = r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$"


class BountyCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    amount: Decimal
    repository_full_name: str = Field(pattern=REPOSITORY_PATTERN)
    requirements: list[str] = []
    currency: Optional[str] = None

    @field_validator("title", "description")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v.strip()

    @field_validator("requirements")
    @classmethod
    def _drop_blank_requirements(cls, v: list[str]) -> list[str]:
        return [item.strip() for item in v if item and item.strip()]


class BountyStatusUpdate(BaseModel):
    status: str


class ApplicantOut(BaseModel):
    user_id: str
    applied_at: datetime
    status: str

    model_config = {"from_attributes": True}


class BountyOut(BaseModel):
    bounty_id: str
    title: str
    description: str
    amount: Decimal
    currency: str
    repository_full_name: str
    owner: str
    repo_name: str
    requirements: list[str] = []
    created_by: str
    status: str
    escrow_status: str
    completed_by: Optional[str] = None
    completed_at: Optional[datetime] = None
    contribution_id: Optional[str] = None
    escrow_created_at: Optional[datetime] = None
    funded_at: Optional[datetime] = None
    escrow_tx_hash: Optional[str] = None
    payment_error: Optional[str] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    applicants: list[ApplicantOut] = []

    model_config = {"from_attributes": True}


# Rebuild BountyOut now that ApplicantOut is defined
BountyOut.model_rebuild()
