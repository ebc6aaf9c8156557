"""Pydantic schemas for Contributions."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class ContributionOut(BaseModel):
    contribution_id: str
    bounty_id: str
    contributor_username: str
    contributor_id: Optional[int] = None
    contributor_avatar: Optional[str] = None
    payout_address: str
    used_default_address: bool
    pr_number: int
    pr_title: Optional[str] = None
    pr_url: Optional[str] = None
    pr_additions: int
    pr_deletions: int
    pr_commits: int
    merged_at: Optional[datetime] = None
    merged_by: Optional[str] = None
    repository_full_name: str
    payment_status: str
    transaction_hash: Optional[str] = None
    paid_amount: Optional[Decimal] = None
    block_number: Optional[int] = None
    paid_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    payment_error: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
