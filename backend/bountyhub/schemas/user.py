"""Pydantic schemas for Users and wallet operations."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel


class WalletUpdate(BaseModel):
    payout_address: str


class UserOut(BaseModel):
    user_id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    github_username: Optional[str] = None
    payout_address: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TokenBalanceOut(BaseModel):
    address: Optional[str] = None
    symbol: str
    balance: Decimal
    escrow_balance: Decimal


class ServiceWalletOut(BaseModel):
    address: str
    symbol: str
    native_balance: Decimal
    token_balance: Decimal
