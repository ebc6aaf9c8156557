"""User directory: identity sync, payout addresses, and contributor lookup."""
import logging
from typing import Any, Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session
from web3 import Web3

from bountyhub.models.user import User
from bountyhub.services.identity_provider import github_username_from_identity

logger = logging.getLogger(__name__)


def _primary_email(data: dict[str, Any]) -> Optional[str]:
    addresses = data.get("email_addresses") or []
    primary_id = data.get("primary_email_address_id")
    for entry in addresses:
        if entry.get("id") == primary_id:
            return entry.get("email_address")
    return addresses[0].get("email_address") if addresses else None


def upsert_from_identity_event(db: Session, data: dict[str, Any]) -> User:
    """Create or refresh a user from an identity provider ``user.*`` payload.

    The payout address is never touched here; only the wallet endpoint writes it.
    """
    user_id = data.get("id")
    if not user_id:
        raise HTTPException(status_code=400, detail="Identity payload has no user id")

    user = db.query(User).filter(User.user_id == user_id).first()
    created = user is None
    if created:
        user = User(user_id=user_id, payout_address="")
        db.add(user)

    user.email = _primary_email(data)
    user.first_name = data.get("first_name")
    user.last_name = data.get("last_name")
    user.username = data.get("username")
    user.avatar_url = data.get("image_url")
    github_login = github_username_from_identity(data)
    if github_login:
        user.github_username = github_login

    db.commit()
    db.refresh(user)
    logger.info("%s user %s (github=%s)", "Created" if created else "Updated", user_id, user.github_username)
    return user


def find_by_github_login(db: Session, login: str) -> Optional[User]:
    """Exact login match first, then a case-insensitive fallback."""
    user = db.query(User).filter(User.github_username == login).first()
    if user:
        return user
    return db.query(User).filter(func.lower(User.github_username) == login.lower()).first()


def resolve_payout_address(db: Session, github_login: str, default_address: str) -> tuple[str, bool]:
    """Return ``(address, used_default)`` for the contributor behind ``github_login``."""
    user = find_by_github_login(db, github_login)
    if user and user.payout_address:
        return user.payout_address, False
    logger.info("No payout address on file for %s, using default address", github_login)
    return default_address, True


def payout_address_of(db: Session, user_id: str) -> Optional[str]:
    user = db.query(User).filter(User.user_id == user_id).first()
    if user and user.payout_address:
        return user.payout_address
    return None


def get_profile(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def update_wallet(db: Session, user_id: str, address: str) -> User:
    """Set (or clear with an empty string) the caller's payout address."""
    address = address.strip()
    if address and not Web3.is_address(address):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "invalid_address", "message": f"Invalid wallet address: {address}"},
        )

    user = db.query(User).filter(User.user_id == user_id).first()
    if not user:
        user = User(user_id=user_id)
        db.add(user)
    user.payout_address = Web3.to_checksum_address(address) if address else ""
    db.commit()
    db.refresh(user)
    logger.info("Updated payout address for user %s", user_id)
    return user
