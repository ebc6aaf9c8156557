"""Bounty API routes; invariants live in bounty_service."""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bountyhub.context import AppContext, get_context
from bountyhub.database import get_db
from bountyhub.deps import get_current_user_id
from bountyhub.schemas.bounty import BountyCreate, BountyOut, BountyStatusUpdate
from bountyhub.schemas.contribution import ContributionOut
from bountyhub.services import bounty_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/bounties", response_model=BountyOut, status_code=status.HTTP_201_CREATED)
def create_bounty(
    payload: BountyCreate,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Create a bounty and provision its escrow."""
    return bounty_service.create_bounty(db, context.escrow, user_id, payload, context.settings.TOKEN_DECIMALS)


@router.get("/bounties", response_model=list[BountyOut])
def list_bounties(db: Session = Depends(get_db)):
    return bounty_service.list_active(db)


@router.get("/my-bounties", response_model=list[BountyOut])
def list_my_bounties(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return bounty_service.list_mine(db, user_id)


@router.get("/bounties/{bounty_id}", response_model=BountyOut)
def get_bounty(bounty_id: str, db: Session = Depends(get_db)):
    return bounty_service.get_bounty(db, bounty_id)


@router.patch("/bounties/{bounty_id}/status", response_model=BountyOut)
def update_bounty_status(
    bounty_id: str,
    payload: BountyStatusUpdate,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Cancel or re-activate a bounty (creator only)."""
    return bounty_service.update_status(db, context.escrow, bounty_id, user_id, payload.status)


@router.post("/bounties/{bounty_id}/confirm-funding", response_model=BountyOut)
def confirm_funding(
    bounty_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    return bounty_service.confirm_funding(db, context.escrow, bounty_id, user_id)


@router.delete("/bounties/{bounty_id}")
def delete_bounty(bounty_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    bounty_service.delete_bounty(db, bounty_id, user_id)
    return {"success": True, "message": "Bounty deleted successfully"}


@router.post("/bounties/{bounty_id}/apply", response_model=BountyOut)
def apply_to_bounty(bounty_id: str, user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return bounty_service.apply(db, bounty_id, user_id)


@router.get("/bounties/{bounty_id}/contributions", response_model=list[ContributionOut])
def list_contributions(bounty_id: str, db: Session = Depends(get_db)):
    return bounty_service.list_contributions(db, bounty_id)
