"""Bounty store: lifecycle, ownership checks, escrow provisioning and applications.

Responsibilities:
- Only the creator may change, fund-confirm or delete a bounty
- At most one active (or settling) bounty per repository
- Completed bounties are immutable and never deleted
- Bounties with recorded payout attempts are never deleted
- Every status transition bumps ``version``
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from bountyhub.errors import api_error
from bountyhub.models.bounty import ApplicantStatus, Bounty, BountyApplicant, BountyStatus, EscrowStatus
from bountyhub.models.contribution import Contribution
from bountyhub.schemas.bounty import BountyCreate
from bountyhub.services import user_service
from bountyhub.services.escrow import DEFAULT_DECIMALS, EscrowAdapter, EscrowError, to_base_units

logger = logging.getLogger(__name__)

LIVE_STATUSES = (BountyStatus.active, BountyStatus.settling)
HIDDEN_STATUSES = (BountyStatus.completed, BountyStatus.escrow_failed, BountyStatus.cancelled)
LISTED_ESCROW_STATUSES = (EscrowStatus.pending_deposit, EscrowStatus.active)
FUNDABLE_ESCROW_STATUSES = (EscrowStatus.pending, EscrowStatus.pending_deposit)
OWNER_SETTABLE_STATUSES = (BountyStatus.active, BountyStatus.cancelled)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _transition(bounty: Bounty, new_status: BountyStatus) -> None:
    bounty.status = new_status
    bounty.version = (bounty.version or 0) + 1


def _check_owner(bounty: Bounty, requester: str, action: str) -> None:
    if bounty.created_by != requester:
        raise api_error(403, "forbidden", f"Only the bounty creator may {action} this bounty")


def _check_repository_free(db: Session, repository_full_name: str, exclude_id: Optional[str] = None) -> None:
    query = db.query(Bounty).filter(
        Bounty.repository_full_name == repository_full_name,
        Bounty.status.in_(LIVE_STATUSES),
    )
    if exclude_id:
        query = query.filter(Bounty.bounty_id != exclude_id)
    clash = query.first()
    if clash:
        raise api_error(
            409,
            "bounty_conflict",
            f"Repository {repository_full_name} already has an active bounty",
            {"bounty_id": clash.bounty_id},
        )


def get_bounty(db: Session, bounty_id: str) -> Bounty:
    bounty = db.query(Bounty).filter(Bounty.bounty_id == bounty_id).first()
    if not bounty:
        raise HTTPException(status_code=404, detail="Bounty not found")
    return bounty


def _provision_escrow(db: Session, escrow: EscrowAdapter, bounty: Bounty) -> None:
    """Move a new or re-activated bounty to ``pending_deposit`` or mark it ``escrow_failed``."""
    creator_address = user_service.payout_address_of(db, bounty.created_by)
    error = None
    if not creator_address:
        error = "Creator has no payout address on file; set a wallet before creating bounties"
    else:
        try:
            escrow.escrow_balance_of(creator_address)
        except EscrowError as e:
            error = f"Escrow provisioning failed: {e}"

    if error:
        _transition(bounty, BountyStatus.escrow_failed)
        bounty.escrow_status = EscrowStatus.failed
        bounty.payment_error = error
        logger.warning("Escrow provisioning failed for bounty %s: %s", bounty.bounty_id, error,
                       extra={"bounty_id": bounty.bounty_id})
    else:
        bounty.escrow_status = EscrowStatus.pending_deposit
        bounty.escrow_created_at = _now()
    db.commit()
    db.refresh(bounty)


def create_bounty(db: Session, escrow: EscrowAdapter, owner_id: str, fields: BountyCreate,
                  decimals: int = DEFAULT_DECIMALS) -> Bounty:
    if fields.amount <= 0:
        raise api_error(400, "invalid_amount", "Bounty amount must be greater than zero")
    try:
        to_base_units(fields.amount, decimals)
    except ValueError as e:
        raise api_error(400, "invalid_amount", f"Bounty amount cannot be paid out: {e}")
    _check_repository_free(db, fields.repository_full_name)

    owner, repo_name = fields.repository_full_name.split("/", 1)
    bounty = Bounty(
        title=fields.title,
        description=fields.description,
        amount=Decimal(fields.amount),
        currency=fields.currency or "GTK",
        repository_full_name=fields.repository_full_name,
        owner=owner,
        repo_name=repo_name,
        requirements=list(fields.requirements),
        created_by=owner_id,
        status=BountyStatus.active,
        escrow_status=EscrowStatus.pending,
        version=1,
    )
    db.add(bounty)
    db.commit()
    logger.info("Created bounty %s for %s", bounty.bounty_id, bounty.repository_full_name,
                extra={"bounty_id": bounty.bounty_id, "repository": bounty.repository_full_name})

    _provision_escrow(db, escrow, bounty)
    return bounty


def confirm_funding(db: Session, escrow: EscrowAdapter, bounty_id: str, requester: str) -> Bounty:
    """Mark the escrow funded once the creator's deposit is visible on the ledger."""
    bounty = get_bounty(db, bounty_id)
    _check_owner(bounty, requester, "confirm funding for")
    if bounty.escrow_status not in FUNDABLE_ESCROW_STATUSES:
        raise api_error(
            409, "invalid_escrow_state",
            f"Escrow is {bounty.escrow_status.value}; funding can only be confirmed while pending",
        )

    creator_address = user_service.payout_address_of(db, bounty.created_by)
    if not creator_address:
        raise api_error(400, "payout_address_missing", "Set a wallet address before confirming funding")
    try:
        funded = escrow.deposit_acknowledged(creator_address, bounty.amount)
    except EscrowError as e:
        raise api_error(502, "ledger_error", "Could not read escrow balance", str(e))
    if not funded:
        raise api_error(409, "deposit_not_found", "Escrow deposit does not cover the bounty amount yet")

    bounty.escrow_status = EscrowStatus.active
    bounty.funded_at = _now()
    bounty.version += 1
    db.commit()
    db.refresh(bounty)
    logger.info("Bounty %s funded", bounty.bounty_id, extra={"bounty_id": bounty.bounty_id})
    return bounty


def list_active(db: Session) -> list[Bounty]:
    return (
        db.query(Bounty)
        .filter(
            Bounty.status.notin_(HIDDEN_STATUSES),
            Bounty.escrow_status.in_(LISTED_ESCROW_STATUSES),
        )
        .order_by(Bounty.created_at.desc())
        .all()
    )


def list_mine(db: Session, owner_id: str) -> list[Bounty]:
    return (
        db.query(Bounty)
        .filter(Bounty.created_by == owner_id)
        .order_by(Bounty.created_at.desc())
        .all()
    )


def _reprovision_escrow(db: Session, escrow: EscrowAdapter, bounty: Bounty) -> Bounty:
    """Retry escrow setup for an ``escrow_failed`` bounty; 409 if it fails again."""
    _transition(bounty, BountyStatus.active)
    bounty.escrow_status = EscrowStatus.pending
    bounty.payment_error = None
    _provision_escrow(db, escrow, bounty)
    if bounty.escrow_status == EscrowStatus.failed:
        raise api_error(409, "escrow_provisioning_failed", "Bounty escrow could not be set up",
                        bounty.payment_error)
    logger.info("Bounty %s re-activated with escrow pending deposit", bounty.bounty_id,
                extra={"bounty_id": bounty.bounty_id})
    return bounty


def update_status(db: Session, escrow: EscrowAdapter, bounty_id: str, requester: str, new_status: str) -> Bounty:
    bounty = get_bounty(db, bounty_id)
    _check_owner(bounty, requester, "update")

    try:
        target = BountyStatus(new_status)
    except ValueError:
        target = None
    if target not in OWNER_SETTABLE_STATUSES:
        raise api_error(
            400, "invalid_status", f"Status must be one of: {', '.join(s.value for s in OWNER_SETTABLE_STATUSES)}"
        )
    if bounty.status in (BountyStatus.completed, BountyStatus.settling):
        raise api_error(409, "bounty_locked", f"Bounty is {bounty.status.value} and can no longer change status")

    if target == BountyStatus.active:
        _check_repository_free(db, bounty.repository_full_name, exclude_id=bounty.bounty_id)
        if bounty.escrow_status == EscrowStatus.failed:
            return _reprovision_escrow(db, escrow, bounty)
        if bounty.escrow_status == EscrowStatus.release_failed:
            # manual retry after the creator topped up escrow
            bounty.escrow_status = EscrowStatus.active
            bounty.payment_error = None

    if bounty.status != target:
        _transition(bounty, target)
    db.commit()
    db.refresh(bounty)
    logger.info("Bounty %s set to %s", bounty.bounty_id, target.value, extra={"bounty_id": bounty.bounty_id})
    return bounty


def delete_bounty(db: Session, bounty_id: str, requester: str) -> None:
    bounty = get_bounty(db, bounty_id)
    _check_owner(bounty, requester, "delete")
    if bounty.status == BountyStatus.completed:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Completed bounties cannot be deleted")
    if bounty.status == BountyStatus.settling:
        raise api_error(409, "bounty_locked", "Bounty is being settled")

    payouts = db.query(Contribution).filter(Contribution.bounty_id == bounty_id).count()
    if payouts:
        raise api_error(409, "bounty_has_contributions",
                        "Bounty has recorded payout attempts and cannot be deleted", {"contributions": payouts})

    db.delete(bounty)
    db.commit()
    logger.info("Deleted bounty %s", bounty_id, extra={"bounty_id": bounty_id})


def apply(db: Session, bounty_id: str, applicant_id: str) -> Bounty:
    bounty = get_bounty(db, bounty_id)
    if bounty.created_by == applicant_id:
        raise HTTPException(status_code=400, detail="You cannot apply to your own bounty")
    for existing in bounty.applicants:
        if existing.user_id == applicant_id:
            raise HTTPException(status_code=400, detail="You have already applied to this bounty")

    bounty.applicants.append(
        BountyApplicant(user_id=applicant_id, applied_at=_now(), status=ApplicantStatus.pending)
    )
    db.commit()
    db.refresh(bounty)
    return bounty


def list_contributions(db: Session, bounty_id: str) -> list[Contribution]:
    get_bounty(db, bounty_id)
    return (
        db.query(Contribution)
        .filter(Contribution.bounty_id == bounty_id)
        .order_by(Contribution.created_at.desc())
        .all()
    )
