"""Settlement engine: pay the author of a merged pull request from the bounty's escrow.

Flow for one merge event:
1. find the oldest active, funded bounty for the repository
2. claim it (conditional update ``active -> settling`` on the read version)
3. resolve the contributor's payout address
4. record a pending Contribution before any transfer
5. check the creator's escrow balance, then release
6. write the terminal outcome to both the Contribution and the Bounty

Nothing here raises to the caller; failures end up on the rows.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from bountyhub.context import AppContext
from bountyhub.models.bounty import Bounty, BountyStatus, EscrowStatus
from bountyhub.models.contribution import Contribution, PaymentStatus
from bountyhub.schemas.github_event import PullRequestEvent
from bountyhub.services import user_service
from bountyhub.services.escrow import EscrowAdapter, EscrowError

logger = logging.getLogger(__name__)


class SettlementOutcome(str, enum.Enum):
    no_match = "no_match"
    already_claimed = "already_claimed"
    completed = "completed"
    failed = "failed"
    error = "error"


@dataclass
class SettlementResult:
    outcome: SettlementOutcome
    bounty_id: Optional[str] = None
    contribution_id: Optional[str] = None
    transaction_hash: Optional[str] = None
    error: Optional[str] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SettlementEngine:
    def __init__(self, db: Session, escrow: EscrowAdapter, default_payout_address: str):
        self.db = db
        self.escrow = escrow
        self.default_payout_address = default_payout_address

    def find_bounty(self, repository_full_name: str) -> Optional[Bounty]:
        return (
            self.db.query(Bounty)
            .filter(
                Bounty.repository_full_name == repository_full_name,
                Bounty.status == BountyStatus.active,
                Bounty.escrow_status == EscrowStatus.active,
            )
            .order_by(Bounty.created_at.asc())
            .first()
        )

    def claim(self, bounty: Bounty) -> bool:
        """Atomically move ``bounty`` to settling; False when another delivery got there first."""
        read_version = bounty.version
        claimed = (
            self.db.query(Bounty)
            .filter(
                Bounty.bounty_id == bounty.bounty_id,
                Bounty.status == BountyStatus.active,
                Bounty.escrow_status == EscrowStatus.active,
                Bounty.version == read_version,
            )
            .update(
                {Bounty.status: BountyStatus.settling, Bounty.version: read_version + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()
        self.db.refresh(bounty)
        return claimed == 1

    def _release_claim(self, bounty: Bounty) -> None:
        self.db.rollback()
        self.db.refresh(bounty)
        bounty.status = BountyStatus.active
        bounty.version += 1
        self.db.commit()

    def _record_contribution(self, bounty: Bounty, event: PullRequestEvent) -> Contribution:
        pr = event.pull_request
        payout_address, used_default = user_service.resolve_payout_address(
            self.db, pr.user.login, self.default_payout_address
        )
        contribution = Contribution(
            bounty_id=bounty.bounty_id,
            contributor_username=pr.user.login,
            contributor_id=pr.user.id,
            contributor_avatar=pr.user.avatar_url,
            contributor_email=pr.user.email,
            payout_address=payout_address,
            used_default_address=used_default,
            pr_number=pr.number,
            pr_title=pr.title,
            pr_url=pr.html_url,
            pr_additions=pr.additions,
            pr_deletions=pr.deletions,
            pr_commits=pr.commits,
            merged_at=pr.merged_at,
            merged_by=pr.merged_by.login if pr.merged_by else None,
            repository_full_name=event.repository.full_name,
            repository_url=event.repository.html_url,
            payment_status=PaymentStatus.pending,
        )
        self.db.add(contribution)
        self.db.commit()
        return contribution

    def _release(self, bounty: Bounty, contribution: Contribution):
        creator_address = user_service.payout_address_of(self.db, bounty.created_by)
        if not creator_address:
            raise EscrowError("Bounty creator has no escrow address on file")
        available = self.escrow.escrow_balance_of(creator_address)
        if available < bounty.amount:
            raise EscrowError(f"Insufficient escrow balance: {available} available, {bounty.amount} required")
        return self.escrow.release_on_behalf(creator_address, contribution.payout_address, bounty.amount)

    def _mark_completed(self, bounty: Bounty, contribution: Contribution, receipt) -> None:
        paid_at = _now()
        contribution.payment_status = PaymentStatus.completed
        contribution.transaction_hash = receipt.transaction_hash
        contribution.paid_amount = receipt.amount
        contribution.block_number = receipt.block_number
        contribution.paid_at = paid_at

        bounty.status = BountyStatus.completed
        bounty.escrow_status = EscrowStatus.released
        bounty.completed_by = contribution.contributor_username
        bounty.completed_at = paid_at
        bounty.contribution_id = contribution.contribution_id
        bounty.escrow_tx_hash = receipt.transaction_hash
        bounty.payment_error = None
        bounty.version += 1
        self.db.commit()

    def _mark_failed(self, bounty: Bounty, contribution: Contribution, error: str) -> None:
        contribution.payment_status = PaymentStatus.failed
        contribution.payment_error = error
        contribution.failed_at = _now()

        bounty.status = BountyStatus.payment_failed
        bounty.escrow_status = EscrowStatus.release_failed
        bounty.payment_error = error
        bounty.version += 1
        self.db.commit()

    def settle(self, event: PullRequestEvent) -> SettlementResult:
        repository = event.repository.full_name
        bounty = self.find_bounty(repository)
        if bounty is None:
            logger.info("No funded active bounty for %s", repository,
                        extra={"repository": repository, "outcome": SettlementOutcome.no_match.value})
            return SettlementResult(SettlementOutcome.no_match)

        log_extra = {"bounty_id": bounty.bounty_id, "repository": repository}
        if not self.claim(bounty):
            logger.info("Bounty %s already claimed by another delivery", bounty.bounty_id, extra=log_extra)
            return SettlementResult(SettlementOutcome.already_claimed, bounty_id=bounty.bounty_id)

        try:
            contribution = self._record_contribution(bounty, event)
        except SQLAlchemyError as e:
            logger.exception("Could not record contribution for bounty %s", bounty.bounty_id, extra=log_extra)
            self._release_claim(bounty)
            return SettlementResult(SettlementOutcome.error, bounty_id=bounty.bounty_id, error=str(e))

        log_extra["contribution_id"] = contribution.contribution_id
        try:
            receipt = self._release(bounty, contribution)
        except EscrowError as e:
            logger.error("Release for bounty %s failed: %s", bounty.bounty_id, e, extra=log_extra)
            self._mark_failed(bounty, contribution, str(e))
            return SettlementResult(
                SettlementOutcome.failed,
                bounty_id=bounty.bounty_id,
                contribution_id=contribution.contribution_id,
                error=str(e),
            )
        except Exception as e:
            logger.exception("Unexpected error releasing bounty %s", bounty.bounty_id, extra=log_extra)
            self._mark_failed(bounty, contribution, f"Unexpected error: {e}")
            return SettlementResult(
                SettlementOutcome.failed,
                bounty_id=bounty.bounty_id,
                contribution_id=contribution.contribution_id,
                error=str(e),
            )

        self._mark_completed(bounty, contribution, receipt)
        logger.info(
            "Paid %s %s to %s for PR #%d", bounty.amount, bounty.currency, contribution.contributor_username,
            contribution.pr_number, extra={**log_extra, "outcome": SettlementOutcome.completed.value},
        )
        return SettlementResult(
            SettlementOutcome.completed,
            bounty_id=bounty.bounty_id,
            contribution_id=contribution.contribution_id,
            transaction_hash=receipt.transaction_hash,
        )


def run_settlement(context: AppContext, event: PullRequestEvent) -> SettlementResult:
    """Background entry point: own session, never raises."""
    db = context.session_factory()
    try:
        engine = SettlementEngine(db, context.escrow, context.settings.DEFAULT_PAYOUT_ADDRESS)
        return engine.settle(event)
    except Exception as e:
        logger.exception("Settlement for %s aborted", event.repository.full_name,
                         extra={"repository": event.repository.full_name})
        db.rollback()
        return SettlementResult(SettlementOutcome.error, error=str(e))
    finally:
        db.close()
