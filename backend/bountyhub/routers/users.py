"""User profile, payout wallet, and token balance routes."""
import logging
from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from bountyhub.context import AppContext, get_context
from bountyhub.database import get_db
from bountyhub.deps import get_current_user_id
from bountyhub.errors import api_error
from bountyhub.schemas.user import ServiceWalletOut, TokenBalanceOut, UserOut, WalletUpdate
from bountyhub.services import user_service
from bountyhub.services.escrow import EscrowError

logger = logging.getLogger(__name__)
router = APIRouter()
wallet_router = APIRouter()


@router.get("/profile", response_model=UserOut)
def get_profile(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return user_service.get_profile(db, user_id)


@router.patch("/wallet", response_model=UserOut)
def update_wallet(
    payload: WalletUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Set the caller's payout address; an empty string clears it."""
    return user_service.update_wallet(db, user_id, payload.payout_address)


@router.get("/gtk-balance", response_model=TokenBalanceOut)
def get_token_balance(
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    symbol = context.settings.TOKEN_SYMBOL
    address = user_service.payout_address_of(db, user_id)
    if not address:
        return TokenBalanceOut(address=None, symbol=symbol, balance=Decimal(0), escrow_balance=Decimal(0))
    try:
        balance = context.escrow.balance_of(address)
        escrow_balance = context.escrow.escrow_balance_of(address)
    except EscrowError as e:
        raise api_error(502, "ledger_error", "Failed to fetch token balance", str(e))
    return TokenBalanceOut(address=address, symbol=symbol, balance=balance, escrow_balance=escrow_balance)


@wallet_router.get("/balance", response_model=ServiceWalletOut)
def get_service_wallet_balance(context: AppContext = Depends(get_context)):
    """Native and token balance of the service's signing wallet."""
    address = context.escrow.service_address
    try:
        native = context.escrow.native_balance_of(address)
        token = context.escrow.balance_of(address)
    except EscrowError as e:
        raise api_error(502, "ledger_error", "Failed to fetch wallet balance", str(e))
    return ServiceWalletOut(
        address=address,
        symbol=context.settings.TOKEN_SYMBOL,
        native_balance=native,
        token_balance=token,
    )
