"""Liveness and configuration summary."""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bountyhub.config import is_placeholder
from bountyhub.context import AppContext, get_context

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/health")
def health_check(context: AppContext = Depends(get_context)):
    settings = context.settings
    try:
        with context.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        database_connected = True
    except SQLAlchemyError as e:
        logger.warning("Database health check failed: %s", e)
        database_connected = False

    return {
        "status": "ok" if database_connected else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "clerkConfigured": not is_placeholder(settings.CLERK_SECRET_KEY),
        "databaseConnected": database_connected,
        "ledgerConfigured": settings.ledger_configured,
        "walletAddress": context.escrow.service_address,
        "tokenContract": settings.TOKEN_CONTRACT_ADDRESS or None,
        "escrowContract": settings.ESCROW_CONTRACT_ADDRESS or None,
    }
