"""Application context: every long-lived collaborator, built once at startup."""
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from bountyhub.config import Settings
from bountyhub.database import build_engine, build_session_factory
from bountyhub.services.escrow import EscrowAdapter, Web3EscrowAdapter
from bountyhub.services.github_client import GitHubClient
from bountyhub.services.identity_provider import ClerkClient

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def authenticate(self, session_token: str) -> str: ...

    def get_github_token(self, user_id: str) -> Optional[str]: ...


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    identity: IdentityProvider
    github_factory: Callable[[str], GitHubClient]
    escrow: EscrowAdapter

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppContext":
        """Validate configuration and wire the production collaborators."""
        settings.check_required()
        engine = build_engine(settings.DATABASE_URL)

        def github_factory(token: str) -> GitHubClient:
            return GitHubClient(token, base_url=settings.GITHUB_API_URL, timeout=settings.HTTP_TIMEOUT_SECONDS)

        escrow = Web3EscrowAdapter(
            rpc_url=settings.ETH_RPC_URL,
            private_key=settings.SERVICE_PRIVATE_KEY,
            token_address=settings.TOKEN_CONTRACT_ADDRESS,
            escrow_address=settings.ESCROW_CONTRACT_ADDRESS,
            decimals=settings.TOKEN_DECIMALS,
            request_timeout=settings.LEDGER_REQUEST_TIMEOUT_SECONDS,
            tx_timeout=settings.LEDGER_TX_TIMEOUT_SECONDS,
        )
        logger.info("Application context ready (ledger signer %s)", escrow.service_address)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            identity=ClerkClient(
                settings.CLERK_SECRET_KEY,
                api_url=settings.CLERK_API_URL,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
            ),
            github_factory=github_factory,
            escrow=escrow,
        )


def get_context(request: Request) -> AppContext:
    return request.app.state.context
