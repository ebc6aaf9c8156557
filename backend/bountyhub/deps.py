"""Shared FastAPI dependencies: authentication and delegated GitHub access."""
import logging
from typing import Iterator, Optional

from fastapi import Depends, Header

from bountyhub.context import AppContext, get_context
from bountyhub.errors import api_error
from bountyhub.services.github_client import GitHubClient
from bountyhub.services.identity_provider import IdentityProviderError

logger = logging.getLogger(__name__)


def get_current_user_id(
    authorization: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
) -> str:
    """Resolve the bearer session token to the caller's identity provider id."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise api_error(401, "unauthorized", "Authentication required")
    token = authorization[len("bearer "):].strip()
    try:
        return context.identity.authenticate(token)
    except IdentityProviderError as e:
        logger.info("Rejected session token: %s", e)
        raise api_error(401, "authentication_failed", "Authentication failed")


def get_github_client(
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
) -> Iterator[GitHubClient]:
    """Yield a GitHub client authorized with the caller's delegated token."""
    try:
        token = context.identity.get_github_token(user_id)
    except IdentityProviderError as e:
        raise api_error(502, "identity_provider_error", "Could not fetch GitHub token", str(e))
    if not token:
        raise api_error(
            400,
            "github_token_missing",
            "GitHub token not found. Please reconnect your GitHub account.",
        )
    client = context.github_factory(token)
    try:
        yield client
    finally:
        client.close()
