"""Clerk identity provider client.

Three jobs:
- verify session JWTs presented by the dashboard (RS256 against Clerk's JWKS)
- fetch a user's delegated GitHub OAuth token
- verify Svix-signed lifecycle webhooks (``svix-id`` / ``svix-timestamp`` /
  ``svix-signature`` headers)
"""
import base64
import hashlib
import hmac
import logging
import time
from typing import Any, Mapping, Optional

import httpx
import jwt

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 5 * 60
GITHUB_OAUTH_PROVIDER = "oauth_github"


class IdentityProviderError(Exception):
    """Token verification or an identity provider API call failed."""


class WebhookSignatureError(Exception):
    """Lifecycle webhook headers are missing or the signature does not verify."""


class ClerkClient:
    def __init__(self, secret_key: str, api_url: str = "https://api.clerk.com/v1", timeout: float = 15.0):
        self._secret_key = secret_key
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._jwks_client = jwt.PyJWKClient(
            f"{self._api_url}/jwks",
            headers={"Authorization": f"Bearer {secret_key}"},
            timeout=int(timeout),
        )

    def authenticate(self, session_token: str) -> str:
        """Return the user id (``sub``) of a valid session token."""
        try:
            signing_key = self._jwks_client.get_signing_key_from_jwt(session_token)
            claims = jwt.decode(
                session_token,
                signing_key.key,
                algorithms=["RS256"],
                options={"require": ["sub", "exp"]},
            )
        except jwt.PyJWTError as e:
            raise IdentityProviderError(f"Invalid session token: {e}") from e
        return claims["sub"]

    def get_github_token(self, user_id: str) -> Optional[str]:
        """Return the user's delegated GitHub access token, or None when not linked."""
        url = f"{self._api_url}/users/{user_id}/oauth_access_tokens/{GITHUB_OAUTH_PROVIDER}"
        try:
            resp = httpx.get(
                url,
                headers={"Authorization": f"Bearer {self._secret_key}"},
                timeout=self._timeout,
            )
        except httpx.HTTPError as e:
            logger.warning("Clerk token lookup for %s failed: %s", user_id, e)
            raise IdentityProviderError(f"Clerk token lookup failed: {e}") from e

        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise IdentityProviderError(f"Clerk token lookup returned {resp.status_code}")

        body = resp.json()
        tokens = body.get("data", []) if isinstance(body, dict) else body
        if not tokens:
            return None
        return tokens[0].get("token")


def compute_svix_signature(secret: str, msg_id: str, timestamp: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 over ``"{id}.{timestamp}.{body}"`` keyed by the ``whsec_`` secret."""
    key_material = secret[len("whsec_"):] if secret.startswith("whsec_") else secret
    try:
        key = base64.b64decode(key_material)
    except ValueError as e:
        raise WebhookSignatureError("Webhook signing secret is not valid base64") from e
    signed_content = f"{msg_id}.{timestamp}.".encode() + body
    return base64.b64encode(hmac.new(key, signed_content, hashlib.sha256).digest()).decode()


def verify_svix_signature(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    now: Optional[float] = None,
) -> None:
    """Raise WebhookSignatureError unless the delivery carries a valid signature."""
    msg_id = headers.get("svix-id")
    timestamp = headers.get("svix-timestamp")
    signature_header = headers.get("svix-signature")
    if not msg_id or not timestamp or not signature_header:
        raise WebhookSignatureError("Missing svix signature headers")

    try:
        sent_at = int(timestamp)
    except ValueError as e:
        raise WebhookSignatureError("Invalid svix-timestamp header") from e

    current = time.time() if now is None else now
    if abs(current - sent_at) > SIGNATURE_TOLERANCE_SECONDS:
        raise WebhookSignatureError("Webhook timestamp outside tolerance")

    expected = compute_svix_signature(secret, msg_id, timestamp, body)

    # header holds space-separated "v1,<signature>" entries
    for candidate in signature_header.split():
        version, _, value = candidate.partition(",")
        if version == "v1" and hmac.compare_digest(value, expected):
            return
    raise WebhookSignatureError("No matching webhook signature")


def github_username_from_identity(data: Mapping[str, Any]) -> Optional[str]:
    """Pick the GitHub login out of a Clerk user payload's external accounts."""
    for account in data.get("external_accounts") or []:
        provider = account.get("provider") or ""
        if provider in (GITHUB_OAUTH_PROVIDER, "github"):
            return account.get("username") or None
    return None
