"""Webhook provisioning: make sure a repository pushes its events to us exactly once.

A remote hook is reused when one already points at our callback URL with
exactly the required event set; otherwise a new one is created. The local
record is written only after the remote side succeeded.
"""
import hashlib
import hmac
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from bountyhub.errors import api_error
from bountyhub.models.webhook import Webhook, WebhookEvent
from bountyhub.schemas.github_event import repository_full_name
from bountyhub.services.github_client import GitHubApiError, GitHubClient

logger = logging.getLogger(__name__)

REQUIRED_EVENTS = frozenset({"push", "pull_request", "issues", "issue_comment"})


def _provisioning_error(e: GitHubApiError):
    if e.status_code == 403:
        return api_error(403, "forbidden", "Insufficient permissions to manage webhooks on this repository", e.message)
    if e.status_code == 422:
        return api_error(422, "unprocessable", "GitHub rejected the webhook configuration", e.message)
    return api_error(502, "webhook_provisioning_failed", "Failed to create webhook", e.message)


def _matches(hook: dict[str, Any], callback_url: str) -> bool:
    config = hook.get("config") or {}
    return config.get("url") == callback_url and set(hook.get("events") or []) == REQUIRED_EVENTS


def find_matching_hook(hooks: list[dict[str, Any]], callback_url: str) -> Optional[dict[str, Any]]:
    """First active hook pointing at ``callback_url`` with exactly the required events."""
    for hook in hooks:
        if _matches(hook, callback_url) and hook.get("active", False):
            return hook
    return None


def ensure_webhook(
    db: Session,
    github: GitHubClient,
    user_id: str,
    owner: str,
    repo: str,
    callback_url: str,
) -> tuple[Webhook, dict[str, Any], bool]:
    """Reuse or create the repository hook, then record it locally.

    Returns the local record, the remote hook as GitHub described it, and
    whether the remote hook already existed.
    """
    repository_id = f"{owner}/{repo}"
    try:
        existing = find_matching_hook(github.list_hooks(owner, repo), callback_url)
        if existing:
            remote, is_existing = existing, True
        else:
            remote = github.create_hook(owner, repo, callback_url, sorted(REQUIRED_EVENTS))
            is_existing = False
    except GitHubApiError as e:
        logger.warning("Webhook provisioning for %s failed: %s", repository_id, e.message,
                       extra={"repository": repository_id})
        raise _provisioning_error(e)

    remote_hook_id = int(remote["id"])
    record = (
        db.query(Webhook)
        .filter(
            Webhook.user_id == user_id,
            Webhook.remote_hook_id == remote_hook_id,
            Webhook.repository_id == repository_id,
        )
        .first()
    )
    if record is None:
        record = Webhook(
            user_id=user_id,
            repository_id=repository_id,
            owner=owner,
            repo=repo,
            remote_hook_id=remote_hook_id,
            webhook_url=(remote.get("config") or {}).get("url", callback_url),
            events=sorted(remote.get("events") or REQUIRED_EVENTS),
            active=bool(remote.get("active", True)),
            is_existing=is_existing,
        )
        db.add(record)
        db.commit()
        db.refresh(record)

    logger.info(
        "%s webhook %d on %s", "Reused" if is_existing else "Created", remote_hook_id, repository_id,
        extra={"repository": repository_id},
    )
    return record, remote, is_existing


def list_webhooks(db: Session, user_id: str) -> list[Webhook]:
    return (
        db.query(Webhook)
        .filter(Webhook.user_id == user_id)
        .order_by(Webhook.created_at.desc())
        .all()
    )


def verify_github_signature(secret: str, body: bytes, signature_header: Optional[str]) -> bool:
    """Check ``X-Hub-Signature-256`` (``sha256=<hex hmac of the raw body>``)."""
    if not signature_header or not signature_header.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(signature_header[len("sha256="):], expected)


def record_delivery(
    db: Session,
    event_type: str,
    delivery_id: Optional[str],
    payload: dict[str, Any],
) -> WebhookEvent:
    """Append a delivery to the audit log before anything acts on it."""
    entry = WebhookEvent(
        event_type=event_type,
        delivery_id=delivery_id,
        repository_full_name=repository_full_name(payload),
        payload=payload,
    )
    db.add(entry)
    db.commit()
    return entry
