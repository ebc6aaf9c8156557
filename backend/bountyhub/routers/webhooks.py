"""Inbound webhooks: GitHub repository deliveries and identity provider lifecycle events."""
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, Request
from sqlalchemy.orm import Session

from bountyhub.context import AppContext, get_context
from bountyhub.database import get_db
from bountyhub.errors import api_error
from bountyhub.schemas.github_event import PullRequestEvent, parse_event
from bountyhub.services import user_service, webhook_service
from bountyhub.services.identity_provider import WebhookSignatureError, verify_svix_signature
from bountyhub.services.settlement_service import run_settlement

logger = logging.getLogger(__name__)
router = APIRouter()

IDENTITY_USER_EVENTS = ("user.created", "user.updated")


async def raw_body(request: Request) -> bytes:
    return await request.body()


def _decode_object(body: bytes) -> dict:
    try:
        payload = json.loads(body)
    except ValueError:
        raise api_error(400, "invalid_payload", "Request body is not valid JSON")
    if not isinstance(payload, dict):
        raise api_error(400, "invalid_payload", "Request body must be a JSON object")
    return payload


@router.post("/webhook/callback")
def github_callback(
    background_tasks: BackgroundTasks,
    body: bytes = Depends(raw_body),
    x_github_event: Optional[str] = Header(None),
    x_github_delivery: Optional[str] = Header(None),
    x_hub_signature_256: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Audit every delivery, then hand merged pull requests to settlement."""
    if not x_github_event:
        raise api_error(400, "missing_event_header", "Missing X-GitHub-Event header")

    secret = context.settings.GITHUB_WEBHOOK_SECRET
    if secret and not webhook_service.verify_github_signature(secret, body, x_hub_signature_256):
        logger.warning("Rejected delivery %s with bad signature", x_github_delivery,
                       extra={"delivery_id": x_github_delivery, "event_type": x_github_event})
        raise api_error(400, "invalid_signature", "Webhook signature verification failed")

    payload = _decode_object(body)
    webhook_service.record_delivery(db, x_github_event, x_github_delivery, payload)

    event = parse_event(x_github_event, payload)
    if isinstance(event, PullRequestEvent) and event.is_merge:
        logger.info(
            "PR #%d merged in %s, scheduling settlement", event.pull_request.number, event.repository.full_name,
            extra={"repository": event.repository.full_name, "delivery_id": x_github_delivery},
        )
        background_tasks.add_task(run_settlement, context, event)
    else:
        logger.info("Acknowledged %s delivery", x_github_event,
                    extra={"event_type": x_github_event, "delivery_id": x_github_delivery})

    return {
        "success": True,
        "message": f"{x_github_event} event processed successfully",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.post("/webhooks/clerk")
def identity_webhook(
    request: Request,
    body: bytes = Depends(raw_body),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Svix-signed user lifecycle events from the identity provider."""
    try:
        verify_svix_signature(context.settings.CLERK_WEBHOOK_SECRET, request.headers, body)
    except WebhookSignatureError as e:
        logger.warning("Rejected identity webhook: %s", e)
        raise api_error(400, "invalid_signature", "Webhook verification failed", str(e))

    payload = _decode_object(body)
    event_type = payload.get("type")
    data = payload.get("data") or {}
    if event_type in IDENTITY_USER_EVENTS and isinstance(data, dict):
        user = user_service.upsert_from_identity_event(db, data)
        return {"success": True, "message": f"{event_type} processed", "user_id": user.user_id}

    logger.info("Ignoring identity event %s", event_type, extra={"event_type": event_type})
    return {"success": True, "message": f"{event_type} ignored"}
