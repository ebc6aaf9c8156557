"""Repository browsing and webhook provisioning on behalf of the signed-in user."""
import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bountyhub.context import AppContext, get_context
from bountyhub.database import get_db
from bountyhub.deps import get_current_user_id, get_github_client
from bountyhub.errors import api_error
from bountyhub.schemas.webhook import RemoteHookOut, WebhookOut, WebhookProvisionOut
from bountyhub.services import webhook_service
from bountyhub.services.github_client import GitHubApiError, GitHubClient

logger = logging.getLogger(__name__)
router = APIRouter()

PASSTHROUGH_STATUSES = (401, 403, 404)


def _upstream_error(e: GitHubApiError, action: str):
    if e.status_code in PASSTHROUGH_STATUSES:
        return api_error(e.status_code, "github_error", e.message)
    return api_error(502, "github_unavailable", f"Failed to {action}", e.message)


@router.get("/repositories")
def list_repositories(github: GitHubClient = Depends(get_github_client)):
    try:
        repos = github.list_repositories()
    except GitHubApiError as e:
        raise _upstream_error(e, "fetch repositories")
    return {"repositories": repos}


@router.get("/repositories/{owner}/{repo}/pulls")
def list_pulls(
    owner: str,
    repo: str,
    state: str = Query("open", pattern="^(open|closed|all)$"),
    per_page: int = Query(30, ge=1, le=100),
    page: int = Query(1, ge=1),
    github: GitHubClient = Depends(get_github_client),
):
    try:
        pulls = github.list_pulls(owner, repo, state=state, per_page=per_page, page=page)
    except GitHubApiError as e:
        raise _upstream_error(e, "fetch pull requests")
    return {"pulls": pulls, "page": page, "per_page": per_page}


@router.get("/repositories/{owner}/{repo}/pulls/{number}/diff")
def get_pull_diff(owner: str, repo: str, number: int, github: GitHubClient = Depends(get_github_client)):
    """Unified diff text plus per-file change stats."""
    try:
        diff = github.get_pull_diff(owner, repo, number)
        files = github.list_pull_files(owner, repo, number)
    except GitHubApiError as e:
        raise _upstream_error(e, "fetch pull request diff")
    return {
        "diff": diff,
        "files": [
            {
                "filename": f.get("filename"),
                "status": f.get("status"),
                "additions": f.get("additions", 0),
                "deletions": f.get("deletions", 0),
                "changes": f.get("changes", 0),
                "patch": f.get("patch"),
            }
            for f in files
        ],
    }


@router.post(
    "/repositories/{owner}/{repo}/webhook",
    response_model=WebhookProvisionOut,
    status_code=status.HTTP_200_OK,
)
def create_webhook(
    owner: str,
    repo: str,
    user_id: str = Depends(get_current_user_id),
    github: GitHubClient = Depends(get_github_client),
    context: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Ensure the repository delivers its events to our callback, creating the hook if needed."""
    record, remote, is_existing = webhook_service.ensure_webhook(
        db, github, user_id, owner, repo, context.settings.WEBHOOK_CALLBACK_URL
    )
    return WebhookProvisionOut(
        is_existing=is_existing,
        message="Webhook already exists" if is_existing else "Webhook created successfully",
        webhook=RemoteHookOut(
            id=record.remote_hook_id,
            url=record.webhook_url,
            events=list(remote.get("events") or record.events),
            active=bool(remote.get("active", record.active)),
        ),
    )


@router.get("/webhooks", response_model=list[WebhookOut])
def list_webhooks(user_id: str = Depends(get_current_user_id), db: Session = Depends(get_db)):
    return webhook_service.list_webhooks(db, user_id)
