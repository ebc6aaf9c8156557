"""GitHub REST client acting with a user's delegated OAuth token.

Covers only the calls the bounty flows need: repository and pull request
listing, pull request diffs, and repository webhook listing/creation.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "bountyhub-backend/0.1.0"


class GitHubApiError(Exception):
    """Non-2xx response or transport failure from the GitHub API."""

    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class GitHubClient:
    """Thin synchronous wrapper over ``httpx.Client``."""

    def __init__(self, token: str, base_url: str = "https://api.github.com", timeout: float = 15.0) -> None:
        self._client = httpx.Client(
            base_url=base_url,
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        try:
            resp = self._client.request(method, path, params=params, json=json, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("GitHub %s %s timed out", method, path)
            raise GitHubApiError(None, f"GitHub request timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("GitHub %s %s failed: %s", method, path, e)
            raise GitHubApiError(None, f"GitHub request failed: {e}") from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("GitHub %s %s returned %d: %s", method, path, resp.status_code, message)
            raise GitHubApiError(resp.status_code, message)
        return resp

    # ── repositories ───────────────────────────────────────────────

    def list_repositories(self, per_page: int = 50) -> list[dict[str, Any]]:
        resp = self._request(
            "GET",
            "/user/repos",
            params={"sort": "updated", "per_page": per_page, "affiliation": "owner"},
        )
        return resp.json()

    def list_pulls(
        self, owner: str, repo: str, state: str = "open", per_page: int = 30, page: int = 1
    ) -> list[dict[str, Any]]:
        resp = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls",
            params={"state": state, "per_page": per_page, "page": page},
        )
        return resp.json()

    def get_pull_diff(self, owner: str, repo: str, number: int) -> str:
        resp = self._request(
            "GET",
            f"/repos/{owner}/{repo}/pulls/{number}",
            headers={"Accept": "application/vnd.github.diff"},
        )
        return resp.text

    def list_pull_files(self, owner: str, repo: str, number: int) -> list[dict[str, Any]]:
        resp = self._request("GET", f"/repos/{owner}/{repo}/pulls/{number}/files", params={"per_page": 100})
        return resp.json()

    # ── webhooks ───────────────────────────────────────────────────

    def list_hooks(self, owner: str, repo: str) -> list[dict[str, Any]]:
        resp = self._request("GET", f"/repos/{owner}/{repo}/hooks")
        return resp.json()

    def create_hook(self, owner: str, repo: str, url: str, events: list[str]) -> dict[str, Any]:
        resp = self._request(
            "POST",
            f"/repos/{owner}/{repo}/hooks",
            json={
                "name": "web",
                "active": True,
                "events": events,
                "config": {"url": url, "content_type": "json", "insecure_ssl": "0"},
            },
        )
        return resp.json()


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return resp.reason_phrase
