"""Pytest fixtures: in-memory SQLite and in-process fakes for every external service."""
import base64
from decimal import Decimal
from typing import Optional

import pytest
from fastapi.testclient import TestClient

from bountyhub.config import Settings
from bountyhub.context import AppContext
from bountyhub.database import Base, build_engine, build_session_factory
from bountyhub.main import create_app
from bountyhub.services.escrow import EscrowError, ReleaseReceipt
from bountyhub.services.github_client import GitHubApiError
from bountyhub.services.identity_provider import IdentityProviderError

# Import all models so they register with Base.metadata
from bountyhub.models.bounty import Bounty, BountyApplicant  # noqa: F401
from bountyhub.models.contribution import Contribution  # noqa: F401
from bountyhub.models.user import User  # noqa: F401
from bountyhub.models.webhook import Webhook, WebhookEvent  # noqa: F401

# digit-only addresses are already in checksum form
CREATOR_ADDRESS = "0x1111111111111111111111111111111111111111"
CONTRIBUTOR_ADDRESS = "0x2222222222222222222222222222222222222222"
DEFAULT_ADDRESS = "0x3333333333333333333333333333333333333333"
SERVICE_ADDRESS = "0x9999999999999999999999999999999999999999"

CALLBACK_URL = "https://bounties.example.com/api/webhook/callback"
CLERK_WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"test-signing-secret").decode()


class FakeIdentity:
    """Session tokens are the user id itself; ``bad-token`` fails verification."""

    def __init__(self):
        self.github_tokens: dict[str, Optional[str]] = {}
        self.lookup_error: Optional[str] = None

    def authenticate(self, session_token: str) -> str:
        if session_token == "bad-token":
            raise IdentityProviderError("Invalid session token")
        return session_token

    def get_github_token(self, user_id: str) -> Optional[str]:
        if self.lookup_error:
            raise IdentityProviderError(self.lookup_error)
        return self.github_tokens.get(user_id, f"gho_{user_id}")


class FakeGitHub:
    def __init__(self):
        self.hooks: dict[str, list[dict]] = {}
        self.created: list[tuple[str, str, str, list[str]]] = []
        self.error: Optional[GitHubApiError] = None
        self.create_error: Optional[GitHubApiError] = None
        self.repositories = [{"id": 1, "full_name": "octo/widgets", "private": False}]
        self.pulls = [{"number": 7, "title": "Add sprockets", "state": "open"}]
        self.files = [
            {"filename": "app.py", "status": "modified", "additions": 3, "deletions": 1, "changes": 4,
             "patch": "@@ -1 +1 @@"},
        ]
        self.last_pulls_query: Optional[dict] = None
        self.closed = 0
        self._next_id = 1000

    def _raise(self):
        if self.error:
            raise self.error

    def close(self):
        self.closed += 1

    def list_repositories(self, per_page: int = 50):
        self._raise()
        return self.repositories

    def list_pulls(self, owner, repo, state="open", per_page=30, page=1):
        self._raise()
        self.last_pulls_query = {"owner": owner, "repo": repo, "state": state, "per_page": per_page, "page": page}
        return self.pulls

    def get_pull_diff(self, owner, repo, number):
        self._raise()
        return "diff --git a/app.py b/app.py\n"

    def list_pull_files(self, owner, repo, number):
        self._raise()
        return self.files

    def list_hooks(self, owner, repo):
        self._raise()
        return list(self.hooks.get(f"{owner}/{repo}", []))

    def create_hook(self, owner, repo, url, events):
        self._raise()
        if self.create_error:
            raise self.create_error
        self._next_id += 1
        hook = {"id": self._next_id, "active": True, "events": list(events), "config": {"url": url}}
        self.hooks.setdefault(f"{owner}/{repo}", []).append(hook)
        self.created.append((owner, repo, url, list(events)))
        return hook


class FakeEscrow:
    def __init__(self):
        self.escrow_balances: dict[str, Decimal] = {}
        self.token_balances: dict[str, Decimal] = {}
        self.native_balance = Decimal("1.5")
        self.releases: list[tuple[str, str, Decimal]] = []
        self.release_error: Optional[Exception] = None
        self.balance_error: Optional[str] = None

    @property
    def service_address(self) -> str:
        return SERVICE_ADDRESS

    def balance_of(self, address):
        if self.balance_error:
            raise EscrowError(self.balance_error)
        return self.token_balances.get(address, Decimal(0))

    def escrow_balance_of(self, address):
        if self.balance_error:
            raise EscrowError(self.balance_error)
        return self.escrow_balances.get(address, Decimal(0))

    def native_balance_of(self, address):
        if self.balance_error:
            raise EscrowError(self.balance_error)
        return self.native_balance

    def deposit_acknowledged(self, address, amount):
        return self.escrow_balance_of(address) >= Decimal(amount)

    def release_on_behalf(self, from_address, to_address, amount):
        if self.release_error:
            raise self.release_error
        self.releases.append((from_address, to_address, Decimal(amount)))
        self.escrow_balances[from_address] = self.escrow_balances.get(from_address, Decimal(0)) - Decimal(amount)
        return ReleaseReceipt(transaction_hash="0xabc123", amount=Decimal(amount), block_number=42)


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "CLERK_SECRET_KEY": "sk_test_key",
        "CLERK_WEBHOOK_SECRET": CLERK_WEBHOOK_SECRET,
        "ETH_RPC_URL": "http://localhost:8545",
        "SERVICE_PRIVATE_KEY": "0x" + "ab" * 32,
        "DEFAULT_PAYOUT_ADDRESS": DEFAULT_ADDRESS,
        "TOKEN_CONTRACT_ADDRESS": "0x" + "44" * 20,
        "ESCROW_CONTRACT_ADDRESS": "0x" + "55" * 20,
        "WEBHOOK_CALLBACK_URL": CALLBACK_URL,
        "GITHUB_WEBHOOK_SECRET": "",
        "LOG_JSON": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def identity():
    return FakeIdentity()


@pytest.fixture
def github():
    return FakeGitHub()


@pytest.fixture
def escrow():
    return FakeEscrow()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def context(settings, identity, github, escrow):
    """A fresh in-memory database per test, wired with the fakes."""
    engine = build_engine(settings.DATABASE_URL)
    Base.metadata.create_all(bind=engine)
    ctx = AppContext(
        settings=settings,
        engine=engine,
        session_factory=build_session_factory(engine),
        identity=identity,
        github_factory=lambda token: github,
        escrow=escrow,
    )
    yield ctx
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(context):
    session = context.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(context):
    app = create_app(context)
    with TestClient(app) as c:
        yield c


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {user_id}"}


def reload(db, model, pk):
    """Fetch a row bypassing the session's identity map."""
    db.expire_all()
    return db.get(model, pk)


def set_wallet(client: TestClient, user_id: str, address: str) -> dict:
    resp = client.patch("/api/users/wallet", json={"payout_address": address}, headers=auth(user_id))
    assert resp.status_code == 200, resp.text
    return resp.json()


def create_bounty(client: TestClient, user_id: str = "user_owner", repo: str = "octo/widgets",
                  amount: str = "50", **extra):
    payload = {
        "title": "Fix the flaky build",
        "description": "CI fails on every other run",
        "amount": amount,
        "repository_full_name": repo,
        "requirements": ["tests pass", "", "  "],
    }
    payload.update(extra)
    return client.post("/api/bounties", json=payload, headers=auth(user_id))


def create_funded_bounty(client: TestClient, escrow: FakeEscrow, user_id: str = "user_owner",
                         repo: str = "octo/widgets", amount: str = "50") -> dict:
    """Creator wallet + escrow deposit + create + confirm funding."""
    set_wallet(client, user_id, CREATOR_ADDRESS)
    escrow.escrow_balances[CREATOR_ADDRESS] = Decimal(amount)
    resp = create_bounty(client, user_id=user_id, repo=repo, amount=amount)
    assert resp.status_code == 201, resp.text
    bounty = resp.json()
    resp = client.post(f"/api/bounties/{bounty['bounty_id']}/confirm-funding", headers=auth(user_id))
    assert resp.status_code == 200, resp.text
    return resp.json()


def merged_pr_payload(repo: str = "octo/widgets", login: str = "alice", number: int = 17,
                      merged: bool = True, action: str = "closed") -> dict:
    return {
        "action": action,
        "number": number,
        "pull_request": {
            "number": number,
            "title": "Stabilize CI",
            "html_url": f"https://github.com/{repo}/pull/{number}",
            "merged": merged,
            "merged_at": "2026-10-01T12:00:00Z" if merged else None,
            "merged_by": {"login": "maintainer", "id": 2},
            "user": {"login": login, "id": 99, "avatar_url": "https://avatars.example/alice"},
            "additions": 12,
            "deletions": 3,
            "commits": 2,
        },
        "repository": {
            "full_name": repo,
            "name": repo.split("/")[1],
            "html_url": f"https://github.com/{repo}",
        },
    }
