"""Tests for the GitHub delivery endpoint and the typed event parser."""
import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from bountyhub.main import create_app
from bountyhub.models.webhook import WebhookEvent
from bountyhub.schemas.github_event import (
    IssuesEvent, PingEvent, PullRequestEvent, PushEvent, UnknownEvent, parse_event,
)
from bountyhub.services import webhook_service
from tests.conftest import make_settings, merged_pr_payload

CALLBACK = "/api/webhook/callback"


def _post(client, event_type, payload, **headers):
    body = payload if isinstance(payload, (bytes, str)) else json.dumps(payload)
    all_headers = {"Content-Type": "application/json"}
    if event_type:
        all_headers["X-GitHub-Event"] = event_type
    all_headers.update(headers)
    return client.post(CALLBACK, content=body, headers=all_headers)


class TestIngressValidation:

    def test_missing_event_header(self, client, db):
        resp = _post(client, None, {"zen": "hi"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "missing_event_header"
        assert db.query(WebhookEvent).count() == 0

    def test_invalid_json(self, client, db):
        resp = _post(client, "push", "{not json")
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_payload"
        assert db.query(WebhookEvent).count() == 0

    def test_json_array_rejected(self, client):
        resp = _post(client, "push", "[1, 2]")
        assert resp.status_code == 400


class TestIngressAudit:

    @pytest.mark.parametrize("event_type,payload", [
        ("ping", {"zen": "Keep it logically awesome.", "hook_id": 1}),
        ("push", {"ref": "refs/heads/main", "repository": {"full_name": "octo/widgets"}}),
        ("issues", {"action": "opened", "issue": {"number": 3}}),
        ("issue_comment", {"action": "created", "comment": {"body": "lgtm"}}),
        ("star", {"action": "created"}),
        ("pull_request", merged_pr_payload()),
    ])
    def test_every_delivery_is_acknowledged_and_persisted(self, client, db, event_type, payload):
        resp = _post(client, event_type, payload, **{"X-GitHub-Delivery": "delivery-1"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == f"{event_type} event processed successfully"
        assert "timestamp" in body

        rows = db.query(WebhookEvent).all()
        assert len(rows) == 1
        assert rows[0].event_type == event_type
        assert rows[0].delivery_id == "delivery-1"
        assert rows[0].payload == payload

    def test_repository_recorded_when_present(self, client, db):
        _post(client, "pull_request", merged_pr_payload(repo="octo/gears"))
        assert db.query(WebhookEvent).one().repository_full_name == "octo/gears"

    def test_merge_without_bounty_is_harmless(self, client, escrow):
        resp = _post(client, "pull_request", merged_pr_payload())
        assert resp.status_code == 200
        assert escrow.releases == []

    def test_unexpected_failure_returns_envelope(self, context, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(webhook_service, "record_delivery", broken)
        with TestClient(create_app(context), raise_server_exceptions=False) as c:
            resp = _post(c, "push", {"ref": "refs/heads/main"})
        assert resp.status_code == 500
        assert resp.json() == {"error": {"code": "internal_error", "message": "Internal server error", "details": None}}


class TestIngressSignature:

    SECRET = "gh-webhook-secret"

    @pytest.fixture
    def settings(self):
        return make_settings(GITHUB_WEBHOOK_SECRET=self.SECRET)

    def _sign(self, body: bytes) -> str:
        return "sha256=" + hmac.new(self.SECRET.encode(), body, hashlib.sha256).hexdigest()

    def test_valid_signature_accepted(self, client, db):
        body = json.dumps({"zen": "hi"}).encode()
        resp = _post(client, "ping", body, **{"X-Hub-Signature-256": self._sign(body)})
        assert resp.status_code == 200
        assert db.query(WebhookEvent).count() == 1

    def test_missing_signature_rejected(self, client, db):
        resp = _post(client, "ping", {"zen": "hi"})
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_signature"
        assert db.query(WebhookEvent).count() == 0

    def test_tampered_body_rejected(self, client):
        signature = self._sign(b'{"zen": "hi"}')
        resp = _post(client, "ping", b'{"zen": "bye"}', **{"X-Hub-Signature-256": signature})
        assert resp.status_code == 400


class TestParseEvent:

    def test_known_types(self):
        assert isinstance(parse_event("ping", {"zen": "z"}), PingEvent)
        assert isinstance(parse_event("push", {"ref": "refs/heads/main"}), PushEvent)
        assert isinstance(parse_event("issues", {"action": "opened"}), IssuesEvent)

    def test_merged_pull_request(self):
        event = parse_event("pull_request", merged_pr_payload())
        assert isinstance(event, PullRequestEvent)
        assert event.is_merge
        assert event.pull_request.user.login == "alice"
        assert event.repository.full_name == "octo/widgets"

    def test_opened_pull_request_is_not_a_merge(self):
        event = parse_event("pull_request", merged_pr_payload(action="opened", merged=False))
        assert isinstance(event, PullRequestEvent)
        assert not event.is_merge

    def test_unknown_type_keeps_raw_body(self):
        event = parse_event("deployment", {"deployment": {"id": 1}})
        assert isinstance(event, UnknownEvent)
        assert event.event_type == "deployment"
        assert event.raw == {"deployment": {"id": 1}}

    def test_malformed_pull_request_degrades_to_unknown(self):
        event = parse_event("pull_request", {"action": "closed"})
        assert isinstance(event, UnknownEvent)
        assert event.event_type == "pull_request"
