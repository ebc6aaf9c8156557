"""Tests for Svix signature verification and identity payload helpers."""
import base64

import pytest

from bountyhub.services.identity_provider import (
    WebhookSignatureError, compute_svix_signature, github_username_from_identity, verify_svix_signature,
)

SECRET = "whsec_" + base64.b64encode(b"unit-test-secret").decode()
NOW = 1_700_000_000


def _headers(body: bytes, timestamp: int = NOW, secret: str = SECRET) -> dict:
    signature = compute_svix_signature(secret, "msg_1", str(timestamp), body)
    return {"svix-id": "msg_1", "svix-timestamp": str(timestamp), "svix-signature": f"v1,{signature}"}


class TestSvixSignature:

    def test_valid_signature(self):
        body = b'{"type":"user.created"}'
        verify_svix_signature(SECRET, _headers(body), body, now=NOW + 30)

    def test_any_listed_signature_may_match(self):
        body = b"{}"
        headers = _headers(body)
        headers["svix-signature"] = "v1,bm90LWl0 " + headers["svix-signature"]
        verify_svix_signature(SECRET, headers, body, now=NOW)

    def test_modified_body_fails(self):
        headers = _headers(b'{"a":1}')
        with pytest.raises(WebhookSignatureError):
            verify_svix_signature(SECRET, headers, b'{"a":2}', now=NOW)

    def test_timestamp_outside_tolerance(self):
        body = b"{}"
        with pytest.raises(WebhookSignatureError):
            verify_svix_signature(SECRET, _headers(body), body, now=NOW + 301)

    def test_missing_header(self):
        headers = _headers(b"{}")
        del headers["svix-id"]
        with pytest.raises(WebhookSignatureError):
            verify_svix_signature(SECRET, headers, b"{}", now=NOW)


class TestGitHubUsername:

    def test_from_oauth_account(self):
        data = {"external_accounts": [{"provider": "oauth_google", "username": "x"},
                                      {"provider": "oauth_github", "username": "octocat"}]}
        assert github_username_from_identity(data) == "octocat"

    def test_absent(self):
        assert github_username_from_identity({"external_accounts": []}) is None
        assert github_username_from_identity({}) is None
