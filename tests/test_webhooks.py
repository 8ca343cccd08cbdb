"""Tests for the GitHub webhook endpoint (method, HMAC validation, push filtering).

Covers:
- GET / PUT on the webhook path → 405 with Allow: POST
- Missing, wrong, or tampered signature → 400, registry unchanged
- Valid sha1 or sha256 signature → 200
- Non-push events → 200 no-op
- Push to other repo/branch or malformed body → 200 no-op
- Matching push → 200 and registry replaced with the source's latest map
- Empty secret → any signature accepted, reload proceeds
- Response is fully sent before the background reload fetches
"""

from __future__ import annotations

import asyncio
import json
import logging

import pytest
from fastapi.testclient import TestClient

from conftest import StaticAliasSource
from linkhop.api.deps import get_registry
from linkhop.config import Settings, get_settings
from linkhop.core.registry import AliasRegistry
from linkhop.core.security import sign
from linkhop.main import app

# Shared secret used by every signed request in this module.
TEST_SECRET = "test_webhook_secret_1234567890abcdef"
WEBHOOK_URL = "/webhooks/github"

OLD = {"docs": "https://example.com/docs"}
NEW = {"docs": "https://new.example.com/docs", "wiki": "https://new.example.com/wiki"}


def _settings(secret: str = TEST_SECRET) -> Settings:
    return Settings(
        _env_file=None,
        github_repository="org/repo",
        github_branch="main",
        github_webhook_secret=secret,
    )


@pytest.fixture()
def source() -> StaticAliasSource:
    return StaticAliasSource(OLD)


@pytest.fixture()
def registry(source: StaticAliasSource, cache_file) -> AliasRegistry:
    registry = AliasRegistry(source, cache_file)
    # The latest content in GitHub differs from what was loaded at startup.
    source.aliases = NEW
    return registry


@pytest.fixture()
def settings() -> Settings:
    return _settings()


@pytest.fixture()
def client(registry: AliasRegistry, settings: Settings) -> TestClient:
    """TestClient with the registry and settings dependencies overridden."""
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


def _push_payload(repo: str = "org/repo", ref: str = "refs/heads/main") -> bytes:
    return json.dumps(
        {
            "ref": ref,
            "before": "0" * 40,
            "after": "a" * 40,
            "repository": {"id": 1, "full_name": repo},
            "pusher": {"name": "dev"},
        }
    ).encode()


def _post(
    client: TestClient,
    body: bytes,
    event: str = "push",
    signature: str | None = "sign",
    header: str = "X-Hub-Signature",
):
    headers = {"X-GitHub-Event": event, "X-GitHub-Delivery": "delivery-1"}
    if signature == "sign":
        algorithm = "sha256" if header.endswith("256") else "sha1"
        headers[header] = sign(TEST_SECRET, body, algorithm=algorithm)
    elif signature is not None:
        headers[header] = signature
    return client.post(WEBHOOK_URL, content=body, headers=headers)


# =============================================================================
#  Method
# =============================================================================


class TestMethod:
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    def test_non_post_returns_405(self, client: TestClient, method: str) -> None:
        response = client.request(method, WEBHOOK_URL)
        assert response.status_code == 405
        assert response.headers["allow"] == "POST"

    def test_get_does_not_fall_through_to_redirects(self, client: TestClient) -> None:
        response = client.get(WEBHOOK_URL, follow_redirects=False)
        assert response.status_code == 405


# =============================================================================
#  HMAC Signature Tests
# =============================================================================


class TestSignature:
    def test_missing_signature_returns_400(self, client: TestClient, registry: AliasRegistry) -> None:
        response = _post(client, _push_payload(), signature=None)
        assert response.status_code == 400
        assert registry.resolve("wiki") is None

    def test_malformed_signature_returns_400(self, client: TestClient) -> None:
        response = _post(client, _push_payload(), signature="sha1=abc")
        assert response.status_code == 400

    def test_wrong_signature_returns_400(self, client: TestClient, registry: AliasRegistry) -> None:
        response = _post(client, _push_payload(), signature="sha1=" + "0" * 40)
        assert response.status_code == 400
        assert registry.resolve("docs") == OLD["docs"]

    def test_tampered_body_returns_400(self, client: TestClient) -> None:
        signature = sign(TEST_SECRET, _push_payload())
        tampered = _push_payload(ref="refs/heads/evil")
        response = _post(client, tampered, signature=signature)
        assert response.status_code == 400

    def test_sha256_header_accepted(self, client: TestClient) -> None:
        response = _post(client, _push_payload(), header="X-Hub-Signature-256")
        assert response.status_code == 200

    def test_bad_sha256_header_wins_over_good_sha1(self, client: TestClient) -> None:
        body = _push_payload()
        response = client.post(
            WEBHOOK_URL,
            content=body,
            headers={
                "X-GitHub-Event": "push",
                "X-Hub-Signature": sign(TEST_SECRET, body),
                "X-Hub-Signature-256": "sha256=" + "0" * 64,
            },
        )
        assert response.status_code == 400

    def test_signature_checked_over_raw_bytes(self, client: TestClient) -> None:
        """Whitespace that JSON re-encoding would drop is part of the signed body."""
        body = b'{ "ref" : "refs/heads/main",\n  "repository": {"full_name": "org/repo"} }'
        response = _post(client, body)
        assert response.status_code == 200
        assert response.json()["status"] == "reload_scheduled"


# =============================================================================
#  Event filtering and reload
# =============================================================================


class TestPushHandling:
    def test_matching_push_reloads_registry(self, client: TestClient, registry: AliasRegistry) -> None:
        response = _post(client, _push_payload())

        assert response.status_code == 200
        assert response.json() == {"status": "reload_scheduled"}
        # TestClient runs background tasks before returning.
        assert registry.resolve("docs") == NEW["docs"]
        assert registry.resolve("wiki") == NEW["wiki"]

    def test_matching_push_is_case_insensitive(self, client: TestClient, registry: AliasRegistry) -> None:
        response = _post(client, _push_payload(repo="ORG/Repo", ref="refs/heads/MAIN"), event="Push")
        assert response.json()["status"] == "reload_scheduled"
        assert registry.resolve("wiki") == NEW["wiki"]

    @pytest.mark.parametrize("event", ["pull_request", "ping", "issues"])
    def test_non_push_event_is_noop(
        self, client: TestClient, registry: AliasRegistry, source: StaticAliasSource, event: str
    ) -> None:
        response = _post(client, _push_payload(), event=event)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}
        assert source.calls == 1
        assert registry.resolve("wiki") is None

    @pytest.mark.parametrize(
        "body",
        [
            _push_payload(ref="refs/heads/dev"),
            _push_payload(repo="org/other"),
            b"not json",
            b'{"ref": "refs/heads/main"}',
        ],
    )
    def test_irrelevant_push_is_noop(
        self, client: TestClient, source: StaticAliasSource, body: bytes
    ) -> None:
        response = _post(client, body)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}
        assert source.calls == 1

    def test_deeply_nested_body_is_noop(self, client: TestClient, source: StaticAliasSource) -> None:
        body = b'{"repository": ' + b"[" * 200_000 + b"]" * 200_000 + b', "ref": "refs/heads/main"}'
        response = _post(client, body)

        assert response.status_code == 200
        assert response.json() == {"status": "ignored"}
        assert source.calls == 1

    def test_failed_reload_keeps_old_map(
        self, client: TestClient, registry: AliasRegistry, source: StaticAliasSource
    ) -> None:
        source.fail = True
        response = _post(client, _push_payload())

        assert response.status_code == 200
        assert registry.resolve("docs") == OLD["docs"]
        assert registry.last_reload.succeeded is False


class TestInsecureMode:
    @pytest.fixture()
    def settings(self) -> Settings:
        return _settings(secret="")

    @pytest.mark.parametrize("signature", [None, "garbage", "sha1=zz", "md5=" + "0" * 32])
    def test_any_signature_accepted(
        self, client: TestClient, registry: AliasRegistry, signature: str | None
    ) -> None:
        response = _post(client, _push_payload(), signature=signature)

        assert response.status_code == 200
        assert response.json()["status"] == "reload_scheduled"
        assert registry.resolve("wiki") == NEW["wiki"]

    def test_skipping_verification_is_logged(self, client: TestClient, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="linkhop.api.webhooks"):
            response = _post(client, _push_payload(), signature=None)

        assert response.status_code == 200
        assert "skipping signature verification" in caplog.text


# =============================================================================
#  Response ordering
# =============================================================================


class TestBackgroundReload:
    """The webhook response is fully sent before the reload fetches anything."""

    def test_response_completes_before_reload(
        self, client: TestClient, registry: AliasRegistry, source: StaticAliasSource
    ) -> None:
        body = _push_payload()
        scope = {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": "POST",
            "scheme": "http",
            "path": WEBHOOK_URL,
            "raw_path": WEBHOOK_URL.encode(),
            "root_path": "",
            "query_string": b"",
            "headers": [
                (b"x-github-event", b"push"),
                (b"x-hub-signature", sign(TEST_SECRET, body).encode()),
                (b"content-type", b"application/json"),
            ],
            "client": ("testclient", 50000),
            "server": ("testserver", 80),
        }
        messages: list[dict] = []
        at_response_end: dict = {}

        async def _drive() -> None:
            response_done = asyncio.Event()
            body_sent = False

            async def receive() -> dict:
                nonlocal body_sent
                if not body_sent:
                    body_sent = True
                    return {"type": "http.request", "body": body, "more_body": False}
                await response_done.wait()
                return {"type": "http.disconnect"}

            async def send(message: dict) -> None:
                messages.append(message)
                if message["type"] == "http.response.body" and not message.get("more_body", False):
                    at_response_end["fetches"] = source.calls
                    at_response_end["wiki"] = registry.resolve("wiki")
                    response_done.set()

            await app(scope, receive, send)

        asyncio.run(_drive())

        assert messages[0]["type"] == "http.response.start"
        assert messages[0]["status"] == 200
        # Only the startup fetch had happened when the response finished.
        assert at_response_end == {"fetches": 1, "wiki": None}
        # The reload ran afterwards and published the new map.
        assert source.calls == 2
        assert registry.resolve("wiki") == NEW["wiki"]
