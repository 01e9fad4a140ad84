"""
Shared fixtures for gateway tests.

Builds a small site tree on disk, frozen settings pointing at it, and a
FastAPI TestClient whose provider calls go to an httpx.MockTransport.
"""

import base64
import json
from typing import Any, Dict, List
from urllib.parse import parse_qsl

import httpx
import pytest
from fastapi.testclient import TestClient

from gateway.app.config import Settings
from gateway.app.main import create_app


SESSION_SECRET = "test-session-secret-0123456789abcdef"


def make_credential(claims: Any, segments: int = 3) -> str:
    """Build an unsigned dot-delimited credential carrying ``claims``."""
    def enc(data: bytes) -> str:
        return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")

    header = enc(json.dumps({"alg": "RS256", "typ": "JWT"}).encode())
    payload = enc(json.dumps(claims).encode())
    parts = [header, payload, enc(b"signature")]
    return ".".join(parts[:segments])


# ============================================================================
# Site tree and settings
# ============================================================================

@pytest.fixture
def site_root(tmp_path):
    """Site tree under tmp_path/site, with a secret file just outside it."""
    root = tmp_path / "site"
    files = {
        "index.html": "<html>home</html>",
        "404.html": "<html>not found</html>",
        "notes/index.html": "<html>notes index</html>",
        "notes/article.html": "<html>article</html>",
        "notes/article.png": "PNG",
        "static/app.js": "console.log('app');",
        "static/style.css": "body {}",
        "favicon.ico": "ICO",
    }
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")

    (tmp_path / "secret.html").write_text("<html>secret</html>", encoding="utf-8")
    return root


def build_settings(site_root, **overrides) -> Settings:
    values = dict(
        BASE_URL="http://gateway.test",
        SITE_ROOT=site_root,
        PROVIDER_URL="http://idp.test",
        CLIENT_ID="client-id",
        CLIENT_SECRET="client-secret",
        APP_NAME="notes",
        SESSION_SECRET=SESSION_SECRET,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings(site_root):
    return build_settings(site_root)


# ============================================================================
# Mock identity provider
# ============================================================================

class FakeProvider:
    """Programmable token endpoint for httpx.MockTransport."""

    def __init__(self):
        self.status_code = 200
        self.body: Any = {"access_token": make_credential({"name": "alice"})}
        self.error: str = ""
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error == "timeout":
            raise httpx.ReadTimeout("provider too slow", request=request)
        if self.error == "connect":
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, json=self.body)
        return httpx.Response(self.status_code, text=self.body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def make_client(provider):
    """Factory for TestClients over apps built from given settings."""
    def _make(settings: Settings) -> TestClient:
        app = create_app(settings, http_client=provider.client())
        return TestClient(app, follow_redirects=False)
    return _make


@pytest.fixture
def client(make_client, settings):
    return make_client(settings)


def form_fields(request: httpx.Request) -> Dict[str, str]:
    return dict(parse_qsl(request.content.decode()))
