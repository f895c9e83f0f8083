"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status and version fields
  - No authentication required
  - A bad bearer token does not turn the public endpoint into a 401
  - TrustedHost rejects hosts outside ALLOWED_HOSTS; defaults exclude "testserver"
"""

from __future__ import annotations

from api.main import __version__
from core.config import Settings


def test_health_returns_200_with_version(api_client):
    """Health endpoint returns 200 with status and version."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "ok"
    assert data["version"] == __version__


def test_health_no_auth_required(api_client):
    """Health endpoint is accessible without any authentication headers."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_health_ignores_garbage_token(api_client):
    """An unverifiable token leaves the caller anonymous, which health allows."""
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 200


def test_unlisted_host_is_rejected(api_client):
    client, _, _ = api_client
    resp = client.get("/api/v1/health", headers={"Host": "evil.example"})
    assert resp.status_code == 400


def test_default_allowed_hosts_exclude_test_host():
    """Only the test environment opts in to TestClient's Host header."""
    defaults = Settings.model_fields["allowed_hosts"].default
    assert "testserver" not in defaults
    assert "localhost" in defaults
