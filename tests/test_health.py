"""
tests/test_health.py -- Integration tests for GET /v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports the user store's reachability
  - No authentication required
"""

from __future__ import annotations


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert "version" in data
    assert data["components"]["app"] == "ok"
    assert data["components"]["database"] == "ok"


def test_health_no_auth_required(client):
    """Health endpoint is accessible without any session carrier."""
    resp = client.get("/v1/health", headers={})
    assert resp.status_code == 200


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "http_404"
