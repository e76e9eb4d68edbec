"""
Unit Tests for Health Check Endpoints

Tests the /api/v1/health endpoint and the API root.
"""

from unittest.mock import patch

from sqlagent.api.main import app_state, run


class TestHealthEndpoint:
    """Test suite for health check endpoint."""

    def test_health_returns_200(self, client, api_components):
        """Test that health endpoint returns 200 OK."""
        response = client.get("/api/v1/health")
        assert response.status_code == 200

    def test_health_returns_correct_structure(self, client, api_components):
        """Test that health endpoint returns correct response structure."""
        data = client.get("/api/v1/health").json()

        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert isinstance(data["timestamp"], str)
        assert data["connections"] == ["shop"]
        assert data["llm_provider"] == "scripted"

    def test_health_degraded_before_initialization(self, client):
        """Without components the service is up but degraded."""
        original = app_state["components"]
        app_state["components"] = None
        try:
            response = client.get("/api/v1/health")
        finally:
            app_state["components"] = original

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "degraded"
        assert data["connections"] == []
        assert data["llm_provider"] is None


def test_root_describes_api(client):
    data = client.get("/").json()

    assert data["name"] == "SqlAgent API"
    assert data["docs"] == "/docs"


def test_run_serves_app_with_settings(monkeypatch):
    monkeypatch.setenv("API_HOST", "127.0.0.1")
    monkeypatch.setenv("API_PORT", "9001")

    with patch("uvicorn.run") as uvicorn_run:
        run()

    uvicorn_run.assert_called_once_with(
        "sqlagent.api.main:app", host="127.0.0.1", port=9001, log_level="info"
    )
