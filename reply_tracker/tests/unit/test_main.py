"""Unit tests for the HTTP triggers."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from reply_tracker.exceptions import ConfigurationError
from reply_tracker.main import app


@pytest.fixture
def client():
    # Not used as a context manager: lifespan (logging, scheduler) is not started
    return TestClient(app)


@pytest.fixture
def build_processor():
    with patch("reply_tracker.main.build_processor") as build:
        build.return_value.process.return_value = {"listed": 2, "matched": 1}
        yield build


class TestEndpoints:
    """Tests for the FastAPI endpoints."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_run_check(self, client, build_processor, method):
        response = getattr(client, method)("/run-check")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "stage": "thread", "stats": {"listed": 2, "matched": 1}}
        build_processor.assert_called_once_with("thread", dry_run=None)

    def test_run_heuristic(self, client, build_processor):
        assert client.post("/run-heuristic").status_code == 200
        build_processor.assert_called_once_with("heuristic", dry_run=None)

    def test_run_classify_dry_run(self, client, build_processor):
        response = client.post("/run-classify", json={"dry_run": True})

        assert response.status_code == 200
        build_processor.assert_called_once_with("classify", dry_run=True)

    def test_run_classify_without_body(self, client, build_processor):
        assert client.post("/run-classify").status_code == 200
        build_processor.assert_called_once_with("classify", dry_run=None)

    def test_missing_configuration(self, client, build_processor):
        build_processor.side_effect = ConfigurationError("Missing required settings: GMAIL_REFRESH_TOKEN")

        response = client.get("/run-check")

        assert response.status_code == 500
        assert "GMAIL_REFRESH_TOKEN" in response.json()["detail"]

    def test_batch_failure(self, client, build_processor):
        build_processor.return_value.process.side_effect = RuntimeError("database unavailable")

        response = client.post("/run-heuristic")

        assert response.status_code == 500
        assert "database unavailable" in response.json()["detail"]


class TestOAuthBootstrap:
    """Tests for the refresh-token bootstrap endpoints."""

    def test_auth_redirects_to_consent(self):
        consent = "https://accounts.google.com/o/oauth2/auth?client_id=client-id"
        with patch("reply_tracker.main.settings", MagicMock()), \
                patch("reply_tracker.main.authorization_url", return_value=consent):
            response = TestClient(app, follow_redirects=False).get("/auth")

        assert response.status_code == 307
        assert response.headers["location"] == consent

    def test_callback_requires_code(self, client):
        assert client.get("/oauth2callback").status_code == 400

    def test_callback_shows_refresh_token(self, client):
        with patch("reply_tracker.main.exchange_code", return_value="1//refresh-token"):
            response = client.get("/oauth2callback", params={"code": "auth-code"})

        assert response.status_code == 200
        assert "1//refresh-token" in response.text

    def test_callback_exchange_failure(self, client):
        with patch("reply_tracker.main.exchange_code", side_effect=RuntimeError("invalid_grant")):
            response = client.get("/oauth2callback", params={"code": "bad"})

        assert response.status_code == 500
