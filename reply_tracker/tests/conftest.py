"""
Shared pytest fixtures for reply_tracker tests.
"""

import base64
import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock

from reply_tracker.config import Settings
from reply_tracker.core.models import REPLIED, ReplyEntry, Submission


def _encode(text: str) -> str:
    """Gmail-style base64url body data without padding."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def encode_body():
    """Encoder for Gmail body.data values."""
    return _encode


@pytest.fixture
def test_settings() -> Settings:
    """Fully configured settings, isolated from .env."""
    return Settings(
        _env_file=None,
        gmail_client_id="client-id",
        gmail_client_secret="client-secret",
        gmail_refresh_token="refresh-token",
        database_host="localhost",
        database_port=5432,
        database_name="reply_tracker_test",
        database_user="tester",
        database_password="",
        classifier_backend="openai",
        openai_api_key="sk-test",
        openai_assistant_id="asst_test",
        gemini_api_key="gemini-test",
        dry_run=False,
        classifier_window_hours=8,
        classifier_strict_content=False,
        classifier_min_reply_chars=15,
        classifier_max_parse_failures=3,
        heuristic_cutoff_skew_seconds=30,
        lender_emails={"Acme Capital": ["Deals@AcmeCapital.com"]},
        lender_emails_file=None,
    )


@pytest.fixture
def sample_submission() -> Submission:
    """Submission sent to a lender, no reply yet."""
    return Submission(
        id=101,
        message_id="<sub-101@broker.example.com>",
        business_name="Sunrise Bakery",
        lender_names="Acme Capital",
        recipient_emails=["deals@acmecapital.com"],
        created_at=datetime(2025, 1, 6, 12, 0, 0, tzinfo=timezone.utc),
        updated_at=datetime(2025, 1, 6, 12, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def replied_submission(sample_submission) -> Submission:
    """Submission with one recorded decline reply."""
    entry = ReplyEntry(
        timestamp="2025-01-06T15:00:00+00:00",
        sender="Acme Deals <deals@acmecapital.com>",
        subject="Re: Sunrise Bakery",
        body="Unfortunately we have to decline, revenue is too low.",
        gmail_id="gm-1",
    )
    sample_submission.reply_status = REPLIED
    sample_submission.reply_body = entry.body
    sample_submission.reply_date = entry.timestamp
    sample_submission.reply_history = [entry]
    return sample_submission


@pytest.fixture
def gmail_message():
    """Builder for Gmail messages.get responses."""

    def build(
        gmail_id: str = "gm-1",
        headers: dict[str, str] | None = None,
        plain: str | None = None,
        html: str | None = None,
        internal_date_ms: int | None = 1736175600000,
    ) -> dict:
        parts = []
        if plain is not None:
            parts.append({"mimeType": "text/plain", "body": {"data": _encode(plain)}})
        if html is not None:
            parts.append({"mimeType": "text/html", "body": {"data": _encode(html)}})

        message = {
            "id": gmail_id,
            "threadId": f"thread-{gmail_id}",
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [{"name": k, "value": v} for k, v in (headers or {}).items()],
                "body": {"size": 0},
                "parts": parts,
            },
        }
        if internal_date_ms is not None:
            message["internalDate"] = str(internal_date_ms)
        return message

    return build


@pytest.fixture
def mock_db():
    """Mock database for testing without real DB connection."""
    db = MagicMock()
    db.get_submissions_by_message_id.return_value = []
    db.get_unreplied_submissions.return_value = []
    db.get_unclassified_submissions.return_value = []
    db.find_submission_with_reply.return_value = None
    db.insert_decline.return_value = True
    db.increment_classify_attempts.return_value = 1
    return db


@pytest.fixture
def mock_gmail():
    """Mock Gmail gateway."""
    gmail = MagicMock()
    gmail.list_recent_messages.return_value = []
    return gmail


@pytest.fixture
def mock_classifier():
    """Mock classification oracle."""
    return MagicMock()
