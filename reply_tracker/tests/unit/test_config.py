"""Unit tests for settings and the lender directory."""

import json

import pytest
from unittest.mock import patch

from reply_tracker.config import LenderDirectory, Settings
from reply_tracker.exceptions import ConfigurationError


class TestLenderDirectory:
    """Tests for LenderDirectory."""

    def test_lookup_is_case_insensitive(self):
        directory = LenderDirectory({"Acme Capital": ["Deals@AcmeCapital.com", " ops@acmecapital.com "]})

        assert directory.emails_for("ACME capital") == {"deals@acmecapital.com", "ops@acmecapital.com"}
        assert "acme capital" in directory

    def test_unknown_lender(self):
        directory = LenderDirectory({"Acme Capital": ["deals@acmecapital.com"]})
        assert directory.emails_for("Other Funding") == set()
        assert directory.emails_for(None) == set()

    def test_emails_for_returns_copy(self):
        directory = LenderDirectory({"Acme Capital": ["deals@acmecapital.com"]})
        directory.emails_for("Acme Capital").add("intruder@example.com")
        assert directory.emails_for("Acme Capital") == {"deals@acmecapital.com"}

    def test_add_merges(self):
        directory = LenderDirectory({"Acme Capital": ["a@acme.com"]})
        directory.add("acme capital", ["b@acme.com", ""])
        assert directory.emails_for("Acme Capital") == {"a@acme.com", "b@acme.com"}
        assert len(directory) == 1

    def test_merge_file(self, tmp_path):
        path = tmp_path / "lenders.json"
        path.write_text(json.dumps({"Blue Line Funding": ["submissions@bluelinefunding.com"]}))

        directory = LenderDirectory()
        directory.merge_file(path)

        assert directory.emails_for("blue line funding") == {"submissions@bluelinefunding.com"}

    def test_merge_file_missing(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            LenderDirectory().merge_file(tmp_path / "missing.json")

    def test_merge_file_not_object(self, tmp_path):
        path = tmp_path / "lenders.json"
        path.write_text('["a@b.com"]')
        with pytest.raises(ConfigurationError, match="JSON object"):
            LenderDirectory().merge_file(path)

    def test_merge_file_malformed_json(self, tmp_path):
        path = tmp_path / "lenders.json"
        path.write_text('{"Acme Capital": ["deals@acmecapital.com"')
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            LenderDirectory().merge_file(path)


class TestSettings:
    """Tests for Settings."""

    def test_lender_directory_combines_env_and_file(self, test_settings, tmp_path):
        path = tmp_path / "lenders.json"
        path.write_text(json.dumps({"Acme Capital": ["backup@acmecapital.com"]}))
        config = test_settings.model_copy(update={"lender_emails_file": str(path)})

        directory = config.lender_directory()

        assert directory.emails_for("Acme Capital") == {"deals@acmecapital.com", "backup@acmecapital.com"}

    def test_lenders_loaded_once(self, test_settings, tmp_path):
        path = tmp_path / "lenders.json"
        path.write_text(json.dumps({"Blue Line Funding": ["submissions@bluelinefunding.com"]}))
        config = test_settings.model_copy(update={"lender_emails_file": str(path)})

        with patch.object(LenderDirectory, "merge_file", autospec=True, side_effect=LenderDirectory.merge_file) as merge:
            first = config.lenders
            second = config.lenders

        assert first is second
        assert merge.call_count == 1
        assert first.emails_for("Blue Line Funding") == {"submissions@bluelinefunding.com"}

    def test_database_url(self, test_settings):
        assert test_settings.database_url == "postgresql://tester:@localhost:5432/reply_tracker_test"

    def test_validate_for_configured(self, test_settings):
        test_settings.validate_for("mailbox", "store", "oracle")

    def test_validate_for_lists_missing(self):
        config = Settings(
            _env_file=None,
            gmail_client_id="id",
            gmail_client_secret="",
            gmail_refresh_token="",
        )
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate_for("mailbox")

        message = str(exc_info.value)
        assert "GMAIL_CLIENT_SECRET" in message
        assert "GMAIL_REFRESH_TOKEN" in message
        assert "GMAIL_CLIENT_ID" not in message

    def test_oracle_requirements_follow_backend(self, test_settings):
        config = test_settings.model_copy(update={"classifier_backend": "gemini", "gemini_api_key": ""})
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            config.validate_for("oracle")

        config = test_settings.model_copy(update={"openai_assistant_id": ""})
        with pytest.raises(ConfigurationError, match="OPENAI_ASSISTANT_ID"):
            config.validate_for("oracle")

    def test_oauth_needs_client_only(self, test_settings):
        config = test_settings.model_copy(update={"gmail_refresh_token": ""})
        config.validate_for("oauth")

    def test_unknown_stage(self, test_settings):
        with pytest.raises(ConfigurationError, match="Unknown stage"):
            test_settings.validate_for("webhooks")


class TestLogging:
    def test_secrets_redacted(self):
        from reply_tracker.core.logging import redact_secrets

        event = redact_secrets(None, "info", {"event": "oauth_done", "refresh_token": "1//abc", "stage": "auth"})
        assert event == {"event": "oauth_done", "refresh_token": "***", "stage": "auth"}

    def test_auth_code_redacted_plain_code_kept(self):
        from reply_tracker.core.logging import redact_secrets

        event = redact_secrets(None, "info", {"event": "oauth", "auth_code": "4/0Abc", "code": 404})
        assert event["auth_code"] == "***"
        assert event["code"] == 404
