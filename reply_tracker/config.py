"""
Centralized configuration using Pydantic Settings.

All environment variables are loaded and validated here.
"""

import json
from functools import cached_property
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reply_tracker.exceptions import ConfigurationError


class LenderDirectory:
    """Static lender -> accepted sender addresses mapping.

    Lender names and addresses are compared case-insensitively.
    """

    def __init__(self, mapping: dict[str, list[str]] | None = None):
        self._emails: dict[str, set[str]] = {}
        for lender, addresses in (mapping or {}).items():
            self.add(lender, addresses)

    @staticmethod
    def _key(lender: str) -> str:
        return (lender or "").strip().lower()

    def add(self, lender: str, addresses: list[str]) -> None:
        """Register addresses for a lender, merging with any already known."""
        key = self._key(lender)
        if not key:
            return
        bucket = self._emails.setdefault(key, set())
        for address in addresses or []:
            address = (address or "").strip().lower()
            if address:
                bucket.add(address)

    def emails_for(self, lender: str | None) -> set[str]:
        """Accepted sender addresses for a lender (empty set when unknown)."""
        if not lender:
            return set()
        return set(self._emails.get(self._key(lender), set()))

    def __len__(self) -> int:
        return len(self._emails)

    def __contains__(self, lender: str) -> bool:
        return self._key(lender) in self._emails

    def merge_file(self, path: str | Path) -> None:
        """Merge a JSON object file: {"Lender": ["a@x.com", ...]}."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Lender email file not found: {path}")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Lender email file {path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Lender email file {path} must contain a JSON object")
        for lender, addresses in data.items():
            self.add(lender, addresses)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Gmail (OAuth refresh-token flow)
    gmail_client_id: str = ""
    gmail_client_secret: str = ""
    gmail_redirect_uri: str = "http://localhost:3000/oauth2callback"
    gmail_refresh_token: str = ""
    gmail_user_id: str = "me"
    gmail_query: str = "newer_than:7d -in:spam -in:trash"
    gmail_max_results: int = Field(default=100, gt=0, le=500)

    # Submission store (PostgreSQL)
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "reply_tracker"
    database_user: str = "reply_tracker"
    database_password: str = ""

    # Classification oracle
    classifier_backend: Literal["openai", "gemini"] = "openai"
    openai_api_key: str = ""
    openai_assistant_id: str = ""
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.0-flash"
    oracle_poll_interval_seconds: float = Field(default=1.0, gt=0)
    oracle_max_poll_attempts: int = Field(default=120, gt=0)

    # Pipeline
    dry_run: bool = False
    classifier_window_hours: int = Field(default=8, gt=0)
    classifier_strict_content: bool = False
    classifier_min_reply_chars: int = Field(default=15, ge=0)
    classifier_max_parse_failures: int = Field(default=3, gt=0)
    heuristic_cutoff_skew_seconds: int = Field(default=30, ge=0)

    # Lenders: JSON object in env and/or a JSON file
    lender_emails: dict[str, list[str]] = {}
    lender_emails_file: str | None = None

    # Scheduler
    scheduler_enabled: bool = False
    thread_interval_minutes: int = Field(default=10, gt=0)
    heuristic_interval_minutes: int = Field(default=30, gt=0)
    classify_interval_minutes: int = Field(default=15, gt=0)

    # Logging
    log_level: str = "INFO"
    json_logs: bool = True  # False for colored dev output

    @property
    def database_url(self) -> str:
        """PostgreSQL connection URL for the submission store."""
        return (
            f"postgresql://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    def lender_directory(self) -> LenderDirectory:
        """Build the lender directory from env and the optional JSON file."""
        directory = LenderDirectory(self.lender_emails)
        if self.lender_emails_file:
            directory.merge_file(self.lender_emails_file)
        return directory

    @cached_property
    def lenders(self) -> LenderDirectory:
        """Lender directory, built on first use and kept for the process lifetime."""
        return self.lender_directory()

    def validate_for(self, *stages: str) -> None:
        """
        Check that credentials needed by the given stages are present.

        Args:
            stages: Any of "oauth", "mailbox", "store", "oracle"

        Raises:
            ConfigurationError: listing every missing setting
        """
        required: dict[str, list[str]] = {
            "oauth": ["gmail_client_id", "gmail_client_secret"],
            "mailbox": ["gmail_client_id", "gmail_client_secret", "gmail_refresh_token"],
            "store": ["database_host", "database_name", "database_user"],
        }
        if self.classifier_backend == "openai":
            required["oracle"] = ["openai_api_key", "openai_assistant_id"]
        else:
            required["oracle"] = ["gemini_api_key", "gemini_model"]

        missing = []
        for stage in stages:
            if stage not in required:
                raise ConfigurationError(f"Unknown stage: {stage}")
            missing.extend(name for name in required[stage] if not getattr(self, name))

        if missing:
            env_names = ", ".join(name.upper() for name in missing)
            raise ConfigurationError(f"Missing required settings: {env_names}")


# Global settings instance
settings = Settings()
