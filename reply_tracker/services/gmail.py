"""
Gmail API client for reading lender replies.
"""

from typing import Any

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from reply_tracker.config import Settings, settings as default_settings
from reply_tracker.core.logging import get_logger
from reply_tracker.core.models import MessageHeaders
from reply_tracker.exceptions import MessageNotFoundError
from reply_tracker.services.oauth import build_credentials

log = get_logger(__name__)

REPLY_HEADERS = ["In-Reply-To", "Subject", "From", "Date"]


class GmailClient:
    """Read-only Gmail gateway.

    A 404 on a message fetch raises MessageNotFoundError; every other API
    error propagates unchanged.
    """

    def __init__(
        self,
        service: Any = None,
        config: Settings | None = None,
    ):
        self.config = config or default_settings
        self.user_id = self.config.gmail_user_id
        self._service = service

    @property
    def service(self) -> Any:
        """Gmail API resource, built on first use."""
        if self._service is None:
            credentials = build_credentials(self.config)
            self._service = build("gmail", "v1", credentials=credentials, cache_discovery=False)
            log.info("gmail_service_built", user_id=self.user_id)
        return self._service

    def list_recent_messages(
        self,
        query: str | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        List message references matching a search query.

        Args:
            query: Gmail search query (default: configured recency window, no spam/trash)
            max_results: Page size (default: configured value)

        Returns:
            List of {"id": ..., "threadId": ...} dicts, newest first
        """
        response = self.service.users().messages().list(
            userId=self.user_id,
            q=query or self.config.gmail_query,
            maxResults=max_results or self.config.gmail_max_results,
        ).execute()
        messages = response.get("messages") or []
        log.info("gmail_messages_listed", count=len(messages))
        return messages

    def get_message_metadata(
        self,
        gmail_id: str,
        header_names: list[str] | None = None,
    ) -> MessageHeaders:
        """Fetch header metadata only (cheap call)."""
        request = self.service.users().messages().get(
            userId=self.user_id,
            id=gmail_id,
            format="metadata",
            metadataHeaders=header_names or REPLY_HEADERS,
        )
        return MessageHeaders.from_gmail(self._execute(request, gmail_id))

    def get_message_full(self, gmail_id: str) -> dict[str, Any]:
        """Fetch the full message including the MIME payload tree."""
        request = self.service.users().messages().get(
            userId=self.user_id,
            id=gmail_id,
            format="full",
        )
        return self._execute(request, gmail_id)

    @staticmethod
    def _execute(request: Any, gmail_id: str) -> dict[str, Any]:
        try:
            return request.execute()
        except HttpError as e:
            if e.resp is not None and int(e.resp.status) == 404:
                raise MessageNotFoundError(gmail_id) from e
            raise
