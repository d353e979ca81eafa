"""External service gateways."""

from .body import NO_READABLE_TEXT, extract_reply_body
from .gmail import GmailClient

__all__ = ["NO_READABLE_TEXT", "extract_reply_body", "GmailClient"]
