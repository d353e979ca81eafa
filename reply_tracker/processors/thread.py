"""
Thread matcher.

Correlates replies to submissions through the In-Reply-To header, which
carries the message id of the outbound submission email.
"""

from reply_tracker.config import Settings, settings as default_settings
from reply_tracker.core.database import Database
from reply_tracker.core.logging import bind_context, clear_context, get_logger
from reply_tracker.core.models import ReplyEntry
from reply_tracker.exceptions import MessageNotFoundError
from reply_tracker.processors.base import BaseProcessor
from reply_tracker.services.body import extract_reply_body
from reply_tracker.services.gmail import GmailClient

log = get_logger(__name__)


class ThreadMatcher(BaseProcessor):
    """
    Record threaded lender replies on their submissions.

    For each recent message: fetch headers only, look up the submission whose
    message_id equals In-Reply-To, and fetch the full body only on a match.
    A vanished message is skipped; any other mailbox error aborts the batch.
    """

    name = "thread"
    requires = ("mailbox", "store")

    def __init__(
        self,
        db: Database | None = None,
        gmail: GmailClient | None = None,
        config: Settings | None = None,
    ):
        self.config = config or default_settings
        self.db = db or Database(self.config.database_url)
        self.gmail = gmail or GmailClient(config=self.config)

    def process(self) -> dict:
        """
        Run the thread matching pass.

        Returns:
            Statistics dict with counts
        """
        stats = {
            "listed": 0,
            "not_replies": 0,
            "matched": 0,
            "unmatched": 0,
            "duplicates": 0,
            "not_found": 0,
        }

        messages = self.gmail.list_recent_messages()
        stats["listed"] = len(messages)

        for ref in messages:
            gmail_id = ref["id"]
            try:
                bind_context(gmail_id=gmail_id)
                outcome = self._process_message(gmail_id)
                stats[outcome] += 1

            except MessageNotFoundError:
                log.warning("message_not_found_skipping")
                stats["not_found"] += 1

            finally:
                clear_context()

        log.info("thread_match_complete", **stats)
        return stats

    def _process_message(self, gmail_id: str) -> str:
        """Match a single message. Returns the stats key for its outcome."""
        headers = self.gmail.get_message_metadata(gmail_id)

        # Not a reply to anything we could have sent
        if not headers.is_reply:
            return "not_replies"

        matches = self.db.get_submissions_by_message_id(headers.in_reply_to)
        if not matches:
            log.warning("no_matching_submission", in_reply_to=headers.in_reply_to)
            return "unmatched"

        if len(matches) > 1:
            log.warning(
                "multiple_matching_submissions",
                in_reply_to=headers.in_reply_to,
                submission_ids=[s.id for s in matches],
            )
        submission = matches[0]

        if submission.history_contains(gmail_id):
            log.debug("reply_already_recorded", submission_id=submission.id)
            return "duplicates"

        full = self.gmail.get_message_full(gmail_id)
        body = extract_reply_body(full.get("payload"))

        entry = ReplyEntry(
            timestamp=headers.reply_timestamp(),
            sender=headers.sender,
            subject=headers.subject,
            body=body,
            gmail_id=gmail_id,
        )
        self.db.record_reply(submission, entry)

        log.info(
            "reply_matched",
            submission_id=submission.id,
            business_name=submission.business_name,
            sender=headers.sender,
            history_length=len(submission.reply_history),
        )
        return "matched"
