"""
Heuristic matcher.

Correlates replies that carry no thread linkage (lender started a new
thread) using the lender's known sender addresses and the business name.
"""

from datetime import datetime, timedelta, timezone

from reply_tracker.config import LenderDirectory, Settings, settings as default_settings
from reply_tracker.core.database import Database
from reply_tracker.core.logging import bind_context, clear_context, get_logger
from reply_tracker.core.models import ReplyEntry, Submission
from reply_tracker.exceptions import MessageNotFoundError
from reply_tracker.processors.base import BaseProcessor
from reply_tracker.services.body import extract_reply_body
from reply_tracker.services.gmail import GmailClient

log = get_logger(__name__)


class LenderReplyMatcher:
    """Sender allow-list plus business-name containment.

    A submission matches a message iff the sender address is one of the
    lender's accepted addresses and the business name appears in the
    subject or body (both case-insensitive).
    """

    def __init__(self, lenders: LenderDirectory):
        self.lenders = lenders

    def accepted_senders(self, submission: Submission) -> set[str]:
        """Configured lender addresses plus any stored on the submission row."""
        senders = self.lenders.emails_for(submission.lender_names)
        senders.update(
            address.strip().lower()
            for address in submission.recipient_emails
            if address and address.strip()
        )
        return senders

    def sender_matches(self, submission: Submission, sender_email: str) -> bool:
        return bool(sender_email) and sender_email.lower() in self.accepted_senders(submission)

    @staticmethod
    def business_matches(submission: Submission, subject: str, body: str) -> bool:
        name = (submission.business_name or "").strip().lower()
        if not name:
            return False
        return name in (subject or "").lower() or name in (body or "").lower()

    def any_sender_matches(self, candidates: list[Submission], sender_email: str) -> bool:
        return any(self.sender_matches(s, sender_email) for s in candidates)

    def find_match(
        self,
        candidates: list[Submission],
        sender_email: str,
        subject: str,
        body: str,
    ) -> Submission | None:
        """First candidate (in listing order) matching the message, if any."""
        for submission in candidates:
            if self.sender_matches(submission, sender_email) and self.business_matches(
                submission, subject, body
            ):
                return submission
        return None


class HeuristicMatcher(BaseProcessor):
    """
    Record unthreaded lender replies on never-replied submissions.

    Only messages newer than (latest candidate created_at - skew) are
    considered, so a reply is never attributed to a submission created after
    the reply arrived. Messages with In-Reply-To belong to the thread matcher
    and are skipped.
    """

    name = "heuristic"
    requires = ("mailbox", "store")

    def __init__(
        self,
        db: Database | None = None,
        gmail: GmailClient | None = None,
        lenders: LenderDirectory | None = None,
        config: Settings | None = None,
    ):
        self.config = config or default_settings
        self.db = db or Database(self.config.database_url)
        self.gmail = gmail or GmailClient(config=self.config)
        self.matcher = LenderReplyMatcher(lenders if lenders is not None else self.config.lenders)
        self.skew = timedelta(seconds=self.config.heuristic_cutoff_skew_seconds)

    def process(self) -> dict:
        """
        Run the heuristic matching pass.

        Returns:
            Statistics dict with counts
        """
        stats = {
            "candidates": 0,
            "listed": 0,
            "threaded": 0,
            "stale": 0,
            "unknown_sender": 0,
            "already_recorded": 0,
            "matched": 0,
            "unmatched": 0,
            "not_found": 0,
        }

        candidates = self.db.get_unreplied_submissions()
        stats["candidates"] = len(candidates)
        if not candidates:
            log.info("no_unreplied_submissions")
            return stats

        cutoff_ms = self.cutoff_ms(candidates)
        if cutoff_ms is None:
            log.warning("no_creation_times_skipping", candidates=len(candidates))
            return stats

        messages = self.gmail.list_recent_messages()
        stats["listed"] = len(messages)

        for ref in messages:
            if not candidates:
                break

            gmail_id = ref["id"]
            try:
                bind_context(gmail_id=gmail_id)
                outcome = self._process_message(gmail_id, candidates, cutoff_ms)
                stats[outcome] += 1

            except MessageNotFoundError:
                log.warning("message_not_found_skipping")
                stats["not_found"] += 1

            finally:
                clear_context()

        log.info("heuristic_match_complete", **stats)
        return stats

    def cutoff_ms(self, candidates: list[Submission]) -> int | None:
        """Epoch millis at or before which messages are ignored."""
        created = [s.created_at for s in candidates if s.created_at is not None]
        if not created:
            return None
        latest = max(_as_utc(c) for c in created)
        return int((latest - self.skew).timestamp() * 1000)

    def _process_message(self, gmail_id: str, candidates: list[Submission], cutoff_ms: int) -> str:
        """Match a single message. Returns the stats key for its outcome."""
        headers = self.gmail.get_message_metadata(gmail_id)

        if headers.is_reply:
            return "threaded"

        if headers.internal_date_ms is None or headers.internal_date_ms <= cutoff_ms:
            return "stale"

        sender_email = headers.sender_email
        if not self.matcher.any_sender_matches(candidates, sender_email):
            return "unknown_sender"

        # A message is attached to at most one submission, across passes too
        recorded_on = self.db.find_submission_with_reply(gmail_id)
        if recorded_on is not None:
            log.debug("reply_already_recorded", submission_id=recorded_on)
            return "already_recorded"

        full = self.gmail.get_message_full(gmail_id)
        body = extract_reply_body(full.get("payload"))

        submission = self.matcher.find_match(candidates, sender_email, headers.subject, body)
        if submission is None:
            return "unmatched"

        entry = ReplyEntry(
            timestamp=headers.reply_timestamp(),
            sender=headers.sender,
            subject=headers.subject,
            body=body,
            gmail_id=gmail_id,
        )
        self.db.record_reply(submission, entry)
        # No longer unreplied; one reply per submission per pass
        candidates.remove(submission)

        log.info(
            "heuristic_reply_matched",
            submission_id=submission.id,
            business_name=submission.business_name,
            sender=headers.sender,
        )
        return "matched"


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
