"""
Reply classifier.

Turns recorded reply text into a business outcome. Each submission moves
PENDING -> CLASSIFYING -> CLASSIFIED exactly once; oracle failures leave it
pending for the next run, and repeated unparsable answers quarantine it.
"""

import re
from datetime import datetime, timedelta, timezone

from reply_tracker.config import Settings, settings as default_settings
from reply_tracker.core.database import Database
from reply_tracker.core.logging import bind_context, clear_context, get_logger
from reply_tracker.core.models import (
    Classification,
    ClassifierLogEntry,
    DeclineLogRow,
    Submission,
)
from reply_tracker.classifiers import BaseClassifier, get_classifier
from reply_tracker.classifiers.prompts.decline import build_prompt
from reply_tracker.exceptions import ClassificationError, ClassificationParseError
from reply_tracker.processors.base import BaseProcessor
from reply_tracker.services.body import NO_READABLE_TEXT

log = get_logger(__name__)

# Replies that say nothing about the deal (strict mode only)
GENERIC_ACKNOWLEDGEMENTS = frozenset({
    "thanks",
    "thank you",
    "thanks received",
    "thank you received",
    "received",
    "received thanks",
    "received thank you",
    "noted",
    "noted thanks",
    "got it",
    "got it thanks",
    "ok",
    "okay",
    "ok thanks",
    "thx",
    "ty",
    "acknowledged",
    "will review",
    "will review thanks",
})

_NON_WORD = re.compile(r"[^a-z0-9 ]+")
_SPACES = re.compile(r"\s+")


def normalize_phrase(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = _NON_WORD.sub(" ", (text or "").lower())
    return _SPACES.sub(" ", text).strip()


class ReplyClassifier(BaseProcessor):
    """
    Classify replied submissions and record approvals and declines.

    In dry-run mode every decision is logged but nothing is written to the
    store: no decline rows, no classified flags, no audit entries.
    """

    name = "classify"
    requires = ("store", "oracle")

    def __init__(
        self,
        db: Database | None = None,
        classifier: BaseClassifier | None = None,
        config: Settings | None = None,
        dry_run: bool | None = None,
    ):
        self.config = config or default_settings
        self.db = db or Database(self.config.database_url)
        self.classifier = classifier or get_classifier(self.config)
        self.dry_run = self.config.dry_run if dry_run is None else dry_run
        self.window = timedelta(hours=self.config.classifier_window_hours)
        self.strict = self.config.classifier_strict_content
        self.min_chars = self.config.classifier_min_reply_chars
        self.max_parse_failures = self.config.classifier_max_parse_failures

    def process(self) -> dict:
        """
        Classify every pending submission in the recency window.

        Returns:
            Statistics dict with counts
        """
        stats = {
            "total": 0,
            "approvals": 0,
            "declines": 0,
            "neutral": 0,
            "skipped": 0,
            "errors": 0,
            "parse_failures": 0,
            "quarantined": 0,
            "already_classified": 0,
        }

        since = datetime.now(timezone.utc) - self.window
        submissions = self.db.get_unclassified_submissions(since)
        stats["total"] = len(submissions)

        log.info("classifying_submissions", count=len(submissions), dry_run=self.dry_run)

        for submission in submissions:
            try:
                bind_context(submission_id=submission.id, lender=submission.lender_label)
                outcome = self.classify_submission(submission)
                stats[outcome] += 1

            finally:
                clear_context()

        log.info("classification_complete", **stats)
        return stats

    def is_usable(self, text: str | None) -> bool:
        """Whether reply text is worth sending to the oracle."""
        if not text or not isinstance(text, str):
            return False
        stripped = text.strip()
        if not stripped or stripped == NO_READABLE_TEXT:
            return False
        if self.strict:
            if len(stripped) < self.min_chars:
                return False
            if normalize_phrase(stripped) in GENERIC_ACKNOWLEDGEMENTS:
                return False
        return True

    def resolve_content(self, submission: Submission) -> str | None:
        """
        Pick the text to classify.

        Prefers reply_body; otherwise the newest history body that is usable
        (and therefore differs from the unusable reply_body).

        Returns:
            Reply text, or None when nothing usable exists
        """
        if self.is_usable(submission.reply_body):
            return submission.reply_body

        for entry in reversed(submission.reply_history):
            if entry.body != submission.reply_body and self.is_usable(entry.body):
                log.info("using_reply_history_fallback", timestamp=entry.timestamp)
                return entry.body
        return None

    def classify_submission(self, submission: Submission) -> str:
        """Classify one submission. Returns the stats key for its outcome."""
        if submission.classified:
            log.debug("already_classified")
            return "already_classified"

        content = self.resolve_content(submission)
        if content is None:
            self._skip(submission, "Empty reply_body and no usable reply_history")
            return "skipped"

        prompt = build_prompt(content, submission.lender_label)

        try:
            result = self.classifier.classify(prompt)

        except ClassificationParseError as e:
            return self._parse_failure(submission, e)

        except ClassificationError as e:
            log.error("classification_failed", error=str(e), error_type=type(e).__name__)
            self._audit(ClassifierLogEntry.error(submission, str(e)))
            return "errors"

        log.info(
            "reply_classified",
            classification=result.classification.value,
            business_name=submission.business_name,
        )

        if not result.is_outcome:
            log.info("neutral_reply_skipping_insert")
            self._mark_classified(submission)
            return "neutral"

        row = DeclineLogRow.from_result(submission, result)

        if self.dry_run:
            log.info(
                "dry_run_would_insert",
                classification=result.classification.value,
                offer=row.offer,
                decline_reason=row.decline_reason,
            )
        else:
            self.db.insert_decline(row)
            # Only after the row is stored
            self._mark_classified(submission)

        return "approvals" if result.classification == Classification.APPROVAL else "declines"

    def _parse_failure(self, submission: Submission, error: ClassificationParseError) -> str:
        log.error("classification_parse_failed", error=str(error), raw=error.raw_text[:500])
        self._audit(ClassifierLogEntry.error(submission, f"{error}: {error.raw_text}"))

        if self.dry_run:
            return "parse_failures"

        attempts = self.db.increment_classify_attempts(submission.id)
        submission.classify_attempts = attempts
        if attempts < self.max_parse_failures:
            return "parse_failures"

        message = f"Quarantined after {attempts} parse failures"
        log.warning("submission_quarantined", attempts=attempts)
        self._mark_classified(submission)
        self._audit(ClassifierLogEntry.error(submission, message))
        return "quarantined"

    def _skip(self, submission: Submission, message: str) -> None:
        log.info("classification_skipped", reason=message)
        self._mark_classified(submission)
        self._audit(ClassifierLogEntry.skip(submission, message))

    def _mark_classified(self, submission: Submission) -> None:
        if self.dry_run:
            log.info("dry_run_would_mark_classified")
            return
        self.db.mark_classified(submission.id)
        submission.classified = True

    def _audit(self, entry: ClassifierLogEntry) -> None:
        if self.dry_run:
            log.info("dry_run_would_audit", type=entry.type.value, message=entry.message[:200])
            return
        self.db.insert_classifier_log(entry)
