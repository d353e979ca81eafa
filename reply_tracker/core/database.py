"""
Database repository for the submission store.

Provides PostgreSQL operations for submissions, the decline log and the
classifier audit log. Each call opens its own connection and commits on its
own; there are no multi-row transactions.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from reply_tracker.config import settings
from reply_tracker.core.logging import get_logger
from reply_tracker.core.models import (
    REPLIED,
    ClassifierLogEntry,
    DeclineLogRow,
    ReplyEntry,
    Submission,
)

log = get_logger(__name__)

SUBMISSION_COLUMNS = """
    id, message_id, business_name, lender_names, recipient_emails,
    created_at, updated_at, reply_status, reply_body, reply_date,
    reply_history, classified, classify_attempts
"""

# Columns update_submission() is allowed to write
UPDATABLE_COLUMNS = {
    "reply_status",
    "reply_body",
    "reply_date",
    "reply_history",
    "classified",
    "classify_attempts",
}
JSON_COLUMNS = {"reply_history"}


class Database:
    """PostgreSQL operations for the submission store."""

    def __init__(self, connection_string: str | None = None):
        """
        Initialize database connection settings.

        Args:
            connection_string: PostgreSQL connection URL. Uses settings if not provided.
        """
        self.connection_string = connection_string or settings.database_url

    @contextmanager
    def get_connection(self) -> Generator[psycopg.Connection, None, None]:
        """Get a database connection as a context manager."""
        conn = psycopg.connect(self.connection_string, row_factory=dict_row)
        try:
            yield conn
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Initialize database schema (create tables if not exist)."""
        schema_sql = """
        -- live_submissions: outbound referrals and their reply/classification state
        CREATE TABLE IF NOT EXISTS live_submissions (
            id SERIAL PRIMARY KEY,
            message_id TEXT,
            business_name TEXT NOT NULL DEFAULT '',
            lender_names TEXT,
            recipient_emails JSONB DEFAULT '[]'::jsonb,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            updated_at TIMESTAMPTZ DEFAULT NOW(),

            -- Reply tracking
            reply_status VARCHAR(20),
            reply_body TEXT,
            reply_date TIMESTAMPTZ,
            reply_history JSONB,

            -- Classification tracking
            classified BOOLEAN,
            classify_attempts INTEGER DEFAULT 0
        );

        CREATE INDEX IF NOT EXISTS idx_submissions_message_id ON live_submissions(message_id);
        CREATE INDEX IF NOT EXISTS idx_submissions_unclassified
            ON live_submissions(updated_at) WHERE classified IS NULL;

        -- declines: one APPROVAL or DECLINE outcome per submission
        CREATE TABLE IF NOT EXISTS declines (
            id SERIAL PRIMARY KEY,
            submission_id INTEGER UNIQUE REFERENCES live_submissions(id),
            business_name TEXT,
            lender_names TEXT,
            offer TEXT,
            decline_reason TEXT,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        -- classifier_log: audit trail of skips and errors
        CREATE TABLE IF NOT EXISTS classifier_log (
            id SERIAL PRIMARY KEY,
            reply_id INTEGER,
            type VARCHAR(20) NOT NULL,
            message TEXT,
            data JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE INDEX IF NOT EXISTS idx_classifier_log_reply ON classifier_log(reply_id);
        """

        with self.get_connection() as conn:
            conn.execute(schema_sql)
            conn.commit()
            log.info("database_schema_initialized")

    def get_submissions_by_message_id(self, message_id: str) -> list[Submission]:
        """Submissions whose outbound message id equals the given value."""
        query = f"""
        SELECT {SUBMISSION_COLUMNS}
        FROM live_submissions
        WHERE message_id = %s
        ORDER BY id
        """

        with self.get_connection() as conn:
            rows = conn.execute(query, (message_id,)).fetchall()
            return [self._row_to_submission(row) for row in rows]

    def get_unreplied_submissions(self) -> list[Submission]:
        """Submissions with no reply recorded at all."""
        query = f"""
        SELECT {SUBMISSION_COLUMNS}
        FROM live_submissions
        WHERE reply_status IS NULL
          AND reply_body IS NULL
          AND reply_date IS NULL
          AND (reply_history IS NULL OR reply_history = '[]'::jsonb)
        ORDER BY id
        """

        with self.get_connection() as conn:
            rows = conn.execute(query).fetchall()
            submissions = [self._row_to_submission(row) for row in rows]
            log.info("fetched_unreplied_submissions", count=len(submissions))
            return submissions

    def find_submission_with_reply(self, gmail_id: str) -> int | None:
        """Id of a submission whose reply history already holds this message."""
        query = """
        SELECT id
        FROM live_submissions
        WHERE reply_history @> %s
        ORDER BY id
        LIMIT 1
        """

        with self.get_connection() as conn:
            row = conn.execute(query, (Jsonb([{"gmail_id": gmail_id}]),)).fetchone()
            return row["id"] if row else None

    def get_unclassified_submissions(self, since: datetime) -> list[Submission]:
        """
        Replied submissions not yet classified, updated on or after `since`.

        Args:
            since: Lower bound for updated_at

        Returns:
            List of Submission objects, oldest id first
        """
        query = f"""
        SELECT {SUBMISSION_COLUMNS}
        FROM live_submissions
        WHERE classified IS NULL
          AND reply_status = %s
          AND updated_at >= %s
        ORDER BY id
        """

        with self.get_connection() as conn:
            rows = conn.execute(query, (REPLIED, since)).fetchall()
            submissions = [self._row_to_submission(row) for row in rows]
            log.info("fetched_unclassified_submissions", count=len(submissions))
            return submissions

    def update_submission(self, submission_id: int, fields: dict[str, Any]) -> None:
        """
        Update columns of one submission and bump updated_at.

        Args:
            submission_id: Row id
            fields: Column -> value; only UPDATABLE_COLUMNS are accepted
        """
        unknown = set(fields) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update columns: {', '.join(sorted(unknown))}")
        if not fields:
            return

        assignments = [
            sql.SQL("{} = %s").format(sql.Identifier(column))
            for column in fields
        ]
        assignments.append(sql.SQL("updated_at = NOW()"))
        query = sql.SQL("UPDATE live_submissions SET {} WHERE id = %s").format(
            sql.SQL(", ").join(assignments)
        )
        params = [
            Jsonb(value) if column in JSON_COLUMNS and value is not None else value
            for column, value in fields.items()
        ]
        params.append(submission_id)

        with self.get_connection() as conn:
            conn.execute(query, params)
            conn.commit()
            log.debug("submission_updated", submission_id=submission_id, columns=sorted(fields))

    def record_reply(self, submission: Submission, entry: ReplyEntry) -> None:
        """Append a reply to the submission's history and make it the latest reply."""
        history = [*submission.reply_history, entry]
        self.update_submission(submission.id, {
            "reply_status": REPLIED,
            "reply_body": entry.body,
            "reply_date": datetime.fromisoformat(entry.timestamp),
            "reply_history": [item.to_dict() for item in history],
        })

        submission.reply_status = REPLIED
        submission.reply_body = entry.body
        submission.reply_date = entry.timestamp
        submission.reply_history = history

    def mark_classified(self, submission_id: int) -> None:
        """Set the terminal classified flag."""
        self.update_submission(submission_id, {"classified": True})
        log.info("submission_marked_classified", submission_id=submission_id)

    def increment_classify_attempts(self, submission_id: int) -> int:
        """Count a failed classification attempt. Returns the new count."""
        query = """
        UPDATE live_submissions
        SET classify_attempts = COALESCE(classify_attempts, 0) + 1
        WHERE id = %s
        RETURNING classify_attempts
        """

        with self.get_connection() as conn:
            result = conn.execute(query, (submission_id,)).fetchone()
            conn.commit()
            return result["classify_attempts"] if result else 0

    def insert_decline(self, row: DeclineLogRow) -> bool:
        """
        Insert a decline log row.

        Returns:
            False if the submission already has a row (nothing inserted)
        """
        query = """
        INSERT INTO declines (submission_id, business_name, lender_names, offer, decline_reason)
        VALUES (%s, %s, %s, %s, %s)
        ON CONFLICT (submission_id) DO NOTHING
        RETURNING id
        """

        with self.get_connection() as conn:
            result = conn.execute(query, (
                row.submission_id,
                row.business_name,
                row.lender_names,
                row.offer,
                row.decline_reason,
            )).fetchone()
            conn.commit()

        if result is None:
            log.warning("decline_already_logged", submission_id=row.submission_id)
            return False
        log.info("decline_logged", submission_id=row.submission_id, decline_id=result["id"])
        return True

    def insert_classifier_log(self, entry: ClassifierLogEntry) -> int:
        """Add an entry to the classifier audit log."""
        query = """
        INSERT INTO classifier_log (reply_id, type, message, data)
        VALUES (%s, %s, %s, %s)
        RETURNING id
        """

        with self.get_connection() as conn:
            result = conn.execute(query, (
                entry.reply_id,
                entry.type.value,
                entry.message,
                Jsonb(entry.data),
            )).fetchone()
            conn.commit()
            return result["id"] if result else 0

    @staticmethod
    def _row_to_submission(row: dict[str, Any]) -> Submission:
        reply_date = row["reply_date"]
        if isinstance(reply_date, datetime):
            reply_date = reply_date.isoformat()

        return Submission(
            id=row["id"],
            message_id=row["message_id"],
            business_name=row["business_name"] or "",
            lender_names=row["lender_names"],
            recipient_emails=list(row["recipient_emails"] or []),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            reply_status=row["reply_status"],
            reply_body=row["reply_body"],
            reply_date=reply_date,
            reply_history=[ReplyEntry.from_dict(item) for item in row["reply_history"] or []],
            classified=row["classified"],
            classify_attempts=row["classify_attempts"] or 0,
        )
