"""
Data models for reply tracking.

Uses dataclasses for store rows and a Pydantic model for the classifier's
structured output, which is validated strictly.
"""

import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

REPLY_BODY_LIMIT = 2000
REPLIED = "Replied"
UNKNOWN_LENDER = "Unknown"

_ANGLE_ADDRESS = re.compile(r"<([^<>]+)>")


class Classification(str, Enum):
    """Intent of a lender reply."""

    APPROVAL = "APPROVAL"
    DECLINE = "DECLINE"
    NEUTRAL = "NEUTRAL"


class LogType(str, Enum):
    """Classifier audit log entry types."""

    ERROR = "error"
    SKIP = "skip"


@dataclass
class ReplyEntry:
    """One inbound message attributed to a submission."""

    timestamp: str
    sender: str = ""
    subject: str = ""
    body: str = ""
    gmail_id: str | None = None

    def __post_init__(self):
        self.body = (self.body or "")[:REPLY_BODY_LIMIT]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSONB storage."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReplyEntry":
        """Create ReplyEntry from a stored history item."""
        return cls(
            timestamp=data.get("timestamp") or "",
            sender=data.get("sender") or "",
            subject=data.get("subject") or "",
            body=data.get("body") or "",
            gmail_id=data.get("gmail_id"),
        )


@dataclass
class Submission:
    """An outbound loan referral awaiting a lender's reply."""

    id: int
    message_id: str | None = None
    business_name: str = ""
    lender_names: str | None = None
    recipient_emails: list[str] = field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    # Reply state
    reply_status: str | None = None
    reply_body: str | None = None
    reply_date: str | None = None
    reply_history: list[ReplyEntry] = field(default_factory=list)

    # Classification state
    classified: bool | None = None
    classify_attempts: int = 0

    @property
    def has_reply(self) -> bool:
        return self.reply_status == REPLIED

    @property
    def is_unreplied(self) -> bool:
        """True when no reply has ever been recorded for this submission."""
        return (
            self.reply_status is None
            and self.reply_body is None
            and self.reply_date is None
            and not self.reply_history
        )

    @property
    def lender_label(self) -> str:
        return self.lender_names or UNKNOWN_LENDER

    def history_contains(self, gmail_id: str | None) -> bool:
        """Check whether a mailbox message is already in the reply history."""
        if not gmail_id:
            return False
        return any(entry.gmail_id == gmail_id for entry in self.reply_history)

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe snapshot used in audit log entries."""
        return {
            "id": self.id,
            "message_id": self.message_id,
            "business_name": self.business_name,
            "lender_names": self.lender_names,
            "recipient_emails": list(self.recipient_emails),
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "reply_status": self.reply_status,
            "reply_body": self.reply_body,
            "reply_date": self.reply_date,
            "reply_history": [entry.to_dict() for entry in self.reply_history],
            "classified": self.classified,
            "classify_attempts": self.classify_attempts,
        }


@dataclass
class MessageHeaders:
    """Header metadata of one mailbox message."""

    gmail_id: str
    in_reply_to: str = ""
    subject: str = ""
    sender: str = ""
    date: str = ""
    internal_date_ms: int | None = None

    @property
    def sender_email(self) -> str:
        """Bare address from the From header: angle-bracket address, else the raw value."""
        match = _ANGLE_ADDRESS.search(self.sender or "")
        address = match.group(1) if match else (self.sender or "")
        return address.strip().lower()

    @property
    def is_reply(self) -> bool:
        return bool(self.in_reply_to)

    def reply_timestamp(self) -> str:
        """ISO-8601 UTC timestamp of the message (Date header, else internal date)."""
        if self.date:
            try:
                parsed = parsedate_to_datetime(self.date)
                if parsed.tzinfo is None:
                    parsed = parsed.replace(tzinfo=timezone.utc)
                return parsed.astimezone(timezone.utc).isoformat()
            except (TypeError, ValueError):
                pass
        if self.internal_date_ms is not None:
            return datetime.fromtimestamp(self.internal_date_ms / 1000, tz=timezone.utc).isoformat()
        return datetime.now(timezone.utc).isoformat()

    @classmethod
    def from_gmail(cls, message: dict[str, Any]) -> "MessageHeaders":
        """Build from a Gmail messages.get response (metadata or full format)."""
        raw_headers = (message.get("payload") or {}).get("headers") or []
        headers = {
            (h.get("name") or "").lower(): h.get("value") or ""
            for h in raw_headers
        }
        internal_date = message.get("internalDate")
        return cls(
            gmail_id=message.get("id", ""),
            in_reply_to=headers.get("in-reply-to", "").strip(),
            subject=headers.get("subject", ""),
            sender=headers.get("from", ""),
            date=headers.get("date", ""),
            internal_date_ms=int(internal_date) if internal_date is not None else None,
        )


class ClassificationResult(BaseModel):
    """Structured classifier output, validated per classification variant."""

    model_config = ConfigDict(extra="ignore")

    classification: Classification
    offer: str | None = None
    decline_reason: str | None = None
    lender_name: str | None = None

    @field_validator("classification", mode="before")
    @classmethod
    def _normalize_label(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("offer", "decline_reason", "lender_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, str):
            value = str(value)
        value = value.strip()
        return value or None

    # Labels outside Classification fail validation above; the classifier
    # counts them as parse failures and they end in quarantine.
    @model_validator(mode="after")
    def _check_variant_fields(self) -> "ClassificationResult":
        if self.classification == Classification.APPROVAL and not self.offer:
            raise ValueError("APPROVAL requires a non-empty offer")
        if self.classification == Classification.DECLINE and not self.decline_reason:
            raise ValueError("DECLINE requires a non-empty decline_reason")
        return self

    @property
    def is_outcome(self) -> bool:
        """True when the classification produces a decline log row."""
        return self.classification in (Classification.APPROVAL, Classification.DECLINE)


@dataclass
class DeclineLogRow:
    """Persisted APPROVAL or DECLINE outcome."""

    business_name: str
    lender_names: str
    offer: str | None = None
    decline_reason: str | None = None
    submission_id: int | None = None

    @classmethod
    def from_result(cls, submission: Submission, result: ClassificationResult) -> "DeclineLogRow":
        """Build the row for an outcome; offer and decline_reason are mutually exclusive."""
        if not result.is_outcome:
            raise ValueError(f"No decline log row for {result.classification.value}")
        is_approval = result.classification == Classification.APPROVAL
        return cls(
            business_name=submission.business_name,
            lender_names=submission.lender_label,
            offer=result.offer if is_approval else None,
            decline_reason=None if is_approval else result.decline_reason,
            submission_id=submission.id,
        )


@dataclass
class ClassifierLogEntry:
    """Audit trail entry for classifier skips and errors."""

    reply_id: int
    type: LogType
    message: str
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def skip(cls, submission: Submission, message: str) -> "ClassifierLogEntry":
        return cls(reply_id=submission.id, type=LogType.SKIP, message=message, data=submission.to_dict())

    @classmethod
    def error(cls, submission: Submission, message: str) -> "ClassifierLogEntry":
        return cls(reply_id=submission.id, type=LogType.ERROR, message=message, data=submission.to_dict())
