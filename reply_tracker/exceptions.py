"""
Error kinds raised by the reply tracker.

Mailbox and store errors that are not listed here are treated as fatal and
propagate out of a batch unchanged.
"""


class ReplyTrackerError(Exception):
    """Base class for all reply tracker errors."""


class ConfigurationError(ReplyTrackerError):
    """Required settings are missing or invalid."""


class MessageNotFoundError(ReplyTrackerError):
    """A mailbox message disappeared between listing and fetching."""

    def __init__(self, message_id: str):
        super().__init__(f"Message {message_id} not found")
        self.message_id = message_id


class ClassificationError(ReplyTrackerError):
    """Base class for classification oracle errors."""


class ClassificationFailedError(ClassificationError):
    """The oracle reported a failure. Retried on the next run."""


class ClassificationTimeoutError(ClassificationError):
    """The oracle did not reach a terminal state within the poll policy."""


class ClassificationParseError(ClassificationError):
    """The oracle's output is not valid JSON or violates the result schema."""

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text
