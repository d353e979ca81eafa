"""Core modules for reply tracking."""

from .logging import configure_logging, get_logger, bind_context, clear_context
from .models import (
    Classification,
    ClassificationResult,
    ClassifierLogEntry,
    DeclineLogRow,
    LogType,
    MessageHeaders,
    ReplyEntry,
    Submission,
)
from .database import Database

__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    "Classification",
    "ClassificationResult",
    "ClassifierLogEntry",
    "DeclineLogRow",
    "LogType",
    "MessageHeaders",
    "ReplyEntry",
    "Submission",
    "Database",
]
