"""
Structured logging for the reply tracker using structlog.

Every stage logs snake_case events with key/value context. Per-message or
per-submission context is bound with bind_context() and cleared after the
item is done.
"""

import logging
import sys

import structlog

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = (
    "googleapiclient.discovery_cache",
    "googleapiclient.discovery",
    "httpx",
    "openai",
    "apscheduler.executors.default",
)

# Event keys whose values must never reach the log output
SECRET_KEYS = frozenset({
    "refresh_token",
    "access_token",
    "client_secret",
    "api_key",
    "password",
    "auth_code",
})


def redact_secrets(logger, method_name, event_dict):
    """structlog processor masking credential values."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def configure_logging(log_level: str | None = None, json_output: bool | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR (default: LOG_LEVEL setting)
        json_output: JSON lines if True, colored console if False (default: JSON_LOGS setting)
    """
    from reply_tracker.config import settings

    level_name = (log_level or settings.log_level).upper()
    level = getattr(logging, level_name, logging.INFO)
    if json_output is None:
        json_output = settings.json_logs

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, usually get_logger(__name__)."""
    return structlog.get_logger(name)


def bind_context(**kwargs) -> None:
    """Bind key/values to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop all context bound with bind_context()."""
    structlog.contextvars.clear_contextvars()
