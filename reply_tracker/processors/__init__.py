"""Pipeline stages."""

from reply_tracker.config import Settings, settings as default_settings

from .base import BaseProcessor
from .thread import ThreadMatcher
from .heuristic import HeuristicMatcher, LenderReplyMatcher
from .classify import ReplyClassifier

STAGES: dict[str, type[BaseProcessor]] = {
    cls.name: cls for cls in (ThreadMatcher, HeuristicMatcher, ReplyClassifier)
}


def build_processor(
    stage: str,
    config: Settings | None = None,
    dry_run: bool | None = None,
) -> BaseProcessor:
    """
    Validate settings for a stage and construct its processor.

    Args:
        stage: "thread", "heuristic" or "classify"
        config: Settings to use (global settings if omitted)
        dry_run: Override the DRY_RUN setting (classify only)

    Raises:
        ValueError: unknown stage
        ConfigurationError: required settings missing
    """
    config = config or default_settings
    processor_class = STAGES.get(stage)
    if processor_class is None:
        raise ValueError(f"Unknown stage: {stage}")

    config.validate_for(*processor_class.requires)

    if processor_class is ReplyClassifier:
        return ReplyClassifier(config=config, dry_run=dry_run)
    return processor_class(config=config)


__all__ = [
    "STAGES",
    "BaseProcessor",
    "ThreadMatcher",
    "HeuristicMatcher",
    "LenderReplyMatcher",
    "ReplyClassifier",
    "build_processor",
]
