"""
Reply classifiers module.

The backend is chosen by the CLASSIFIER_BACKEND setting.
"""

from reply_tracker.config import Settings, settings as default_settings
from reply_tracker.classifiers.base import BaseClassifier, parse_classification, strip_code_fences


def get_classifier(config: Settings | None = None) -> BaseClassifier:
    """
    Get the classifier for lender reply classification.

    Returns an OpenAIAssistantClassifier unless CLASSIFIER_BACKEND=gemini.
    """
    config = config or default_settings

    if config.classifier_backend == "gemini":
        from reply_tracker.classifiers.gemini import GeminiClassifier
        return GeminiClassifier(config=config)

    from reply_tracker.classifiers.openai_assistant import OpenAIAssistantClassifier
    return OpenAIAssistantClassifier(config=config)


__all__ = [
    "BaseClassifier",
    "get_classifier",
    "parse_classification",
    "strip_code_fences",
]
