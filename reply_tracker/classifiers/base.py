"""
Abstract base class for classification oracles, plus response parsing.
"""

import json
import re
from abc import ABC, abstractmethod

from pydantic import ValidationError

from reply_tracker.core.logging import get_logger
from reply_tracker.core.models import ClassificationResult
from reply_tracker.exceptions import ClassificationParseError

log = get_logger(__name__)

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


def strip_code_fences(raw: str) -> str:
    """Remove markdown code-fence artifacts around a JSON response."""
    text = _FENCE.sub("", raw or "")
    return text.strip().strip("`").strip()


def parse_classification(raw: str) -> ClassificationResult:
    """
    Parse and validate an oracle response.

    Args:
        raw: Raw text returned by the oracle

    Returns:
        Validated ClassificationResult

    Raises:
        ClassificationParseError: text is not a JSON object or violates the schema
    """
    text = strip_code_fences(raw)

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ClassificationParseError(f"Invalid JSON: {e}", raw_text=text) from e

    if not isinstance(data, dict):
        raise ClassificationParseError("Expected a JSON object", raw_text=text)

    try:
        return ClassificationResult.model_validate(data)
    except ValidationError as e:
        errors = "; ".join(err["msg"] for err in e.errors())
        raise ClassificationParseError(f"Schema violation: {errors}", raw_text=text) from e


class BaseClassifier(ABC):
    """Abstract classification oracle interface."""

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """
        Submit a prompt and block until the oracle answers.

        Args:
            prompt: Full instruction text

        Returns:
            Raw text response

        Raises:
            ClassificationFailedError: the oracle reported a failure
            ClassificationTimeoutError: no terminal answer within the poll policy
        """
        pass

    def classify(self, prompt: str) -> ClassificationResult:
        """Run the prompt and parse the answer."""
        raw = self.complete(prompt)
        log.debug("oracle_raw_output", raw=raw[:500])
        return parse_classification(raw)
