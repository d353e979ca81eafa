"""
Gemini AI classifier implementation.
"""

import google.generativeai as genai

from reply_tracker.config import Settings, settings as default_settings
from reply_tracker.core.logging import get_logger
from reply_tracker.classifiers.base import BaseClassifier
from reply_tracker.exceptions import ClassificationFailedError

log = get_logger(__name__)


class GeminiClassifier(BaseClassifier):
    """Gemini AI-based reply classifier."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        config: Settings | None = None,
    ):
        config = config or default_settings
        self.api_key = api_key or config.gemini_api_key
        self.model_name = model or config.gemini_model

        if not self.api_key:
            raise ValueError("GEMINI_API_KEY is required")

        genai.configure(api_key=self.api_key)
        self.model = genai.GenerativeModel(self.model_name)

    def complete(self, prompt: str) -> str:
        """
        Run the prompt through Gemini.

        Args:
            prompt: Full instruction text

        Returns:
            Raw response text
        """
        try:
            response = self.model.generate_content(prompt)
            return response.text

        except genai.types.BlockedPromptException as e:
            log.warning("gemini_blocked", error=str(e))
            raise ClassificationFailedError(f"Gemini blocked the prompt: {e}") from e

        except genai.types.StopCandidateException as e:
            log.warning("gemini_stopped", error=str(e))
            raise ClassificationFailedError(f"Gemini stopped generation: {e}") from e

        except Exception as e:
            error_str = str(e).lower()

            if any(x in error_str for x in ["rate", "429", "quota"]):
                log.error("gemini_rate_limit", error=str(e))
            elif any(x in error_str for x in ["api key", "auth", "401", "403"]):
                log.error("gemini_auth_error", error=str(e))
            else:
                log.error("gemini_error", error=str(e))

            raise ClassificationFailedError(f"Gemini request failed: {e}") from e
