"""
OpenAI Assistants classifier implementation.

One classification is one thread: create thread, add the prompt, start a run
against the configured assistant, poll the run, read the assistant's answer.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

import openai
from openai import OpenAI

from reply_tracker.config import Settings, settings as default_settings
from reply_tracker.core.logging import get_logger
from reply_tracker.classifiers.base import BaseClassifier
from reply_tracker.exceptions import ClassificationFailedError, ClassificationTimeoutError

log = get_logger(__name__)

COMPLETED = "completed"
# requires_action is included: the assistant has no tools we could answer for
FAILED_STATUSES = {"failed", "cancelled", "expired", "incomplete", "requires_action"}


@dataclass(frozen=True)
class PollPolicy:
    """Fixed-interval polling with an attempt ceiling."""

    interval_seconds: float = 1.0
    max_attempts: int = 120

    @classmethod
    def from_settings(cls, config: Settings) -> "PollPolicy":
        return cls(
            interval_seconds=config.oracle_poll_interval_seconds,
            max_attempts=config.oracle_max_poll_attempts,
        )


class OpenAIAssistantClassifier(BaseClassifier):
    """Classifier backed by an OpenAI assistant."""

    def __init__(
        self,
        client: Any = None,
        assistant_id: str | None = None,
        poll_policy: PollPolicy | None = None,
        config: Settings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        config = config or default_settings
        self.assistant_id = assistant_id or config.openai_assistant_id

        if not self.assistant_id:
            raise ValueError("OPENAI_ASSISTANT_ID is required")

        if client is None:
            if not config.openai_api_key:
                raise ValueError("OPENAI_API_KEY is required")
            client = OpenAI(api_key=config.openai_api_key)

        self.client = client
        self.poll_policy = poll_policy or PollPolicy.from_settings(config)
        self._sleep = sleep

    def complete(self, prompt: str) -> str:
        """
        Run the prompt through the assistant.

        Args:
            prompt: Full instruction text

        Returns:
            Text of the assistant's reply ("" if it sent none)
        """
        threads = self.client.beta.threads

        try:
            thread = threads.create()
            threads.messages.create(thread_id=thread.id, role="user", content=prompt)
            run = threads.runs.create(thread_id=thread.id, assistant_id=self.assistant_id)
            self._wait_for_run(thread.id, run.id)
            messages = threads.messages.list(thread_id=thread.id)

        except openai.OpenAIError as e:
            log.error("openai_request_error", error=str(e))
            raise ClassificationFailedError(f"OpenAI request failed: {e}") from e

        return self._assistant_text(messages)

    def _wait_for_run(self, thread_id: str, run_id: str) -> Any:
        """Poll a run until it completes; raise on failure or when attempts run out."""
        runs = self.client.beta.threads.runs

        for attempt in range(1, self.poll_policy.max_attempts + 1):
            self._sleep(self.poll_policy.interval_seconds)
            run = runs.retrieve(run_id=run_id, thread_id=thread_id)

            if run.status == COMPLETED:
                log.debug("assistant_run_completed", run_id=run_id, attempts=attempt)
                return run

            if run.status in FAILED_STATUSES:
                last_error = getattr(run, "last_error", None)
                log.warning(
                    "assistant_run_failed",
                    run_id=run_id,
                    status=run.status,
                    error=getattr(last_error, "message", None),
                )
                raise ClassificationFailedError(f"Assistant run {run.status}")

        self._cancel(thread_id, run_id)
        raise ClassificationTimeoutError(
            f"Assistant run {run_id} not finished after {self.poll_policy.max_attempts} polls"
        )

    def _cancel(self, thread_id: str, run_id: str) -> None:
        """Cancel an abandoned run. Failure to cancel is only logged."""
        try:
            self.client.beta.threads.runs.cancel(run_id=run_id, thread_id=thread_id)
            log.warning("assistant_run_cancelled", run_id=run_id)
        except openai.OpenAIError as e:
            log.warning("assistant_run_cancel_failed", run_id=run_id, error=str(e))

    @staticmethod
    def _assistant_text(messages: Any) -> str:
        """Text of the newest assistant message in a messages.list page."""
        for message in messages.data:
            if message.role != "assistant":
                continue
            for block in message.content or []:
                if getattr(block, "type", None) == "text":
                    return block.text.value
            return ""
        return ""
