"""Unit tests for oracle response parsing."""

import pytest

from reply_tracker.classifiers.base import BaseClassifier, parse_classification, strip_code_fences
from reply_tracker.classifiers.prompts.decline import build_prompt
from reply_tracker.core.models import Classification
from reply_tracker.exceptions import ClassificationParseError


class StaticClassifier(BaseClassifier):
    """Oracle that always answers with the same text."""

    def __init__(self, answer: str):
        self.answer = answer
        self.prompts = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self):
        assert strip_code_fences('```\n{"a": 1}```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1} ') == '{"a": 1}'


class TestParseClassification:
    """Tests for parse_classification."""

    def test_fenced_decline(self):
        raw = '```json\n{"classification": "DECLINE", "offer": null, "decline_reason": "Low revenue", "lender_name": "Acme"}\n```'
        result = parse_classification(raw)

        assert result.classification == Classification.DECLINE
        assert result.decline_reason == "Low revenue"
        assert result.offer is None

    def test_extra_fields_ignored(self):
        result = parse_classification('{"classification": "NEUTRAL", "confidence": 0.9}')
        assert result.classification == Classification.NEUTRAL

    def test_invalid_json(self):
        with pytest.raises(ClassificationParseError) as exc_info:
            parse_classification("I think this is a decline.")
        assert exc_info.value.raw_text == "I think this is a decline."

    def test_not_an_object(self):
        with pytest.raises(ClassificationParseError):
            parse_classification('["DECLINE"]')

    def test_unknown_label(self):
        with pytest.raises(ClassificationParseError):
            parse_classification('{"classification": "PENDING"}')

    def test_approval_without_offer(self):
        with pytest.raises(ClassificationParseError, match="Schema violation"):
            parse_classification('{"classification": "APPROVAL", "offer": ""}')

    def test_empty_response(self):
        with pytest.raises(ClassificationParseError):
            parse_classification("")


class TestBaseClassifier:
    def test_classify_parses_completion(self):
        classifier = StaticClassifier('{"classification": "APPROVAL", "offer": "$40k, 12 months"}')
        result = classifier.classify("prompt")

        assert result.classification == Classification.APPROVAL
        assert result.offer == "$40k, 12 months"
        assert classifier.prompts == ["prompt"]


class TestPrompt:
    def test_embeds_reply_and_lender(self):
        prompt = build_prompt("We decline due to low revenue.", "Acme Capital")
        assert "We decline due to low revenue." in prompt
        assert '"lender_name": "Acme Capital"' in prompt
        assert '"classification": "APPROVAL" | "DECLINE" | "NEUTRAL"' in prompt

    def test_missing_lender(self):
        assert '"lender_name": "Unknown"' in build_prompt("text", "")
