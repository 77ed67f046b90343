"""Tests for classification and reply prompt text."""

from __future__ import annotations

import pytest

from inbox_triage.core.models import Category
from inbox_triage.core.prompts import (
    BASE_REPLY_CONTEXT,
    CLASSIFICATION_SYSTEM_PROMPT,
    context_for_intent,
    reply_template,
)


def test_classification_prompt_lists_every_category() -> None:
    for category in Category:
        assert f"- {category.value}:" in CLASSIFICATION_SYSTEM_PROMPT


@pytest.mark.parametrize(
    ("intent", "marker"),
    [
        ("appreciation", "thank you emails"),
        ("Feature request", "feature requests"),
        ("SUPPORT", "technical support"),
        ("pricing question", "pricing and billing"),
    ],
)
def test_context_for_known_intents(intent: str, marker: str) -> None:
    context = context_for_intent(intent)
    assert context.startswith(BASE_REPLY_CONTEXT)
    assert marker in context.lower()


def test_context_for_unknown_intent_is_general() -> None:
    context = context_for_intent("partnership")
    assert context.startswith(BASE_REPLY_CONTEXT)
    assert "general inquiries" in context


def test_empty_intent_is_general() -> None:
    assert "general inquiries" in context_for_intent("")


def test_reply_template_fallback() -> None:
    assert reply_template("support").startswith("I understand")
    assert reply_template("spam") == "Thank you for your message. Let me assist you with that."
