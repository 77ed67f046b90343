"""OpenAI-backed email classifier routed through a rate-limited queue."""

from __future__ import annotations

import logging
from typing import Any

import openai
from openai import AsyncOpenAI

from inbox_triage.core.exceptions import ClassificationError, RateLimitError
from inbox_triage.core.models import Category
from inbox_triage.core.prompts import CLASSIFICATION_SYSTEM_PROMPT
from inbox_triage.core.rate_limiter import RateLimitedQueue

logger = logging.getLogger(__name__)


def is_openai_rate_limit(exc: Exception) -> bool:
    """Check whether an exception represents an OpenAI 429 response."""
    if isinstance(exc, openai.RateLimitError):
        return True
    return isinstance(exc, openai.APIStatusError) and exc.status_code == 429


def openai_retry_after(exc: Exception) -> str | None:
    """Return the raw Retry-After header of an OpenAI error response, if any."""
    response = getattr(exc, "response", None)
    if response is None:
        return None
    return response.headers.get("retry-after")


class EmailClassifier:
    """Maps free-text email content onto exactly one Category."""

    def __init__(
        self,
        client: AsyncOpenAI,
        queue: RateLimitedQueue,
        *,
        model: str = "gpt-3.5-turbo",
    ) -> None:
        self._client = client
        self._queue = queue
        self._model = model

    async def classify(self, text: str) -> Category:
        """Classify email content.

        Model output that is not a known category resolves to Category.OTHER.

        Raises:
            RateLimitError: OpenAI kept answering 429 after all queue retries.
            ClassificationError: Any other OpenAI failure.
        """
        response = await self._complete(
            "classify email",
            system=CLASSIFICATION_SYSTEM_PROMPT,
            user=text,
            temperature=0.2,
            max_tokens=50,
        )
        raw = _first_content(response)
        category = Category.normalize(raw)
        if category is Category.OTHER and (raw or "").lower().strip() != Category.OTHER.value:
            logger.warning("Invalid category returned: %r", raw)
        logger.debug("Classified as %s", category.value)
        return category

    async def generate_draft_reply(self, email_content: str, context: str) -> str:
        """Draft a reply to ``email_content`` using ``context`` as the system prompt."""
        response = await self._complete(
            "generate draft reply",
            system=context,
            user=email_content,
            temperature=0.7,
            max_tokens=500,
        )
        return _first_content(response) or ""

    async def _complete(
        self,
        context: str,
        *,
        system: str,
        user: str,
        temperature: float,
        max_tokens: int,
    ) -> Any:
        async def _operation() -> Any:
            return await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                temperature=temperature,
                max_tokens=max_tokens,
            )

        try:
            return await self._queue.enqueue(_operation)
        except Exception as e:
            if is_openai_rate_limit(e):
                raise RateLimitError(f"Rate limited during {context}: {e}") from e
            if isinstance(e, openai.OpenAIError):
                raise ClassificationError(f"Failed to {context}: {e}") from e
            raise


def _first_content(response: Any) -> str | None:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return None
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None)
