"""Batch classification pipeline: page → filter → classify → label."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from inbox_triage.config.settings import DEFAULT_IGNORED_SENDERS
from inbox_triage.core.classifier import EmailClassifier
from inbox_triage.core.mail_gateway import MailGateway
from inbox_triage.core.models import (
    IGNORED_LABEL,
    PROCESSED_LABEL,
    RATE_LIMIT_LABEL,
    BatchResult,
    Message,
    PipelineState,
    PipelineStatus,
    ProcessingProgress,
)

logger = logging.getLogger(__name__)

# Content heuristic: any of these (case-insensitive) marks the message as
# rate-limit related. Matches plain words such as "separate" too; kept as-is.
RATE_LIMIT_INDICATORS = (
    "rate",
    "limit",
    "resource",
    "exhausted",
    "resource_exhausted",
    "rate limit",
    "rate_limit",
)


def is_rate_limit_content(content: str) -> bool:
    lowered = content.lower()
    return any(term in lowered for term in RATE_LIMIT_INDICATORS)


def is_ignored_sender(sender: str, ignored_senders: Iterable[str]) -> bool:
    """Case-insensitive substring match of ``sender`` against the ignore list."""
    normalized = sender.lower().strip()
    return any(ignored.lower() in normalized for ignored in ignored_senders)


def classification_text(message: Message) -> str:
    return f"{message.subject}\n{message.snippet or ''}\n{message.body or ''}"


class InboxProcessor:
    """Classifies unprocessed inbox messages in bounded, interruptible batches.

    State machine: idle → processing → idle | stopped. Only one batch runs at a
    time; a second ``process_next_batch()`` while one is running returns
    ``BatchResult(0, False)`` without touching Gmail.

    The ``Processed`` label is the idempotency marker: it is always applied
    last, after the category (or ``RateLimit`` / ``Ignored``) label, so a batch
    that fails midway can simply be run again.
    """

    def __init__(
        self,
        gateway: MailGateway,
        classifier: EmailClassifier,
        *,
        batch_size: int = 30,
        ignored_senders: Iterable[str] = DEFAULT_IGNORED_SENDERS,
        on_progress: Callable[[ProcessingProgress], None] | None = None,
    ) -> None:
        self._gateway = gateway
        self._classifier = classifier
        self._batch_size = batch_size
        self._ignored_senders = tuple(ignored_senders)
        self._on_progress = on_progress
        self._progress = ProcessingProgress()
        self._state = PipelineState()
        self._stop_requested = False

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def progress(self) -> ProcessingProgress:
        return self._progress

    @property
    def is_processing(self) -> bool:
        return self._state.is_processing

    @property
    def has_more(self) -> bool:
        return self._state.has_more

    @property
    def on_progress(self) -> Callable[[ProcessingProgress], None] | None:
        return self._on_progress

    @on_progress.setter
    def on_progress(self, callback: Callable[[ProcessingProgress], None] | None) -> None:
        self._on_progress = callback

    def request_stop(self) -> None:
        """Ask the running batch to stop before its next message."""
        if self._state.is_processing:
            logger.info("Stop requested")
        self._stop_requested = True

    def reset_pagination(self) -> None:
        """Start the next batch from the first page again."""
        if self._state.is_processing:
            logger.warning("Ignoring pagination reset while a batch is running")
            return
        self._state.page_token = None
        self._state.has_more = True

    async def process_next_batch(self) -> BatchResult:
        """Classify and label up to ``batch_size`` unprocessed messages.

        A batch reads one Gmail page and never spans two. The cursor stays on
        the page until all of its candidates were attempted, so batch counts
        depend on page size: 65 messages give 30, 30, 5 when they share one
        page, but 30, 20, 15 with 50-message pages.

        Returns:
            BatchResult with the number of messages attempted and whether more
            unprocessed mail remains.

        Raises:
            InboxTriageError: Any non-rate-limit failure while processing a
                message aborts the batch. Labels already applied stay applied
                and the pagination cursor is left where it was.
        """
        if self._state.is_processing:
            logger.info("Already processing emails, skipping")
            return BatchResult(processed_count=0, has_more=False)

        self._state.status = PipelineStatus.PROCESSING
        self._stop_requested = False
        stopped = False
        self._progress.current_stage = "fetch"
        self._notify()

        try:
            await self._gateway.ensure_label(PROCESSED_LABEL)

            page = await self._gateway.get_messages_page(self._state.page_token)
            candidates = await self._filter_candidates(page.messages)
            batch = candidates[: self._batch_size]
            logger.info(
                "Found %d unprocessed emails, processing batch of %d",
                len(candidates), len(batch),
            )

            self._progress.current_stage = "classify"
            self._notify()

            attempted = 0
            for message in batch:
                if self._stop_requested:
                    logger.info("Processing stopped by user after %d emails", attempted)
                    stopped = True
                    break
                attempted += 1
                await self.process_one(message)

            if stopped or len(candidates) > attempted:
                # Unattempted messages remain on this page; stay on it.
                has_more = True
            else:
                self._state.page_token = page.next_page_token
                has_more = page.next_page_token is not None
            self._state.has_more = has_more

            self._progress.current_stage = "stopped" if stopped else "idle"
            self._notify()
            return BatchResult(processed_count=attempted, has_more=has_more)
        except Exception as e:
            logger.error("Error in email processing: %s", e)
            self._progress.current_stage = f"error: {e}"
            self._notify()
            raise
        finally:
            self._state.status = PipelineStatus.STOPPED if stopped else PipelineStatus.IDLE

    async def _filter_candidates(self, messages: list[Message]) -> list[Message]:
        """Drop already-handled messages; label ignored senders and drop them too."""
        candidates: list[Message] = []
        for message in messages:
            self._progress.messages_seen += 1
            if message.has_label(PROCESSED_LABEL) or message.has_label(RATE_LIMIT_LABEL):
                logger.debug("Skipping email %s, already processed", message.id)
                continue
            if is_ignored_sender(message.sender, self._ignored_senders):
                logger.info("Ignoring email %s from %s", message.id, message.sender)
                await self._gateway.add_label(message.id, IGNORED_LABEL)
                await self._gateway.add_label(message.id, PROCESSED_LABEL)
                self._progress.messages_ignored += 1
                continue
            candidates.append(message)
        return candidates

    async def process_one(self, message: Message) -> None:
        """Classify one message and label it. A no-op for processed messages."""
        if message.has_label(PROCESSED_LABEL):
            logger.debug("Email %s already processed, skipping", message.id)
            self._progress.messages_skipped += 1
            return

        content = classification_text(message)
        if is_rate_limit_content(content):
            logger.info("Rate limit related content in %s, applying RateLimit label", message.id)
            await self._mark_rate_limited(message)
            return

        try:
            category = await self._classifier.classify(content)
        except Exception as e:
            if not is_rate_limit_content(str(e)):
                raise
            logger.warning("Rate limit error classifying %s: %s", message.id, e)
            await self._mark_rate_limited(message)
            return

        logger.info("Applying label %s to email %s", category.value, message.id)
        await self._gateway.add_label(message.id, category.value)
        await self._gateway.add_label(message.id, PROCESSED_LABEL)
        self._progress.messages_classified += 1
        self._notify()

    async def _mark_rate_limited(self, message: Message) -> None:
        await self._gateway.add_label(message.id, RATE_LIMIT_LABEL)
        await self._gateway.add_label(message.id, PROCESSED_LABEL)
        self._progress.messages_rate_limited += 1
        self._notify()

    def _notify(self) -> None:
        """Send progress update to callback if registered."""
        if self._on_progress:
            self._on_progress(self._progress)
