"""Gmail API gateway: labels, message pages, threads and label mutations.

Every request goes through the gateway's RateLimitedQueue. The blocking
``HttpRequest.execute()`` runs in a worker thread so the event loop keeps
serving the classifier queue while a Gmail call is in flight.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from datetime import datetime, timezone
from email.mime.text import MIMEText
from typing import Any

from googleapiclient.discovery import Resource
from googleapiclient.errors import HttpError

from inbox_triage.core.exceptions import MailGatewayError, RateLimitError
from inbox_triage.core.models import Label, Message, MessagePage
from inbox_triage.core.parser import GmailParser
from inbox_triage.core.rate_limiter import RateLimitedQueue

logger = logging.getLogger(__name__)

INBOX_LABEL_ID = "INBOX"


_RATE_LIMIT_REASONS = ("rateLimitExceeded", "userRateLimitExceeded")


def is_gmail_rate_limit(exc: Exception) -> bool:
    """Check whether an exception represents a Gmail API rate limit.

    HttpErrors are judged by status only: 429, or 403 carrying a rate-limit
    reason. Their string form includes the request URI, so a message id
    containing "429" must not count.
    """
    if isinstance(exc, HttpError):
        if exc.status_code == 429:
            return True
        if exc.status_code == 403:
            details = f"{exc.reason} {exc.error_details}"
            return any(reason in details for reason in _RATE_LIMIT_REASONS)
        return False
    error_str = str(exc)
    return "429" in error_str or any(reason in error_str for reason in _RATE_LIMIT_REASONS)


def gmail_retry_after(exc: Exception) -> str | None:
    """Return the raw Retry-After header of a Gmail HttpError, if any."""
    resp = getattr(exc, "resp", None)
    if isinstance(resp, dict):
        return resp.get("retry-after")
    return None


def _is_conflict(exc: BaseException | None) -> bool:
    if isinstance(exc, HttpError) and exc.status_code == 409:
        return True
    return exc is not None and "already exists" in str(exc).lower()


def _thread_order(message: Message) -> tuple[int, datetime]:
    """Sort key: Gmail's internalDate, then the header date read as UTC if naive."""
    date = message.date
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)
    return message.internal_date, date


class LabelCache:
    """Label name → id mapping with reverse lookup. Only ever grows."""

    def __init__(self) -> None:
        self._ids_by_name: dict[str, str] = {}
        self._names_by_id: dict[str, str] = {}

    def add(self, label: Label) -> None:
        self._ids_by_name[label.name] = label.id
        self._names_by_id[label.id] = label.name

    def id_for(self, name: str) -> str | None:
        return self._ids_by_name.get(name)

    def name_for(self, label_id: str) -> str:
        return self._names_by_id.get(label_id, label_id)

    @property
    def names_by_id(self) -> dict[str, str]:
        return dict(self._names_by_id)

    def __len__(self) -> int:
        return len(self._ids_by_name)

    def __contains__(self, name: object) -> bool:
        return name in self._ids_by_name


class MailGateway:
    """Label and message operations over the Gmail API."""

    def __init__(
        self,
        service: Resource,
        queue: RateLimitedQueue,
        user_id: str = "me",
        *,
        label: str | None = INBOX_LABEL_ID,
        page_size: int = 50,
        num_retries: int = 0,
        parser: GmailParser | None = None,
    ) -> None:
        self._service = service
        self._queue = queue
        self._user_id = user_id
        self._label = label
        self._page_size = page_size
        self._num_retries = num_retries
        self._parser = parser or GmailParser()
        self._labels = LabelCache()
        self._pending_labels: dict[str, asyncio.Future[str]] = {}

    @property
    def label_cache(self) -> LabelCache:
        return self._labels

    async def _execute(self, request: Any, context: str) -> Any:
        """Run one API request through the queue.

        Raises:
            RateLimitError: When the queue's retries are exhausted on 429 errors.
            MailGatewayError: On non-rate-limit API errors.
        """
        try:
            return await self._queue.enqueue(
                lambda: asyncio.to_thread(request.execute, num_retries=self._num_retries)
            )
        except Exception as e:
            if is_gmail_rate_limit(e):
                raise RateLimitError(f"Rate limited during {context}: {e}") from e
            raise MailGatewayError(f"Failed to {context}: {e}") from e

    # ---------- labels ----------

    async def list_labels(self) -> list[Label]:
        """Fetch all labels and record them in the label cache."""
        request = self._service.users().labels().list(userId=self._user_id)
        results = await self._execute(request, "list labels")
        labels = [
            Label(id=lbl["id"], name=lbl.get("name") or lbl["id"], type=lbl.get("type", "user"))
            for lbl in results.get("labels", [])
        ]
        for label in labels:
            self._labels.add(label)
        logger.debug("Cached %d labels", len(labels))
        return labels

    async def ensure_label(self, name: str) -> str:
        """Return the id of label ``name``, creating the label if needed.

        Concurrent calls for the same name share one lookup/create.
        """
        label_id = self._labels.id_for(name)
        if label_id is not None:
            return label_id

        pending = self._pending_labels.get(name)
        if pending is None:
            pending = asyncio.ensure_future(self._resolve_label(name))
            self._pending_labels[name] = pending
            pending.add_done_callback(lambda _: self._pending_labels.pop(name, None))
        return await asyncio.shield(pending)

    async def _resolve_label(self, name: str) -> str:
        await self.list_labels()
        label_id = self._labels.id_for(name)
        if label_id is not None:
            return label_id
        return await self._create_label(name)

    async def _create_label(self, name: str) -> str:
        logger.info("Creating label: %s", name)
        request = self._service.users().labels().create(
            userId=self._user_id,
            body={
                "name": name,
                "labelListVisibility": "labelShow",
                "messageListVisibility": "show",
            },
        )
        try:
            created = await self._execute(request, f"create label {name}")
        except MailGatewayError as e:
            if not _is_conflict(e.__cause__):
                raise
            logger.warning("Label %s already exists remotely, re-reading labels", name)
            await self.list_labels()
            label_id = self._labels.id_for(name)
            if label_id is None:
                raise
            return label_id

        label = Label(id=created["id"], name=created.get("name", name))
        self._labels.add(label)
        return label.id

    async def add_label(self, message_id: str, label_name: str) -> None:
        """Attach ``label_name`` to a message. Re-adding a present label is a no-op."""
        label_id = await self.ensure_label(label_name)
        logger.debug("Adding label %s (%s) to %s", label_name, label_id, message_id)
        await self._modify(message_id, f"add label {label_name}", add=[label_id])

    # ---------- messages ----------

    async def get_messages_page(self, page_token: str | None = None) -> MessagePage:
        """Fetch one page of fully decoded messages."""
        if not self._labels:
            await self.list_labels()

        kwargs: dict[str, Any] = {
            "userId": self._user_id,
            "maxResults": self._page_size,
        }
        if self._label:
            kwargs["labelIds"] = [self._label]
        if page_token:
            kwargs["pageToken"] = page_token

        request = self._service.users().messages().list(**kwargs)
        response = await self._execute(request, "list messages")
        stubs = response.get("messages", [])

        # One at a time: a failed fetch leaves the rest of the page unrequested.
        raw_messages = [await self._fetch_message(stub["id"]) for stub in stubs]
        names = self._labels.names_by_id
        messages = [self._parser.parse(raw, names) for raw in raw_messages]
        logger.debug("Fetched page of %d messages", len(messages))

        return MessagePage(messages=messages, next_page_token=response.get("nextPageToken"))

    async def _fetch_message(self, message_id: str) -> dict[str, Any]:
        request = self._service.users().messages().get(
            userId=self._user_id, id=message_id, format="full"
        )
        return await self._execute(request, f"get message {message_id}")

    async def get_thread(self, thread_id: str) -> list[Message]:
        """Return every message of a thread, oldest first."""
        if not self._labels:
            await self.list_labels()

        request = self._service.users().threads().get(
            userId=self._user_id, id=thread_id, format="full"
        )
        thread = await self._execute(request, f"get thread {thread_id}")
        names = self._labels.names_by_id
        messages = [self._parser.parse(raw, names) for raw in thread.get("messages", [])]
        return sorted(messages, key=_thread_order)

    async def archive_message(self, message_id: str) -> None:
        """Remove a message from the inbox without deleting it."""
        await self._modify(message_id, "archive message", remove=[INBOX_LABEL_ID])

    async def trash_message(self, message_id: str) -> None:
        """Move a message to the trash."""
        request = self._service.users().messages().trash(userId=self._user_id, id=message_id)
        await self._execute(request, "trash message")

    async def create_draft(
        self,
        to: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
    ) -> str:
        """Create a plain-text draft, optionally inside an existing thread.

        Returns:
            The Gmail draft id.
        """
        mime = MIMEText(body, "plain", "utf-8")
        mime["To"] = to
        mime["Subject"] = subject
        message: dict[str, Any] = {
            "raw": base64.urlsafe_b64encode(mime.as_bytes()).decode("ascii"),
        }
        if thread_id:
            message["threadId"] = thread_id

        request = self._service.users().drafts().create(
            userId=self._user_id, body={"message": message}
        )
        draft = await self._execute(request, "create draft")
        return draft["id"]

    async def _modify(
        self,
        message_id: str,
        context: str,
        *,
        add: list[str] | None = None,
        remove: list[str] | None = None,
    ) -> None:
        body: dict[str, list[str]] = {}
        if add:
            body["addLabelIds"] = add
        if remove:
            body["removeLabelIds"] = remove
        request = self._service.users().messages().modify(
            userId=self._user_id, id=message_id, body=body
        )
        await self._execute(request, context)
