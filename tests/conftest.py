"""Shared fixtures for Inbox Triage tests."""

from __future__ import annotations

import base64
from datetime import datetime
from typing import Any

import pytest

from inbox_triage.core.models import Message


def b64url(text: str) -> str:
    """Encode text the way the Gmail API encodes body data."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_raw_message(
    message_id: str,
    *,
    thread_id: str = "thread_001",
    subject: str | None = "Test Subject",
    sender: str = "sender@example.com",
    date: str = "Mon, 15 Jan 2024 10:30:00 -0500",
    snippet: str = "",
    label_ids: list[str] | None = None,
    payload: dict[str, Any] | None = None,
    internal_date: str | None = None,
) -> dict[str, Any]:
    """Build a Gmail API message resource (format=full)."""
    headers = [
        {"name": "From", "value": sender},
        {"name": "To", "value": "me@example.com"},
        {"name": "Date", "value": date},
    ]
    if subject is not None:
        headers.append({"name": "Subject", "value": subject})

    body_payload = payload or {
        "mimeType": "text/plain",
        "body": {"data": b64url("Hello there.")},
    }
    raw: dict[str, Any] = {
        "id": message_id,
        "threadId": thread_id,
        "labelIds": label_ids if label_ids is not None else ["INBOX"],
        "snippet": snippet,
        "payload": {**body_payload, "headers": headers},
    }
    if internal_date is not None:
        raw["internalDate"] = internal_date
    return raw


@pytest.fixture
def simple_text_raw() -> dict[str, Any]:
    """Raw Gmail API response for a simple text email."""
    return make_raw_message(
        "msg_simple_text",
        subject="Plain Text Email",
        snippet="Hello, this is a plain text email.",
        label_ids=["INBOX", "UNREAD"],
        payload={
            "mimeType": "text/plain",
            "body": {"data": b64url("Hello, this is a plain text email.\n\nBest regards,\nSender")},
        },
        internal_date="1705332600000",
    )


@pytest.fixture
def simple_html_raw() -> dict[str, Any]:
    """Raw Gmail API response for a simple HTML email."""
    return make_raw_message(
        "msg_simple_html",
        subject="HTML Email",
        payload={
            "mimeType": "text/html",
            "body": {"data": b64url("<html><body><p>Hello from <b>HTML</b>.</p></body></html>")},
        },
    )


@pytest.fixture
def multipart_alt_raw() -> dict[str, Any]:
    """Raw Gmail API response for a multipart/alternative email."""
    return make_raw_message(
        "msg_multipart_alt",
        subject="Multipart Email",
        payload={
            "mimeType": "multipart/alternative",
            "body": {"size": 0},
            "parts": [
                {"mimeType": "text/html", "body": {"data": b64url("<p>HTML version</p>")}},
                {"mimeType": "text/plain", "body": {"data": b64url("Plain version")}},
            ],
        },
    )


@pytest.fixture
def multipart_mixed_raw() -> dict[str, Any]:
    """Raw Gmail API response for a multipart/mixed email with attachment."""
    return make_raw_message(
        "msg_multipart_mixed",
        subject="Email with attachment",
        payload={
            "mimeType": "multipart/mixed",
            "body": {"size": 0},
            "parts": [
                {
                    "mimeType": "text/plain",
                    "filename": "notes.txt",
                    "body": {"attachmentId": "att_1", "size": 120},
                },
                {
                    "mimeType": "multipart/alternative",
                    "body": {"size": 0},
                    "parts": [
                        {"mimeType": "text/plain", "body": {"data": b64url("Body text")}},
                        {"mimeType": "text/html", "body": {"data": b64url("<p>Body text</p>")}},
                    ],
                },
            ],
        },
    )


@pytest.fixture
def sample_message() -> Message:
    """A sample decoded message with nothing suspicious in it."""
    return Message(
        id="msg_test_001",
        thread_id="thread_test_001",
        subject="Question about my account",
        sender="Customer <customer@example.com>",
        date=datetime(2024, 1, 15, 10, 30, 0),
        snippet="Hi, I cannot log in",
        body="Hi, I cannot log in since yesterday. Can you help?",
        labels=frozenset({"INBOX"}),
        label_ids=("INBOX",),
    )
