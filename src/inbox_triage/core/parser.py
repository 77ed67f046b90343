"""Gmail message parser: MIME tree walking, base64url decoding, header extraction."""

from __future__ import annotations

import base64
import binascii
import logging
from collections.abc import Mapping
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

import trafilatura

from inbox_triage.core.exceptions import ParseError
from inbox_triage.core.models import Message

logger = logging.getLogger(__name__)


class GmailParser:
    """Parses raw Gmail API message dicts into Message objects."""

    def parse(
        self,
        raw_message: dict[str, Any],
        label_names: Mapping[str, str] | None = None,
    ) -> Message:
        """Parse a raw Gmail API message dict into a Message.

        Args:
            raw_message: Full message dict from Gmail API (format=full).
            label_names: Label id to display name mapping. Ids missing from
                the mapping are kept as-is.

        Returns:
            Parsed Message.

        Raises:
            ParseError: If the message structure is invalid.
        """
        label_names = label_names or {}
        try:
            message_id = raw_message["id"]
            payload = raw_message.get("payload") or {}
            headers = self._extract_headers(payload)
            label_ids = tuple(raw_message.get("labelIds") or [])

            return Message(
                id=message_id,
                thread_id=raw_message.get("threadId", ""),
                subject=headers.get("subject") or "(no subject)",
                sender=headers.get("from", ""),
                date=self._parse_date(headers.get("date", "")),
                snippet=raw_message.get("snippet", ""),
                body=self._extract_body(payload),
                labels=frozenset(label_names.get(lid, lid) for lid in label_ids),
                label_ids=label_ids,
                internal_date=self._parse_internal_date(raw_message.get("internalDate")),
            )
        except ParseError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to parse message {raw_message.get('id', '?')}: {e}") from e

    @staticmethod
    def _extract_headers(payload: dict[str, Any]) -> dict[str, str]:
        headers: dict[str, str] = {}
        for h in payload.get("headers", []):
            name = h.get("name", "").lower()
            if name in ("subject", "from", "date") and name not in headers:
                headers[name] = h.get("value", "")
        return headers

    def _extract_body(self, payload: dict[str, Any]) -> str:
        """Return the first text/plain part, else text from the first text/html part.

        Missing or undecodable parts yield an empty string.
        """
        plain_text, html = self._walk_parts(payload)

        if plain_text is None and html is None:
            # Try the top-level body directly
            body_data = (payload.get("body") or {}).get("data")
            if body_data:
                decoded = self._decode_body(body_data)
                if "html" in payload.get("mimeType", ""):
                    html = decoded
                else:
                    plain_text = decoded

        if plain_text is not None:
            return plain_text
        if html is not None:
            return self._html_to_text(html)
        return ""

    def _walk_parts(self, part: dict[str, Any]) -> tuple[str | None, str | None]:
        """Recursively walk MIME parts to find text/plain and text/html.

        Args:
            part: A MIME part dict from the Gmail API.

        Returns:
            Tuple of (plain_text, html); either may be None.
        """
        plain_text: str | None = None
        html: str | None = None
        mime_type = part.get("mimeType", "")

        if mime_type == "text/plain":
            data = (part.get("body") or {}).get("data")
            if data:
                plain_text = self._decode_body(data)
        elif mime_type == "text/html":
            data = (part.get("body") or {}).get("data")
            if data:
                html = self._decode_body(data)
        elif mime_type.startswith("multipart/"):
            for sub_part in part.get("parts", []):
                # Skip attachments
                if sub_part.get("filename"):
                    continue

                sub_plain, sub_html = self._walk_parts(sub_part)
                if sub_plain and not plain_text:
                    plain_text = sub_plain
                if sub_html and not html:
                    html = sub_html

        return plain_text, html

    @staticmethod
    def _decode_body(data: str) -> str:
        """Decode base64url-encoded body data, returning "" when it is garbled."""
        # Gmail uses base64url encoding (RFC 4648 §5)
        padded = data + "=" * (-len(data) % 4)
        try:
            return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            logger.warning("Failed to decode body part of length %d", len(data))
            return ""

    @staticmethod
    def _html_to_text(html: str) -> str:
        """Extract readable text from an HTML body, keeping the raw HTML as fallback."""
        try:
            text = trafilatura.extract(html, output_format="txt", favor_recall=True)
        except Exception as e:
            logger.warning("Trafilatura extraction failed: %s", e)
            text = None
        return text if text else html

    @staticmethod
    def _parse_date(date_str: str) -> datetime:
        """Parse an RFC 2822 date string, or return the epoch if parsing fails."""
        if not date_str:
            return datetime(1970, 1, 1)
        try:
            return parsedate_to_datetime(date_str)
        except Exception:
            logger.warning("Failed to parse date: %s", date_str)
            return datetime(1970, 1, 1)

    @staticmethod
    def _parse_internal_date(value: Any) -> int:
        try:
            return int(value)
        except (TypeError, ValueError):
            return 0
