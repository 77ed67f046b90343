"""Dataclasses and enums for the Inbox Triage domain model."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

PROCESSED_LABEL = "Processed"
RATE_LIMIT_LABEL = "RateLimit"
IGNORED_LABEL = "Ignored"


class Category(str, Enum):
    """Closed set of purposes an email can be classified into."""

    APPRECIATION = "appreciation"
    FEEDBACK = "feedback"
    SUPPORT = "support"
    PRICING = "pricing"
    SALES = "sales"
    SPAM = "spam"
    OTHER = "other"

    @classmethod
    def normalize(cls, raw: str | None) -> Category:
        """Map raw model output onto a member, falling back to OTHER."""
        value = (raw or "").lower().strip()
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class PipelineStatus(str, Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    STOPPED = "stopped"


@dataclass(frozen=True)
class Label:
    """Gmail label reference."""

    id: str
    name: str
    type: str = "user"


@dataclass(frozen=True)
class Message:
    """Decoded Gmail message with human-readable label names."""

    id: str
    thread_id: str
    subject: str = "(no subject)"
    sender: str = ""
    date: datetime = datetime(1970, 1, 1)
    snippet: str = ""
    body: str = ""
    labels: frozenset[str] = field(default_factory=frozenset)
    label_ids: tuple[str, ...] = field(default_factory=tuple)
    internal_date: int = 0

    def has_label(self, name: str) -> bool:
        return name in self.labels


@dataclass(frozen=True)
class MessagePage:
    """One page of messages and the token for the next one, if any."""

    messages: list[Message]
    next_page_token: str | None = None


@dataclass(frozen=True)
class BatchResult:
    """Outcome of one pipeline batch."""

    processed_count: int
    has_more: bool


@dataclass
class PipelineState:
    """Mutable pagination and lifecycle state of a processing pipeline."""

    status: PipelineStatus = PipelineStatus.IDLE
    page_token: str | None = None
    has_more: bool = True

    @property
    def is_processing(self) -> bool:
        return self.status is PipelineStatus.PROCESSING


@dataclass
class ProcessingProgress:
    """Mutable progress tracker for pipeline status reporting."""

    messages_seen: int = 0
    messages_classified: int = 0
    messages_rate_limited: int = 0
    messages_ignored: int = 0
    messages_skipped: int = 0
    current_stage: str = "idle"
