"""Inbox Triage - Classify Gmail messages with OpenAI and label them."""

from inbox_triage.core.classifier import EmailClassifier
from inbox_triage.core.mail_gateway import MailGateway
from inbox_triage.core.models import (
    BatchResult,
    Category,
    Label,
    Message,
    MessagePage,
    PipelineState,
    PipelineStatus,
    ProcessingProgress,
)
from inbox_triage.core.rate_limiter import RateLimitedQueue
from inbox_triage.pipeline.processor import InboxProcessor

__all__ = [
    "BatchResult",
    "Category",
    "EmailClassifier",
    "InboxProcessor",
    "Label",
    "MailGateway",
    "Message",
    "MessagePage",
    "PipelineState",
    "PipelineStatus",
    "ProcessingProgress",
    "RateLimitedQueue",
]
