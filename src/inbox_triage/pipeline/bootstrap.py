"""Explicit wiring of queues, gateway, classifier and processor."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from googleapiclient.discovery import Resource
from openai import AsyncOpenAI

from inbox_triage.config.settings import InboxTriageSettings
from inbox_triage.core.auth import build_gmail_service, load_credentials
from inbox_triage.core.classifier import EmailClassifier, is_openai_rate_limit, openai_retry_after
from inbox_triage.core.mail_gateway import MailGateway, gmail_retry_after, is_gmail_rate_limit
from inbox_triage.core.models import ProcessingProgress
from inbox_triage.core.rate_limiter import RateLimitedQueue
from inbox_triage.pipeline.processor import InboxProcessor

logger = logging.getLogger(__name__)


@dataclass
class TriageServices:
    """The service objects one triage session works with."""

    gateway: MailGateway
    classifier: EmailClassifier
    processor: InboxProcessor


def build_mail_queue(settings: InboxTriageSettings) -> RateLimitedQueue:
    return RateLimitedQueue(
        "gmail",
        min_interval=settings.mail_min_interval_seconds,
        max_retries=settings.mail_max_retries,
        base_delay=settings.mail_base_delay_seconds,
        max_delay=settings.mail_max_delay_seconds,
        max_retry_after=settings.max_retry_after_seconds,
        is_rate_limited=is_gmail_rate_limit,
        retry_after=gmail_retry_after,
    )


def build_classifier_queue(settings: InboxTriageSettings) -> RateLimitedQueue:
    return RateLimitedQueue(
        "openai",
        min_interval=settings.classifier_min_interval_seconds,
        max_retries=settings.classifier_max_retries,
        base_delay=settings.classifier_base_delay_seconds,
        max_delay=settings.classifier_max_delay_seconds,
        max_retry_after=settings.max_retry_after_seconds,
        is_rate_limited=is_openai_rate_limit,
        retry_after=openai_retry_after,
    )


def build_services(
    settings: InboxTriageSettings | None = None,
    *,
    service: Resource | None = None,
    openai_client: AsyncOpenAI | None = None,
    on_progress: Callable[[ProcessingProgress], None] | None = None,
) -> TriageServices:
    """Construct a gateway, classifier and processor sharing nothing global.

    Args:
        settings: Application settings (defaults to environment/.env).
        service: Prebuilt Gmail API resource. When omitted, runs the OAuth
            flow from ``settings.credentials_path``.
        openai_client: Prebuilt OpenAI client. When omitted, one is created
            with SDK-level retries disabled so the queue owns retrying.
        on_progress: Optional processor progress callback.
    """
    settings = settings or InboxTriageSettings()

    if service is None:
        settings.ensure_directories()
        creds = load_credentials(settings)
        service = build_gmail_service(creds)

    if openai_client is None:
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key, max_retries=0)

    gateway = MailGateway(
        service,
        build_mail_queue(settings),
        settings.user_id,
        label=settings.label,
        page_size=settings.page_size,
        num_retries=settings.num_retries,
    )
    classifier = EmailClassifier(
        openai_client,
        build_classifier_queue(settings),
        model=settings.openai_model,
    )
    processor = InboxProcessor(
        gateway,
        classifier,
        batch_size=settings.batch_size,
        ignored_senders=settings.ignored_senders,
        on_progress=on_progress,
    )
    logger.debug("Built triage services for user %s", settings.user_id)
    return TriageServices(gateway=gateway, classifier=classifier, processor=processor)
