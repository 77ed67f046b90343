"""Custom exceptions for Inbox Triage."""


class InboxTriageError(Exception):
    """Base exception for all Inbox Triage errors."""


class AuthenticationError(InboxTriageError):
    """Failed to authenticate with Gmail API."""


class RateLimitError(InboxTriageError):
    """Remote API rate limit exceeded and retries exhausted."""


class MailGatewayError(InboxTriageError):
    """Gmail API call failed for a reason other than rate limiting."""


class ParseError(InboxTriageError):
    """Failed to parse email MIME content."""


class ClassificationError(InboxTriageError):
    """OpenAI classification call failed for a reason other than rate limiting."""
