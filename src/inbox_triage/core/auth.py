"""Gmail OAuth credentials for the triage gateway."""

from __future__ import annotations

import logging
from pathlib import Path

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import Resource, build

from inbox_triage.config.settings import InboxTriageSettings
from inbox_triage.core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

# Gateway operation -> the narrowest scope that allows it.
GATEWAY_SCOPES: dict[str, str] = {
    "list_labels": "https://www.googleapis.com/auth/gmail.labels",
    "ensure_label": "https://www.googleapis.com/auth/gmail.labels",
    "get_messages_page": "https://www.googleapis.com/auth/gmail.modify",
    "get_thread": "https://www.googleapis.com/auth/gmail.modify",
    "add_label": "https://www.googleapis.com/auth/gmail.modify",
    "archive_message": "https://www.googleapis.com/auth/gmail.modify",
    "trash_message": "https://www.googleapis.com/auth/gmail.modify",
    "create_draft": "https://www.googleapis.com/auth/gmail.compose",
}

SCOPES: list[str] = sorted(set(GATEWAY_SCOPES.values()))


def load_credentials(settings: InboxTriageSettings) -> Credentials:
    """Return credentials covering every gateway operation.

    A cached token is reused when it is valid and was granted all of
    ``SCOPES``; an expired one is refreshed. Otherwise the browser consent
    flow runs against ``settings.credentials_path``. Whatever is obtained is
    written back to ``settings.token_path``.

    Raises:
        AuthenticationError: If no usable credentials can be obtained.
    """
    creds = _cached_token(settings.token_path)

    if creds is not None:
        if creds.valid:
            return creds
        if creds.expired and creds.refresh_token:
            refreshed = _refresh(creds, settings.token_path)
            if refreshed is not None:
                return refreshed

    return _consent_flow(settings.credentials_path, settings.token_path)


def build_gmail_service(creds: Credentials) -> Resource:
    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def _cached_token(token_path: Path) -> Credentials | None:
    if not token_path.exists():
        return None
    try:
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    except Exception as e:
        logger.warning("Ignoring unreadable token cache %s: %s", token_path, e)
        return None
    if not creds.has_scopes(SCOPES):
        # Tokens from an older scope set lack e.g. gmail.compose for drafts.
        logger.info("Cached token is missing required scopes, asking for consent again")
        return None
    return creds


def _refresh(creds: Credentials, token_path: Path) -> Credentials | None:
    try:
        creds.refresh(Request())
    except Exception as e:
        logger.warning("Token refresh failed, falling back to consent flow: %s", e)
        return None
    _store(creds, token_path)
    return creds


def _consent_flow(credentials_path: Path, token_path: Path) -> Credentials:
    if not credentials_path.exists():
        raise AuthenticationError(
            f"OAuth client file not found: {credentials_path}. "
            "Create a desktop OAuth client in Google Cloud Console and save its JSON there."
        )
    try:
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), SCOPES)
        creds = flow.run_local_server(port=0)
    except Exception as e:
        raise AuthenticationError(f"OAuth consent flow failed: {e}") from e
    _store(creds, token_path)
    logger.info("Gmail access granted for scopes %s", ", ".join(SCOPES))
    return creds


def _store(creds: Credentials, token_path: Path) -> None:
    token_path.parent.mkdir(parents=True, exist_ok=True)
    token_path.write_text(creds.to_json())
