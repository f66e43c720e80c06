"""Gmail API client for archive synchronization.

Wraps the Gmail API to provide the three calls the sync engine needs:
listing one page of a search, probing whether a search has results
before a date, and downloading a raw message.
"""

import base64
import threading
from datetime import datetime

import httplib2
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gmarchive.auth.gmail import load_token, save_token
from gmarchive.config.paths import ArchivePaths
from gmarchive.errors import ConfigurationError, RemoteCallError
from gmarchive.sync.periods import Period
from gmarchive.sync.query import date_clause

# Gmail caps messages.list pages at 500 ids
MAX_PAGE_SIZE = 500

# Errors raised by googleapiclient/httplib2 for a failed call
_CALL_ERRORS = (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError)


def get_credentials(paths: ArchivePaths) -> Credentials:
    """Get Gmail credentials for API access.

    Loads the token saved by `gmarchive init`. Expired tokens are refreshed
    and the refreshed token is persisted.

    Args:
        paths: Locations of the archive being synced.

    Returns:
        Valid credentials.

    Raises:
        ConfigurationError: If no token exists or it cannot be refreshed.
    """
    creds = load_token(paths.credentials_file)

    if creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as e:
            raise ConfigurationError(
                f"Could not refresh credentials in {paths.credentials_file}: {e}. "
                "Re-run 'gmarchive init'?"
            ) from e
        save_token(creds, paths.credentials_file)

    if not creds.valid:
        raise ConfigurationError(
            f"Credentials in {paths.credentials_file} are not valid. "
            "Re-run 'gmarchive init'?"
        )

    return creds


class GmailClient:
    """Client for the Gmail API calls used by the sync engine.

    get_raw() may be called from several worker threads at once. httplib2
    connections are not thread-safe, so each thread gets its own
    authorized transport.

    Example:
        client = GmailClient(creds)
        page = client.list_page("label:receipts -is:chat")
        raw = client.get_raw(page["ids"][0])
    """

    def __init__(self, credentials: Credentials):
        """Initialize Gmail client with credentials.

        Args:
            credentials: Google OAuth credentials object.
        """
        self._credentials = credentials
        self._service = build("gmail", "v1", credentials=credentials)
        self._local = threading.local()

    def _thread_http(self) -> AuthorizedHttp:
        """Authorized transport owned by the calling thread."""
        http = getattr(self._local, "http", None)
        if http is None:
            # Every transport shares one Credentials object. get_credentials
            # refreshes it before the run, so workers start with a valid token.
            # A token expiring mid-run may be refreshed by several at once.
            http = AuthorizedHttp(self._credentials, http=httplib2.Http())
            self._local.http = http
        return http

    def list_page(
        self,
        query: str,
        page_token: str | None = None,
        max_results: int = MAX_PAGE_SIZE,
    ) -> dict:
        """List one page of message IDs matching a query.

        Args:
            query: Gmail search query.
            page_token: Continuation token from the previous page.
            max_results: Page size (at most 500).

        Returns:
            Dict with keys:
            - ids: Message ID strings on this page
            - next_page_token: Token for the next page, or None on the last page

        Raises:
            RemoteCallError: If the request fails.
        """
        params = {
            "userId": "me",
            "q": query,
            "maxResults": min(max_results, MAX_PAGE_SIZE),
        }
        if page_token:
            params["pageToken"] = page_token

        try:
            result = self._service.users().messages().list(**params).execute()
        except _CALL_ERRORS as e:
            raise RemoteCallError(f"Failed to list messages for '{query}': {e}") from e

        return {
            "ids": [msg["id"] for msg in result.get("messages", [])],
            "next_page_token": result.get("nextPageToken"),
        }

    def has_message_before(self, query: str, instant: datetime) -> bool:
        """Check whether any message matching query is dated before instant.

        Gmail only filters on whole days, so the probe uses the day
        containing instant.

        Raises:
            RemoteCallError: If the request fails.
        """
        probe = f"{query} {date_clause('before', Period.DAY.floor(instant))}"
        page = self.list_page(probe.strip(), max_results=1)
        return bool(page["ids"])

    def get_raw(self, message_id: str) -> bytes:
        """Download a message in RAW format.

        Gmail returns the RFC 2822 message base64url-encoded; it is decoded
        to bytes for Maildir storage.

        Args:
            message_id: The message ID to fetch.

        Returns:
            Raw message bytes.

        Raises:
            RemoteCallError: If the request fails.
        """
        request = (
            self._service.users()
            .messages()
            .get(userId="me", id=message_id, format="raw")
        )
        try:
            result = request.execute(http=self._thread_http())
        except _CALL_ERRORS as e:
            raise RemoteCallError(f"Failed to fetch message {message_id}: {e}") from e

        # Gmail uses URL-safe base64 and may strip padding
        raw_base64 = result.get("raw", "")
        return base64.urlsafe_b64decode(raw_base64 + "=" * (-len(raw_base64) % 4))
