"""Gmail authentication via OAuth 2.0 Installed Application Flow.

Uses the loopback redirect flow, which suits CLI applications: the
user's browser opens to Google's consent page and the authorization code
is captured by a short-lived local HTTP server.

The resulting token is persisted to <root>/.gma/credentials.json as
authorized-user JSON, readable by google.oauth2.credentials.
"""

import json
import os
from pathlib import Path

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from gmarchive.errors import ConfigurationError

# Archiving only needs to read messages
SCOPES = ["https://www.googleapis.com/auth/gmail.readonly"]

# Environment variables for the OAuth client.
# Used when --client-id / --client-secret are not given.
CLIENT_ID_ENV = "GMARCHIVE_CLIENT_ID"
CLIENT_SECRET_ENV = "GMARCHIVE_CLIENT_SECRET"


def load_token(token_file: Path) -> Credentials:
    """Load credentials from disk.

    Raises:
        ConfigurationError: If the token file is missing or unreadable.
    """
    if not token_file.exists():
        raise ConfigurationError(
            f"Credentials file {token_file} does not exist. "
            "First run 'gmarchive init'?"
        )

    try:
        return Credentials.from_authorized_user_file(str(token_file), SCOPES)
    except (ValueError, OSError) as e:
        raise ConfigurationError(f"Invalid credentials file {token_file}: {e}") from e


def save_token(creds: Credentials, token_file: Path) -> None:
    """Persist credentials to disk.

    Sets file permissions to 600 (owner read/write only) to protect tokens.
    """
    token_data = {
        "token": creds.token,
        "refresh_token": creds.refresh_token,
        "token_uri": creds.token_uri,
        "client_id": creds.client_id,
        "client_secret": creds.client_secret,
        "scopes": creds.scopes,
    }

    token_file.write_text(json.dumps(token_data, indent=2))
    token_file.chmod(0o600)


def resolve_client(
    client_id: str | None = None,
    client_secret: str | None = None,
) -> tuple[str, str]:
    """Get the OAuth client ID and secret.

    Explicit values win over the GMARCHIVE_CLIENT_ID and
    GMARCHIVE_CLIENT_SECRET environment variables.

    Raises:
        ConfigurationError: If either value is missing.
    """
    client_id = client_id or os.environ.get(CLIENT_ID_ENV)
    client_secret = client_secret or os.environ.get(CLIENT_SECRET_ENV)

    if not client_id:
        raise ConfigurationError(
            f"OAuth client ID not found. Pass --client-id or set {CLIENT_ID_ENV}."
        )
    if not client_secret:
        raise ConfigurationError(
            "OAuth client secret not found. "
            f"Pass --client-secret or set {CLIENT_SECRET_ENV}."
        )

    return client_id, client_secret


def _build_client_config(client_id: str, client_secret: str) -> dict:
    """Build OAuth client configuration dict.

    InstalledAppFlow expects the JSON structure normally downloaded from
    Cloud Console; it is constructed here from the client ID and secret.
    """
    return {
        "installed": {
            "client_id": client_id,
            "client_secret": client_secret,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "redirect_uris": ["http://localhost"],
        }
    }


def authenticate_loopback_flow(
    client_id: str,
    client_secret: str,
    token_file: Path,
) -> Credentials:
    """Perform OAuth 2.0 loopback flow authentication.

    Starts a local HTTP server on a free port, opens the user's browser to
    Google's consent page, exchanges the captured authorization code for
    tokens and saves them to token_file.

    Args:
        client_id: Google Cloud OAuth client ID.
        client_secret: Google Cloud OAuth client secret.
        token_file: Where to persist the token.

    Returns:
        The new credentials.
    """
    flow = InstalledAppFlow.from_client_config(
        _build_client_config(client_id, client_secret),
        scopes=SCOPES,
    )

    # access_type=offline so the token carries a refresh token
    creds = flow.run_local_server(
        port=0,
        access_type="offline",
        success_message="This window may be safely closed.",
    )

    save_token(creds, token_file)
    return creds
