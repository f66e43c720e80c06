"""Authentication with the Gmail API.

Usage:
    from gmarchive.auth import authenticate_loopback_flow, resolve_client

    client_id, client_secret = resolve_client(cli_id, cli_secret)
    creds = authenticate_loopback_flow(client_id, client_secret, token_file)
"""

from .gmail import (
    authenticate_loopback_flow,
    load_token,
    resolve_client,
    save_token,
)

__all__ = [
    "authenticate_loopback_flow",
    "load_token",
    "resolve_client",
    "save_token",
]
