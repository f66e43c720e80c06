"""Exception types raised by gmarchive.

Every error is fatal for the current run. The CLI is the only place
where they are caught: it reports the message and exits non-zero.
"""


class GmarchiveError(Exception):
    """Base class for all gmarchive errors."""

    pass


class ConfigurationError(GmarchiveError):
    """Archive configuration or credentials are missing or invalid."""

    pass


class RemoteCallError(GmarchiveError):
    """A Gmail API call (listing or retrieval) failed."""

    pass


class ParseError(GmarchiveError):
    """A downloaded message has unparseable headers."""

    def __init__(self, message_id: str, reason: str):
        self.message_id = message_id
        self.reason = reason
        super().__init__(f"Error parsing message {message_id}: {reason}")
