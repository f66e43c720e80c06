"""Data models for synchronized messages."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path


@dataclass
class Message:
    """A message downloaded from Gmail.

    Carries just the headers needed to place and report the message.
    `path` is the cached file while the message awaits its partition, or
    None in a dry run (nothing is written to disk).
    """

    id: str  # Gmail message ID
    date: datetime  # From the Date header
    subject: str | None = None
    sender: str | None = None  # From header, "Name <email>" format
    path: Path | None = None
    raw: bytes | None = field(default=None, repr=False)

    def summary(self) -> str:
        """One-line description for logs: date, sender and subject."""
        date = self.date.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        return f"{date} <{self.sender}>: {self.subject}"
