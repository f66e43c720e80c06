"""Shared fixtures: an in-memory Gmail mailbox.

FakeGmail implements the GmailClient interface used by the sync engine
(list_page, has_message_before, get_raw) over a dict of messages. It
evaluates the before:/after: operators of a query on UTC days and
ignores every other search term.
"""

import re
import threading
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime
from pathlib import Path

import pytest

from gmarchive.errors import RemoteCallError
from gmarchive.storage.cache import MessageCache
from gmarchive.storage.maildir import MaildirStorage

DATE_OPERATOR_RE = re.compile(r"(before|after):(\d{4})/(\d{2})/(\d{2})")


def utc(*args) -> datetime:
    """Shorthand for an aware UTC datetime."""
    return datetime(*args, tzinfo=timezone.utc)


def make_raw(message_id: str, date: datetime, subject: str | None = None) -> bytes:
    """Build a minimal RFC 2822 message."""
    subject = subject or f"Message {message_id}"
    return (
        f"From: Alice <alice@example.com>\r\n"
        f"Subject: {subject}\r\n"
        f"Date: {format_datetime(date)}\r\n"
        f"\r\n"
        f"Body of {message_id}\r\n"
    ).encode()


class FakeGmail:
    """In-memory stand-in for GmailClient.

    Args:
        messages: Mapping of message ID to date.
        page_size: IDs per list page.
        boundary_slack: Widen every before:/after: filter by this much,
            imitating Gmail evaluating dates in another timezone.
    """

    def __init__(
        self,
        messages: dict[str, datetime],
        page_size: int = 2,
        boundary_slack: timedelta = timedelta(0),
    ):
        self.messages = dict(messages)
        self.page_size = page_size
        self.boundary_slack = boundary_slack
        self.queries: list[str] = []
        self.fetched: list[str] = []
        self.fail_after: int | None = None
        self.max_in_flight = 0
        self._in_flight = 0
        self._lock = threading.Lock()

    def _matches(self, query: str, date: datetime) -> bool:
        for operator, year, month, day in DATE_OPERATOR_RE.findall(query):
            bound = utc(int(year), int(month), int(day))
            if operator == "before" and date >= bound + self.boundary_slack:
                return False
            if operator == "after" and date < bound - self.boundary_slack:
                return False
        return True

    def list_page(self, query, page_token=None, max_results=500) -> dict:
        self.queries.append(query)
        # Newest first, like Gmail
        ids = [
            message_id
            for message_id, date in sorted(
                self.messages.items(), key=lambda item: item[1], reverse=True
            )
            if self._matches(query, date)
        ]
        size = min(self.page_size, max_results)
        start = int(page_token or 0)
        page = ids[start : start + size]
        next_start = start + size
        return {
            "ids": page,
            "next_page_token": str(next_start) if next_start < len(ids) else None,
        }

    def has_message_before(self, query, instant) -> bool:
        day = instant.astimezone(timezone.utc)
        probe = f"{query} before:{day.year}/{day.month:02d}/{day.day:02d}"
        return bool(self.list_page(probe, max_results=1)["ids"])

    def get_raw(self, message_id) -> bytes:
        with self._lock:
            if self.fail_after is not None and len(self.fetched) >= self.fail_after:
                raise RemoteCallError(f"Failed to fetch message {message_id}: boom")
            self.fetched.append(message_id)
            self._in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self._in_flight)
        try:
            return make_raw(message_id, self.messages[message_id])
        finally:
            with self._lock:
                self._in_flight -= 1


@pytest.fixture
def archive_root(tmp_path: Path) -> Path:
    return tmp_path / "archive"


@pytest.fixture
def maildir(archive_root: Path) -> MaildirStorage:
    """Create a real Maildir storage in a temporary directory."""
    return MaildirStorage(archive_root)


@pytest.fixture
def cache(archive_root: Path) -> MessageCache:
    """Create a message cache inside the archive, like the CLI does."""
    cache = MessageCache(archive_root / ".gma" / "tmp")
    cache.reset()
    return cache


def archived_files(root: Path) -> dict[str, list[str]]:
    """Map each Maildir under root to the sorted filenames in its cur/."""
    return {
        str(cur.parent.relative_to(root)): sorted(p.name for p in cur.iterdir())
        for cur in sorted(root.rglob("cur"))
        if cur.is_dir()
    }
